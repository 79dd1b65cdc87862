"""Outbound messaging executors: scheduled sends and follow-up sequences."""

import re
from datetime import datetime, timedelta
from uuid import uuid4

from sqlmodel import Session, select

from outreach.events.bus import emit_lifecycle_changed, emit_message_bounced, emit_message_sent
from outreach.exceptions import MessageSendError
from outreach.executors.base import ContextExecutor, add_activity, fill_placeholders, queue_message
from outreach.executors.counters import effective_daily_limit, utc_day
from outreach.executors.transport import OutboundMessage
from outreach.models.account import Account, LifecycleStage
from outreach.models.automation_task import AutomationTask, TaskType
from outreach.models.messaging import (
    ScheduledMessage,
    ScheduledMessageStatus,
    SendAccount,
    SendLog,
    SentMessage,
    Sequence,
    Unsubscribe,
)
from outreach.models.notification import NotificationType
from outreach.models.settings import OutreachSettings, load_settings

_BOUNCE_PATTERN = re.compile(r"\b55[0-4]\b")

FOLLOW_UP_TEMPLATE = "follow_up"
SCHEDULED_TEMPLATE = "scheduled"

# Accounts past first contact are handled by a person, not a sequence
SEQUENCE_SKIP_STAGES = frozenset(
    {
        LifecycleStage.ENGAGED,
        LifecycleStage.QUALIFIED,
        LifecycleStage.WON,
        LifecycleStage.ACTIVE_CLIENT,
    }
)


def is_bounce(error: Exception) -> bool:
    """True when a send failure is a permanent recipient rejection."""
    if isinstance(error, MessageSendError) and error.is_bounce:
        return True
    return bool(_BOUNCE_PATTERN.search(str(error)))


def pick_next_account(accounts: list[SendAccount]) -> SendAccount | None:
    """Least recently used active account that is still under its daily limit."""
    available = [a for a in accounts if a.is_active and a.send_count < a.daily_limit]
    if not available:
        return None
    return min(available, key=lambda a: a.last_used_at or datetime.min)


def sent_today(session: Session, day: str) -> int:
    log = session.get(SendLog, day)
    return log.count if log is not None else 0


def increment_send_log(session: Session, day: str) -> None:
    log = session.get(SendLog, day) or SendLog(day=day, count=0)
    log.count += 1
    session.add(log)


# -----------------------------------------------------------------------------
# SEND_MESSAGE
# -----------------------------------------------------------------------------


class SendMessageExecutor(ContextExecutor):
    """Send due scheduled messages, bounded by the effective daily limit.

    A failure on one message marks that message failed and moves on; only
    errors outside the transport call fail the task itself.
    """

    task_type = TaskType.SEND_MESSAGE

    def execute(self, task: AutomationTask) -> None:
        now = datetime.utcnow()
        day = utc_day(now)

        with self.session() as session:
            settings = load_settings(session)
            accounts = list(
                session.exec(select(SendAccount).where(SendAccount.is_active == True)).all()  # noqa: E712
            )
            if not accounts and not settings.sender_email:
                self._logger.debug("No sending identity configured, skipping")
                return

            due = session.exec(
                select(ScheduledMessage)
                .where(ScheduledMessage.status == ScheduledMessageStatus.PENDING)
                .where(ScheduledMessage.scheduled_at <= now)
                .order_by(ScheduledMessage.scheduled_at)
            ).all()

            limit = effective_daily_limit(settings)
            sent = 0
            for scheduled in due:
                if sent_today(session, day) >= limit:
                    self._logger.info(
                        "Daily send limit reached",
                        extra={"daily_limit": limit},
                    )
                    self.context.notifier.create(
                        NotificationType.DAILY_LIMIT_REACHED,
                        "Daily Send Limit Reached",
                        f"Today's send limit of {limit} messages has been reached. "
                        "Remaining messages will be sent tomorrow.",
                        action_url="/scheduled",
                    )
                    break

                if session.get(Unsubscribe, scheduled.recipient.lower()) is not None:
                    scheduled.status = ScheduledMessageStatus.CANCELLED
                    scheduled.error = "Recipient unsubscribed"
                    session.add(scheduled)
                    session.commit()
                    continue

                account: SendAccount | None = None
                if accounts:
                    account = pick_next_account(accounts)
                    if account is None:
                        self._logger.info("All send accounts at daily limit")
                        break

                if self._send_one(session, settings, scheduled, account, now, day):
                    sent += 1

        if sent:
            self._logger.info(f"Sent {sent} scheduled messages", extra={"sent": sent})

    def _send_one(
        self,
        session: Session,
        settings: OutreachSettings,
        scheduled: ScheduledMessage,
        account: SendAccount | None,
        now: datetime,
        day: str,
    ) -> bool:
        tracking_id = uuid4()
        message = OutboundMessage(
            sender=account.email if account else settings.sender_email,
            recipient=scheduled.recipient,
            subject=scheduled.subject,
            body=scheduled.body,
            tracking_id=tracking_id,
            send_account_id=account.id if account else None,
        )

        try:
            self.context.sender.send(message)
        except Exception as e:
            self._record_failure(session, scheduled, e)
            return False

        scheduled.status = ScheduledMessageStatus.SENT
        scheduled.sent_at = now
        scheduled.send_account_id = account.id if account else None
        session.add(scheduled)

        if account is not None:
            account.send_count += 1
            account.last_used_at = now
            session.add(account)

        sent_message = SentMessage(
            subject_id=scheduled.subject_id,
            subject=scheduled.subject,
            body=scheduled.body,
            template_used=FOLLOW_UP_TEMPLATE if scheduled.sequence_id else SCHEDULED_TEMPLATE,
            tracking_id=tracking_id,
            sent_at=now,
        )
        session.add(sent_message)

        promoted = False
        subject_account = session.get(Account, scheduled.subject_id)
        if subject_account is not None:
            if subject_account.lifecycle_stage == LifecycleStage.PROSPECT:
                subject_account.lifecycle_stage = LifecycleStage.CONTACTED
                promoted = True
            subject_account.last_contacted = now
            subject_account.updated_at = now
            session.add(subject_account)

        increment_send_log(session, day)
        session.commit()

        emit_message_sent(
            scheduled.subject_id, sent_message.id, scheduled.recipient, bus=self.context.bus
        )
        if promoted:
            emit_lifecycle_changed(
                scheduled.subject_id,
                LifecycleStage.PROSPECT.value,
                LifecycleStage.CONTACTED.value,
                bus=self.context.bus,
            )

        self._logger.info(
            f"Sent to {scheduled.recipient}",
            extra={
                "scheduled_message_id": str(scheduled.id),
                "send_account_id": str(account.id) if account else None,
            },
        )
        return True

    def _record_failure(
        self, session: Session, scheduled: ScheduledMessage, error: Exception
    ) -> None:
        error_msg = str(error) or error.__class__.__name__
        scheduled.status = ScheduledMessageStatus.FAILED
        scheduled.error = error_msg[:1000]
        session.add(scheduled)
        session.commit()

        self._logger.warning(
            f"Send to {scheduled.recipient} failed",
            extra={"scheduled_message_id": str(scheduled.id), "error": error_msg},
        )

        if is_bounce(error):
            emit_message_bounced(
                scheduled.subject_id, scheduled.id, error_msg, bus=self.context.bus
            )
        else:
            self.context.notifier.create(
                NotificationType.SEND_FAILED,
                "Message Send Failed",
                f"Failed to send message to {scheduled.recipient}: {error_msg}",
                subject_id=scheduled.subject_id,
                action_url="/scheduled",
            )


# -----------------------------------------------------------------------------
# FOLLOWUP_STEP
# -----------------------------------------------------------------------------


class FollowupStepExecutor(ContextExecutor):
    """Queue the next step of the active sequence for every eligible account."""

    task_type = TaskType.FOLLOWUP_STEP

    def execute(self, task: AutomationTask) -> None:
        now = datetime.utcnow()

        with self.session() as session:
            sequence = session.exec(
                select(Sequence).where(Sequence.is_active == True)  # noqa: E712
            ).first()
            if sequence is None or not sequence.steps:
                return

            settings = load_settings(session)
            has_accounts = session.exec(
                select(SendAccount).where(SendAccount.is_active == True)  # noqa: E712
            ).first() is not None
            if not has_accounts and not settings.sender_email:
                return

            queued_steps = {
                (m.subject_id, m.step_index)
                for m in session.exec(
                    select(ScheduledMessage)
                    .where(ScheduledMessage.status == ScheduledMessageStatus.PENDING)
                    .where(ScheduledMessage.sequence_id == sequence.id)
                ).all()
            }

            sequence_id = sequence.id
            queued = 0
            for account in session.exec(select(Account)).all():
                step_index = self._next_step(session, account, sequence, now)
                if step_index is None or (account.id, step_index) in queued_steps:
                    continue

                self._queue_step(session, account, sequence, step_index, settings, now)
                queued += 1

            session.commit()

        if queued:
            self._logger.info(
                f"Queued {queued} follow-ups",
                extra={"sequence_id": str(sequence_id), "queued": queued},
            )

    @staticmethod
    def _next_step(
        session: Session, account: Account, sequence: Sequence, now: datetime
    ) -> int | None:
        """Index of the step due for ``account``, or None when nothing is due."""
        if not account.contact_email or account.unsubscribed:
            return None
        if account.exclude_from_sequences or account.lifecycle_stage in SEQUENCE_SKIP_STAGES:
            return None

        sent = session.exec(
            select(SentMessage)
            .where(SentMessage.subject_id == account.id)
            .order_by(SentMessage.sent_at)
        ).all()
        if not sent:
            return None

        step_index = sum(1 for m in sent if m.template_used == FOLLOW_UP_TEMPLATE)
        if step_index >= len(sequence.steps):
            return None

        step = sequence.steps[step_index]
        if now - sent[-1].sent_at < timedelta(days=step.get("delay_days", 0)):
            return None

        condition = step.get("condition", "always")
        if condition == "no_reply" and any(m.responded_at for m in sent):
            return None
        if condition == "no_open" and any(m.opened_at for m in sent):
            return None

        return step_index

    @staticmethod
    def _queue_step(
        session: Session,
        account: Account,
        sequence: Sequence,
        step_index: int,
        settings: OutreachSettings,
        now: datetime,
    ) -> None:
        contact_name = account.contact_name or ""
        values = {
            "business_name": account.business_name,
            "contact_name": contact_name,
            "first_name": contact_name.split(" ")[0],
            "your_name": settings.sender_name,
            "your_email": settings.sender_email,
            "service_offering": settings.service_offering,
            "value_prop": settings.value_prop,
        }
        step = sequence.steps[step_index]

        queue_message(
            session,
            subject_id=account.id,
            recipient=account.contact_email,
            subject=fill_placeholders(step.get("subject", ""), values),
            body=fill_placeholders(step.get("body", ""), values),
            now=now,
            sequence_id=sequence.id,
            step_index=step_index,
        )
        add_activity(
            session,
            "follow_up_queued",
            f"Queued follow-up #{step_index + 1} for {account.business_name}",
            account.id,
        )
