"""Customer-facing executors: review requests and retention reminders.

Both only queue ``ScheduledMessage`` rows; delivery happens in the next
SEND_MESSAGE run under the daily limit.
"""

from datetime import datetime, timedelta

from sqlmodel import col, select

from outreach.executors.base import ContextExecutor, fill_placeholders, queue_message
from outreach.models.account import Account
from outreach.models.automation_task import AutomationTask, TaskType
from outreach.models.customer import (
    RetentionReminder,
    RetentionReminderStatus,
    ReviewRequest,
    ReviewRequestStatus,
)

INITIAL_REQUEST_DELAY = timedelta(hours=2)
FOLLOWUP_REQUEST_DELAY = timedelta(hours=48)

INITIAL_SUBJECT = "How was your experience with {business_name}?"
INITIAL_BODY = (
    "Hi {customer_name},\n\n"
    "Thank you for choosing {business_name} for your recent {service}! "
    "We hope everything went well.\n\n"
    "If you had a great experience, we'd really appreciate a quick review. "
    "It only takes a minute and helps other people in {neighborhood} find us.\n\n"
    "{review_link}\n\n"
    "Thank you so much!\n\n"
    "Best regards,\n{business_name}"
)
FOLLOWUP_SUBJECT = "Quick reminder from {business_name}"
FOLLOWUP_BODY = (
    "Hi {customer_name},\n\n"
    "Just a friendly reminder: if you have a moment, we'd love to hear about "
    "your experience with {business_name}.\n\n"
    "Your review helps us improve and helps neighbors in {neighborhood} find "
    "quality {service}.\n\n"
    "{review_link}\n\n"
    "Thanks again for your business!\n\n{business_name}"
)

SEASONAL_REMINDER = "seasonal_refresh"


def season_of(when: datetime) -> str:
    month = when.month
    if 3 <= month <= 5:
        return "spring"
    if 6 <= month <= 8:
        return "summer"
    if 9 <= month <= 11:
        return "fall"
    return "winter"


class ReviewRequestExecutor(ContextExecutor):
    """Queue initial review requests and their single follow-up.

    Handles both request states, so it serves SEND_REVIEW_REQUEST and
    SEND_REVIEW_FOLLOWUP alike.
    """

    task_type = TaskType.SEND_REVIEW_REQUEST

    def execute(self, task: AutomationTask) -> None:
        now = datetime.utcnow()
        queued = 0

        with self.session() as session:
            requests = session.exec(
                select(ReviewRequest).where(
                    col(ReviewRequest.status).in_(
                        [ReviewRequestStatus.PENDING, ReviewRequestStatus.INITIAL_SENT]
                    )
                )
            ).all()

            for request in requests:
                if not request.customer_email:
                    continue
                account = session.get(Account, request.subject_id)
                if account is None:
                    continue

                values = {
                    "customer_name": request.customer_name,
                    "business_name": account.business_name,
                    "service": request.job_description,
                    "neighborhood": account.location or "",
                    "review_link": request.review_link,
                }

                if (
                    request.status == ReviewRequestStatus.PENDING
                    and now - request.job_date >= INITIAL_REQUEST_DELAY
                ):
                    subject, body = INITIAL_SUBJECT, INITIAL_BODY
                    request.status = ReviewRequestStatus.INITIAL_SENT
                    request.initial_sent_at = now
                elif (
                    request.status == ReviewRequestStatus.INITIAL_SENT
                    and request.initial_sent_at is not None
                    and now - request.initial_sent_at >= FOLLOWUP_REQUEST_DELAY
                ):
                    subject, body = FOLLOWUP_SUBJECT, FOLLOWUP_BODY
                    request.status = ReviewRequestStatus.FOLLOWUP_SENT
                    request.followup_sent_at = now
                else:
                    continue

                queue_message(
                    session,
                    subject_id=request.subject_id,
                    recipient=request.customer_email,
                    subject=fill_placeholders(subject, values),
                    body=fill_placeholders(body, values),
                    now=now,
                )
                session.add(request)
                queued += 1

            session.commit()

        if queued:
            self._logger.info(f"Queued {queued} review requests", extra={"queued": queued})


class RetentionReminderExecutor(ContextExecutor):
    """Queue due retention reminders and mark them sent."""

    task_type = TaskType.SEND_RETENTION_REMINDER

    def execute(self, task: AutomationTask) -> None:
        now = datetime.utcnow()
        season = season_of(now)
        queued = 0

        with self.session() as session:
            reminders = session.exec(
                select(RetentionReminder)
                .where(RetentionReminder.status == RetentionReminderStatus.PENDING)
                .where(RetentionReminder.due_at <= now)
            ).all()

            for reminder in reminders:
                if not reminder.customer_email:
                    continue
                account = session.get(Account, reminder.subject_id)
                if account is None:
                    continue

                if reminder.reminder_type == SEASONAL_REMINDER:
                    subject = f"Time for your {season} refresh!"
                else:
                    subject = f"Maintenance reminder from {account.business_name}"

                body = fill_placeholders(
                    reminder.message,
                    {
                        "customer_name": reminder.customer_name,
                        "business_name": account.business_name,
                        "service": account.services[0] if account.services else "service",
                        "season": season,
                        "phone": account.contact_phone or "",
                    },
                )
                queue_message(
                    session,
                    subject_id=reminder.subject_id,
                    recipient=reminder.customer_email,
                    subject=subject,
                    body=body,
                    now=now,
                )
                reminder.status = RetentionReminderStatus.SENT
                reminder.sent_at = now
                session.add(reminder)
                queued += 1

            session.commit()

        if queued:
            self._logger.info(f"Queued {queued} retention reminders", extra={"queued": queued})
