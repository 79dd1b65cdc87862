"""Shared dependencies and helpers for the default executors."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy import Engine
from sqlmodel import Session

from outreach.automation.registry import TaskExecutor
from outreach.events.bus import EventBus
from outreach.executors.transport import (
    InboxPoller,
    LoggingMessageSender,
    MessageSender,
    NullInboxPoller,
)
from outreach.models.account import Activity
from outreach.models.messaging import ScheduledMessage
from outreach.services.notifications import NotificationSink

logger = logging.getLogger(__name__)


@dataclass
class ExecutorContext:
    """Everything an executor may touch besides the task itself."""

    engine: Engine
    bus: EventBus
    notifier: NotificationSink
    sender: MessageSender = field(default_factory=LoggingMessageSender)
    poller: InboxPoller = field(default_factory=NullInboxPoller)


class ContextExecutor(TaskExecutor):
    """Executor bound to an ``ExecutorContext``."""

    def __init__(self, context: ExecutorContext) -> None:
        self.context = context
        self._logger = logging.getLogger(self.__class__.__name__)

    def session(self) -> Session:
        return Session(self.context.engine)


def fill_placeholders(template: str, values: dict[str, str]) -> str:
    """Replace every ``{key}`` in ``template``; unknown keys are left alone."""
    for key, value in values.items():
        template = template.replace("{" + key + "}", value or "")
    return template


def add_activity(
    session: Session, activity_type: str, description: str, subject_id: UUID | None
) -> None:
    session.add(
        Activity(
            activity_type=activity_type,
            description=description,
            subject_id=subject_id,
        )
    )


def queue_message(
    session: Session,
    subject_id: UUID,
    recipient: str,
    subject: str,
    body: str,
    now: datetime,
    sequence_id: UUID | None = None,
    step_index: int | None = None,
) -> ScheduledMessage:
    """Add a pending message, due immediately, for the SEND_MESSAGE task."""
    message = ScheduledMessage(
        subject_id=subject_id,
        sequence_id=sequence_id,
        step_index=step_index,
        recipient=recipient,
        subject=subject,
        body=body,
        scheduled_at=now,
        created_at=now,
    )
    session.add(message)
    return message
