"""Event type definitions for the in-process event bus."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from outreach.models.event_log import EventLogEntry


class EventType(str, Enum):
    """Event types broadcast after something happened."""

    MESSAGE_SENT = "message.sent"
    MESSAGE_OPENED = "message.opened"
    MESSAGE_CLICKED = "message.clicked"
    MESSAGE_REPLIED = "message.replied"
    MESSAGE_BOUNCED = "message.bounced"
    LIFECYCLE_CHANGED = "lifecycle.changed"
    PIPELINE_STAGE_CHANGED = "pipeline.stage.changed"
    REVIEW_RECEIVED = "review.received"
    TASK_COMPLETED = "task.completed"
    TASK_FAILED = "task.failed"


class SystemEvent(BaseModel):
    """Immutable fact broadcast to subscribers.

    ``data`` is not schema-validated beyond the declared type, so
    subscribers must tolerate missing keys.
    """

    event_type: EventType
    subject_id: UUID | None = None
    data: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}

    def to_log_entry(self) -> EventLogEntry:
        """Timestamped, id-assigned copy for the event log."""
        return EventLogEntry(
            id=uuid4(),
            event_type=self.event_type.value,
            subject_id=self.subject_id,
            data=self.model_dump(mode="json")["data"],
            timestamp=datetime.utcnow(),
        )
