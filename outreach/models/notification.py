"""Notification entity model for user-visible alerts."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel


class NotificationType(str, Enum):
    """Kinds of alert raised by executors and subscribers."""

    REPLY_RECEIVED = "reply_received"
    SEND_FAILED = "send_failed"
    WARMUP_MILESTONE = "warmup_milestone"
    DAILY_LIMIT_REACHED = "daily_limit_reached"
    BOUNCE_DETECTED = "bounce_detected"
    REVIEW_ALERT = "review_alert"
    TASK_FAILED = "task_failed"


class Notification(SQLModel, table=True):
    """Notification database model."""

    __tablename__ = "notifications"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    notification_type: NotificationType = Field(index=True)
    title: str = Field(max_length=200)
    message: str
    subject_id: UUID | None = Field(default=None, index=True)
    action_url: str | None = Field(default=None, max_length=500)
    is_read: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
