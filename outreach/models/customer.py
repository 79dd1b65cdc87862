"""Review request and retention reminder entity models."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel


class ReviewRequestStatus(str, Enum):
    """Review request progression."""

    PENDING = "pending"
    INITIAL_SENT = "initial_sent"
    FOLLOWUP_SENT = "followup_sent"
    COMPLETED = "completed"


class ReviewRequest(SQLModel, table=True):
    """Request for a customer review after a completed job."""

    __tablename__ = "review_requests"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    subject_id: UUID = Field(index=True)
    customer_name: str = Field(max_length=200)
    customer_email: str | None = Field(default=None, max_length=255)
    job_description: str = Field(default="", max_length=500)
    job_date: datetime
    review_link: str = Field(default="", max_length=500)
    status: ReviewRequestStatus = Field(default=ReviewRequestStatus.PENDING, index=True)
    initial_sent_at: datetime | None = Field(default=None)
    followup_sent_at: datetime | None = Field(default=None)


class RetentionReminderStatus(str, Enum):
    """Retention reminder status values."""

    PENDING = "pending"
    SENT = "sent"
    CANCELLED = "cancelled"


class RetentionReminder(SQLModel, table=True):
    """Maintenance or seasonal reminder for a past customer."""

    __tablename__ = "retention_reminders"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    subject_id: UUID = Field(index=True)
    customer_name: str = Field(max_length=200)
    customer_email: str | None = Field(default=None, max_length=255)
    reminder_type: str = Field(default="maintenance", max_length=50)
    message: str
    due_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    status: RetentionReminderStatus = Field(
        default=RetentionReminderStatus.PENDING, index=True
    )
    sent_at: datetime | None = Field(default=None)
