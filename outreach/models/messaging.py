"""Outbound messaging entity models."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel

from outreach.models.columns import json_column


class ScheduledMessageStatus(str, Enum):
    """Scheduled message status values."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ScheduledMessage(SQLModel, table=True):
    """A queued outbound message waiting for the SEND_MESSAGE task."""

    __tablename__ = "scheduled_messages"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    subject_id: UUID = Field(index=True)
    sequence_id: UUID | None = Field(default=None, index=True)
    step_index: int | None = Field(default=None)
    recipient: str = Field(max_length=255)
    subject: str = Field(max_length=300)
    body: str
    scheduled_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    status: ScheduledMessageStatus = Field(
        default=ScheduledMessageStatus.PENDING, index=True
    )
    error: str | None = Field(default=None, max_length=1000)
    send_account_id: UUID | None = Field(default=None)
    sent_at: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class SentMessage(SQLModel, table=True):
    """A message that left the system."""

    __tablename__ = "sent_messages"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    subject_id: UUID = Field(index=True)
    subject: str = Field(max_length=300)
    body: str
    template_used: str = Field(default="scheduled", max_length=50)
    tracking_id: UUID = Field(default_factory=uuid4, index=True)
    sent_at: datetime = Field(default_factory=datetime.utcnow)
    opened_at: datetime | None = Field(default=None)
    responded_at: datetime | None = Field(default=None)


class SendAccount(SQLModel, table=True):
    """Mailbox used for sending, with a per-day counter."""

    __tablename__ = "send_accounts"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    label: str = Field(max_length=100)
    email: str = Field(max_length=255)
    is_active: bool = Field(default=True, index=True)
    daily_limit: int = Field(default=50)
    send_count: int = Field(default=0)
    imap_host: str | None = Field(default=None, max_length=255)
    last_used_at: datetime | None = Field(default=None)


class Sequence(SQLModel, table=True):
    """Follow-up sequence; steps are ordered dicts.

    Step keys: ``delay_days``, ``condition`` (``always``, ``no_reply``,
    ``no_open``), ``subject``, ``body``.
    """

    __tablename__ = "sequences"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(max_length=100)
    is_active: bool = Field(default=False, index=True)
    steps: list[dict[str, Any]] = Field(default_factory=list, sa_column=json_column())


class SendLog(SQLModel, table=True):
    """Messages sent per UTC day."""

    __tablename__ = "send_log"

    day: str = Field(primary_key=True, max_length=10)
    count: int = Field(default=0)


class Unsubscribe(SQLModel, table=True):
    """Recipient address that opted out."""

    __tablename__ = "unsubscribes"

    email: str = Field(primary_key=True, max_length=255)
    created_at: datetime = Field(default_factory=datetime.utcnow)
