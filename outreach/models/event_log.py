"""EventLogEntry entity model for the persisted event log."""

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel

from outreach.models.columns import json_column


class EventLogEntry(SQLModel, table=True):
    """Append-only record of an emitted event."""

    __tablename__ = "event_log"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    event_type: str = Field(max_length=50, index=True)
    subject_id: UUID | None = Field(default=None, index=True)
    data: dict[str, Any] = Field(default_factory=dict, sa_column=json_column())
    timestamp: datetime = Field(default_factory=datetime.utcnow, index=True)


class EventLogResponse(SQLModel):
    """Schema for event log response."""

    id: UUID
    event_type: str
    subject_id: UUID | None
    data: dict[str, Any]
    timestamp: datetime

    model_config = {"from_attributes": True}


class EventLogListResponse(SQLModel):
    """Schema for event log list response."""

    events: list[EventLogResponse]
    total: int
