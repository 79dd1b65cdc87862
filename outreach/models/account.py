"""Account and Activity entity models.

An account is the subject most tasks and events refer to through
``subject_id``. Activities are the per-account timeline.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel

from outreach.models.columns import json_column


class LifecycleStage(str, Enum):
    """Account lifecycle stages."""

    PROSPECT = "prospect"
    CONTACTED = "contacted"
    ENGAGED = "engaged"
    QUALIFIED = "qualified"
    WON = "won"
    ACTIVE_CLIENT = "active_client"
    LOST = "lost"


class Account(SQLModel, table=True):
    """Account database model."""

    __tablename__ = "accounts"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    business_name: str = Field(max_length=200)
    contact_name: str | None = Field(default=None, max_length=200)
    contact_email: str | None = Field(default=None, max_length=255, index=True)
    contact_phone: str | None = Field(default=None, max_length=50)
    location: str | None = Field(default=None, max_length=200)
    services: list[str] = Field(default_factory=list, sa_column=json_column())
    lifecycle_stage: LifecycleStage = Field(default=LifecycleStage.PROSPECT, index=True)
    pipeline_stage: str | None = Field(default=None, max_length=50)
    unsubscribed: bool = Field(default=False)
    exclude_from_sequences: bool = Field(default=False)
    last_contacted: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class Activity(SQLModel, table=True):
    """Timeline entry for an account."""

    __tablename__ = "activities"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    activity_type: str = Field(max_length=50, index=True)
    description: str
    subject_id: UUID | None = Field(default=None, index=True)
    timestamp: datetime = Field(default_factory=datetime.utcnow, index=True)
