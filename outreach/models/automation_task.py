"""AutomationTask entity model for the task dispatcher."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel

from outreach.models.columns import json_column


class TaskType(str, Enum):
    """Closed set of task types, one executor per type."""

    SEND_MESSAGE = "SEND_MESSAGE"
    FOLLOWUP_STEP = "FOLLOWUP_STEP"
    POLL_INBOX = "POLL_INBOX"
    WARMUP_INCREMENT = "WARMUP_INCREMENT"
    RESET_COUNTERS = "RESET_COUNTERS"
    SEND_REVIEW_REQUEST = "SEND_REVIEW_REQUEST"
    SEND_REVIEW_FOLLOWUP = "SEND_REVIEW_FOLLOWUP"
    SEND_RETENTION_REMINDER = "SEND_RETENTION_REMINDER"
    GENERATE_REPORT = "GENERATE_REPORT"
    COMPUTE_ANALYTICS = "COMPUTE_ANALYTICS"


class TaskPriority(str, Enum):
    """Task priority, used only as a secondary sort key."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK: dict[TaskPriority, int] = {
    TaskPriority.LOW: 0,
    TaskPriority.NORMAL: 1,
    TaskPriority.HIGH: 2,
}


class TaskStatus(str, Enum):
    """Task lifecycle status.

    pending -> processing -> completed | pending (retry) | dead_letter
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    DEAD_LETTER = "dead_letter"


DEFAULT_MAX_RETRIES = 3


class AutomationTask(SQLModel, table=True):
    """Persisted unit of deferred, typed work."""

    __tablename__ = "automation_tasks"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    task_type: TaskType = Field(index=True)
    # Correlation only, never dereferenced by the dispatcher
    subject_id: UUID | None = Field(default=None, index=True)
    scheduled_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    payload: dict[str, Any] = Field(default_factory=dict, sa_column=json_column())
    priority: TaskPriority = Field(default=TaskPriority.NORMAL)
    status: TaskStatus = Field(default=TaskStatus.PENDING, index=True)
    retry_count: int = Field(default=0)
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES)
    error_log: list[str] = Field(default_factory=list, sa_column=json_column())
    created_at: datetime = Field(default_factory=datetime.utcnow)
    last_attempt_at: datetime | None = Field(default=None)
    completed_at: datetime | None = Field(default=None)

    @property
    def is_recurring(self) -> bool:
        return bool((self.payload or {}).get("recurring"))

    @property
    def last_error(self) -> str | None:
        return self.error_log[-1] if self.error_log else None


class AutomationTaskCreate(SQLModel):
    """Schema for enqueueing a one-off task."""

    task_type: TaskType
    payload: dict[str, Any] = Field(default_factory=dict)
    subject_id: UUID | None = None
    priority: TaskPriority = TaskPriority.NORMAL
    scheduled_at: datetime | None = None


class AutomationTaskResponse(SQLModel):
    """Schema for task response."""

    id: UUID
    task_type: TaskType
    subject_id: UUID | None
    scheduled_at: datetime
    payload: dict[str, Any]
    priority: TaskPriority
    status: TaskStatus
    retry_count: int
    max_retries: int
    error_log: list[str]
    created_at: datetime
    last_attempt_at: datetime | None
    completed_at: datetime | None

    model_config = {"from_attributes": True}


class AutomationTaskListResponse(SQLModel):
    """Schema for task list response."""

    tasks: list[AutomationTaskResponse]
    total: int


class AutomationStatusResponse(SQLModel):
    """Schema for dispatcher health response."""

    running: bool
    last_poll_at: datetime | None
    tasks_completed_in_window: int
    active_count: int
    queue: dict[TaskStatus, int]
