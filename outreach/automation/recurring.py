"""Recurring task seeding and re-enqueue.

A recurring task carries ``recurring: true`` and ``interval_ms`` in its
payload. When it completes, a brand-new task of the same type is
scheduled ``interval_ms`` after completion; the old record stays
terminal. The cadence therefore drifts under load but never
double-schedules.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from outreach.automation.task_store import TaskStore
from outreach.models.automation_task import (
    DEFAULT_MAX_RETRIES,
    AutomationTask,
    TaskPriority,
    TaskStatus,
    TaskType,
)

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MS = 60_000
DEFAULT_SEED_DELAY_SECONDS = 5.0


@dataclass(frozen=True)
class RecurringTaskDefinition:
    """A statically declared self-perpetuating task."""

    task_type: TaskType
    interval_ms: int
    priority: TaskPriority = TaskPriority.NORMAL


DEFAULT_RECURRING_TASKS: tuple[RecurringTaskDefinition, ...] = (
    RecurringTaskDefinition(TaskType.SEND_MESSAGE, 60_000, TaskPriority.HIGH),
    RecurringTaskDefinition(TaskType.FOLLOWUP_STEP, 300_000, TaskPriority.NORMAL),
    RecurringTaskDefinition(TaskType.POLL_INBOX, 300_000, TaskPriority.NORMAL),
    RecurringTaskDefinition(TaskType.WARMUP_INCREMENT, 3_600_000, TaskPriority.LOW),
    RecurringTaskDefinition(TaskType.RESET_COUNTERS, 3_600_000, TaskPriority.LOW),
    RecurringTaskDefinition(TaskType.SEND_REVIEW_REQUEST, 900_000, TaskPriority.NORMAL),
    RecurringTaskDefinition(TaskType.SEND_RETENTION_REMINDER, 1_800_000, TaskPriority.LOW),
)


def interval_ms_of(task: AutomationTask) -> int:
    """Interval from the payload, falling back to one minute."""
    raw = (task.payload or {}).get("interval_ms")
    if isinstance(raw, bool) or not isinstance(raw, (int, float)) or raw <= 0:
        return DEFAULT_INTERVAL_MS
    return int(raw)


class RecurringScheduler:
    """Seeds missing recurring tasks and schedules successors."""

    def __init__(
        self,
        store: TaskStore,
        definitions: tuple[RecurringTaskDefinition, ...] = DEFAULT_RECURRING_TASKS,
        seed_delay_seconds: float = DEFAULT_SEED_DELAY_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> None:
        self._store = store
        self.definitions = definitions
        self.seed_delay_seconds = seed_delay_seconds
        self.max_retries = max_retries

    def seed(self, now: datetime | None = None) -> list[AutomationTask]:
        """Insert one task for every declared type with no live task.

        A type counts as live when any task of that type is pending or
        processing, so repeated seeding is a no-op.
        """
        now = now or datetime.utcnow()
        live_types = {
            TaskType(task.task_type)
            for status in (TaskStatus.PENDING, TaskStatus.PROCESSING)
            for task in self._store.find_by_status(status)
        }

        seeded: list[AutomationTask] = []
        for definition in self.definitions:
            if definition.task_type in live_types:
                continue

            task = AutomationTask(
                task_type=definition.task_type,
                scheduled_at=now + timedelta(seconds=self.seed_delay_seconds),
                payload={"recurring": True, "interval_ms": definition.interval_ms},
                priority=definition.priority,
                max_retries=self.max_retries,
                created_at=now,
            )
            self._store.upsert(task)
            live_types.add(definition.task_type)
            seeded.append(task)

            logger.info(
                f"Seeded recurring task {definition.task_type.value}",
                extra={
                    "task_id": str(task.id),
                    "task_type": definition.task_type.value,
                    "interval_ms": definition.interval_ms,
                },
            )

        return seeded

    def schedule_next(
        self, completed: AutomationTask, now: datetime | None = None
    ) -> AutomationTask | None:
        """Enqueue the successor of a completed recurring task."""
        if not completed.is_recurring:
            return None

        now = now or datetime.utcnow()
        interval_ms = interval_ms_of(completed)

        successor = AutomationTask(
            task_type=completed.task_type,
            subject_id=completed.subject_id,
            scheduled_at=now + timedelta(milliseconds=interval_ms),
            payload=dict(completed.payload),
            priority=completed.priority,
            retry_count=0,
            max_retries=self.max_retries,
            created_at=now,
        )
        self._store.upsert(successor)

        logger.debug(
            "Scheduled next occurrence",
            extra={
                "task_id": str(successor.id),
                "previous_task_id": str(completed.id),
                "task_type": TaskType(completed.task_type).value,
                "scheduled_at": successor.scheduled_at.isoformat(),
            },
        )
        return successor
