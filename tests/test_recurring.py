"""Tests for recurring task seeding and re-enqueue."""

from datetime import datetime, timedelta

from outreach.automation.recurring import (
    DEFAULT_RECURRING_TASKS,
    RecurringScheduler,
    RecurringTaskDefinition,
    interval_ms_of,
)
from outreach.automation.task_store import MemoryTaskStore
from outreach.models.automation_task import (
    AutomationTask,
    TaskPriority,
    TaskStatus,
    TaskType,
)


class TestDefaultDefinitions:
    """Tests for the declared recurring task list."""

    def test_declared_intervals(self):
        """Every recurring type has its declared interval and priority."""
        by_type = {d.task_type: d for d in DEFAULT_RECURRING_TASKS}

        assert by_type[TaskType.SEND_MESSAGE].interval_ms == 60_000
        assert by_type[TaskType.SEND_MESSAGE].priority == TaskPriority.HIGH
        assert by_type[TaskType.FOLLOWUP_STEP].interval_ms == 300_000
        assert by_type[TaskType.POLL_INBOX].interval_ms == 300_000
        assert by_type[TaskType.WARMUP_INCREMENT].priority == TaskPriority.LOW
        assert by_type[TaskType.RESET_COUNTERS].interval_ms == 3_600_000
        assert by_type[TaskType.SEND_REVIEW_REQUEST].interval_ms == 900_000
        assert by_type[TaskType.SEND_RETENTION_REMINDER].interval_ms == 1_800_000

    def test_one_shot_types_not_recurring(self):
        """Report and analytics tasks are never seeded."""
        types = {d.task_type for d in DEFAULT_RECURRING_TASKS}

        assert TaskType.GENERATE_REPORT not in types
        assert TaskType.COMPUTE_ANALYTICS not in types
        assert len(types) == 7


class TestSeed:
    """Tests for RecurringScheduler.seed."""

    def test_seeds_every_definition(self, task_store: MemoryTaskStore):
        """An empty store gets one pending task per definition."""
        now = datetime(2026, 1, 1, 12, 0, 0)

        seeded = RecurringScheduler(task_store).seed(now=now)

        assert len(seeded) == len(DEFAULT_RECURRING_TASKS)
        for task in seeded:
            assert task.status == TaskStatus.PENDING
            assert task.scheduled_at == now + timedelta(seconds=5)
            assert task.payload["recurring"] is True
            assert task.payload["interval_ms"] > 0

    def test_seed_is_idempotent(self, task_store: MemoryTaskStore):
        """Seeding twice does not duplicate any type."""
        scheduler = RecurringScheduler(task_store)

        scheduler.seed()
        second = scheduler.seed()

        assert second == []
        assert len(task_store.all()) == len(DEFAULT_RECURRING_TASKS)

    def test_processing_task_counts_as_live(self, task_store: MemoryTaskStore):
        """A processing task blocks seeding of its type."""
        task_store.upsert(
            AutomationTask(task_type=TaskType.POLL_INBOX, status=TaskStatus.PROCESSING)
        )

        seeded = RecurringScheduler(task_store).seed()

        assert TaskType.POLL_INBOX not in {t.task_type for t in seeded}

    def test_terminal_task_does_not_block(self, task_store: MemoryTaskStore):
        """Completed and dead-lettered tasks do not block seeding."""
        task_store.upsert(
            AutomationTask(task_type=TaskType.POLL_INBOX, status=TaskStatus.DEAD_LETTER)
        )
        definitions = (RecurringTaskDefinition(TaskType.POLL_INBOX, 300_000),)

        seeded = RecurringScheduler(task_store, definitions).seed()

        assert len(seeded) == 1


class TestScheduleNext:
    """Tests for RecurringScheduler.schedule_next."""

    def test_successor_scheduled_after_interval(self, task_store: MemoryTaskStore):
        """A completed recurring task gets exactly one successor."""
        now = datetime(2026, 1, 1, 12, 0, 0)
        completed = AutomationTask(
            task_type=TaskType.FOLLOWUP_STEP,
            status=TaskStatus.COMPLETED,
            retry_count=2,
            priority=TaskPriority.HIGH,
            payload={"recurring": True, "interval_ms": 300_000},
        )

        successor = RecurringScheduler(task_store).schedule_next(completed, now=now)

        assert successor is not None
        assert successor.id != completed.id
        assert successor.status == TaskStatus.PENDING
        assert successor.retry_count == 0
        assert successor.priority == TaskPriority.HIGH
        assert successor.scheduled_at == now + timedelta(minutes=5)
        assert successor.payload == completed.payload
        assert task_store.all() == [successor]

    def test_non_recurring_has_no_successor(self, task_store: MemoryTaskStore):
        """One-shot tasks are not re-enqueued."""
        completed = AutomationTask(
            task_type=TaskType.GENERATE_REPORT, status=TaskStatus.COMPLETED
        )

        assert RecurringScheduler(task_store).schedule_next(completed) is None
        assert task_store.all() == []

    def test_missing_interval_defaults_to_one_minute(self):
        """A recurring payload without interval falls back to 60s."""
        task = AutomationTask(task_type=TaskType.SEND_MESSAGE, payload={"recurring": True})

        assert interval_ms_of(task) == 60_000

    def test_invalid_interval_defaults_to_one_minute(self):
        """Non-numeric and non-positive intervals fall back to 60s."""
        for raw in ("soon", -5, 0, True):
            task = AutomationTask(
                task_type=TaskType.SEND_MESSAGE,
                payload={"recurring": True, "interval_ms": raw},
            )
            assert interval_ms_of(task) == 60_000
