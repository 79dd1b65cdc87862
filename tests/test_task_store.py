"""Tests for the SQL and in-memory task stores."""

from datetime import datetime, timedelta

import pytest

from outreach.automation.task_store import MemoryTaskStore, SqlTaskStore
from outreach.models.automation_task import (
    AutomationTask,
    TaskPriority,
    TaskStatus,
    TaskType,
)

NOW = datetime(2026, 1, 1, 12, 0, 0)


@pytest.fixture(params=["sql", "memory"])
def store(request, engine):
    """Each test runs against both store implementations."""
    if request.param == "sql":
        return SqlTaskStore(engine)
    return MemoryTaskStore()


def _task(
    scheduled_at: datetime,
    priority: TaskPriority = TaskPriority.NORMAL,
    status: TaskStatus = TaskStatus.PENDING,
    task_type: TaskType = TaskType.SEND_MESSAGE,
) -> AutomationTask:
    return AutomationTask(
        task_type=task_type,
        scheduled_at=scheduled_at,
        priority=priority,
        status=status,
        created_at=scheduled_at,
    )


class TestUpsertAndGet:
    """Tests for upsert and get."""

    def test_get_returns_stored_task(self, store):
        """A stored task can be read back with its payload."""
        task = _task(NOW)
        task.payload = {"recurring": True, "interval_ms": 60_000}
        store.upsert(task)

        loaded = store.get(task.id)

        assert loaded is not None
        assert loaded.task_type == TaskType.SEND_MESSAGE
        assert loaded.payload == {"recurring": True, "interval_ms": 60_000}
        assert loaded.status == TaskStatus.PENDING

    def test_upsert_updates_existing(self, store):
        """Upserting the same id replaces the stored state."""
        task = _task(NOW)
        store.upsert(task)

        task.status = TaskStatus.DEAD_LETTER
        task.retry_count = 3
        task.error_log = ["[x] boom"]
        store.upsert(task)

        loaded = store.get(task.id)
        assert loaded.status == TaskStatus.DEAD_LETTER
        assert loaded.retry_count == 3
        assert loaded.error_log == ["[x] boom"]

    def test_get_missing_returns_none(self, store):
        """Unknown ids return None."""
        assert store.get(_task(NOW).id) is None


class TestFindDue:
    """Tests for find_due ordering and filtering."""

    def test_only_pending_and_due(self, store):
        """Future, processing and terminal tasks are never returned."""
        due = _task(NOW - timedelta(minutes=1))
        future = _task(NOW + timedelta(minutes=1))
        processing = _task(NOW - timedelta(minutes=1), status=TaskStatus.PROCESSING)
        completed = _task(NOW - timedelta(minutes=1), status=TaskStatus.COMPLETED)
        for task in (due, future, processing, completed):
            store.upsert(task)

        found = store.find_due(10, now=NOW)

        assert [t.id for t in found] == [due.id]

    def test_priority_then_age(self, store):
        """Higher priority first, then oldest scheduled_at first."""
        old_low = _task(NOW - timedelta(minutes=30), TaskPriority.LOW)
        new_high = _task(NOW - timedelta(minutes=1), TaskPriority.HIGH)
        old_normal = _task(NOW - timedelta(minutes=20), TaskPriority.NORMAL)
        new_normal = _task(NOW - timedelta(minutes=5), TaskPriority.NORMAL)
        for task in (old_low, new_high, old_normal, new_normal):
            store.upsert(task)

        found = store.find_due(10, now=NOW)

        assert [t.id for t in found] == [new_high.id, old_normal.id, new_normal.id, old_low.id]

    def test_limit_respected(self, store):
        """No more than ``limit`` tasks are returned."""
        for minutes in range(5):
            store.upsert(_task(NOW - timedelta(minutes=minutes + 1)))

        assert len(store.find_due(2, now=NOW)) == 2


class TestQueries:
    """Tests for status queries."""

    def test_find_by_status(self, store):
        """find_by_status filters on status."""
        pending = _task(NOW)
        store.upsert(pending)
        store.upsert(_task(NOW, status=TaskStatus.COMPLETED))

        found = store.find_by_status(TaskStatus.PENDING)

        assert [t.id for t in found] == [pending.id]

    def test_count_by_status(self, store):
        """Every status is counted, including zero counts."""
        store.upsert(_task(NOW))
        store.upsert(_task(NOW))
        store.upsert(_task(NOW, status=TaskStatus.DEAD_LETTER))

        counts = store.count_by_status()

        assert counts[TaskStatus.PENDING] == 2
        assert counts[TaskStatus.DEAD_LETTER] == 1
        assert counts[TaskStatus.PROCESSING] == 0
        assert counts[TaskStatus.COMPLETED] == 0

    def test_list_recent_newest_first(self, store):
        """list_recent orders by creation time, newest first."""
        older = _task(NOW - timedelta(hours=1))
        newer = _task(NOW)
        store.upsert(older)
        store.upsert(newer)

        assert [t.id for t in store.list_recent()] == [newer.id, older.id]
        assert [t.id for t in store.list_recent(TaskStatus.COMPLETED)] == []
