"""Task stores.

The dispatcher depends only on the ``TaskStore`` protocol, so the polled
table can be swapped for another backend without touching the loop.
Every store returns due tasks with ``status = pending`` only; a task in
``processing`` is never handed out twice.
"""

import logging
import threading
from datetime import datetime
from typing import Protocol
from uuid import UUID

from sqlalchemy import Engine, case, func
from sqlmodel import Session, select

from outreach.models.automation_task import AutomationTask, TaskPriority, TaskStatus

logger = logging.getLogger(__name__)


class TaskStore(Protocol):
    def upsert(self, task: AutomationTask) -> None: ...

    def get(self, task_id: UUID) -> AutomationTask | None: ...

    def find_by_status(
        self, status: TaskStatus, limit: int | None = None
    ) -> list[AutomationTask]: ...

    def find_due(self, limit: int, now: datetime | None = None) -> list[AutomationTask]: ...

    def count_by_status(self) -> dict[TaskStatus, int]: ...

    def list_recent(
        self, status: TaskStatus | None = None, limit: int = 50
    ) -> list[AutomationTask]: ...


class SqlTaskStore:
    """Task store backed by the ``automation_tasks`` table.

    Each call uses its own short-lived session; returned tasks are
    detached copies that stay readable after the session closes.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def _session(self) -> Session:
        return Session(self._engine, expire_on_commit=False)

    def upsert(self, task: AutomationTask) -> None:
        with self._session() as session:
            session.merge(task)
            session.commit()

    def get(self, task_id: UUID) -> AutomationTask | None:
        with self._session() as session:
            return session.get(AutomationTask, task_id)

    def find_by_status(
        self, status: TaskStatus, limit: int | None = None
    ) -> list[AutomationTask]:
        statement = (
            select(AutomationTask)
            .where(AutomationTask.status == status)
            .order_by(AutomationTask.scheduled_at)
        )
        if limit is not None:
            statement = statement.limit(limit)

        with self._session() as session:
            return list(session.exec(statement).all())

    def find_due(self, limit: int, now: datetime | None = None) -> list[AutomationTask]:
        """Pending tasks due by ``now``, highest priority first, then oldest."""
        now = now or datetime.utcnow()
        priority_rank = case(
            (AutomationTask.priority == TaskPriority.HIGH, TaskPriority.HIGH.rank),
            (AutomationTask.priority == TaskPriority.NORMAL, TaskPriority.NORMAL.rank),
            else_=TaskPriority.LOW.rank,
        )

        with self._session() as session:
            tasks = session.exec(
                select(AutomationTask)
                .where(AutomationTask.status == TaskStatus.PENDING)
                .where(AutomationTask.scheduled_at <= now)
                .order_by(priority_rank.desc(), AutomationTask.scheduled_at.asc())
                .limit(limit)
            ).all()
            return list(tasks)

    def count_by_status(self) -> dict[TaskStatus, int]:
        with self._session() as session:
            rows = session.exec(
                select(AutomationTask.status, func.count()).group_by(AutomationTask.status)
            ).all()
        counts = {status: 0 for status in TaskStatus}
        for status, count in rows:
            counts[TaskStatus(status)] = int(count)
        return counts

    def list_recent(
        self, status: TaskStatus | None = None, limit: int = 50
    ) -> list[AutomationTask]:
        """Most recently created tasks, optionally filtered by status."""
        statement = select(AutomationTask)
        if status is not None:
            statement = statement.where(AutomationTask.status == status)
        statement = statement.order_by(AutomationTask.created_at.desc()).limit(limit)

        with self._session() as session:
            return list(session.exec(statement).all())


class MemoryTaskStore:
    """Process-local task store.

    Holds task instances by reference; useful for tests and for running
    the dispatcher without a database.
    """

    def __init__(self) -> None:
        self._tasks: dict[UUID, AutomationTask] = {}
        self._lock = threading.Lock()

    def upsert(self, task: AutomationTask) -> None:
        with self._lock:
            self._tasks[task.id] = task

    def get(self, task_id: UUID) -> AutomationTask | None:
        with self._lock:
            return self._tasks.get(task_id)

    def find_by_status(
        self, status: TaskStatus, limit: int | None = None
    ) -> list[AutomationTask]:
        with self._lock:
            tasks = sorted(
                (t for t in self._tasks.values() if t.status == status),
                key=lambda t: t.scheduled_at,
            )
        return tasks if limit is None else tasks[:limit]

    def find_due(self, limit: int, now: datetime | None = None) -> list[AutomationTask]:
        now = now or datetime.utcnow()
        with self._lock:
            due = [
                t
                for t in self._tasks.values()
                if t.status == TaskStatus.PENDING and t.scheduled_at <= now
            ]
        due.sort(key=lambda t: (-TaskPriority(t.priority).rank, t.scheduled_at))
        return due[:limit]

    def count_by_status(self) -> dict[TaskStatus, int]:
        counts = {status: 0 for status in TaskStatus}
        with self._lock:
            for task in self._tasks.values():
                counts[TaskStatus(task.status)] += 1
        return counts

    def all(self) -> list[AutomationTask]:
        with self._lock:
            return list(self._tasks.values())

    def list_recent(
        self, status: TaskStatus | None = None, limit: int = 50
    ) -> list[AutomationTask]:
        with self._lock:
            tasks = [t for t in self._tasks.values() if status is None or t.status == status]
        tasks.sort(key=lambda t: t.created_at, reverse=True)
        return tasks[:limit]
