"""Polling task dispatcher.

The dispatcher:
1. Polls the task store for due tasks on a fixed interval
2. Bounds concurrency with an in-memory counter of active executions
3. Runs each task on a worker thread without blocking the poll loop
4. Applies the retry policy on failure and re-enqueues recurring tasks

A burst of due tasks larger than the free slots is left in the store for
the next poll. Only one dispatcher may run against a given store; there
is no distributed lock.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any
from uuid import UUID

from outreach.automation.recurring import RecurringScheduler
from outreach.automation.registry import ExecutorRegistry, TaskExecutor
from outreach.automation.retry import RetryPolicy
from outreach.automation.task_store import TaskStore
from outreach.events.bus import EventBus, emit_task_failed
from outreach.exceptions import (
    PermanentTaskError,
    TaskTimeoutError,
    UnknownTaskTypeError,
)
from outreach.models.automation_task import (
    DEFAULT_MAX_RETRIES,
    AutomationTask,
    TaskPriority,
    TaskStatus,
    TaskType,
)

logger = logging.getLogger(__name__)


@dataclass
class DispatcherStatus:
    """Health snapshot of the dispatcher.

    Attributes:
        running: Whether the poll loop is active
        last_poll_at: When the last poll cycle started
        tasks_completed_in_window: Tasks completed since UTC midnight
        active_count: Tasks executing right now, timed-out attempts included
    """

    running: bool
    last_poll_at: datetime | None
    tasks_completed_in_window: int
    active_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "last_poll_at": self.last_poll_at.isoformat() if self.last_poll_at else None,
            "tasks_completed_in_window": self.tasks_completed_in_window,
            "active_count": self.active_count,
        }


class Dispatcher:
    """Single-process dispatcher for automation tasks.

    Usage:
        dispatcher = Dispatcher(store, registry, bus, recurring=RecurringScheduler(store))
        dispatcher.start()
        ...
        dispatcher.stop()
    """

    def __init__(
        self,
        store: TaskStore,
        registry: ExecutorRegistry,
        bus: EventBus,
        recurring: RecurringScheduler | None = None,
        retry_policy: RetryPolicy | None = None,
        max_concurrent: int = 3,
        batch_size: int = 10,
        poll_interval_seconds: float = 15.0,
        initial_delay_seconds: float = 3.0,
        task_timeout_seconds: float | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            store: Task store polled for due tasks
            registry: Executor lookup by task type
            bus: Event bus used for task.failed events
            recurring: Recurring scheduler (seeding and successors)
            retry_policy: Backoff policy for failed attempts
            max_concurrent: Maximum tasks executing at once
            batch_size: Maximum tasks fetched per poll
            poll_interval_seconds: Seconds between polls
            initial_delay_seconds: Delay before the first poll after start
            task_timeout_seconds: Per-attempt timeout (None or 0 disables)
            max_retries: Attempt budget for enqueued tasks
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        self._store = store
        self._registry = registry
        self._bus = bus
        self._recurring = recurring
        self._retry_policy = retry_policy or RetryPolicy()
        self.max_concurrent = max_concurrent
        self.batch_size = batch_size
        self.poll_interval_seconds = poll_interval_seconds
        self.initial_delay_seconds = initial_delay_seconds
        self.task_timeout_seconds = task_timeout_seconds or None
        self.max_retries = max_retries

        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._stop_event = threading.Event()
        self._poll_thread: threading.Thread | None = None
        self._pool: ThreadPoolExecutor | None = None
        self._in_flight: set[Future] = set()
        # Tasks whose timed-out attempt is still running on its own thread
        self._abandoned: set[UUID] = set()

        self._running = False
        self._seeded = False
        self._active = 0
        self._last_poll_at: datetime | None = None
        self._completed_in_window = 0
        self._window_day: date = datetime.utcnow().date()

        self._logger = logging.getLogger(self.__class__.__name__)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Seed recurring tasks (first start only) and begin polling.

        Calling start on a running dispatcher does nothing.
        """
        with self._lock:
            if self._running:
                return
            self._running = True
            # Fresh event per run; a previous poll thread keeps its own
            stop_event = threading.Event()
            self._stop_event = stop_event

        self._logger.info(
            "Starting dispatcher",
            extra={
                "max_concurrent": self.max_concurrent,
                "batch_size": self.batch_size,
                "poll_interval_seconds": self.poll_interval_seconds,
            },
        )

        if not self._seeded and self._recurring is not None:
            try:
                self._recurring.seed()
                self._seeded = True
            except Exception as e:
                self._logger.error(
                    "Seeding recurring tasks failed",
                    extra={"error": str(e)},
                    exc_info=True,
                )

        self._poll_thread = threading.Thread(
            target=self._run_loop, args=(stop_event,), name="dispatcher-poll", daemon=True
        )
        self._poll_thread.start()

    def stop(self, wait: bool = False, timeout: float | None = None) -> None:
        """Stop polling. In-flight tasks are allowed to finish.

        Args:
            wait: Block until the poll thread exits and in-flight tasks finish
            timeout: Upper bound in seconds for each wait
        """
        with self._lock:
            was_running = self._running
            self._running = False
            pool, self._pool = self._pool, None
            stop_event = self._stop_event
        stop_event.set()

        if wait:
            if self._poll_thread is not None:
                self._poll_thread.join(timeout)
            self.wait_idle(timeout)

        if pool is not None:
            pool.shutdown(wait=False)

        if was_running:
            self._logger.info("Dispatcher stopped")

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no task is executing, timed-out attempts included.

        Returns False on timeout.
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._active == 0, timeout)

    def _run_loop(self, stop_event: threading.Event) -> None:
        if stop_event.wait(self.initial_delay_seconds):
            return
        self.poll_once()
        while not stop_event.wait(self.poll_interval_seconds):
            self.poll_once()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def enqueue(
        self,
        task_type: TaskType,
        payload: dict[str, Any] | None = None,
        subject_id: UUID | None = None,
        priority: TaskPriority = TaskPriority.NORMAL,
        scheduled_at: datetime | None = None,
        max_retries: int | None = None,
    ) -> UUID:
        """Insert a new pending task and return its id."""
        now = datetime.utcnow()
        task = AutomationTask(
            task_type=TaskType(task_type),
            subject_id=subject_id,
            scheduled_at=scheduled_at or now,
            payload=dict(payload or {}),
            priority=TaskPriority(priority),
            status=TaskStatus.PENDING,
            retry_count=0,
            max_retries=self.max_retries if max_retries is None else max_retries,
            created_at=now,
        )
        self._store.upsert(task)

        self._logger.info(
            f"Enqueued task {task.task_type.value}",
            extra={"task_id": str(task.id), "task_type": task.task_type.value},
        )
        return task.id

    def requeue(self, task_id: UUID) -> UUID | None:
        """Re-run a dead-lettered task as a fresh task.

        The dead-lettered record stays terminal; a new pending task with the
        same type, subject, priority and payload is created instead.

        Returns:
            The new task id, or None when the task does not exist

        Raises:
            ValueError: If the task is not dead-lettered
        """
        task = self._store.get(task_id)
        if task is None:
            return None
        if task.status != TaskStatus.DEAD_LETTER:
            raise ValueError(f"Task {task_id} is {TaskStatus(task.status).value}, not dead_letter")

        return self.enqueue(
            TaskType(task.task_type),
            payload=task.payload,
            subject_id=task.subject_id,
            priority=TaskPriority(task.priority),
            max_retries=task.max_retries,
        )

    def status(self) -> DispatcherStatus:
        """Return a health snapshot."""
        with self._lock:
            self._roll_window()
            return DispatcherStatus(
                running=self._running,
                last_poll_at=self._last_poll_at,
                tasks_completed_in_window=self._completed_in_window,
                active_count=self._active,
            )

    @property
    def active_count(self) -> int:
        with self._lock:
            return self._active

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def poll_once(self) -> int:
        """Run one poll cycle and return the number of tasks dispatched.

        Errors are logged and never escape; the next tick retries the cycle.
        """
        if self._stop_event.is_set():
            return 0

        with self._lock:
            self._roll_window()
            self._last_poll_at = datetime.utcnow()
            free_slots = self.max_concurrent - self._active

        if free_slots <= 0:
            self._logger.debug("No free slots, skipping poll")
            return 0

        try:
            due = self._store.find_due(min(free_slots, self.batch_size))
        except Exception as e:
            self._logger.error(
                "Poll cycle failed",
                extra={"error": str(e)},
                exc_info=True,
            )
            return 0

        with self._lock:
            abandoned = set(self._abandoned)

        dispatched = 0
        for task in due:
            if task.id in abandoned:
                # Earlier attempt still running; wait for it before retrying
                continue
            try:
                self._dispatch(task)
                dispatched += 1
            except Exception as e:
                self._logger.error(
                    "Failed to dispatch task",
                    extra={"task_id": str(task.id), "error": str(e)},
                    exc_info=True,
                )

        if dispatched:
            self._logger.debug(f"Dispatched {dispatched} tasks")
        return dispatched

    def run_once(self, timeout: float | None = None) -> int:
        """Poll once and wait for the dispatched tasks to finish."""
        dispatched = self.poll_once()
        with self._lock:
            pending = set(self._in_flight)
        if pending:
            wait(pending, timeout=timeout)
        return dispatched

    def _dispatch(self, task: AutomationTask) -> None:
        # Claimed on the poll thread so the next poll cannot see it as pending
        self._claim(task)

        with self._lock:
            self._active += 1
            if self._pool is None:
                self._pool = ThreadPoolExecutor(
                    max_workers=self.max_concurrent, thread_name_prefix="task"
                )
            pool = self._pool

        try:
            future = pool.submit(self._execute_tracked, task)
        except Exception:
            # Pool shut down under us; hand the task back for the next poll
            self._release_slot()
            task.status = TaskStatus.PENDING
            self._store.upsert(task)
            raise

        with self._lock:
            self._in_flight.add(future)
        future.add_done_callback(self._forget)

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._in_flight.discard(future)

    def _release_slot(self) -> None:
        with self._idle:
            self._active -= 1
            self._idle.notify_all()

    def _release_abandoned(self, task_id: UUID) -> None:
        with self._idle:
            self._active -= 1
            self._abandoned.discard(task_id)
            self._idle.notify_all()
        self._logger.info(
            f"Timed-out attempt of task {task_id} finished",
            extra={"task_id": str(task_id)},
        )

    def _execute_tracked(self, task: AutomationTask) -> None:
        try:
            self._attempt(task)
        except Exception as e:
            # Reached only when persisting a transition failed; the stored
            # task keeps its last persisted state.
            self._logger.error(
                f"Task {task.id} could not be persisted",
                extra={"task_id": str(task.id), "error": str(e)},
                exc_info=True,
            )
        finally:
            self._release_slot()

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute(self, task: AutomationTask) -> TaskStatus:
        """Run one attempt of ``task`` and persist the resulting state.

        Returns:
            The status the task ended in
        """
        self._claim(task)
        return self._attempt(task)

    def _claim(self, task: AutomationTask) -> None:
        task.status = TaskStatus.PROCESSING
        task.last_attempt_at = datetime.utcnow()
        self._store.upsert(task)

    def _attempt(self, task: AutomationTask) -> TaskStatus:
        task_type = TaskType(task.task_type)
        try:
            executor = self._registry.get(task_type)
            if executor is None:
                raise UnknownTaskTypeError(task_type.value)

            self._invoke(executor, task)

            task.status = TaskStatus.COMPLETED
            task.completed_at = datetime.utcnow()
            self._store.upsert(task)
        except Exception as e:
            return self._handle_failure(task, e)

        with self._lock:
            self._roll_window()
            self._completed_in_window += 1

        self._logger.info(
            f"Task {task.id} ({task_type.value}) completed",
            extra={"task_id": str(task.id), "task_type": task_type.value},
        )

        if self._recurring is not None:
            try:
                self._recurring.schedule_next(task)
            except Exception as e:
                self._logger.error(
                    f"Failed to schedule next occurrence of {task_type.value}",
                    extra={"task_id": str(task.id), "error": str(e)},
                    exc_info=True,
                )

        return TaskStatus.COMPLETED

    def _invoke(self, executor: TaskExecutor, task: AutomationTask) -> None:
        if self.task_timeout_seconds is None:
            executor.execute(task)
            return

        # A timed-out thread cannot be killed. It keeps holding a slot, and
        # its task stays out of dispatch, until the thread itself exits.
        outcome: dict[str, Exception] = {}
        state = {"done": False, "abandoned": False}

        def _target() -> None:
            try:
                executor.execute(task)
            except Exception as e:
                outcome["error"] = e
            finally:
                with self._lock:
                    state["done"] = True
                    abandoned = state["abandoned"]
                if abandoned:
                    self._release_abandoned(task.id)

        worker = threading.Thread(
            target=_target,
            name=f"executor-{TaskType(task.task_type).value}",
            daemon=True,
        )
        worker.start()
        worker.join(self.task_timeout_seconds)

        with self._lock:
            timed_out = not state["done"]
            if timed_out:
                state["abandoned"] = True
                self._active += 1
                self._abandoned.add(task.id)

        if timed_out:
            raise TaskTimeoutError(
                f"{executor.name} did not finish within {self.task_timeout_seconds}s"
            )
        if "error" in outcome:
            raise outcome["error"]

    def _handle_failure(self, task: AutomationTask, error: Exception) -> TaskStatus:
        task_type = TaskType(task.task_type)
        error_msg = str(error) or error.__class__.__name__
        permanent = isinstance(error, PermanentTaskError)

        decision = self._retry_policy.apply_failure(task, error_msg, permanent=permanent)
        self._store.upsert(task)

        if decision.dead_letter:
            self._logger.error(
                f"Task {task.id} ({task_type.value}) moved to dead letter "
                f"after {task.retry_count} attempts",
                extra={
                    "task_id": str(task.id),
                    "task_type": task_type.value,
                    "retry_count": task.retry_count,
                    "permanent": permanent,
                    "error": error_msg,
                },
                exc_info=error,
            )
            emit_task_failed(task.id, task_type.value, error_msg, bus=self._bus)
        else:
            self._logger.warning(
                f"Task {task.id} ({task_type.value}) retry "
                f"{task.retry_count}/{task.max_retries} in {decision.delay_ms / 1000:.0f}s",
                extra={
                    "task_id": str(task.id),
                    "task_type": task_type.value,
                    "retry_count": task.retry_count,
                    "error": error_msg,
                },
            )

        return TaskStatus(task.status)

    def _roll_window(self) -> None:
        # Caller holds the lock
        today = datetime.utcnow().date()
        if today != self._window_day:
            self._window_day = today
            self._completed_in_window = 0
