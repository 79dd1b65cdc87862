"""Task automation core.

This module provides the polling task dispatcher and its collaborators:
- task_store.py: Persisted task queue (SQL and in-memory)
- retry.py: Exponential backoff and dead-lettering
- recurring.py: Seeding and re-enqueue of recurring tasks
- registry.py: Executor contract and lookup
- dispatcher.py: Bounded-concurrency poll loop
- runtime.py: Wiring for the API process and the CLI

The dispatcher can be driven via:
- Dispatcher.start(): Background polling
- Dispatcher.run_once(): Single poll cycle, waiting for its tasks
"""

from outreach.automation.dispatcher import Dispatcher, DispatcherStatus
from outreach.automation.recurring import (
    DEFAULT_RECURRING_TASKS,
    RecurringScheduler,
    RecurringTaskDefinition,
)
from outreach.automation.registry import ExecutorRegistry, TaskExecutor
from outreach.automation.retry import RetryDecision, RetryPolicy
from outreach.automation.task_store import MemoryTaskStore, SqlTaskStore, TaskStore

__all__ = [
    # Store
    "TaskStore",
    "SqlTaskStore",
    "MemoryTaskStore",
    # Policy
    "RetryDecision",
    "RetryPolicy",
    # Recurring
    "RecurringTaskDefinition",
    "RecurringScheduler",
    "DEFAULT_RECURRING_TASKS",
    # Executors
    "TaskExecutor",
    "ExecutorRegistry",
    # Dispatcher
    "Dispatcher",
    "DispatcherStatus",
]
