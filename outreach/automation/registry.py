"""Executor contract and registry.

An executor receives the full task record and nothing else; it fetches
any further state it needs itself. It signals failure by raising, and
must let errors it wants retried propagate. Because the dispatcher
retries, executors should check domain state before producing
externally visible side effects.
"""

import logging
from abc import ABC, abstractmethod

from outreach.exceptions import RegistryIncompleteError
from outreach.models.automation_task import AutomationTask, TaskType

logger = logging.getLogger(__name__)


class TaskExecutor(ABC):
    """Handler for one task type."""

    task_type: TaskType

    @abstractmethod
    def execute(self, task: AutomationTask) -> None:
        """Run the task.

        Raises:
            Exception: Any error fails the attempt
            PermanentTaskError: The task must not be retried
        """
        pass

    @property
    def name(self) -> str:
        return self.__class__.__name__


class ExecutorRegistry:
    """Maps each ``TaskType`` to its executor."""

    def __init__(self) -> None:
        self._executors: dict[TaskType, TaskExecutor] = {}

    def register(self, executor: TaskExecutor, task_type: TaskType | None = None) -> None:
        """Register an executor under its own type, or under ``task_type``."""
        key = task_type or executor.task_type
        if key in self._executors:
            logger.warning(
                f"Replacing executor for {key.value}",
                extra={"task_type": key.value, "executor": executor.name},
            )
        self._executors[key] = executor

    def get(self, task_type: TaskType | str) -> TaskExecutor | None:
        try:
            key = TaskType(task_type)
        except ValueError:
            return None
        return self._executors.get(key)

    def missing(self) -> list[TaskType]:
        """Task types with no registered executor."""
        return [task_type for task_type in TaskType if task_type not in self._executors]

    def validate(self) -> None:
        """Fail fast when the registry does not cover every task type."""
        missing = self.missing()
        if missing:
            raise RegistryIncompleteError([t.value for t in missing])

    def __contains__(self, task_type: object) -> bool:
        return task_type in self._executors

    def __len__(self) -> int:
        return len(self._executors)
