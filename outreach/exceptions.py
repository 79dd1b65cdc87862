"""Task execution errors.

Any exception raised by an executor fails the attempt. The dispatcher
retries with backoff unless the error is a ``PermanentTaskError``, which
dead-letters the task immediately.
"""


class TaskExecutionError(Exception):
    """Base class for errors raised while running a task."""


class PermanentTaskError(TaskExecutionError):
    """The task cannot succeed on retry (bad payload, configuration error)."""


class UnknownTaskTypeError(PermanentTaskError):
    """No executor is registered for the task type."""

    def __init__(self, task_type: str) -> None:
        super().__init__(f"No executor registered for task type: {task_type}")
        self.task_type = task_type


class TaskTimeoutError(TaskExecutionError):
    """The executor did not finish within the configured timeout."""


class RegistryIncompleteError(Exception):
    """Some task types have no executor."""

    def __init__(self, missing: list[str]) -> None:
        super().__init__(f"Task types without an executor: {', '.join(missing)}")
        self.missing = missing


class MessageSendError(Exception):
    """An outbound message was rejected by the transport.

    Attributes:
        code: Transport status code, e.g. an SMTP reply code
    """

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code

    @property
    def is_bounce(self) -> bool:
        """SMTP 55x replies mean the recipient mailbox rejected the message."""
        return bool(self.code) and str(self.code).startswith("55")
