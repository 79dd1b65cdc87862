"""Retry and backoff policy for failed task attempts."""

import random
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from outreach.models.automation_task import AutomationTask, TaskStatus

DEFAULT_BASE_DELAY_MS = 30_000
MAX_ERROR_LENGTH = 500


@dataclass(frozen=True)
class RetryDecision:
    """Outcome of a failed attempt.

    Attributes:
        dead_letter: True when the task must not be retried
        delay_ms: Delay before the next attempt (0 when dead-lettered)
    """

    dead_letter: bool
    delay_ms: int = 0


class RetryPolicy:
    """Exponential backoff: base, 2x base, 4x base... until max retries.

    ``decide`` is a pure function of the attempt bookkeeping. Jitter is
    off by default; a positive ``jitter_ratio`` stretches each delay by a
    random fraction of itself to spread out synchronized retries.
    """

    def __init__(
        self,
        base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
        jitter_ratio: float = 0.0,
        rng: Callable[[], float] = random.random,
    ) -> None:
        if base_delay_ms <= 0:
            raise ValueError("base_delay_ms must be positive")
        if jitter_ratio < 0:
            raise ValueError("jitter_ratio must not be negative")
        self.base_delay_ms = base_delay_ms
        self.jitter_ratio = jitter_ratio
        self._rng = rng

    def backoff_ms(self, retry_count: int) -> int:
        """Delay after the ``retry_count``-th failure (1-based)."""
        delay = self.base_delay_ms * (2 ** max(retry_count - 1, 0))
        if self.jitter_ratio:
            delay += delay * self.jitter_ratio * self._rng()
        return int(delay)

    def decide(self, retry_count: int, max_retries: int) -> RetryDecision:
        """Decide what happens after a failed attempt.

        Args:
            retry_count: Failures so far, including the one just recorded
            max_retries: Attempt budget for the task
        """
        if retry_count >= max_retries:
            return RetryDecision(dead_letter=True)
        return RetryDecision(dead_letter=False, delay_ms=self.backoff_ms(retry_count))

    def apply_failure(
        self,
        task: AutomationTask,
        error: str,
        permanent: bool = False,
        now: datetime | None = None,
    ) -> RetryDecision:
        """Record a failed attempt on ``task`` and move it to its next state.

        Increments ``retry_count``, appends to ``error_log``, then sets
        either ``dead_letter`` or ``pending`` with ``scheduled_at`` pushed
        forward. The caller persists the task.
        """
        now = now or datetime.utcnow()
        message = (error or "Unknown error")[:MAX_ERROR_LENGTH]

        task.retry_count += 1
        # Reassign so the JSON column change is tracked
        task.error_log = [*(task.error_log or []), f"[{now.isoformat()}] {message}"]

        if permanent:
            decision = RetryDecision(dead_letter=True)
        else:
            decision = self.decide(task.retry_count, task.max_retries)

        if decision.dead_letter:
            task.status = TaskStatus.DEAD_LETTER
        else:
            task.status = TaskStatus.PENDING
            task.scheduled_at = now + timedelta(milliseconds=decision.delay_ms)

        return decision
