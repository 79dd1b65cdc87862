"""Daily counter executors: warm-up progression and send counter reset.

Both run hourly but act at most once per UTC day, guarded by a date
flag in ``system_flags``.
"""

from datetime import datetime

from sqlmodel import Session, select

from outreach.executors.base import ContextExecutor
from outreach.models.automation_task import AutomationTask, TaskType
from outreach.models.messaging import SendAccount
from outreach.models.notification import NotificationType
from outreach.models.settings import (
    OutreachSettings,
    SETTINGS_ROW_ID,
    get_flag,
    set_flag,
)

LAST_WARMUP_FLAG = "last_warmup_date"
LAST_COUNTER_RESET_FLAG = "last_counter_reset_date"
WARMUP_MILESTONE_DAYS = (7, 14, 21)

# (max warm-up day, daily limit)
_WARMUP_SCHEDULE = ((3, 5), (7, 10), (14, 20), (21, 35))
_WARMUP_CEILING = 50


def warmup_limit(day_count: int) -> int:
    """Daily send limit for a mailbox on its ``day_count``-th warm-up day."""
    for max_day, limit in _WARMUP_SCHEDULE:
        if day_count <= max_day:
            return limit
    return _WARMUP_CEILING


def effective_daily_limit(settings: OutreachSettings) -> int:
    if settings.warmup_enabled:
        return min(settings.daily_send_limit, warmup_limit(settings.warmup_day_count))
    return settings.daily_send_limit


def utc_day(now: datetime | None = None) -> str:
    return (now or datetime.utcnow()).strftime("%Y-%m-%d")


class WarmupIncrementExecutor(ContextExecutor):
    """Advance the warm-up day once per UTC day while warm-up is enabled."""

    task_type = TaskType.WARMUP_INCREMENT

    def execute(self, task: AutomationTask) -> None:
        today = utc_day()

        with self.session() as session:
            settings = session.get(OutreachSettings, SETTINGS_ROW_ID)
            if settings is None or not settings.warmup_enabled:
                return
            if get_flag(session, LAST_WARMUP_FLAG) == today:
                return

            settings.warmup_day_count += 1
            day_count = settings.warmup_day_count
            session.add(settings)
            set_flag(session, LAST_WARMUP_FLAG, today)
            session.commit()

        limit = warmup_limit(day_count)
        self._logger.info(
            f"Warm-up day {day_count} (limit: {limit})",
            extra={"warmup_day_count": day_count, "daily_limit": limit},
        )

        if day_count in WARMUP_MILESTONE_DAYS:
            self.context.notifier.create(
                NotificationType.WARMUP_MILESTONE,
                "Warmup Progress",
                f"Your warmup has reached day {day_count}. "
                f"Current daily limit: {limit} messages.",
            )


class ResetCountersExecutor(ContextExecutor):
    """Zero the per-account daily send counters once per UTC day."""

    task_type = TaskType.RESET_COUNTERS

    def execute(self, task: AutomationTask) -> None:
        today = utc_day()

        with self.session() as session:
            if get_flag(session, LAST_COUNTER_RESET_FLAG) == today:
                return
            reset = self._reset_counts(session)
            set_flag(session, LAST_COUNTER_RESET_FLAG, today)
            session.commit()

        self._logger.info(
            "Reset daily send counters",
            extra={"accounts": reset, "day": today},
        )

    @staticmethod
    def _reset_counts(session: Session) -> int:
        accounts = session.exec(select(SendAccount).where(SendAccount.send_count > 0)).all()
        for account in accounts:
            account.send_count = 0
            session.add(account)
        return len(accounts)
