"""SQLModel entities for the outreach automation service."""

from outreach.models.account import Account, Activity, LifecycleStage
from outreach.models.automation_task import (
    AutomationTask,
    TaskPriority,
    TaskStatus,
    TaskType,
)
from outreach.models.customer import RetentionReminder, ReviewRequest
from outreach.models.event_log import EventLogEntry
from outreach.models.messaging import (
    ScheduledMessage,
    SendAccount,
    SendLog,
    SentMessage,
    Sequence,
    Unsubscribe,
)
from outreach.models.notification import Notification, NotificationType
from outreach.models.settings import OutreachSettings, SystemFlag

__all__ = [
    "Account",
    "Activity",
    "LifecycleStage",
    "AutomationTask",
    "TaskPriority",
    "TaskStatus",
    "TaskType",
    "EventLogEntry",
    "Notification",
    "NotificationType",
    "ScheduledMessage",
    "SendAccount",
    "SendLog",
    "SentMessage",
    "Sequence",
    "Unsubscribe",
    "OutreachSettings",
    "SystemFlag",
    "ReviewRequest",
    "RetentionReminder",
]
