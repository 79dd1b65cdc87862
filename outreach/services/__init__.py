"""Service layer helpers shared by executors and subscribers."""

from outreach.services.notifications import NotificationSink, SqlNotificationSink

__all__ = [
    "NotificationSink",
    "SqlNotificationSink",
]
