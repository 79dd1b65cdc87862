"""Notification sink used by executors and event subscribers.

Notifications are best-effort: a failed write is logged and dropped so
that it never fails the task or handler that raised it.
"""

import logging
from typing import Protocol
from uuid import UUID

from sqlalchemy import Engine
from sqlmodel import Session

from outreach.models.notification import Notification, NotificationType

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def create(
        self,
        notification_type: NotificationType,
        title: str,
        message: str,
        subject_id: UUID | None = None,
        action_url: str | None = None,
    ) -> None: ...


class SqlNotificationSink:
    """Writes notifications to the ``notifications`` table."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def create(
        self,
        notification_type: NotificationType,
        title: str,
        message: str,
        subject_id: UUID | None = None,
        action_url: str | None = None,
    ) -> None:
        """Create a notification; never raises."""
        try:
            with Session(self._engine) as session:
                session.add(
                    Notification(
                        notification_type=notification_type,
                        title=title,
                        message=message,
                        subject_id=subject_id,
                        action_url=action_url,
                    )
                )
                session.commit()
        except Exception as e:
            logger.warning(
                "Failed to create notification",
                extra={"notification_type": notification_type.value, "error": str(e)},
            )
            return

        logger.info(
            "Notification created",
            extra={
                "notification_type": notification_type.value,
                "subject_id": str(subject_id) if subject_id else None,
            },
        )
