"""Cross-module event subscribers.

Each subscriber reacts to a single event type with a small, self-contained
state update. Events are not schema-validated, so every subscriber treats
missing correlation data as a no-op rather than an error.

Event Flow:
    Executors / Dispatcher -> EventBus.emit -> Subscribers
                                     |
                                     +-> EventLogStore (detached)
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from uuid import UUID

from sqlalchemy import Engine
from sqlmodel import Session

from outreach.events.bus import EventBus, emit_lifecycle_changed
from outreach.events.types import EventType, SystemEvent
from outreach.models.account import Account, Activity, LifecycleStage
from outreach.models.notification import NotificationType
from outreach.services.notifications import NotificationSink

logger = logging.getLogger(__name__)

NEGATIVE_REVIEW_THRESHOLD = 2


# -----------------------------------------------------------------------------
# Subscriber Base Class
# -----------------------------------------------------------------------------


class EventSubscriber(ABC):
    """Base class for event reactions bound to one event type."""

    event_type: EventType

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @abstractmethod
    def handle(self, event: SystemEvent) -> None:
        """React to an event. Exceptions are isolated by the bus."""
        pass

    def _add_activity(
        self, activity_type: str, description: str, subject_id: UUID | None
    ) -> None:
        with Session(self._engine) as session:
            session.add(
                Activity(
                    activity_type=activity_type,
                    description=description,
                    subject_id=subject_id,
                )
            )
            session.commit()


# -----------------------------------------------------------------------------
# Lifecycle
# -----------------------------------------------------------------------------


class ReplyLifecycleSubscriber(EventSubscriber):
    """Advance a contacted account to engaged when it replies."""

    event_type = EventType.MESSAGE_REPLIED

    def __init__(self, engine: Engine, bus: EventBus) -> None:
        super().__init__(engine)
        self._bus = bus

    def handle(self, event: SystemEvent) -> None:
        if event.subject_id is None:
            return

        with Session(self._engine) as session:
            account = session.get(Account, event.subject_id)
            if account is None or account.lifecycle_stage != LifecycleStage.CONTACTED:
                return

            account.lifecycle_stage = LifecycleStage.ENGAGED
            account.pipeline_stage = LifecycleStage.ENGAGED.value
            account.updated_at = datetime.utcnow()
            session.add(account)
            session.commit()

        logger.info(
            "Account engaged after reply",
            extra={"subject_id": str(event.subject_id)},
        )
        emit_lifecycle_changed(
            event.subject_id,
            LifecycleStage.CONTACTED.value,
            LifecycleStage.ENGAGED.value,
            bus=self._bus,
        )


class LifecycleActivitySubscriber(EventSubscriber):
    """Record lifecycle transitions on the account timeline."""

    event_type = EventType.LIFECYCLE_CHANGED

    def handle(self, event: SystemEvent) -> None:
        if event.subject_id is None:
            return
        self._add_activity(
            "lifecycle_changed",
            f"Lifecycle changed from {event.data.get('from')} to {event.data.get('to')}",
            event.subject_id,
        )


# -----------------------------------------------------------------------------
# Messaging
# -----------------------------------------------------------------------------


class MessageSentActivitySubscriber(EventSubscriber):
    """Record outbound messages on the account timeline."""

    event_type = EventType.MESSAGE_SENT

    def handle(self, event: SystemEvent) -> None:
        self._add_activity(
            "message_sent",
            f"Message sent to {event.data.get('to') or 'unknown'}",
            event.subject_id,
        )


class BounceSubscriber(EventSubscriber):
    """Record bounces and alert the operator."""

    event_type = EventType.MESSAGE_BOUNCED

    def __init__(self, engine: Engine, notifier: NotificationSink) -> None:
        super().__init__(engine)
        self._notifier = notifier

    def handle(self, event: SystemEvent) -> None:
        error = event.data.get("error") or "unknown error"
        self._add_activity("message_bounced", f"Message bounced: {error}", event.subject_id)
        self._notifier.create(
            NotificationType.BOUNCE_DETECTED,
            "Message Bounced",
            f"A message to account {event.subject_id or 'unknown'} bounced: {error}",
            subject_id=event.subject_id,
        )


# -----------------------------------------------------------------------------
# Reviews
# -----------------------------------------------------------------------------


class ReviewReceivedSubscriber(EventSubscriber):
    """Record new reviews and alert on low ratings."""

    event_type = EventType.REVIEW_RECEIVED

    def __init__(self, engine: Engine, notifier: NotificationSink) -> None:
        super().__init__(engine)
        self._notifier = notifier

    def handle(self, event: SystemEvent) -> None:
        rating = event.data.get("rating")
        if not isinstance(rating, int):
            return

        self._add_activity(
            "review_received", f"New {rating}-star review received", event.subject_id
        )
        if rating <= NEGATIVE_REVIEW_THRESHOLD:
            self._notifier.create(
                NotificationType.REVIEW_ALERT,
                "Negative Review Alert",
                f"A {rating}-star review was received for account "
                f"{event.subject_id or 'unknown'}. Immediate attention recommended.",
                subject_id=event.subject_id,
            )


# -----------------------------------------------------------------------------
# Automation
# -----------------------------------------------------------------------------


class TaskFailedSubscriber(EventSubscriber):
    """Alert the operator when a task is dead-lettered."""

    event_type = EventType.TASK_FAILED

    def __init__(self, engine: Engine, notifier: NotificationSink) -> None:
        super().__init__(engine)
        self._notifier = notifier

    def handle(self, event: SystemEvent) -> None:
        task_type = event.data.get("task_type") or "unknown"
        error = event.data.get("error") or "unknown error"
        self._notifier.create(
            NotificationType.TASK_FAILED,
            "Automation Task Failed",
            f"Task {task_type} failed: {error}",
            action_url="/automation",
        )


# -----------------------------------------------------------------------------
# Registration
# -----------------------------------------------------------------------------


def register_event_subscribers(
    bus: EventBus,
    engine: Engine,
    notifier: NotificationSink,
) -> list[EventSubscriber]:
    """Register the default subscribers once at startup."""
    subscribers: list[EventSubscriber] = [
        ReplyLifecycleSubscriber(engine, bus),
        MessageSentActivitySubscriber(engine),
        BounceSubscriber(engine, notifier),
        LifecycleActivitySubscriber(engine),
        ReviewReceivedSubscriber(engine, notifier),
        TaskFailedSubscriber(engine, notifier),
    ]
    for subscriber in subscribers:
        bus.on(subscriber.event_type, subscriber.handle)

    logger.info(
        "Event subscribers registered",
        extra={"count": len(subscribers)},
    )
    return subscribers
