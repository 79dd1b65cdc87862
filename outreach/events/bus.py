"""In-process event bus with a persistent event log.

Handlers run synchronously inside ``emit`` in registration order,
type-specific handlers first and wildcard handlers after. A failing
handler is logged and skipped. Persistence is handed to a detached
spawner, so a failed write never reaches the emitter.
"""

import logging
import threading
from collections.abc import Callable
from typing import Any
from uuid import UUID

from outreach.background import Spawner, run_detached
from outreach.events.types import EventType, SystemEvent
from outreach.models.event_log import EventLogEntry

logger = logging.getLogger(__name__)

EventHandler = Callable[[SystemEvent], Any]
LogFunction = Callable[[EventLogEntry], None]


class EventBus:
    """Pub/sub keyed by event type, with wildcard subscription."""

    def __init__(self, spawn: Spawner = run_detached) -> None:
        self._handlers: dict[EventType, list[EventHandler]] = {}
        self._wildcard: list[EventHandler] = []
        self._log_fn: LogFunction | None = None
        self._spawn = spawn
        self._lock = threading.Lock()

    def set_log_function(self, fn: LogFunction | None) -> None:
        """Late-bind the persistence function (storage initialises after the bus)."""
        self._log_fn = fn

    def on(self, event_type: EventType, handler: EventHandler) -> None:
        """Subscribe to one event type."""
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)

    def on_any(self, handler: EventHandler) -> None:
        """Subscribe to every event type."""
        with self._lock:
            self._wildcard.append(handler)

    def handler_count(self, event_type: EventType | None = None) -> int:
        with self._lock:
            if event_type is None:
                return len(self._wildcard)
            return len(self._handlers.get(event_type, []))

    def emit(self, event: SystemEvent) -> None:
        """Fan the event out to handlers, then persist it best-effort."""
        with self._lock:
            specific = list(self._handlers.get(event.event_type, []))
            wildcard = list(self._wildcard)

        for handler in specific + wildcard:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    "Event handler failed",
                    extra={
                        "handler": getattr(handler, "__qualname__", repr(handler)),
                        "event_type": event.event_type.value,
                        "error": str(e),
                    },
                    exc_info=True,
                )

        log_fn = self._log_fn
        if log_fn is None:
            return

        # Built inside the job so a serialization error is logged like a failed write
        def _persist() -> None:
            log_fn(event.to_log_entry())

        self._spawn(_persist, description="event persistence")

    def clear(self) -> None:
        """Remove all handlers."""
        with self._lock:
            self._handlers.clear()
            self._wildcard.clear()


# -----------------------------------------------------------------------------
# Singleton bus and emit helpers
# -----------------------------------------------------------------------------

_bus_instance: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get or create the process-wide event bus."""
    global _bus_instance
    if _bus_instance is None:
        _bus_instance = EventBus()
    return _bus_instance


def _emit(
    bus: EventBus | None,
    event_type: EventType,
    subject_id: UUID | None,
    data: dict[str, Any],
) -> None:
    (bus or get_event_bus()).emit(
        SystemEvent(event_type=event_type, subject_id=subject_id, data=data)
    )


def emit_message_sent(
    subject_id: UUID, message_id: UUID, recipient: str, bus: EventBus | None = None
) -> None:
    _emit(bus, EventType.MESSAGE_SENT, subject_id, {"message_id": str(message_id), "to": recipient})


def emit_message_opened(subject_id: UUID, message_id: UUID, bus: EventBus | None = None) -> None:
    _emit(bus, EventType.MESSAGE_OPENED, subject_id, {"message_id": str(message_id)})


def emit_message_clicked(subject_id: UUID, message_id: UUID, bus: EventBus | None = None) -> None:
    _emit(bus, EventType.MESSAGE_CLICKED, subject_id, {"message_id": str(message_id)})


def emit_message_replied(
    subject_id: UUID, message_id: UUID, reply_category: str, bus: EventBus | None = None
) -> None:
    _emit(
        bus,
        EventType.MESSAGE_REPLIED,
        subject_id,
        {"message_id": str(message_id), "reply_category": reply_category},
    )


def emit_message_bounced(
    subject_id: UUID, message_id: UUID, error: str, bus: EventBus | None = None
) -> None:
    _emit(bus, EventType.MESSAGE_BOUNCED, subject_id, {"message_id": str(message_id), "error": error})


def emit_lifecycle_changed(
    subject_id: UUID, from_stage: str, to_stage: str, bus: EventBus | None = None
) -> None:
    _emit(bus, EventType.LIFECYCLE_CHANGED, subject_id, {"from": from_stage, "to": to_stage})


def emit_pipeline_stage_changed(
    subject_id: UUID, from_stage: str, to_stage: str, bus: EventBus | None = None
) -> None:
    _emit(bus, EventType.PIPELINE_STAGE_CHANGED, subject_id, {"from": from_stage, "to": to_stage})


def emit_review_received(
    subject_id: UUID, review_id: UUID, rating: int, bus: EventBus | None = None
) -> None:
    _emit(bus, EventType.REVIEW_RECEIVED, subject_id, {"review_id": str(review_id), "rating": rating})


def emit_task_completed(
    task_id: UUID,
    task_type: str,
    subject_id: UUID | None = None,
    bus: EventBus | None = None,
) -> None:
    _emit(bus, EventType.TASK_COMPLETED, subject_id, {"task_id": str(task_id), "task_type": task_type})


def emit_task_failed(
    task_id: UUID, task_type: str, error: str, bus: EventBus | None = None
) -> None:
    _emit(
        bus,
        EventType.TASK_FAILED,
        None,
        {"task_id": str(task_id), "task_type": task_type, "error": error},
    )
