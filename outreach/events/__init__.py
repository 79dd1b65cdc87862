"""In-process event bus, event log, and cross-module subscribers.

Components:
- types.py: Event type definitions
- bus.py: EventBus pub/sub and emit helpers
- log_store.py: Persisted event log
- subscribers.py: Default reactions registered at startup
"""

from outreach.events.bus import EventBus, get_event_bus
from outreach.events.log_store import (
    EventLogStore,
    MemoryEventLogStore,
    SqlEventLogStore,
)
from outreach.events.subscribers import EventSubscriber, register_event_subscribers
from outreach.events.types import EventType, SystemEvent

__all__ = [
    # Types
    "EventType",
    "SystemEvent",
    # Bus
    "EventBus",
    "get_event_bus",
    # Log
    "EventLogStore",
    "MemoryEventLogStore",
    "SqlEventLogStore",
    # Subscribers
    "EventSubscriber",
    "register_event_subscribers",
]
