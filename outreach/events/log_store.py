"""Event log stores.

The bus only needs ``append``; ``recent`` serves the read-back API.
"""

import logging
import threading
from typing import Protocol

from sqlalchemy import Engine
from sqlmodel import Session, select

from outreach.models.event_log import EventLogEntry

logger = logging.getLogger(__name__)


class EventLogStore(Protocol):
    def append(self, entry: EventLogEntry) -> None: ...

    def recent(self, limit: int = 100) -> list[EventLogEntry]: ...


class SqlEventLogStore:
    """Event log backed by the ``event_log`` table."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def append(self, entry: EventLogEntry) -> None:
        with Session(self._engine) as session:
            session.add(entry)
            session.commit()

    def recent(self, limit: int = 100) -> list[EventLogEntry]:
        with Session(self._engine, expire_on_commit=False) as session:
            entries = session.exec(
                select(EventLogEntry)
                .order_by(EventLogEntry.timestamp.desc())
                .limit(limit)
            ).all()
            return list(entries)


class MemoryEventLogStore:
    """Process-local event log."""

    def __init__(self) -> None:
        self._entries: list[EventLogEntry] = []
        self._lock = threading.Lock()

    def append(self, entry: EventLogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def recent(self, limit: int = 100) -> list[EventLogEntry]:
        with self._lock:
            return list(reversed(self._entries))[:limit]

    @property
    def entries(self) -> list[EventLogEntry]:
        with self._lock:
            return list(self._entries)
