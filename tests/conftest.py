"""Shared fixtures for the automation test suite."""

from uuid import UUID

import pytest
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

import outreach.models  # noqa: F401
from outreach.automation.task_store import MemoryTaskStore
from outreach.background import run_inline
from outreach.events.bus import EventBus
from outreach.events.log_store import MemoryEventLogStore
from outreach.events.types import SystemEvent
from outreach.models.notification import NotificationType


class RecordingNotifier:
    """Notification sink that keeps what it was given."""

    def __init__(self) -> None:
        self.created: list[dict] = []

    def create(
        self,
        notification_type: NotificationType,
        title: str,
        message: str,
        subject_id: UUID | None = None,
        action_url: str | None = None,
    ) -> None:
        self.created.append(
            {
                "notification_type": notification_type,
                "title": title,
                "message": message,
                "subject_id": subject_id,
                "action_url": action_url,
            }
        )

    def of_type(self, notification_type: NotificationType) -> list[dict]:
        return [n for n in self.created if n["notification_type"] == notification_type]


# ============================================================================
# Database
# ============================================================================

@pytest.fixture
def engine():
    """In-memory SQLite engine shared across sessions."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    """Create a test database session."""
    with Session(engine) as session:
        yield session


# ============================================================================
# In-memory collaborators
# ============================================================================

@pytest.fixture
def task_store() -> MemoryTaskStore:
    return MemoryTaskStore()


@pytest.fixture
def event_log() -> MemoryEventLogStore:
    return MemoryEventLogStore()


@pytest.fixture
def bus(event_log: MemoryEventLogStore) -> EventBus:
    """Bus that persists inline into an in-memory event log."""
    bus = EventBus(spawn=run_inline)
    bus.set_log_function(event_log.append)
    return bus


@pytest.fixture
def emitted(bus: EventBus) -> list[SystemEvent]:
    """Every event emitted on ``bus``, in order."""
    events: list[SystemEvent] = []
    bus.on_any(events.append)
    return events


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
