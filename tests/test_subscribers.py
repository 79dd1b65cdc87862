"""Tests for the default event subscribers."""

from uuid import uuid4

import pytest
from sqlmodel import Session, select

from outreach.events.bus import (
    EventBus,
    emit_lifecycle_changed,
    emit_message_bounced,
    emit_message_replied,
    emit_message_sent,
    emit_review_received,
    emit_task_failed,
)
from outreach.events.subscribers import register_event_subscribers
from outreach.events.types import EventType
from outreach.models.account import Account, Activity, LifecycleStage
from outreach.models.notification import NotificationType


@pytest.fixture
def subscribed(bus: EventBus, engine, notifier) -> EventBus:
    register_event_subscribers(bus, engine, notifier)
    return bus


def _account(engine, stage: LifecycleStage) -> Account:
    account = Account(business_name="Acme Plumbing", lifecycle_stage=stage)
    with Session(engine, expire_on_commit=False) as session:
        session.add(account)
        session.commit()
    return account


def _activities(engine, subject_id=None) -> list[Activity]:
    with Session(engine) as session:
        statement = select(Activity)
        if subject_id is not None:
            statement = statement.where(Activity.subject_id == subject_id)
        return list(session.exec(statement).all())


class TestRegistration:
    """Tests for register_event_subscribers."""

    def test_registers_one_handler_per_subscriber(self, bus: EventBus, engine, notifier):
        """Each default subscriber is bound to its event type."""
        subscribers = register_event_subscribers(bus, engine, notifier)

        assert len(subscribers) == 6
        for event_type in (
            EventType.MESSAGE_REPLIED,
            EventType.MESSAGE_SENT,
            EventType.MESSAGE_BOUNCED,
            EventType.LIFECYCLE_CHANGED,
            EventType.REVIEW_RECEIVED,
            EventType.TASK_FAILED,
        ):
            assert bus.handler_count(event_type) == 1


class TestReplyLifecycle:
    """Tests for the reply -> engaged transition."""

    def test_contacted_account_becomes_engaged(self, subscribed, engine, emitted):
        """A reply advances a contacted account and emits lifecycle.changed."""
        account = _account(engine, LifecycleStage.CONTACTED)

        emit_message_replied(account.id, uuid4(), "interested", bus=subscribed)

        with Session(engine) as session:
            stored = session.get(Account, account.id)
            assert stored.lifecycle_stage == LifecycleStage.ENGAGED
            assert stored.pipeline_stage == "engaged"

        changes = [e for e in emitted if e.event_type == EventType.LIFECYCLE_CHANGED]
        assert len(changes) == 1
        assert changes[0].data == {"from": "contacted", "to": "engaged"}

        [activity] = _activities(engine, account.id)
        assert activity.activity_type == "lifecycle_changed"

    def test_other_stages_unchanged(self, subscribed, engine, emitted):
        """Replies from prospects or engaged accounts do not transition."""
        account = _account(engine, LifecycleStage.QUALIFIED)

        emit_message_replied(account.id, uuid4(), "interested", bus=subscribed)

        with Session(engine) as session:
            assert session.get(Account, account.id).lifecycle_stage == LifecycleStage.QUALIFIED
        assert not [e for e in emitted if e.event_type == EventType.LIFECYCLE_CHANGED]

    def test_unknown_account_is_noop(self, subscribed, engine, emitted):
        """A reply for a missing account does nothing."""
        emit_message_replied(uuid4(), uuid4(), "interested", bus=subscribed)

        assert [e.event_type for e in emitted] == [EventType.MESSAGE_REPLIED]


class TestActivitySubscribers:
    """Tests for timeline entries."""

    def test_message_sent_records_activity(self, subscribed, engine):
        """message.sent adds a message_sent activity."""
        subject_id = uuid4()

        emit_message_sent(subject_id, uuid4(), "owner@example.com", bus=subscribed)

        [activity] = _activities(engine, subject_id)
        assert activity.activity_type == "message_sent"
        assert "owner@example.com" in activity.description

    def test_lifecycle_changed_records_activity(self, subscribed, engine):
        """lifecycle.changed adds a timeline entry with both stages."""
        subject_id = uuid4()

        emit_lifecycle_changed(subject_id, "prospect", "contacted", bus=subscribed)

        [activity] = _activities(engine, subject_id)
        assert activity.description == "Lifecycle changed from prospect to contacted"


class TestAlerts:
    """Tests for subscribers that raise notifications."""

    def test_bounce_notifies_and_records(self, subscribed, engine, notifier):
        """A bounce creates an activity and a bounce notification."""
        subject_id = uuid4()

        emit_message_bounced(subject_id, uuid4(), "550 mailbox unavailable", bus=subscribed)

        [alert] = notifier.of_type(NotificationType.BOUNCE_DETECTED)
        assert alert["subject_id"] == subject_id
        assert "550 mailbox unavailable" in alert["message"]
        assert _activities(engine, subject_id)[0].activity_type == "message_bounced"

    def test_negative_review_alerts(self, subscribed, notifier):
        """Ratings of two or lower raise a review alert."""
        emit_review_received(uuid4(), uuid4(), 2, bus=subscribed)

        assert len(notifier.of_type(NotificationType.REVIEW_ALERT)) == 1

    def test_positive_review_no_alert(self, subscribed, engine, notifier):
        """Good ratings are recorded without an alert."""
        subject_id = uuid4()

        emit_review_received(subject_id, uuid4(), 5, bus=subscribed)

        assert notifier.of_type(NotificationType.REVIEW_ALERT) == []
        assert _activities(engine, subject_id)[0].activity_type == "review_received"

    def test_task_failed_notifies(self, subscribed, notifier):
        """A dead-lettered task alerts the operator."""
        emit_task_failed(uuid4(), "SEND_MESSAGE", "relay down", bus=subscribed)

        [alert] = notifier.of_type(NotificationType.TASK_FAILED)
        assert alert["message"] == "Task SEND_MESSAGE failed: relay down"
        assert alert["action_url"] == "/automation"
