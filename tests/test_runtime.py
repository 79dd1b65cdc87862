"""Tests for runtime wiring and the CLI convenience functions."""

import logging
from uuid import uuid4

import pytest

from outreach.automation.recurring import DEFAULT_RECURRING_TASKS
from outreach.automation.runtime import build_runtime, build_sender, run_dispatcher_once
from outreach.automation.task_store import SqlTaskStore
from outreach.background import run_inline
from outreach.config import Settings
from outreach.events.bus import emit_task_failed
from outreach.executors.transport import HttpRelayMessageSender, LoggingMessageSender
from outreach.models.automation_task import TaskStatus, TaskType


@pytest.fixture
def settings() -> Settings:
    settings = Settings()
    settings.AUTOMATION_ENABLED = True
    settings.EVENT_LOG_ENABLED = True
    settings.MESSAGE_RELAY_URL = ""
    settings.DISPATCHER_MAX_CONCURRENT = 1
    settings.DISPATCHER_INITIAL_DELAY_SECONDS = 60
    settings.TASK_TIMEOUT_SECONDS = 0
    return settings


class TestBuildRuntime:
    """Tests for build_runtime."""

    def test_wires_every_component(self, engine, settings):
        """The registry is complete and subscribers are registered."""
        runtime = build_runtime(engine, settings, spawn=run_inline)

        assert runtime.registry.missing() == []
        assert len(runtime.subscribers) == 6
        assert isinstance(runtime.sender, LoggingMessageSender)
        assert runtime.dispatcher.max_concurrent == 1

    def test_events_persisted_when_enabled(self, engine, settings):
        """Emitted events land in the SQL event log."""
        runtime = build_runtime(engine, settings, spawn=run_inline)

        emit_task_failed(uuid4(), "POLL_INBOX", "imap down", bus=runtime.bus)

        [entry] = runtime.event_log.recent()
        assert entry.event_type == "task.failed"

    def test_event_log_disabled(self, engine, settings):
        """With the event log off nothing is persisted."""
        settings.EVENT_LOG_ENABLED = False
        runtime = build_runtime(engine, settings, spawn=run_inline)

        emit_task_failed(uuid4(), "POLL_INBOX", "imap down", bus=runtime.bus)

        assert runtime.event_log.recent() == []

    def test_invalid_settings_rejected(self, engine, settings):
        """Bad dispatcher tuning fails at build time."""
        settings.DISPATCHER_MAX_CONCURRENT = 0

        with pytest.raises(ValueError):
            build_runtime(engine, settings, spawn=run_inline)

    def test_start_respects_disabled_flag(self, engine, settings):
        """With automation disabled the dispatcher does not start."""
        settings.AUTOMATION_ENABLED = False
        runtime = build_runtime(engine, settings, spawn=run_inline)

        runtime.start()

        assert runtime.dispatcher.status().running is False
        runtime.stop()

    def test_start_and_stop(self, engine, settings):
        """Start seeds recurring tasks; stop halts polling."""
        runtime = build_runtime(engine, settings, spawn=run_inline)

        runtime.start()
        try:
            assert runtime.dispatcher.status().running is True
            assert sum(runtime.task_store.count_by_status().values()) == len(
                DEFAULT_RECURRING_TASKS
            )
        finally:
            runtime.stop(wait=True)

        assert runtime.dispatcher.status().running is False


class TestBuildSender:
    """Tests for build_sender."""

    def test_relay_when_configured(self, settings):
        settings.MESSAGE_RELAY_URL = "https://relay.test/send"

        sender = build_sender(settings)

        assert isinstance(sender, HttpRelayMessageSender)
        assert sender.url == "https://relay.test/send"

    def test_simulated_without_relay(self, settings, caplog):
        with caplog.at_level(logging.WARNING):
            sender = build_sender(settings)

        assert isinstance(sender, LoggingMessageSender)
        assert "simulated" in caplog.text


class TestRunDispatcherOnce:
    """Tests for run_dispatcher_once."""

    def test_empty_queue(self, engine, settings):
        """An empty queue dispatches nothing."""
        summary = run_dispatcher_once(engine, settings)

        assert summary["seeded"] == 0
        assert summary["dispatched"] == 0
        assert summary["queue"]["pending"] == 0
        assert summary["status"]["last_poll_at"] is not None

    def test_seed_then_run(self, engine, settings):
        """Seeding makes recurring tasks due at once; one cycle runs the first."""
        summary = run_dispatcher_once(engine, settings, seed=True, timeout=10)

        assert summary["seeded"] == len(DEFAULT_RECURRING_TASKS)
        assert summary["dispatched"] == 1
        assert summary["queue"]["completed"] == 1
        # The completed recurring task enqueued its successor
        assert summary["queue"]["pending"] == len(DEFAULT_RECURRING_TASKS)
        assert summary["status"]["tasks_completed_in_window"] == 1

    def test_seeded_tasks_use_configured_retries(self, engine, settings):
        """Seeding honours TASK_MAX_RETRIES."""
        settings.TASK_MAX_RETRIES = 5

        run_dispatcher_once(engine, settings, seed=True, timeout=10)

        pending = SqlTaskStore(engine).find_by_status(TaskStatus.PENDING)
        assert pending
        assert {task.max_retries for task in pending} == {5}

    def test_high_priority_runs_first(self, engine, settings):
        """SEND_MESSAGE is the high priority recurring task."""
        run_dispatcher_once(engine, settings, seed=True, timeout=10)

        [completed] = SqlTaskStore(engine).find_by_status(TaskStatus.COMPLETED)
        assert completed.task_type == TaskType.SEND_MESSAGE
