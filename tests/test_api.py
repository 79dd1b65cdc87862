"""Tests for the automation API endpoints."""

from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from outreach.api.automation import router
from outreach.automation.runtime import build_runtime
from outreach.background import run_inline
from outreach.config import Settings
from outreach.events.bus import emit_task_failed
from outreach.executors.transport import LoggingMessageSender
from outreach.models.automation_task import AutomationTask, TaskStatus, TaskType


@pytest.fixture
def runtime(engine):
    settings = Settings()
    settings.EVENT_LOG_ENABLED = True
    return build_runtime(engine, settings, sender=LoggingMessageSender(), spawn=run_inline)


@pytest.fixture
def client(runtime):
    """Test client with the runtime attached but the dispatcher not started."""
    app = FastAPI()
    app.include_router(router)
    app.state.runtime = runtime
    with TestClient(app) as client:
        yield client
    runtime.stop()


def _dead_letter(runtime) -> AutomationTask:
    task = AutomationTask(
        task_type=TaskType.GENERATE_REPORT,
        status=TaskStatus.DEAD_LETTER,
        retry_count=3,
        payload={"subject_id": str(uuid4())},
        error_log=["[2026-01-01T00:00:00] boom"],
    )
    runtime.task_store.upsert(task)
    return task


class TestStatusEndpoint:
    """Tests for GET /api/automation/status."""

    def test_status_with_queue_counts(self, client, runtime):
        """Status reports dispatcher health and counts per status."""
        _dead_letter(runtime)

        response = client.get("/api/automation/status")

        assert response.status_code == 200
        data = response.json()
        assert data["running"] is False
        assert data["active_count"] == 0
        assert data["tasks_completed_in_window"] == 0
        assert data["queue"]["dead_letter"] == 1
        assert data["queue"]["pending"] == 0

    def test_runtime_missing_returns_503(self):
        """Without a runtime the endpoints are unavailable."""
        app = FastAPI()
        app.include_router(router)

        with TestClient(app) as client:
            response = client.get("/api/automation/status")

        assert response.status_code == 503


class TestTaskEndpoints:
    """Tests for the task endpoints."""

    def test_enqueue_task(self, client):
        """POST creates a pending task with defaults."""
        subject_id = str(uuid4())

        response = client.post(
            "/api/automation/tasks",
            json={"task_type": "GENERATE_REPORT", "subject_id": subject_id},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["task_type"] == "GENERATE_REPORT"
        assert data["status"] == "pending"
        assert data["priority"] == "normal"
        assert data["subject_id"] == subject_id
        assert data["retry_count"] == 0

    def test_enqueue_rejects_unknown_type(self, client):
        """Unknown task types fail validation."""
        response = client.post("/api/automation/tasks", json={"task_type": "SEND_FAX"})

        assert response.status_code == 422

    def test_list_tasks_filtered(self, client, runtime):
        """Listing can be filtered by status."""
        _dead_letter(runtime)
        client.post("/api/automation/tasks", json={"task_type": "COMPUTE_ANALYTICS"})

        all_tasks = client.get("/api/automation/tasks").json()
        dead = client.get("/api/automation/tasks", params={"status": "dead_letter"}).json()

        assert all_tasks["total"] == 2
        assert dead["total"] == 1
        assert dead["tasks"][0]["error_log"] == ["[2026-01-01T00:00:00] boom"]

    def test_list_limit_validated(self, client):
        """Limits outside 1..200 are rejected."""
        assert client.get("/api/automation/tasks", params={"limit": 0}).status_code == 422
        assert client.get("/api/automation/tasks", params={"limit": 201}).status_code == 422

    def test_requeue_dead_letter(self, client, runtime):
        """Requeue creates a fresh pending task."""
        dead = _dead_letter(runtime)

        response = client.post(f"/api/automation/tasks/{dead.id}/requeue")

        assert response.status_code == 200
        data = response.json()
        assert data["id"] != str(dead.id)
        assert data["status"] == "pending"
        assert data["retry_count"] == 0
        assert data["payload"] == dead.payload
        assert runtime.task_store.get(dead.id).status == TaskStatus.DEAD_LETTER

    def test_requeue_live_task_conflicts(self, client):
        """Requeueing a task that is not dead-lettered returns 409."""
        created = client.post(
            "/api/automation/tasks", json={"task_type": "COMPUTE_ANALYTICS"}
        ).json()

        response = client.post(f"/api/automation/tasks/{created['id']}/requeue")

        assert response.status_code == 409

    def test_requeue_missing_task(self, client):
        """Unknown task ids return 404."""
        response = client.post(f"/api/automation/tasks/{uuid4()}/requeue")

        assert response.status_code == 404
        assert response.json()["detail"] == "Task not found"


class TestEventsEndpoint:
    """Tests for GET /api/automation/events."""

    def test_recent_events(self, client, runtime):
        """Persisted events are listed newest first."""
        task_id = uuid4()
        emit_task_failed(task_id, "POLL_INBOX", "imap down", bus=runtime.bus)

        response = client.get("/api/automation/events", params={"limit": 10})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        event = data["events"][0]
        assert event["event_type"] == "task.failed"
        assert event["data"]["task_id"] == str(task_id)
