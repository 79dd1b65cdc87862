"""Automation API endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from outreach.api.deps import Runtime
from outreach.models.automation_task import (
    AutomationStatusResponse,
    AutomationTaskCreate,
    AutomationTaskListResponse,
    AutomationTaskResponse,
    TaskStatus,
)
from outreach.models.event_log import EventLogListResponse, EventLogResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/automation", tags=["Automation"])


@router.get("/status", response_model=AutomationStatusResponse)
def get_status_endpoint(runtime: Runtime) -> AutomationStatusResponse:
    """Dispatcher health plus task counts per status."""
    snapshot = runtime.dispatcher.status()
    return AutomationStatusResponse(
        running=snapshot.running,
        last_poll_at=snapshot.last_poll_at,
        tasks_completed_in_window=snapshot.tasks_completed_in_window,
        active_count=snapshot.active_count,
        queue=runtime.task_store.count_by_status(),
    )


@router.get("/tasks", response_model=AutomationTaskListResponse)
def list_tasks_endpoint(
    runtime: Runtime,
    task_status: TaskStatus | None = Query(
        default=None, alias="status", description="Filter by task status"
    ),
    limit: int = Query(default=50, ge=1, le=200, description="Maximum number of tasks"),
) -> AutomationTaskListResponse:
    """List the most recently created tasks."""
    tasks = runtime.task_store.list_recent(task_status, limit)
    return AutomationTaskListResponse(
        tasks=[AutomationTaskResponse.model_validate(t) for t in tasks],
        total=len(tasks),
    )


@router.post(
    "/tasks",
    response_model=AutomationTaskResponse,
    status_code=status.HTTP_201_CREATED,
)
def enqueue_task_endpoint(
    runtime: Runtime,
    task_data: AutomationTaskCreate,
) -> AutomationTaskResponse:
    """Enqueue a one-off task."""
    task_id = runtime.dispatcher.enqueue(
        task_data.task_type,
        payload=task_data.payload,
        subject_id=task_data.subject_id,
        priority=task_data.priority,
        scheduled_at=task_data.scheduled_at,
    )
    return AutomationTaskResponse.model_validate(runtime.task_store.get(task_id))


@router.post("/tasks/{task_id}/requeue", response_model=AutomationTaskResponse)
def requeue_task_endpoint(
    runtime: Runtime,
    task_id: UUID,
) -> AutomationTaskResponse:
    """Re-run a dead-lettered task as a new pending task."""
    try:
        new_id = runtime.dispatcher.requeue(task_id)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )

    if new_id is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Task not found",
        )

    logger.info(
        "Dead-lettered task requeued",
        extra={"task_id": str(task_id), "new_task_id": str(new_id)},
    )
    return AutomationTaskResponse.model_validate(runtime.task_store.get(new_id))


@router.get("/events", response_model=EventLogListResponse)
def list_events_endpoint(
    runtime: Runtime,
    limit: int = Query(default=100, ge=1, le=500, description="Maximum number of events"),
) -> EventLogListResponse:
    """Most recent events, newest first."""
    entries = runtime.event_log.recent(limit)
    return EventLogListResponse(
        events=[EventLogResponse.model_validate(e) for e in entries],
        total=len(entries),
    )
