"""On-demand reporting executors.

These are not recurring; they are enqueued explicitly and announce
completion on the bus so that listeners can pick up the result.
"""

from uuid import UUID

from outreach.events.bus import emit_task_completed
from outreach.exceptions import PermanentTaskError
from outreach.executors.base import ContextExecutor
from outreach.models.automation_task import AutomationTask, TaskType


def report_subject(task: AutomationTask) -> UUID:
    """Subject of a report task, from the task or its payload.

    Raises:
        PermanentTaskError: No usable subject id
    """
    if task.subject_id is not None:
        return task.subject_id

    raw = (task.payload or {}).get("subject_id")
    if not raw:
        raise PermanentTaskError("GENERATE_REPORT requires a subject_id")
    try:
        return UUID(str(raw))
    except ValueError as e:
        raise PermanentTaskError(f"Invalid subject_id: {raw}") from e


class GenerateReportExecutor(ContextExecutor):
    task_type = TaskType.GENERATE_REPORT

    def execute(self, task: AutomationTask) -> None:
        subject_id = report_subject(task)
        emit_task_completed(
            task.id, self.task_type.value, subject_id=subject_id, bus=self.context.bus
        )
        self._logger.info(
            f"Report generated for {subject_id}",
            extra={"task_id": str(task.id), "subject_id": str(subject_id)},
        )


class ComputeAnalyticsExecutor(ContextExecutor):
    task_type = TaskType.COMPUTE_ANALYTICS

    def execute(self, task: AutomationTask) -> None:
        emit_task_completed(
            task.id, self.task_type.value, subject_id=task.subject_id, bus=self.context.bus
        )
        self._logger.info("Analytics computed", extra={"task_id": str(task.id)})
