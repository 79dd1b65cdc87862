"""Default task executors.

Components:
- transport.py: MessageSender / InboxPoller ports and implementations
- base.py: ExecutorContext and shared helpers
- messaging.py: SEND_MESSAGE, FOLLOWUP_STEP
- inbox.py: POLL_INBOX
- counters.py: WARMUP_INCREMENT, RESET_COUNTERS
- customer.py: SEND_REVIEW_REQUEST, SEND_REVIEW_FOLLOWUP, SEND_RETENTION_REMINDER
- reporting.py: GENERATE_REPORT, COMPUTE_ANALYTICS
"""

from outreach.automation.registry import ExecutorRegistry
from outreach.executors.base import ContextExecutor, ExecutorContext
from outreach.executors.counters import (
    ResetCountersExecutor,
    WarmupIncrementExecutor,
    warmup_limit,
)
from outreach.executors.customer import RetentionReminderExecutor, ReviewRequestExecutor
from outreach.executors.inbox import PollInboxExecutor
from outreach.executors.messaging import FollowupStepExecutor, SendMessageExecutor
from outreach.executors.reporting import ComputeAnalyticsExecutor, GenerateReportExecutor
from outreach.executors.transport import (
    HttpRelayMessageSender,
    InboxPoller,
    LoggingMessageSender,
    MessageSender,
    NullInboxPoller,
    OutboundMessage,
)
from outreach.models.automation_task import TaskType


def build_default_registry(context: ExecutorContext) -> ExecutorRegistry:
    """Register an executor for every task type."""
    registry = ExecutorRegistry()

    review_requests = ReviewRequestExecutor(context)
    for executor in (
        SendMessageExecutor(context),
        FollowupStepExecutor(context),
        PollInboxExecutor(context),
        WarmupIncrementExecutor(context),
        ResetCountersExecutor(context),
        review_requests,
        RetentionReminderExecutor(context),
        GenerateReportExecutor(context),
        ComputeAnalyticsExecutor(context),
    ):
        registry.register(executor)

    # One executor walks both review request states
    registry.register(review_requests, TaskType.SEND_REVIEW_FOLLOWUP)

    return registry


__all__ = [
    # Context
    "ExecutorContext",
    "ContextExecutor",
    "build_default_registry",
    # Executors
    "SendMessageExecutor",
    "FollowupStepExecutor",
    "PollInboxExecutor",
    "WarmupIncrementExecutor",
    "ResetCountersExecutor",
    "ReviewRequestExecutor",
    "RetentionReminderExecutor",
    "GenerateReportExecutor",
    "ComputeAnalyticsExecutor",
    "warmup_limit",
    # Transport
    "MessageSender",
    "InboxPoller",
    "OutboundMessage",
    "LoggingMessageSender",
    "HttpRelayMessageSender",
    "NullInboxPoller",
]
