"""Runtime wiring for the automation core.

Builds the event bus, the event log, the subscribers, the executor
registry and the dispatcher in the order they depend on each other.
Used by the FastAPI lifespan and by ``scripts/run_dispatcher.py``.
"""

import logging
import signal
import threading
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Engine

from outreach.automation.dispatcher import Dispatcher
from outreach.automation.recurring import RecurringScheduler
from outreach.automation.registry import ExecutorRegistry
from outreach.automation.retry import RetryPolicy
from outreach.automation.task_store import SqlTaskStore, TaskStore
from outreach.background import Spawner, run_detached, run_inline
from outreach.config import Settings, get_settings
from outreach.events.bus import EventBus
from outreach.events.log_store import EventLogStore, SqlEventLogStore
from outreach.events.subscribers import EventSubscriber, register_event_subscribers
from outreach.executors import ExecutorContext, build_default_registry
from outreach.executors.transport import (
    HttpRelayMessageSender,
    InboxPoller,
    LoggingMessageSender,
    MessageSender,
    NullInboxPoller,
)
from outreach.services.notifications import NotificationSink, SqlNotificationSink

logger = logging.getLogger(__name__)


@dataclass
class AutomationRuntime:
    """The wired automation core of one process."""

    settings: Settings
    bus: EventBus
    task_store: TaskStore
    event_log: EventLogStore
    notifier: NotificationSink
    registry: ExecutorRegistry
    dispatcher: Dispatcher
    sender: MessageSender
    subscribers: list[EventSubscriber] = field(default_factory=list)

    def start(self) -> None:
        """Start polling unless automation is disabled by configuration."""
        if not self.settings.AUTOMATION_ENABLED:
            logger.info("Automation disabled, dispatcher not started")
            return
        self.dispatcher.start()

    def stop(self, wait: bool = False) -> None:
        self.dispatcher.stop(wait=wait)
        if isinstance(self.sender, HttpRelayMessageSender):
            self.sender.close()


def build_sender(settings: Settings) -> MessageSender:
    """HTTP relay when one is configured, otherwise the simulated sender."""
    if settings.MESSAGE_RELAY_URL:
        return HttpRelayMessageSender(
            settings.MESSAGE_RELAY_URL,
            timeout=settings.MESSAGE_RELAY_TIMEOUT_SECONDS,
        )
    logger.warning("MESSAGE_RELAY_URL not set, outbound messages are simulated")
    return LoggingMessageSender()


def build_runtime(
    engine: Engine,
    settings: Settings | None = None,
    bus: EventBus | None = None,
    sender: MessageSender | None = None,
    poller: InboxPoller | None = None,
    spawn: Spawner = run_detached,
) -> AutomationRuntime:
    """Wire the automation core against ``engine``.

    Args:
        engine: Database engine for every store
        settings: Settings (default: cached environment settings)
        bus: Event bus (default: a new bus using ``spawn`` for persistence)
        sender: Outbound transport (default: from settings)
        poller: Inbox poller (default: no inbox access)
        spawn: Spawner for detached event persistence

    Raises:
        RegistryIncompleteError: Some task type has no executor
    """
    settings = settings or get_settings()
    settings.validate()

    bus = bus or EventBus(spawn=spawn)
    event_log = SqlEventLogStore(engine)
    if settings.EVENT_LOG_ENABLED:
        bus.set_log_function(event_log.append)

    notifier = SqlNotificationSink(engine)
    subscribers = register_event_subscribers(bus, engine, notifier)

    sender = sender or build_sender(settings)
    context = ExecutorContext(
        engine=engine,
        bus=bus,
        notifier=notifier,
        sender=sender,
        poller=poller or NullInboxPoller(),
    )
    registry = build_default_registry(context)
    registry.validate()

    task_store = SqlTaskStore(engine)
    dispatcher = Dispatcher(
        task_store,
        registry,
        bus,
        recurring=RecurringScheduler(
            task_store,
            seed_delay_seconds=settings.RECURRING_SEED_DELAY_SECONDS,
            max_retries=settings.TASK_MAX_RETRIES,
        ),
        retry_policy=RetryPolicy(
            base_delay_ms=int(settings.TASK_RETRY_BASE_DELAY_SECONDS * 1000),
            jitter_ratio=settings.TASK_RETRY_JITTER_RATIO,
        ),
        max_concurrent=settings.DISPATCHER_MAX_CONCURRENT,
        batch_size=settings.DISPATCHER_BATCH_SIZE,
        poll_interval_seconds=settings.DISPATCHER_POLL_INTERVAL_SECONDS,
        initial_delay_seconds=settings.DISPATCHER_INITIAL_DELAY_SECONDS,
        task_timeout_seconds=settings.TASK_TIMEOUT_SECONDS,
        max_retries=settings.TASK_MAX_RETRIES,
    )

    logger.info(
        "Automation runtime built",
        extra={
            "executors": len(registry),
            "subscribers": len(subscribers),
            "event_log_enabled": settings.EVENT_LOG_ENABLED,
        },
    )

    return AutomationRuntime(
        settings=settings,
        bus=bus,
        task_store=task_store,
        event_log=event_log,
        notifier=notifier,
        registry=registry,
        dispatcher=dispatcher,
        sender=sender,
        subscribers=subscribers,
    )


# Convenience functions for the CLI


def run_dispatcher_once(
    engine: Engine,
    settings: Settings | None = None,
    seed: bool = False,
    timeout: float | None = None,
) -> dict[str, Any]:
    """Run a single poll cycle and wait for the tasks it dispatched.

    Event persistence runs inline so that nothing is lost when the
    process exits right after the cycle.

    Args:
        engine: Database engine
        settings: Settings (default: cached environment settings)
        seed: Insert missing recurring tasks, due immediately, before polling
        timeout: Upper bound in seconds to wait for dispatched tasks

    Returns:
        Summary with the dispatched count and the queue counts per status
    """
    runtime = build_runtime(engine, settings, spawn=run_inline)
    dispatcher = runtime.dispatcher

    seeded = 0
    if seed:
        seeded = len(
            RecurringScheduler(
                runtime.task_store,
                seed_delay_seconds=0,
                max_retries=runtime.settings.TASK_MAX_RETRIES,
            ).seed()
        )

    dispatched = dispatcher.run_once(timeout=timeout)
    counts = runtime.task_store.count_by_status()
    runtime.stop()

    return {
        "seeded": seeded,
        "dispatched": dispatched,
        "queue": {status.value: count for status, count in counts.items()},
        "status": dispatcher.status().to_dict(),
    }


def run_dispatcher_loop(engine: Engine, settings: Settings | None = None) -> None:
    """Start the dispatcher and block until SIGINT or SIGTERM."""
    runtime = build_runtime(engine, settings)
    shutdown = threading.Event()

    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, requesting shutdown")
        shutdown.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    runtime.start()
    try:
        while not shutdown.wait(1.0):
            pass
    finally:
        runtime.stop(wait=True)

    logger.info("Dispatcher loop stopped", extra=runtime.dispatcher.status().to_dict())


def configure_logging(level: int = logging.INFO) -> None:
    """Configure logging for dispatcher processes.

    Args:
        level: Logging level (default: INFO)
    """
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logging.getLogger("outreach").setLevel(level)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
