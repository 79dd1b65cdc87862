"""Detached background work.

Fire-and-forget side effects (event persistence, notifications) go
through ``run_detached`` so that failures are logged in one place and
never reach the caller.
"""

import atexit
import logging
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

logger = logging.getLogger(__name__)

Spawner = Callable[..., Any]

_pool: ThreadPoolExecutor | None = None


def _get_pool() -> ThreadPoolExecutor:
    global _pool
    if _pool is None:
        _pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="detached")
    return _pool


def run_detached(
    func: Callable[..., Any],
    *args: Any,
    description: str = "background job",
) -> Future:
    """Run ``func(*args)`` on the shared pool without waiting for it.

    Exceptions are logged and swallowed.
    """

    def _report(future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error(
                f"Detached {description} failed",
                extra={"error": str(exc)},
                exc_info=exc,
            )

    future = _get_pool().submit(func, *args)
    future.add_done_callback(_report)
    return future


def run_inline(
    func: Callable[..., Any],
    *args: Any,
    description: str = "background job",
) -> None:
    """Spawner that runs immediately in the caller's thread.

    Same error contract as ``run_detached``; used by the CLI and tests.
    """
    try:
        func(*args)
    except Exception as e:
        logger.error(
            f"Inline {description} failed",
            extra={"error": str(e)},
            exc_info=True,
        )


def shutdown_background(wait: bool = True) -> None:
    """Drain the shared pool."""
    global _pool
    if _pool is not None:
        _pool.shutdown(wait=wait)
        _pool = None


atexit.register(shutdown_background, False)
