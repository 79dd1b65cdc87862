#!/usr/bin/env python3
"""Dev entrypoint for running the automation dispatcher.

Usage:
    # Single poll cycle (run due tasks once and wait for them)
    python scripts/run_dispatcher.py --once

    # Seed recurring tasks as due now, then run one cycle
    python scripts/run_dispatcher.py --once --seed

    # Continuous polling (Ctrl+C to stop)
    python scripts/run_dispatcher.py --loop

    # Loop with custom interval and concurrency
    python scripts/run_dispatcher.py --loop --interval 5 --max-concurrent 5

Environment variables:
    DATABASE_URL: Database connection (default: sqlite:///./outreach.db)
    DISPATCHER_POLL_INTERVAL_SECONDS: Seconds between polls (default: 15)
    DISPATCHER_MAX_CONCURRENT: Tasks executing at once (default: 3)
    DISPATCHER_BATCH_SIZE: Tasks fetched per poll (default: 10)
    TASK_MAX_RETRIES: Attempts before dead-lettering (default: 3)
    TASK_TIMEOUT_SECONDS: Per-attempt timeout, 0 disables (default: 600)
    MESSAGE_RELAY_URL: HTTP mail relay; unset means simulated sends
"""

import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlmodel import SQLModel

import outreach.models  # noqa: F401
from outreach.automation.runtime import (
    configure_logging,
    run_dispatcher_loop,
    run_dispatcher_once,
)
from outreach.config import get_settings
from outreach.db.session import engine


def main() -> int:
    """Main entrypoint for the dispatcher."""
    parser = argparse.ArgumentParser(
        description="Run the outreach automation dispatcher",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    # Mode selection
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument(
        "--once",
        action="store_true",
        help="Run one poll cycle and exit",
    )
    mode.add_argument(
        "--loop",
        action="store_true",
        help="Poll continuously until interrupted",
    )

    # Configuration
    parser.add_argument(
        "--seed",
        action="store_true",
        help="Seed missing recurring tasks as due now (once mode only)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between polls (loop mode only)",
    )
    parser.add_argument(
        "--max-concurrent",
        type=int,
        default=None,
        help="Maximum tasks executing at once",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for dispatched tasks (once mode only)",
    )

    # Logging
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Reduce logging to warnings only",
    )

    args = parser.parse_args()

    # Configure logging
    if args.verbose:
        configure_logging(logging.DEBUG)
    elif args.quiet:
        configure_logging(logging.WARNING)
    else:
        configure_logging(logging.INFO)

    logger = logging.getLogger(__name__)

    settings = get_settings()
    if args.interval is not None:
        settings.DISPATCHER_POLL_INTERVAL_SECONDS = args.interval
    if args.max_concurrent is not None:
        settings.DISPATCHER_MAX_CONCURRENT = args.max_concurrent

    try:
        SQLModel.metadata.create_all(engine)

        if args.once:
            logger.info("Running one dispatcher cycle...")
            summary = run_dispatcher_once(
                engine, settings, seed=args.seed, timeout=args.timeout
            )

            # Print summary
            print("\n--- Dispatcher Run Summary ---")
            if args.seed:
                print(f"Seeded: {summary['seeded']}")
            print(f"Dispatched: {summary['dispatched']}")
            print(f"Completed: {summary['status']['tasks_completed_in_window']}")
            print("Queue:")
            for status, count in summary["queue"].items():
                print(f"  {status}: {count}")

            return 0

        elif args.loop:
            logger.info("Starting dispatcher loop (Ctrl+C to stop)...")
            run_dispatcher_loop(engine, settings)
            return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.error(f"Dispatcher failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
