# src/chronotask/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then either:
- runs the supervisor until SIGINT/SIGTERM (default),
- runs a single pass of one job (--run-once NAME), or
- lists the job table (--status).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from datetime import datetime, timezone

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..core.state import AppState
from ..errors import UnknownJobError
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="chronotask", description="Task lifecycle scheduling engine.")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--run-once", metavar="JOB", help="run one pass of the named job and exit")
    group.add_argument("--status", action="store_true", help="list registered jobs and exit")
    return parser.parse_args(argv)


def _shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        state.supervisor.stop_all()
    except Exception:
        logger.exception("Failed to stop supervisor.")

    # TaskStore uses short-lived sqlite connections per call; close() is a no-op hook.
    try:
        close = getattr(state.task_store, "close", None)
        if close is not None:
            close()
    except Exception:
        logger.debug("Task store close failed.", exc_info=True)


async def _serve(state: AppState) -> None:
    stop_main = asyncio.Event()
    loop = asyncio.get_running_loop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_main.set)
        except (NotImplementedError, RuntimeError):
            # Some platforms (Windows) have no loop signal handlers.
            pass

    state.supervisor.start()
    logger.info("Scheduler running. Press Ctrl+C to stop.")
    try:
        await stop_main.wait()
    finally:
        logger.info("Shutting down, waiting for in-flight jobs...")
        _shutdown(state)
        await state.supervisor.wait_idle()


def _print_status(state: AppState) -> None:
    for name, st in state.supervisor.status().items():
        print(f"{name:20s} {st.schedule}")
    now = datetime.fromtimestamp(state.clock.now(), tz=timezone.utc)
    print(f"(now {now:%Y-%m-%d %H:%M:%S} UTC)")


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)
    state = create_initial_state(settings=settings)

    if args.status:
        _print_status(state)
        return 0

    if args.run_once:
        try:
            result = asyncio.run(state.supervisor.run_job(args.run_once))
        except UnknownJobError as e:
            print(f"{e}. Known jobs: {', '.join(state.supervisor.job_names())}")
            return 2
        print(f"{args.run_once}: {result}")
        return 0

    if not settings.scheduler_enabled:
        logger.info("Task scheduler is disabled (set CHRONOTASK_SCHEDULER_ENABLED=true)")
        return 0

    try:
        asyncio.run(_serve(state))
    except KeyboardInterrupt:
        pass
    logger.info("Bye.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
