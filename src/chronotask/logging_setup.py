# src/chronotask/logging_setup.py

from __future__ import annotations

import contextvars
import logging
import sys
from pathlib import Path

# Name of the scheduled job the current coroutine runs for ("-" outside any job).
# Set by the Supervisor around each execution; asyncio tasks inherit it.
current_job: contextvars.ContextVar[str] = contextvars.ContextVar("chronotask_job", default="-")

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s [%(job)s]: %(message)s"


class _JobContextFilter(logging.Filter):
    """Stamp every record with the job it was emitted from, so interleaved passes stay readable."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.job = current_job.get()
        return True


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console shows chronotask records at any level; everything else
    (third-party libraries, asyncio, captured py.warnings) only at ERROR+.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name == "chronotask" or name.startswith("chronotask."):
            return True
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/chronotask",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Configure the root logger once, before the supervisor starts.

    - stderr: filtered, at console_level
    - <log_dir>/chronotask.log: everything from file_level up

    Both handlers tag records with the running job name. Returns the log file path.
    """
    log_file = Path(log_dir) / "chronotask.log"
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    job_filter = _JobContextFilter()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.addFilter(job_filter)
    console.addFilter(_ConsoleNoiseFilter())
    console.setFormatter(fmt)

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.addFilter(job_filter)
    file_handler.setFormatter(fmt)

    root.addHandler(console)
    root.addHandler(file_handler)

    # The supervisor creates many short tasks; asyncio's debug chatter is not useful here.
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.captureWarnings(True)
    return log_file
