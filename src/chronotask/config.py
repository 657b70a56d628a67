# src/chronotask/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole process (normal "settings layer").
- Job cadences are configuration, not constants inside the supervisor.
- Bad values fall back to defaults instead of failing at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "CHRONOTASK"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


# Local .env values never override variables already set in the environment.
load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_positive_int(name: str, default: int) -> int:
    v = _env_int(name, default)
    return v if v > 0 else default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path

    # ---- Engine switches ----
    scheduler_enabled: bool
    overdue_notifications: bool
    stats_enabled: bool

    # ---- Engine tuning ----
    reminder_lead_minutes: int
    reminder_mode: str
    recurrence_mode: str
    retention_days: int

    # ---- Cadences ----
    overdue_every_minutes: int
    reminder_every_minutes: int
    recurrence_every_minutes: int
    cleanup_at: str
    stats_every_minutes: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "chronotask") or "chronotask"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/chronotask"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
            scheduler_enabled=_env_bool(_k("SCHEDULER_ENABLED"), False),
            overdue_notifications=_env_bool(_k("OVERDUE_NOTIFICATIONS"), False),
            stats_enabled=_env_bool(_k("STATS_ENABLED"), True),
            reminder_lead_minutes=_env_positive_int(_k("REMINDER_LEAD_MINUTES"), 60),
            reminder_mode=_env(_k("REMINDER_MODE"), "at_least_once"),
            recurrence_mode=_env(_k("RECURRENCE_MODE"), "at_least_once"),
            retention_days=_env_positive_int(_k("RETENTION_DAYS"), 30),
            overdue_every_minutes=_env_positive_int(_k("OVERDUE_EVERY_MINUTES"), 5),
            reminder_every_minutes=_env_positive_int(_k("REMINDER_EVERY_MINUTES"), 1),
            recurrence_every_minutes=_env_positive_int(_k("RECURRENCE_EVERY_MINUTES"), 60),
            cleanup_at=_env(_k("CLEANUP_AT"), "02:00").strip() or "02:00",
            stats_every_minutes=_env_positive_int(_k("STATS_EVERY_MINUTES"), 60),
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
