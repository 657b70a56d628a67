# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from chronotask.core.clock import ManualClock
from chronotask.tasks.task_store import TaskStore

from .fakes import T0, FakeNotifier


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the bootstrap and engine.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="chronotask-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        scheduler_enabled=True,
        overdue_notifications=True,
        stats_enabled=True,
        reminder_lead_minutes=60,
        reminder_mode="at_least_once",
        recurrence_mode="at_least_once",
        retention_days=30,
        overdue_every_minutes=5,
        reminder_every_minutes=1,
        recurrence_every_minutes=60,
        cleanup_at="02:00",
        stats_every_minutes=60,
    )


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock(T0)


@pytest.fixture()
def store(tmp_path: Path, clock: ManualClock) -> TaskStore:
    """Real SQLite store: its filters and compare-and-set updates are part of what we test."""
    return TaskStore(tmp_path / "tasks.sqlite3", clock=clock)


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()
