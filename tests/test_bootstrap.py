# tests/test_bootstrap.py

from __future__ import annotations

import pytest

from chronotask.cli.bootstrap import (
    JOB_CLEANUP,
    JOB_OVERDUE,
    JOB_RECURRING,
    JOB_REMINDERS,
    JOB_STATS,
    create_initial_state,
)
from chronotask.config import Settings
from chronotask.engine.statistics import StatisticsReporter
from chronotask.tasks.task_models import RecurrencePattern, TaskStatus

from .fakes import DAY, HOUR, MINUTE, T0


def test_job_table_uses_configured_cadences(settings, clock, notifier) -> None:
    state = create_initial_state(settings=settings, clock=clock, notifier=notifier)

    status = state.supervisor.status()
    assert list(status) == [JOB_OVERDUE, JOB_REMINDERS, JOB_RECURRING, JOB_CLEANUP, JOB_STATS]
    assert status[JOB_OVERDUE].schedule == "every 5m"
    assert status[JOB_REMINDERS].schedule == "every 1m"
    assert status[JOB_RECURRING].schedule == "every 1h"
    assert status[JOB_CLEANUP].schedule == "daily at 02:00 UTC"
    assert all(not s.active for s in status.values())
    assert settings.tasks_db_path.exists()


def test_stats_job_optional_and_bad_cleanup_time(settings, clock, notifier) -> None:
    settings.stats_enabled = False
    settings.cleanup_at = "late"
    state = create_initial_state(settings=settings, clock=clock, notifier=notifier)

    status = state.supervisor.status()
    assert JOB_STATS not in status
    assert status[JOB_CLEANUP].schedule == "daily at 02:00 UTC"


@pytest.mark.asyncio
async def test_one_pass_of_every_job(settings, clock, store, notifier) -> None:
    state = create_initial_state(settings=settings, clock=clock, task_store=store, notifier=notifier)
    sup = state.supervisor

    store.create_task(owner_id="o", title="late", due_at=T0 - HOUR)
    store.create_task(owner_id="o", title="soon", due_at=T0 + 30 * MINUTE)
    store.create_task(
        owner_id="o",
        title="daily",
        is_recurring=True,
        recurrence_pattern=RecurrencePattern.DAILY,
    )
    store.create_task(owner_id="o", title="old", status=TaskStatus.COMPLETED, completed_at=T0 - 60 * DAY)

    assert await sup.run_job(JOB_OVERDUE) == 1
    assert await sup.run_job(JOB_REMINDERS) == 1
    assert await sup.run_job(JOB_RECURRING) == 1
    assert await sup.run_job(JOB_CLEANUP) == 1

    stats = await sup.run_job(JOB_STATS)
    assert stats["total"] == 4
    assert stats["by_status"]["overdue"] == 1
    assert stats["recurring_templates"] == 1
    assert {n.kind for n in notifier.sent} == {"overdue", "reminder"}


@pytest.mark.asyncio
async def test_statistics_on_empty_store(store) -> None:
    snap = await StatisticsReporter(store).run()
    assert snap["total"] == 0
    assert set(snap["by_status"]) == {s.value for s in TaskStatus}


def test_settings_from_env(monkeypatch) -> None:
    monkeypatch.setenv("CHRONOTASK_SCHEDULER_ENABLED", "yes")
    monkeypatch.setenv("CHRONOTASK_REMINDER_LEAD_MINUTES", "15")
    monkeypatch.setenv("CHRONOTASK_RETENTION_DAYS", "not-a-number")
    monkeypatch.setenv("CHRONOTASK_OVERDUE_EVERY_MINUTES", "-2")
    monkeypatch.setenv("CHRONOTASK_DATA_DIR", "/tmp/ct-data")
    monkeypatch.delenv("CHRONOTASK_TASKS_DB_PATH", raising=False)

    s = Settings.from_env()
    assert s.scheduler_enabled is True
    assert s.reminder_lead_minutes == 15
    assert s.retention_days == 30
    assert s.overdue_every_minutes == 5
    assert str(s.tasks_db_path) == "/tmp/ct-data/tasks.sqlite3"
