# src/chronotask/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (clock/store/notifier),
- builds the job bodies and registers them with a fresh Supervisor.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..config import get_settings
from ..core.clock import Clock, SystemClock
from ..core.ports import Notifier, TaskRepo
from ..core.state import AppState
from ..engine.overdue import OverdueDetector
from ..engine.predicates import DeliveryMode
from ..engine.recurrence import RecurrenceEngine
from ..engine.reminders import ReminderDispatcher
from ..engine.retention import RetentionJanitor
from ..engine.statistics import StatisticsReporter
from ..notify.log_notifier import LogNotifier
from ..scheduling.schedule import Schedule
from ..scheduling.supervisor import JobBody, SleepFn, Supervisor
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)

JOB_OVERDUE = "check-overdue"
JOB_REMINDERS = "send-reminders"
JOB_RECURRING = "process-recurring"
JOB_CLEANUP = "cleanup-tasks"
JOB_STATS = "update-stats"


@dataclass(slots=True, frozen=True)
class JobSpec:
    name: str
    schedule: Schedule
    body: JobBody


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def _cleanup_schedule(raw: str) -> Schedule:
    try:
        return Schedule.parse_time_of_day(raw)
    except ValueError:
        logger.warning("Invalid cleanup time %r; using 02:00", raw)
        return Schedule.daily_at(2, 0)


def build_jobs(settings, store: TaskRepo, notifier: Notifier, clock: Clock) -> list[JobSpec]:
    """The engine's job table: name, cadence and body for every background job."""
    overdue = OverdueDetector(
        store,
        notifier,
        clock=clock,
        notify=settings.overdue_notifications,
    )
    reminders = ReminderDispatcher(
        store,
        notifier,
        clock=clock,
        lead_minutes=settings.reminder_lead_minutes,
        mode=DeliveryMode.parse(settings.reminder_mode),
    )
    recurring = RecurrenceEngine(
        store,
        clock=clock,
        mode=DeliveryMode.parse(settings.recurrence_mode),
    )
    janitor = RetentionJanitor(store, clock=clock, retention_days=settings.retention_days)

    jobs = [
        JobSpec(JOB_OVERDUE, Schedule.every(minutes=settings.overdue_every_minutes), overdue.run),
        JobSpec(JOB_REMINDERS, Schedule.every(minutes=settings.reminder_every_minutes), reminders.run),
        JobSpec(JOB_RECURRING, Schedule.every(minutes=settings.recurrence_every_minutes), recurring.run),
        JobSpec(JOB_CLEANUP, _cleanup_schedule(settings.cleanup_at), janitor.run),
    ]
    if settings.stats_enabled:
        stats = StatisticsReporter(store)
        jobs.append(JobSpec(JOB_STATS, Schedule.every(minutes=settings.stats_every_minutes), stats.run))
    return jobs


def create_initial_state(
    *,
    settings=None,
    clock: Clock | None = None,
    task_store: TaskRepo | None = None,
    notifier: Notifier | None = None,
    sleep: SleepFn | None = None,
) -> AppState:
    """
    Create AppState from the provided settings with every job registered (not started).

    Keeping collaborators injectable makes the app easier to test and avoids hidden global state.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    clock = clock or SystemClock()
    if task_store is None:
        _ensure_local_dirs(settings)
        task_store = TaskStore(settings.tasks_db_path, clock=clock)
    notifier = notifier or LogNotifier()

    supervisor = Supervisor(clock=clock, sleep=sleep)
    for spec in build_jobs(settings, task_store, notifier, clock):
        supervisor.register(spec.name, spec.schedule, spec.body)

    return AppState(
        settings=settings,
        clock=clock,
        task_store=task_store,
        notifier=notifier,
        supervisor=supervisor,
    )
