# src/chronotask/tasks/task_api.py

from __future__ import annotations

"""
User-initiated transitions.

Small helpers the API layer calls for the user-owned edges of the status
machine (complete, cancel) and for the two mutations the engine cares about
(assignment, due-date change). They keep the engine's contracts:
- terminal tasks never move;
- changing due_at resets reminder_sent so the new date gets its own reminder.
"""

import logging
from typing import Any

from ..core.clock import Clock, SystemClock
from ..core.ports import Notifier, TaskRepo
from ..engine.predicates import deliver
from ..errors import InvalidTransitionError, TaskNotFoundError
from .task_filter import TaskFilter
from .task_models import TERMINAL_STATUSES, HistoryAction, Task, TaskStatus

logger = logging.getLogger(__name__)

_OPEN = TaskFilter(status_not_in=TERMINAL_STATUSES)


def _load(store: TaskRepo, task_id: int) -> Task:
    task = store.get_task(task_id)
    if task is None:
        raise TaskNotFoundError(task_id)
    return task


def _close(
    store: TaskRepo,
    task_id: int,
    target: TaskStatus,
    fields: dict[str, Any],
    *,
    actor_id: str,
    action: HistoryAction,
) -> tuple[Task, Task]:
    before = _load(store, task_id)
    if before.status.is_terminal:
        raise InvalidTransitionError(task_id, before.status.value, target.value)

    after = store.update_task(task_id, {"status": target, **fields}, where=_OPEN)
    if after is None:
        # Lost a race with another writer; report against the fresh state.
        current = _load(store, task_id)
        raise InvalidTransitionError(task_id, current.status.value, target.value)

    store.add_history(
        task_id=task_id,
        actor_id=actor_id,
        action=action,
        old_value={"status": before.status.value},
        new_value={"status": target.value},
    )
    return before, after


async def complete_task(
    store: TaskRepo,
    notifier: Notifier,
    task_id: int,
    *,
    actor_id: str,
    clock: Clock | None = None,
) -> Task:
    now_ts = (clock or SystemClock()).now()
    _, task = _close(
        store,
        task_id,
        TaskStatus.COMPLETED,
        {"completed_at": now_ts, "progress": 100},
        actor_id=actor_id,
        action=HistoryAction.COMPLETED,
    )
    logger.info("Task %s completed by %s", task_id, actor_id)

    if task.owner_id and task.owner_id != actor_id:
        await deliver(
            "completion",
            task.id,
            lambda: notifier.send_completion(task.owner_id, task.summary(), actor_id),
        )
    return task


def cancel_task(store: TaskRepo, task_id: int, *, actor_id: str) -> Task:
    _, task = _close(
        store,
        task_id,
        TaskStatus.CANCELLED,
        {},
        actor_id=actor_id,
        action=HistoryAction.CANCELLED,
    )
    logger.info("Task %s cancelled by %s", task_id, actor_id)
    return task


async def assign_task(
    store: TaskRepo,
    notifier: Notifier,
    task_id: int,
    assignee_id: str | None,
    *,
    actor_id: str,
) -> Task:
    before = _load(store, task_id)
    task = store.update_task(task_id, {"assignee_id": assignee_id})
    if task is None:
        raise TaskNotFoundError(task_id)

    store.add_history(
        task_id=task_id,
        actor_id=actor_id,
        action=HistoryAction.ASSIGNED,
        old_value={"assignee_id": before.assignee_id},
        new_value={"assignee_id": assignee_id},
    )
    logger.info("Task %s assigned to %s by %s", task_id, assignee_id, actor_id)

    if assignee_id and assignee_id != actor_id and assignee_id != before.assignee_id:
        await deliver(
            "assignment",
            task.id,
            lambda: notifier.send_assignment(assignee_id, task.summary(), actor_id),
        )
    return task


def reschedule_task(
    store: TaskRepo,
    task_id: int,
    due_at: float | None,
    *,
    actor_id: str,
    clock: Clock | None = None,
) -> Task:
    """
    Move a task's due date.

    reminder_sent is reset so a reminder fires for the new date. An overdue task
    whose new date lies in the future goes back to pending.
    """
    before = _load(store, task_id)
    if before.status.is_terminal:
        raise InvalidTransitionError(task_id, before.status.value, "rescheduled")

    now_ts = (clock or SystemClock()).now()
    fields: dict[str, Any] = {"due_at": due_at, "reminder_sent": False}
    if before.status == TaskStatus.OVERDUE and (due_at is None or due_at > now_ts):
        fields["status"] = TaskStatus.PENDING

    task = store.update_task(task_id, fields, where=_OPEN)
    if task is None:
        current = _load(store, task_id)
        raise InvalidTransitionError(task_id, current.status.value, "rescheduled")

    store.add_history(
        task_id=task_id,
        actor_id=actor_id,
        action=HistoryAction.UPDATED,
        old_value={"due_at": before.due_at, "status": before.status.value},
        new_value={"due_at": task.due_at, "status": task.status.value},
    )
    logger.info("Task %s rescheduled to %s by %s", task_id, due_at, actor_id)
    return task
