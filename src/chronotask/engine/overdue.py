# src/chronotask/engine/overdue.py

from __future__ import annotations

import logging

from ..core.clock import Clock, SystemClock
from ..core.ports import Notifier, TaskRepo
from ..tasks.task_models import SYSTEM_ACTOR, HistoryAction, TaskStatus
from .predicates import deliver, overdue_filter, overdue_guard

logger = logging.getLogger(__name__)


class OverdueDetector:
    """
    Marks past-due, non-terminal tasks as overdue.

    The only owner of an automatic status edge. A second pass right after the
    first finds nothing: the selection excludes tasks that are already overdue.
    """

    def __init__(
        self,
        store: TaskRepo,
        notifier: Notifier,
        *,
        clock: Clock | None = None,
        notify: bool = False,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._clock = clock or SystemClock()
        self._notify = notify

    async def run(self) -> int:
        now_ts = self._clock.now()

        try:
            tasks = self._store.find_tasks(overdue_filter(now_ts))
        except Exception:
            logger.exception("find_tasks(overdue) failed")
            return 0

        if not tasks:
            logger.debug("No overdue tasks found")
            return 0

        logger.info("Found %d overdue tasks", len(tasks))

        marked = 0
        for task in tasks:
            try:
                updated = self._store.update_task(
                    task.id,
                    {"status": TaskStatus.OVERDUE},
                    where=overdue_guard(),
                )
            except Exception:
                logger.exception("update_task(overdue) failed task_id=%s", task.id)
                continue

            if updated is None:
                # Completed/cancelled (or deleted) between select and write.
                logger.debug("Task %s changed concurrently; not marking overdue", task.id)
                continue

            marked += 1
            logger.info("Task %s marked as overdue", task.id)

            try:
                self._store.add_history(
                    task_id=task.id,
                    actor_id=SYSTEM_ACTOR,
                    action=HistoryAction.STATUS_CHANGED,
                    old_value={"status": task.status.value},
                    new_value={"status": TaskStatus.OVERDUE.value},
                    comment="due date passed",
                )
            except Exception:
                logger.exception("add_history(status_changed) failed task_id=%s", task.id)

            if self._notify:
                await deliver(
                    "overdue",
                    task.id,
                    lambda t=updated: self._notifier.send_overdue(t.recipient_id, t.summary()),
                )

        return marked
