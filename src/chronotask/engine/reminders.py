# src/chronotask/engine/reminders.py

from __future__ import annotations

"""
Reminder dispatch.

Selects tasks whose due date falls inside the lead window and that have not
been reminded yet, sends one reminder each, and flips reminder_sent.

The send/mark ordering follows DeliveryMode:

- AT_LEAST_ONCE (send, then mark): the mark is a compare-and-set on
  reminder_sent = false. A crash between the two steps, or two overlapping
  passes, can deliver the same reminder twice.
- CLAIM_FIRST (mark, then send): only the pass that wins the compare-and-set
  sends. A failed send releases the claim so the next tick retries; a crash
  after the claim loses that reminder instead of duplicating it.
"""

import logging

from ..core.clock import Clock, SystemClock
from ..core.ports import Notifier, TaskRepo
from ..tasks.task_filter import TaskFilter
from ..tasks.task_models import Task
from .predicates import DeliveryMode, deliver, reminder_filter

logger = logging.getLogger(__name__)

_NOT_SENT = TaskFilter(reminder_sent=False)
_SENT = TaskFilter(reminder_sent=True)


class ReminderDispatcher:
    def __init__(
        self,
        store: TaskRepo,
        notifier: Notifier,
        *,
        clock: Clock | None = None,
        lead_minutes: float = 60,
        mode: DeliveryMode = DeliveryMode.AT_LEAST_ONCE,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._clock = clock or SystemClock()
        self._lead_minutes = float(lead_minutes)
        self._mode = mode

    @property
    def mode(self) -> DeliveryMode:
        return self._mode

    async def run(self) -> int:
        now_ts = self._clock.now()

        try:
            tasks = self._store.find_tasks(reminder_filter(now_ts, self._lead_minutes))
        except Exception:
            logger.exception("find_tasks(reminders) failed")
            return 0

        if not tasks:
            return 0

        logger.info("Sending reminders for %d tasks", len(tasks))

        sent = 0
        for task in tasks:
            if self._mode == DeliveryMode.CLAIM_FIRST:
                ok = await self._claim_then_send(task, now_ts)
            else:
                ok = await self._send_then_mark(task, now_ts)
            if ok:
                sent += 1
        return sent

    async def _send(self, task: Task) -> bool:
        return await deliver(
            "reminder",
            task.id,
            lambda: self._notifier.send_reminder(task.recipient_id, task.summary()),
        )

    async def _send_then_mark(self, task: Task, now_ts: float) -> bool:
        if not await self._send(task):
            # Not marked: the next tick retries while the task is still in the window.
            return False

        try:
            marked = self._store.update_task(
                task.id,
                {"reminder_sent": True, "reminder_at": now_ts},
                where=_NOT_SENT,
            )
        except Exception:
            logger.exception("update_task(reminder_sent) failed task_id=%s", task.id)
            return True

        if marked is None:
            logger.warning("Reminder for task %s was already marked by another pass", task.id)
        else:
            logger.info("Sent reminder for task %s to %s", task.id, task.recipient_id)
        return True

    async def _claim_then_send(self, task: Task, now_ts: float) -> bool:
        try:
            claimed = self._store.update_task(
                task.id,
                {"reminder_sent": True, "reminder_at": now_ts},
                where=_NOT_SENT,
            )
        except Exception:
            logger.exception("update_task(claim reminder) failed task_id=%s", task.id)
            return False

        if claimed is None:
            logger.debug("Reminder for task %s claimed elsewhere", task.id)
            return False

        if await self._send(claimed):
            logger.info("Sent reminder for task %s to %s", task.id, claimed.recipient_id)
            return True

        # Release the claim so a later tick can retry.
        try:
            self._store.update_task(
                task.id,
                {"reminder_sent": False, "reminder_at": task.reminder_at},
                where=_SENT,
            )
        except Exception:
            logger.exception("update_task(release reminder) failed task_id=%s", task.id)
        return False
