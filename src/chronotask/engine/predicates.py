# src/chronotask/engine/predicates.py

from __future__ import annotations

"""
Selection predicates shared by the job bodies.

Each job selects its rows with one of these filters and excludes rows it has
already transitioned, which is what makes repeated or overlapping passes safe.
"""

import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum

from ..tasks.task_filter import TaskFilter
from ..tasks.task_models import TERMINAL_STATUSES, TaskStatus

logger = logging.getLogger(__name__)

DAY_SECONDS = 86400.0

# statuses the overdue detector must never touch (terminal + already overdue)
NOT_OVERDUE_ELIGIBLE = TERMINAL_STATUSES | {TaskStatus.OVERDUE}


def overdue_filter(now_ts: float) -> TaskFilter:
    return TaskFilter(due_before=now_ts, status_not_in=NOT_OVERDUE_ELIGIBLE)


def overdue_guard() -> TaskFilter:
    """Condition re-checked at write time so a concurrent complete/cancel is never overwritten."""
    return TaskFilter(status_not_in=NOT_OVERDUE_ELIGIBLE)


def reminder_filter(now_ts: float, lead_minutes: float) -> TaskFilter:
    return TaskFilter(
        reminder_enabled=True,
        reminder_sent=False,
        due_from=now_ts,
        due_until=now_ts + max(0.0, float(lead_minutes)) * 60.0,
        status_not_in=TERMINAL_STATUSES,
    )


def recurrence_filter(now_ts: float) -> TaskFilter:
    return TaskFilter(
        is_recurring=True,
        status_not_in={TaskStatus.CANCELLED},
        occurrence_due_by=now_ts,
    )


def retention_filter(now_ts: float, retention_days: float) -> TaskFilter:
    return TaskFilter(
        status_in={TaskStatus.COMPLETED},
        is_recurring=False,
        completed_before=now_ts - max(0.0, float(retention_days)) * DAY_SECONDS,
    )


async def deliver(kind: str, task_id: int, send: Callable[[], Awaitable[bool]]) -> bool:
    """
    Run one notifier call and report whether it succeeded.

    Exceptions and False results are logged here and never propagated: one
    failing notification must not abort the rest of a pass.
    """
    try:
        ok = bool(await send())
    except Exception:
        logger.exception("%s notification failed task_id=%s", kind, task_id)
        return False
    if not ok:
        logger.warning("%s notification was not delivered task_id=%s", kind, task_id)
    return ok


class DeliveryMode(StrEnum):
    """
    Ordering of the external side effect and the state write that records it.

    AT_LEAST_ONCE: perform the side effect, then record it. A crash or an
    overlapping pass in between repeats the side effect next tick.
    CLAIM_FIRST: record (claim) with a compare-and-set first; only the winner
    performs the side effect, and the claim is released if it fails.
    """

    AT_LEAST_ONCE = "at_least_once"
    CLAIM_FIRST = "claim_first"

    @classmethod
    def parse(cls, raw: str | None) -> DeliveryMode:
        if not raw:
            return cls.AT_LEAST_ONCE
        try:
            return cls(raw.strip().lower())
        except ValueError:
            logger.warning("Unknown delivery mode %r; using %s", raw, cls.AT_LEAST_ONCE.value)
            return cls.AT_LEAST_ONCE
