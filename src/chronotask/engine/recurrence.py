# src/chronotask/engine/recurrence.py

from __future__ import annotations

"""
Recurring tasks.

- calculate_next_occurrence: pure date arithmetic (pattern, interval, reference) -> next date
- RecurrenceEngine: job body that instantiates the next occurrence of every due
  recurrence template and advances the template's occurrence pointers

Custom patterns run in an explicit degraded mode: the custom_schedule expression
is not evaluated. When one is present the next date is reference + interval days,
the result is flagged degraded, a warning is logged, and the generated instance
carries metadata["recurrenceDegraded"] = True. A custom pattern without an
expression has no next date.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from dateutil.relativedelta import relativedelta

from ..core.clock import Clock, SystemClock
from ..core.ports import TaskRepo
from ..tasks.task_filter import TaskFilter
from ..tasks.task_models import SYSTEM_ACTOR, HistoryAction, RecurrencePattern, Task, TaskStatus
from .predicates import DeliveryMode, recurrence_filter

logger = logging.getLogger(__name__)

# template fields copied verbatim into each generated instance
COPIED_FIELDS = (
    "assignee_id",
    "description",
    "priority",
    "category",
    "tags",
    "estimated_duration",
    "reminder_enabled",
    "notes",
)


@dataclass(frozen=True, slots=True)
class Occurrence:
    at: float
    degraded: bool = False


def _interval(raw: Any) -> int:
    try:
        n = int(raw)
    except (TypeError, ValueError):
        return 1
    return n if n >= 1 else 1


def calculate_next_occurrence_detailed(
    pattern: RecurrencePattern | str | None,
    interval: int | None,
    reference_ts: float,
    custom_schedule: str | None = None,
) -> Occurrence | None:
    if isinstance(pattern, str) and not isinstance(pattern, RecurrencePattern):
        pattern = RecurrencePattern.from_db(pattern)
    if pattern is None:
        return None

    n = _interval(interval)
    ref = datetime.fromtimestamp(float(reference_ts), tz=timezone.utc)

    if pattern == RecurrencePattern.DAILY:
        nxt = ref + relativedelta(days=n)
    elif pattern == RecurrencePattern.WEEKLY:
        nxt = ref + relativedelta(weeks=n)
    elif pattern == RecurrencePattern.MONTHLY:
        # relativedelta clamps to the last day of shorter months (Jan 31 -> Feb 28/29).
        nxt = ref + relativedelta(months=n)
    elif pattern == RecurrencePattern.YEARLY:
        nxt = ref + relativedelta(years=n)
    elif pattern == RecurrencePattern.CUSTOM:
        if not custom_schedule or not custom_schedule.strip():
            return None
        return Occurrence(at=(ref + relativedelta(days=n)).timestamp(), degraded=True)
    else:
        return None

    return Occurrence(at=nxt.timestamp())


def calculate_next_occurrence(
    pattern: RecurrencePattern | str | None,
    interval: int | None,
    reference_ts: float,
    custom_schedule: str | None = None,
) -> float | None:
    """Next occurrence as epoch seconds, or None when the pattern is unsupported."""
    occ = calculate_next_occurrence_detailed(pattern, interval, reference_ts, custom_schedule)
    return None if occ is None else occ.at


def _occurrence_count(meta: dict[str, Any]) -> int:
    try:
        return max(0, int(meta.get("occurrence") or 0))
    except (TypeError, ValueError):
        return 0


class RecurrenceEngine:
    """
    Generates the next instance of each due recurrence template.

    The template's next_occurrence_at is the re-entry guard: once it is advanced
    past now, the template drops out of the selection until that date arrives.

    With DeliveryMode.AT_LEAST_ONCE the instance is created first and the
    template advanced second; if the second write fails, the next tick creates
    another instance. With DeliveryMode.CLAIM_FIRST the template is advanced
    first with a compare-and-set (only one overlapping pass wins) and rolled
    back if the instance cannot be created.
    """

    def __init__(
        self,
        store: TaskRepo,
        *,
        clock: Clock | None = None,
        mode: DeliveryMode = DeliveryMode.AT_LEAST_ONCE,
    ) -> None:
        self._store = store
        self._clock = clock or SystemClock()
        self._mode = mode

    async def run(self) -> int:
        now_ts = self._clock.now()

        try:
            templates = self._store.find_tasks(recurrence_filter(now_ts))
        except Exception:
            logger.exception("find_tasks(recurring) failed")
            return 0

        if not templates:
            logger.debug("No recurring tasks to process")
            return 0

        logger.info("Processing %d recurring tasks", len(templates))

        created = 0
        for template in templates:
            try:
                if self._process(template, now_ts) is not None:
                    created += 1
            except Exception:
                logger.exception("Error creating next occurrence for task %s", template.id)
        return created

    def _process(self, template: Task, now_ts: float) -> Task | None:
        if template.recurrence_end_at is not None and now_ts > template.recurrence_end_at:
            logger.info("Recurring task %s has ended", template.id)
            return None

        occ = calculate_next_occurrence_detailed(
            template.recurrence_pattern,
            template.recurrence_interval,
            now_ts,
            template.custom_schedule,
        )
        if occ is None:
            logger.warning(
                "Could not calculate next occurrence for task %s pattern=%s",
                template.id,
                template.recurrence_pattern,
            )
            return None

        if occ.degraded:
            logger.warning(
                "Task %s: custom schedule %r is not evaluated; next occurrence falls back to +%d day(s)",
                template.id,
                template.custom_schedule,
                _interval(template.recurrence_interval),
            )

        count = _occurrence_count(template.metadata) + 1

        if self._mode == DeliveryMode.CLAIM_FIRST:
            if not self._advance(template, now_ts, occ.at, count, guarded=True):
                logger.debug("Recurring task %s advanced by another pass", template.id)
                return None
            try:
                instance = self._create_instance(template, now_ts, occ, count)
            except Exception:
                self._rollback(template)
                raise
        else:
            instance = self._create_instance(template, now_ts, occ, count)
            if not self._advance(template, now_ts, occ.at, count, guarded=False):
                logger.warning("Recurring task %s vanished before it could be advanced", template.id)

        logger.info("Created next occurrence of task %s: %s", template.id, instance.id)
        return instance

    def _create_instance(self, template: Task, now_ts: float, occ: Occurrence, count: int) -> Task:
        meta = dict(template.metadata)
        meta["generatedFrom"] = template.id
        meta["occurrence"] = count
        if occ.degraded:
            meta["recurrenceDegraded"] = True

        fields = {name: getattr(template, name) for name in COPIED_FIELDS}
        instance = self._store.create_task(
            owner_id=template.owner_id,
            title=template.title,
            due_at=occ.at,
            start_at=now_ts,
            status=TaskStatus.PENDING,
            metadata=meta,
            **fields,
        )

        try:
            self._store.add_history(
                task_id=instance.id,
                actor_id=SYSTEM_ACTOR,
                action=HistoryAction.CREATED,
                new_value={"generatedFrom": template.id, "occurrence": count, "due_at": occ.at},
                comment="recurrence",
            )
        except Exception:
            logger.exception("add_history(created) failed task_id=%s", instance.id)
        return instance

    def _advance(self, template: Task, now_ts: float, next_ts: float, count: int, *, guarded: bool) -> bool:
        meta = dict(template.metadata)
        meta["occurrence"] = count
        where = TaskFilter(is_recurring=True, occurrence_due_by=now_ts) if guarded else None
        updated = self._store.update_task(
            template.id,
            {
                "last_occurrence_at": now_ts,
                "next_occurrence_at": next_ts,
                "metadata": meta,
            },
            where=where,
        )
        return updated is not None

    def _rollback(self, template: Task) -> None:
        try:
            self._store.update_task(
                template.id,
                {
                    "last_occurrence_at": template.last_occurrence_at,
                    "next_occurrence_at": template.next_occurrence_at,
                    "metadata": template.metadata,
                },
            )
        except Exception:
            logger.exception("Failed to roll back recurring task %s", template.id)
