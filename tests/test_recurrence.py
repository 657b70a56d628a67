# tests/test_recurrence.py

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from chronotask.engine.predicates import DeliveryMode
from chronotask.engine.recurrence import (
    RecurrenceEngine,
    calculate_next_occurrence,
    calculate_next_occurrence_detailed,
)
from chronotask.tasks.task_filter import TaskFilter
from chronotask.tasks.task_models import HistoryAction, RecurrencePattern, TaskStatus
from chronotask.tasks.task_store import TaskStore

from .fakes import DAY, HOUR, T0


def _utc(*args: int) -> float:
    return datetime(*args, tzinfo=timezone.utc).timestamp()


# ---- calculator ----


def test_calculator_patterns() -> None:
    assert calculate_next_occurrence(RecurrencePattern.DAILY, 2, T0) == T0 + 2 * DAY
    assert calculate_next_occurrence(RecurrencePattern.WEEKLY, 3, T0) == T0 + 21 * DAY
    assert calculate_next_occurrence(RecurrencePattern.MONTHLY, 1, T0) == _utc(2026, 2, 15, 9, 30)
    assert calculate_next_occurrence(RecurrencePattern.YEARLY, 1, T0) == _utc(2027, 1, 15, 9, 30)


def test_calculator_clamps_to_month_end() -> None:
    assert calculate_next_occurrence("monthly", 1, _utc(2026, 1, 31, 8)) == _utc(2026, 2, 28, 8)
    assert calculate_next_occurrence("yearly", 1, _utc(2028, 2, 29)) == _utc(2029, 2, 28)


@pytest.mark.parametrize("pattern", ["daily", "weekly", "monthly", "yearly"])
@pytest.mark.parametrize("interval", [None, 0, -3, 1, 5])
def test_calculator_result_is_after_reference(pattern: str, interval) -> None:
    nxt = calculate_next_occurrence(pattern, interval, T0)
    assert nxt is not None
    assert nxt > T0


def test_calculator_bad_interval_means_one() -> None:
    assert calculate_next_occurrence("daily", 0, T0) == T0 + DAY
    assert calculate_next_occurrence("daily", None, T0) == T0 + DAY


def test_calculator_unsupported_pattern() -> None:
    assert calculate_next_occurrence("hourly", 1, T0) is None
    assert calculate_next_occurrence(None, 1, T0) is None


def test_calculator_custom_is_degraded() -> None:
    assert calculate_next_occurrence(RecurrencePattern.CUSTOM, 1, T0) is None
    assert calculate_next_occurrence(RecurrencePattern.CUSTOM, 1, T0, "  ") is None

    occ = calculate_next_occurrence_detailed(RecurrencePattern.CUSTOM, 1, T0, "0 9 * * MON")
    assert occ is not None
    assert occ.degraded is True
    assert occ.at == T0 + DAY

    plain = calculate_next_occurrence_detailed(RecurrencePattern.DAILY, 1, T0)
    assert plain is not None and plain.degraded is False


# ---- engine ----


def _template(store: TaskStore, **fields):
    defaults = dict(
        owner_id="owner",
        title="Water plants",
        is_recurring=True,
        recurrence_pattern=RecurrencePattern.DAILY,
        recurrence_interval=1,
    )
    defaults.update(fields)
    return store.create_task(**defaults)


def _instances(store: TaskStore):
    return store.find_tasks(TaskFilter(is_recurring=False))


@pytest.mark.asyncio
async def test_daily_template_generates_instance_and_advances(store, clock) -> None:
    b = _template(
        store,
        assignee_id="ann",
        description="all of them",
        priority="high",
        category="home",
        tags=["plants"],
        estimated_duration=15,
        notes="use rain water",
        reminder_enabled=False,
    )

    assert await RecurrenceEngine(store, clock=clock).run() == 1

    [inst] = _instances(store)
    assert inst.due_at == T0 + DAY
    assert inst.start_at == T0
    assert inst.status == TaskStatus.PENDING
    assert inst.metadata["generatedFrom"] == b.id
    assert inst.metadata["occurrence"] == 1
    assert inst.is_recurring is False
    assert inst.reminder_sent is False
    assert (inst.owner_id, inst.assignee_id, inst.title) == ("owner", "ann", "Water plants")
    assert (inst.description, inst.priority, inst.category) == ("all of them", "high", "home")
    assert (inst.tags, inst.estimated_duration, inst.notes) == (["plants"], 15, "use rain water")
    assert inst.reminder_enabled is False

    tpl = store.get_task(b.id)
    assert tpl is not None and tpl.is_recurring
    assert tpl.last_occurrence_at == T0
    assert tpl.next_occurrence_at == T0 + DAY
    assert tpl.next_occurrence_at > tpl.last_occurrence_at

    [entry] = store.list_history(inst.id)
    assert entry.action == HistoryAction.CREATED
    assert entry.new_value["generatedFrom"] == b.id


@pytest.mark.asyncio
async def test_template_is_not_reprocessed_until_next_occurrence(store, clock) -> None:
    _template(store)
    engine = RecurrenceEngine(store, clock=clock)

    assert await engine.run() == 1
    clock.advance(HOUR)
    assert await engine.run() == 0

    clock.advance(DAY)
    assert await engine.run() == 1
    counts = sorted(t.metadata["occurrence"] for t in _instances(store))
    assert counts == [1, 2]


@pytest.mark.asyncio
async def test_ended_recurrence_generates_nothing(store, clock) -> None:
    b = _template(store, recurrence_end_at=T0 - 1)

    assert await RecurrenceEngine(store, clock=clock).run() == 0
    assert _instances(store) == []
    assert store.get_task(b.id).next_occurrence_at is None


@pytest.mark.asyncio
async def test_cancelled_template_is_ignored(store, clock) -> None:
    _template(store, status=TaskStatus.CANCELLED)
    assert await RecurrenceEngine(store, clock=clock).run() == 0
    assert _instances(store) == []


@pytest.mark.asyncio
async def test_unsupported_pattern_is_skipped_and_others_still_run(store, clock) -> None:
    broken = _template(store, recurrence_pattern=None, title="broken")
    custom_no_expr = _template(store, recurrence_pattern=RecurrencePattern.CUSTOM, title="custom")
    ok = _template(store, recurrence_pattern=RecurrencePattern.WEEKLY, recurrence_interval=2)

    assert await RecurrenceEngine(store, clock=clock).run() == 1

    [inst] = _instances(store)
    assert inst.metadata["generatedFrom"] == ok.id
    assert inst.due_at == T0 + 14 * DAY
    assert store.get_task(broken.id).next_occurrence_at is None
    assert store.get_task(custom_no_expr.id).next_occurrence_at is None


@pytest.mark.asyncio
async def test_custom_pattern_marks_instance_degraded(store, clock) -> None:
    _template(store, recurrence_pattern=RecurrencePattern.CUSTOM, custom_schedule="0 9 * * MON")

    assert await RecurrenceEngine(store, clock=clock).run() == 1
    [inst] = _instances(store)
    assert inst.metadata["recurrenceDegraded"] is True
    assert inst.due_at == T0 + DAY


@pytest.mark.asyncio
async def test_claim_first_produces_same_result(store, clock) -> None:
    b = _template(store)
    engine = RecurrenceEngine(store, clock=clock, mode=DeliveryMode.CLAIM_FIRST)

    assert await engine.run() == 1
    assert await engine.run() == 0
    assert len(_instances(store)) == 1
    assert store.get_task(b.id).next_occurrence_at == T0 + DAY


class _FailingCreateStore(TaskStore):
    def create_task(self, **fields):
        raise RuntimeError("disk full")


@pytest.mark.asyncio
async def test_claim_first_rolls_back_template_when_create_fails(tmp_path: Path, clock) -> None:
    store = _FailingCreateStore(tmp_path / "t.sqlite3", clock=clock)
    b = TaskStore.create_task(
        store,
        owner_id="o",
        title="t",
        is_recurring=True,
        recurrence_pattern=RecurrencePattern.DAILY,
    )

    assert await RecurrenceEngine(store, clock=clock, mode=DeliveryMode.CLAIM_FIRST).run() == 0

    tpl = store.get_task(b.id)
    assert tpl.next_occurrence_at is None
    assert tpl.last_occurrence_at is None


class _FailingTemplateUpdateStore(TaskStore):
    fail = True

    def update_task(self, task_id, fields, *, where=None):
        if self.fail and "next_occurrence_at" in fields:
            raise RuntimeError("connection reset")
        return super().update_task(task_id, fields, where=where)


@pytest.mark.asyncio
async def test_at_least_once_window_duplicates_after_failed_advance(tmp_path: Path, clock) -> None:
    store = _FailingTemplateUpdateStore(tmp_path / "t.sqlite3", clock=clock)
    _template(store)
    engine = RecurrenceEngine(store, clock=clock)

    # Instance created, template not advanced: the next tick reprocesses the template.
    assert await engine.run() == 0
    assert len(_instances(store)) == 1

    store.fail = False
    assert await engine.run() == 1
    assert len(_instances(store)) == 2
