# tests/test_task_store.py

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from chronotask.tasks.task_filter import TaskFilter
from chronotask.tasks.task_models import HistoryAction, RecurrencePattern, TaskStatus
from chronotask.tasks.task_store import TaskStore

from .fakes import HOUR, T0


def test_create_and_get_roundtrip(store) -> None:
    t = store.create_task(
        owner_id="u1",
        title="  Pay rent  ",
        due_at=T0 + HOUR,
        tags=["money"],
        depends_on=[3, 1],
        is_recurring=True,
        recurrence_pattern=RecurrencePattern.MONTHLY,
        metadata={"source": "import"},
    )
    assert t.id > 0
    assert t.title == "Pay rent"
    assert t.status == TaskStatus.PENDING
    assert t.created_at == T0
    assert t.reminder_enabled is True
    assert t.reminder_sent is False
    assert t.recurrence_interval == 1
    assert store.get_task(t.id) == t
    assert store.get_task(t.id + 100) is None


def test_create_validates_input(store) -> None:
    with pytest.raises(ValueError):
        store.create_task(owner_id="", title="x")
    with pytest.raises(ValueError):
        store.create_task(owner_id="u", title=" ")
    with pytest.raises(ValueError):
        store.create_task(owner_id="u", title="x", colour="red")
    with pytest.raises(ValueError):
        store.create_task(owner_id="u", title="x", recurrence_interval=0)


def test_conditional_update(store, clock) -> None:
    t = store.create_task(owner_id="u", title="x")
    clock.advance(5)

    updated = store.update_task(t.id, {"reminder_sent": True}, where=TaskFilter(reminder_sent=False))
    assert updated is not None
    assert updated.reminder_sent is True
    assert updated.updated_at == T0 + 5

    # condition no longer holds: nothing written
    assert store.update_task(t.id, {"reminder_at": 1.0}, where=TaskFilter(reminder_sent=False)) is None
    assert store.get_task(t.id).reminder_at is None

    assert store.update_task(9999, {"title": "nope"}) is None
    with pytest.raises(ValueError):
        store.update_task(t.id, {"created_at": 0})


def test_find_orders_by_due_and_filters(store) -> None:
    late = store.create_task(owner_id="u", title="late", due_at=T0 + 2 * HOUR)
    early = store.create_task(owner_id="u", title="early", due_at=T0 + HOUR)
    other = store.create_task(owner_id="v", title="other", assignee_id="u", due_at=T0 + 3 * HOUR)
    store.create_task(owner_id="v", title="unrelated")

    mine = store.find_tasks(TaskFilter(involves_user="u"))
    assert [t.id for t in mine] == [early.id, late.id, other.id]
    assert [t.id for t in store.find_tasks(TaskFilter(involves_user="u"), limit=1)] == [early.id]
    assert store.count_tasks() == 4
    assert store.count_tasks(TaskFilter(due_before=T0 + 2 * HOUR)) == 1


def test_empty_status_sets(store) -> None:
    store.create_task(owner_id="u", title="x")
    assert store.find_tasks(TaskFilter(status_in=set())) == []
    assert len(store.find_tasks(TaskFilter(status_not_in=set()))) == 1


def test_count_by_status(store) -> None:
    store.create_task(owner_id="u", title="a")
    store.create_task(owner_id="u", title="b", status=TaskStatus.OVERDUE)
    store.create_task(owner_id="u", title="c", status=TaskStatus.OVERDUE)

    counts = store.count_by_status()
    assert counts["pending"] == 1
    assert counts["overdue"] == 2
    assert counts["completed"] == 0


def test_history_append_and_list(store, clock) -> None:
    t = store.create_task(owner_id="u", title="x")
    store.add_history(task_id=t.id, actor_id="u", action=HistoryAction.CREATED)
    clock.advance(1)
    store.add_history(
        task_id=t.id,
        actor_id="system",
        action=HistoryAction.STATUS_CHANGED,
        old_value={"status": "pending"},
        new_value={"status": "overdue"},
        comment="due date passed",
    )

    first, second = store.list_history(t.id)
    assert first.action == HistoryAction.CREATED
    assert first.old_value is None
    assert second.created_at == T0 + 1
    assert second.new_value == {"status": "overdue"}
    assert second.comment == "due date passed"


def test_delete_returns_count(store) -> None:
    store.create_task(owner_id="u", title="a", status=TaskStatus.CANCELLED)
    store.create_task(owner_id="u", title="b", status=TaskStatus.CANCELLED)
    store.create_task(owner_id="u", title="c")
    assert store.delete_tasks(TaskFilter(status_in={TaskStatus.CANCELLED})) == 2
    assert store.count_tasks() == 1


def test_old_database_is_migrated(tmp_path: Path) -> None:
    db = tmp_path / "legacy.sqlite3"
    conn = sqlite3.connect(db)
    conn.execute(
        "CREATE TABLE tasks (id INTEGER PRIMARY KEY AUTOINCREMENT, owner_id TEXT NOT NULL, "
        "title TEXT NOT NULL, status TEXT NOT NULL DEFAULT 'pending', due_at REAL)"
    )
    conn.execute("INSERT INTO tasks(owner_id, title, due_at) VALUES ('u', 'legacy', 10.0)")
    conn.commit()
    conn.close()

    store = TaskStore(db)
    [t] = store.find_tasks()
    assert t.title == "legacy"
    assert t.reminder_enabled is True
    assert t.is_recurring is False
    assert t.metadata == {}


def test_filter_matches_agrees_with_sql(store) -> None:
    store.create_task(owner_id="u", title="a", due_at=T0 - HOUR)
    store.create_task(owner_id="u", title="b", due_at=T0 + HOUR, reminder_sent=True)
    store.create_task(owner_id="v", title="c", is_recurring=True, next_occurrence_at=T0 + HOUR)
    store.create_task(owner_id="v", title="d", is_recurring=True)
    store.create_task(owner_id="v", title="e", status=TaskStatus.COMPLETED, completed_at=T0 - HOUR)

    filters = [
        TaskFilter(due_before=T0),
        TaskFilter(due_from=T0, due_until=T0 + HOUR),
        TaskFilter(reminder_sent=False, reminder_enabled=True),
        TaskFilter(is_recurring=True, occurrence_due_by=T0),
        TaskFilter(completed_before=T0, status_in={TaskStatus.COMPLETED}),
        TaskFilter(involves_user="v", status_not_in={TaskStatus.COMPLETED}),
    ]
    everything = store.find_tasks()
    for flt in filters:
        via_sql = {t.id for t in store.find_tasks(flt)}
        in_memory = {t.id for t in everything if flt.matches(t)}
        assert via_sql == in_memory, flt
