# src/chronotask/tasks/task_filter.py

from __future__ import annotations

"""
Structured task predicates.

A TaskFilter is a plain value: every field that is set becomes one AND-ed
condition. The same filter can be evaluated against an in-memory Task
(matches) or compiled into a parameterized SQL WHERE clause (to_sql), so the
job predicates are written once and tested without a database.

Date comparisons never match a NULL column, except occurrence_due_by which is
explicitly "next_occurrence_at IS NULL OR next_occurrence_at <= x".
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from .task_models import Task, TaskStatus


def _statuses(values: Iterable[TaskStatus] | None) -> frozenset[TaskStatus] | None:
    if values is None:
        return None
    return frozenset(TaskStatus(v) for v in values)


@dataclass(frozen=True, slots=True)
class TaskFilter:
    ids: frozenset[int] | None = None
    status_in: frozenset[TaskStatus] | None = None
    status_not_in: frozenset[TaskStatus] | None = None

    due_before: float | None = None  # due_at < x
    due_from: float | None = None  # due_at >= x
    due_until: float | None = None  # due_at <= x

    is_recurring: bool | None = None
    reminder_enabled: bool | None = None
    reminder_sent: bool | None = None

    occurrence_due_by: float | None = None
    completed_before: float | None = None  # completed_at < x
    involves_user: str | None = None  # owner OR assignee

    def __post_init__(self) -> None:
        # Accept any iterable for the set-valued fields; store frozensets.
        object.__setattr__(self, "status_in", _statuses(self.status_in))
        object.__setattr__(self, "status_not_in", _statuses(self.status_not_in))
        if self.ids is not None:
            object.__setattr__(self, "ids", frozenset(int(i) for i in self.ids))

    # ---- in-memory evaluation ----

    def matches(self, task: Task) -> bool:
        if self.ids is not None and task.id not in self.ids:
            return False
        if self.status_in is not None and task.status not in self.status_in:
            return False
        if self.status_not_in is not None and task.status in self.status_not_in:
            return False

        due = task.due_at
        if self.due_before is not None and (due is None or not due < self.due_before):
            return False
        if self.due_from is not None and (due is None or not due >= self.due_from):
            return False
        if self.due_until is not None and (due is None or not due <= self.due_until):
            return False

        if self.is_recurring is not None and task.is_recurring != self.is_recurring:
            return False
        if self.reminder_enabled is not None and task.reminder_enabled != self.reminder_enabled:
            return False
        if self.reminder_sent is not None and task.reminder_sent != self.reminder_sent:
            return False

        if self.occurrence_due_by is not None:
            nxt = task.next_occurrence_at
            if nxt is not None and nxt > self.occurrence_due_by:
                return False

        if self.completed_before is not None:
            done = task.completed_at
            if done is None or not done < self.completed_before:
                return False

        if self.involves_user is not None and self.involves_user not in (
            task.owner_id,
            task.assignee_id,
        ):
            return False

        return True

    # ---- SQL compilation ----

    def to_sql(self) -> tuple[str, list[Any]]:
        """
        Return (where_clause, params) for the tasks table.

        An empty filter compiles to "1=1" so callers can always append it.
        """
        clauses: list[str] = []
        params: list[Any] = []

        def in_clause(column: str, values: Iterable[Any], negate: bool = False) -> None:
            vals = sorted(values)
            if not vals:
                # "IN ()" is invalid SQL; an empty IN matches nothing, NOT IN matches all.
                clauses.append("1=1" if negate else "1=0")
                return
            placeholders = ",".join("?" for _ in vals)
            op = "NOT IN" if negate else "IN"
            clauses.append(f"{column} {op} ({placeholders})")
            params.extend(vals)

        if self.ids is not None:
            in_clause("id", self.ids)
        if self.status_in is not None:
            in_clause("status", (s.value for s in self.status_in))
        if self.status_not_in is not None:
            in_clause("status", (s.value for s in self.status_not_in), negate=True)

        if self.due_before is not None:
            clauses.append("(due_at IS NOT NULL AND due_at < ?)")
            params.append(float(self.due_before))
        if self.due_from is not None:
            clauses.append("(due_at IS NOT NULL AND due_at >= ?)")
            params.append(float(self.due_from))
        if self.due_until is not None:
            clauses.append("(due_at IS NOT NULL AND due_at <= ?)")
            params.append(float(self.due_until))

        if self.is_recurring is not None:
            clauses.append("is_recurring = ?")
            params.append(int(self.is_recurring))
        if self.reminder_enabled is not None:
            clauses.append("reminder_enabled = ?")
            params.append(int(self.reminder_enabled))
        if self.reminder_sent is not None:
            clauses.append("reminder_sent = ?")
            params.append(int(self.reminder_sent))

        if self.occurrence_due_by is not None:
            clauses.append("(next_occurrence_at IS NULL OR next_occurrence_at <= ?)")
            params.append(float(self.occurrence_due_by))

        if self.completed_before is not None:
            clauses.append("(completed_at IS NOT NULL AND completed_at < ?)")
            params.append(float(self.completed_before))

        if self.involves_user is not None:
            clauses.append("(owner_id = ? OR assignee_id = ?)")
            params.extend([self.involves_user, self.involves_user])

        if not clauses:
            return "1=1", []
        return " AND ".join(clauses), params
