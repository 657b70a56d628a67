# src/chronotask/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

SYSTEM_ACTOR = "system"
# actor_id recorded in history for engine-initiated changes


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Notes:
    - completed / cancelled are terminal: no automatic transition ever applies.
    - overdue is only ever set by the overdue detector job.
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    OVERDUE = "overdue"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw)
        except ValueError:
            return cls.PENDING

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.CANCELLED})


class RecurrencePattern(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    CUSTOM = "custom"

    @classmethod
    def from_db(cls, raw: str | None) -> RecurrencePattern | None:
        # Unknown values stay None; the recurrence job skips them with a warning.
        if not raw:
            return None
        try:
            return cls(raw)
        except ValueError:
            return None


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class HistoryAction(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    STATUS_CHANGED = "status_changed"
    ASSIGNED = "assigned"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DELETED = "deleted"


@dataclass(slots=True)
class Task:
    id: int
    owner_id: str
    title: str
    status: TaskStatus
    created_at: float
    updated_at: float

    assignee_id: str | None = None
    description: str = ""
    priority: str = TaskPriority.MEDIUM.value
    category: str | None = None
    tags: list[str] = field(default_factory=list)
    estimated_duration: int | None = None
    notes: str | None = None
    progress: int = 0

    due_at: float | None = None
    start_at: float | None = None
    completed_at: float | None = None

    is_recurring: bool = False
    recurrence_pattern: RecurrencePattern | None = None
    recurrence_interval: int = 1
    custom_schedule: str | None = None
    recurrence_end_at: float | None = None
    last_occurrence_at: float | None = None
    next_occurrence_at: float | None = None

    reminder_enabled: bool = True
    reminder_sent: bool = False
    reminder_at: float | None = None

    depends_on: list[int] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def recipient_id(self) -> str:
        """Who gets notified about this task: the assignee if present, else the owner."""
        return self.assignee_id or self.owner_id

    def summary(self) -> TaskSummary:
        return TaskSummary(
            task_id=self.id,
            title=self.title,
            due_at=self.due_at,
            priority=self.priority,
            status=self.status,
        )


@dataclass(slots=True, frozen=True)
class TaskSummary:
    """Structured payload handed to the Notifier; rendering is the notifier's business."""

    task_id: int
    title: str
    due_at: float | None
    priority: str
    status: TaskStatus


@dataclass(slots=True)
class TaskHistoryEntry:
    id: int
    task_id: int
    actor_id: str
    action: HistoryAction
    created_at: float
    old_value: dict[str, Any] | None = None
    new_value: dict[str, Any] | None = None
    comment: str | None = None
