# src/chronotask/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the engine.

The job bodies depend on Protocols instead of concrete implementations.
This keeps storage/notification backends swappable and makes testing easier.
"""

from collections.abc import Mapping
from typing import Any, Awaitable, Protocol

from ..tasks.task_filter import TaskFilter
from ..tasks.task_models import HistoryAction, Task, TaskHistoryEntry, TaskSummary


class Notifier(Protocol):
    """
    Outbound notification port.

    The engine hands over a recipient id plus structured task data; how that is
    rendered and delivered (email, chat, push) is the notifier's business.
    Every method resolves to True on success and False on a handled failure.
    Callers log failures and carry on; nothing here is fatal.
    """

    def send_reminder(self, recipient: str, summary: TaskSummary) -> Awaitable[bool]: ...

    def send_overdue(self, recipient: str, summary: TaskSummary) -> Awaitable[bool]: ...

    def send_assignment(self, recipient: str, summary: TaskSummary, actor: str) -> Awaitable[bool]: ...

    def send_completion(self, recipient: str, summary: TaskSummary, actor: str) -> Awaitable[bool]: ...


class TaskRepo(Protocol):
    # Query API
    def find_tasks(self, flt: TaskFilter | None = None, *, limit: int | None = None) -> list[Task]: ...
    def get_task(self, task_id: int) -> Task | None: ...
    def count_tasks(self, flt: TaskFilter | None = None) -> int: ...
    def count_by_status(self) -> dict[str, int]: ...

    # Mutation API
    def create_task(self, *, owner_id: str, title: str, **fields: Any) -> Task: ...
    def update_task(
            self,
            task_id: int,
            fields: Mapping[str, Any],
            *,
            where: TaskFilter | None = None,
    ) -> Task | None: ...
    def delete_tasks(self, flt: TaskFilter) -> int: ...

    # Audit trail
    def add_history(
            self,
            *,
            task_id: int,
            actor_id: str,
            action: HistoryAction,
            old_value: dict[str, Any] | None = None,
            new_value: dict[str, Any] | None = None,
            comment: str | None = None,
    ) -> int: ...
    def list_history(self, task_id: int) -> list[TaskHistoryEntry]: ...
