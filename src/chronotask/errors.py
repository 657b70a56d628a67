# src/chronotask/errors.py

from __future__ import annotations


class ChronotaskError(Exception):
    """Base class for errors raised by the chronotask library surface."""


class TaskNotFoundError(ChronotaskError):
    def __init__(self, task_id: int) -> None:
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class InvalidTransitionError(ChronotaskError):
    """A user-initiated status change is not allowed from the task's current status."""

    def __init__(self, task_id: int, current: str, target: str) -> None:
        super().__init__(f"Task {task_id}: cannot move from {current} to {target}")
        self.task_id = task_id
        self.current = current
        self.target = target


class UnknownJobError(ChronotaskError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown job: {name}")
        self.name = name
