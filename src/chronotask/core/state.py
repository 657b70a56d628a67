# src/chronotask/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..scheduling.supervisor import Supervisor
from .clock import Clock
from .ports import Notifier, TaskRepo


@dataclass
class AppState:
    # Settings object (config.Settings or a test stand-in with the same attributes).
    settings: object

    clock: Clock
    task_store: TaskRepo
    notifier: Notifier
    supervisor: Supervisor
