# src/chronotask/engine/statistics.py

from __future__ import annotations

import logging
from typing import Any

from ..core.ports import TaskRepo
from ..tasks.task_filter import TaskFilter

logger = logging.getLogger(__name__)


class StatisticsReporter:
    """Read-only job: logs task counts per status plus the number of recurrence templates."""

    def __init__(self, store: TaskRepo) -> None:
        self._store = store

    async def run(self) -> dict[str, Any]:
        by_status = self._store.count_by_status()
        templates = self._store.count_tasks(TaskFilter(is_recurring=True))
        snapshot: dict[str, Any] = {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "recurring_templates": templates,
        }
        logger.info(
            "Task statistics total=%d %s recurring_templates=%d",
            snapshot["total"],
            " ".join(f"{k}={v}" for k, v in sorted(by_status.items())),
            templates,
        )
        return snapshot
