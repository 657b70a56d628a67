# src/chronotask/engine/retention.py

from __future__ import annotations

import logging

from ..core.clock import Clock, SystemClock
from ..core.ports import TaskRepo
from .predicates import retention_filter

logger = logging.getLogger(__name__)


class RetentionJanitor:
    """
    Deletes completed, non-recurring tasks whose completion is older than the window.

    Recurring templates are never deleted, even when completed.
    """

    def __init__(self, store: TaskRepo, *, clock: Clock | None = None, retention_days: float = 30) -> None:
        self._store = store
        self._clock = clock or SystemClock()
        self._retention_days = float(retention_days)

    async def run(self) -> int:
        flt = retention_filter(self._clock.now(), self._retention_days)
        deleted = self._store.delete_tasks(flt)
        logger.info("Cleaned up %d old completed tasks (older than %s days)", deleted, self._retention_days)
        return deleted
