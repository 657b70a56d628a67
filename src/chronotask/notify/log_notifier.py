# src/chronotask/notify/log_notifier.py

from __future__ import annotations

import logging
from datetime import datetime, timezone

from ..tasks.task_models import TaskSummary

logger = logging.getLogger(__name__)


def _fmt_due(ts: float | None) -> str:
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


class LogNotifier:
    """
    Notifier that writes every event to the log.

    Default delivery backend for the standalone process: the engine stays fully
    functional without a mail/chat transport, and operators still see what
    would have been sent.
    """

    def __init__(self, *, level: int = logging.INFO) -> None:
        self._level = level

    async def send_reminder(self, recipient: str, summary: TaskSummary) -> bool:
        logger.log(
            self._level,
            "[reminder] to=%s task=%s title=%r due=%s priority=%s",
            recipient,
            summary.task_id,
            summary.title,
            _fmt_due(summary.due_at),
            summary.priority,
        )
        return True

    async def send_overdue(self, recipient: str, summary: TaskSummary) -> bool:
        logger.log(
            self._level,
            "[overdue] to=%s task=%s title=%r was due=%s priority=%s",
            recipient,
            summary.task_id,
            summary.title,
            _fmt_due(summary.due_at),
            summary.priority,
        )
        return True

    async def send_assignment(self, recipient: str, summary: TaskSummary, actor: str) -> bool:
        logger.log(
            self._level,
            "[assignment] to=%s task=%s title=%r by=%s",
            recipient,
            summary.task_id,
            summary.title,
            actor,
        )
        return True

    async def send_completion(self, recipient: str, summary: TaskSummary, actor: str) -> bool:
        logger.log(
            self._level,
            "[completion] to=%s task=%s title=%r by=%s",
            recipient,
            summary.task_id,
            summary.title,
            actor,
        )
        return True
