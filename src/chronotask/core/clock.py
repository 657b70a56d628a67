# src/chronotask/core/clock.py

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Source of the current time as UTC epoch seconds."""

    def now(self) -> float: ...


class SystemClock:
    def now(self) -> float:
        return time.time()


class ManualClock:
    """
    Clock that only moves when told to.

    Used by tests (and by anything that wants to replay a pass at a given instant).
    """

    def __init__(self, start: float | None = None) -> None:
        self._now = float(time.time() if start is None else start)

    def now(self) -> float:
        return self._now

    def set(self, ts: float) -> None:
        self._now = float(ts)

    def advance(self, seconds: float) -> float:
        self._now += float(seconds)
        return self._now
