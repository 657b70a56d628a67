# src/chronotask/scheduling/schedule.py

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone


@dataclass(frozen=True, slots=True)
class Schedule:
    """
    When a job fires.

    Two shapes:
    - fixed cadence: every N seconds, aligned to the epoch, so "every 5 minutes"
      fires at :00, :05, :10, ... like a */5 cron entry
    - time of day: once a day at HH:MM UTC

    Build with Schedule.every(...) or Schedule.daily_at(...).
    """

    period_seconds: float | None = None
    at_hour: int | None = None
    at_minute: int = 0

    def __post_init__(self) -> None:
        if (self.period_seconds is None) == (self.at_hour is None):
            raise ValueError("Schedule needs exactly one of period_seconds or at_hour")
        if self.period_seconds is not None and self.period_seconds <= 0:
            raise ValueError("period_seconds must be positive")
        if self.at_hour is not None and not 0 <= self.at_hour <= 23:
            raise ValueError("at_hour must be in 0..23")
        if not 0 <= self.at_minute <= 59:
            raise ValueError("at_minute must be in 0..59")

    @classmethod
    def every(cls, *, seconds: float = 0, minutes: float = 0, hours: float = 0) -> Schedule:
        return cls(period_seconds=float(seconds) + float(minutes) * 60 + float(hours) * 3600)

    @classmethod
    def daily_at(cls, hour: int, minute: int = 0) -> Schedule:
        return cls(at_hour=int(hour), at_minute=int(minute))

    @classmethod
    def parse_time_of_day(cls, raw: str) -> Schedule:
        """Parse "HH:MM" (UTC) into a daily schedule."""
        hh, sep, mm = raw.strip().partition(":")
        if not sep:
            raise ValueError(f"expected HH:MM, got {raw!r}")
        return cls.daily_at(int(hh), int(mm))

    def next_fire_after(self, now_ts: float) -> float:
        """First fire time strictly after now_ts."""
        if self.period_seconds is not None:
            p = self.period_seconds
            return (math.floor(now_ts / p) + 1) * p

        now = datetime.fromtimestamp(now_ts, tz=timezone.utc)
        fire = now.replace(hour=self.at_hour or 0, minute=self.at_minute, second=0, microsecond=0)
        if fire.timestamp() <= now_ts:
            fire += timedelta(days=1)
        return fire.timestamp()

    def seconds_until_next(self, now_ts: float) -> float:
        return max(0.0, self.next_fire_after(now_ts) - now_ts)

    def describe(self) -> str:
        if self.period_seconds is None:
            return f"daily at {self.at_hour:02d}:{self.at_minute:02d} UTC"
        p = self.period_seconds
        if p % 3600 == 0:
            return f"every {int(p // 3600)}h"
        if p % 60 == 0:
            return f"every {int(p // 60)}m"
        return f"every {p:g}s"
