# tests/test_schedule.py

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from chronotask.scheduling.schedule import Schedule


def _utc(*args: int) -> float:
    return datetime(*args, tzinfo=timezone.utc).timestamp()


def test_every_five_minutes_aligns_like_cron() -> None:
    s = Schedule.every(minutes=5)
    assert s.next_fire_after(_utc(2026, 3, 1, 10, 2, 30)) == _utc(2026, 3, 1, 10, 5)
    # exactly on a boundary: the next one, never "now"
    assert s.next_fire_after(_utc(2026, 3, 1, 10, 5)) == _utc(2026, 3, 1, 10, 10)
    assert s.seconds_until_next(_utc(2026, 3, 1, 10, 4, 50)) == 10


def test_hourly() -> None:
    s = Schedule.every(hours=1)
    assert s.next_fire_after(_utc(2026, 3, 1, 23, 59)) == _utc(2026, 3, 2, 0, 0)
    assert s.describe() == "every 1h"


def test_daily_at_time_of_day() -> None:
    s = Schedule.daily_at(2, 0)
    assert s.next_fire_after(_utc(2026, 3, 1, 1, 0)) == _utc(2026, 3, 1, 2, 0)
    assert s.next_fire_after(_utc(2026, 3, 1, 2, 0)) == _utc(2026, 3, 2, 2, 0)
    assert s.next_fire_after(_utc(2026, 3, 1, 13, 0)) == _utc(2026, 3, 2, 2, 0)
    assert s.describe() == "daily at 02:00 UTC"


def test_parse_time_of_day() -> None:
    assert Schedule.parse_time_of_day("03:45") == Schedule.daily_at(3, 45)
    with pytest.raises(ValueError):
        Schedule.parse_time_of_day("0345")
    with pytest.raises(ValueError):
        Schedule.parse_time_of_day("25:00")


def test_invalid_schedules() -> None:
    with pytest.raises(ValueError):
        Schedule.every(minutes=0)
    with pytest.raises(ValueError):
        Schedule()
    with pytest.raises(ValueError):
        Schedule(period_seconds=60, at_hour=1)


def test_describe() -> None:
    assert Schedule.every(minutes=5).describe() == "every 5m"
    assert Schedule.every(seconds=90).describe() == "every 90s"
