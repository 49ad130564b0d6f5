"""Time-of-day window arithmetic shared by validation and scheduling.

Windows are half-open: ``[start, end)``. Two windows that merely touch
(09:00-10:00 and 10:00-11:00) do not overlap.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterator

# Weekday numbering used by working-hours rows: 0 = Sunday.
WEEKDAY_NAMES = ("sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday")


def windows_overlap(new_start: time, new_end: time, existing_start: time, existing_end: time) -> bool:
    """Three-way overlap test of a requested window against an existing one."""
    starts_inside = existing_start <= new_start < existing_end
    ends_inside = existing_start < new_end <= existing_end
    contains = new_start <= existing_start and new_end >= existing_end
    return starts_inside or ends_inside or contains


def minutes_between(start: time, end: time) -> int:
    """Length of a same-day window in whole minutes (0 if inverted)."""
    delta = datetime.combine(date.min, end) - datetime.combine(date.min, start)
    return max(0, int(delta.total_seconds() // 60))


def elapsed_minutes(start: datetime, end: datetime) -> int:
    return max(0, int((end - start).total_seconds() // 60))


def day_of_week(d: date) -> int:
    """Sunday-based weekday index (Python's ``weekday()`` is Monday-based)."""
    return (d.weekday() + 1) % 7


def iter_dates(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def format_hhmm(t: time | None) -> str | None:
    return t.strftime("%H:%M") if t is not None else None
