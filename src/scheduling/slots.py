"""Free/busy slot arithmetic.

All functions work on aware or naive datetimes alike, as long as a single
call does not mix the two.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo


@dataclass(frozen=True, order=True)
class Interval:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError(f"Interval start {self.start} must precede end {self.end}")

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return start < self.end and end > self.start

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


def parse_datetime(value: str) -> datetime:
    """Parse an ISO 8601 timestamp, accepting a trailing ``Z``."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def parse_busy(raw: Iterable[Mapping[str, Any]]) -> list[Interval]:
    """Turn ``[{"start": iso, "end": iso}, ...]`` into sorted intervals.

    Zero-length or inverted entries are dropped.
    """
    intervals = []
    for item in raw:
        start = parse_datetime(item["start"])
        end = parse_datetime(item["end"])
        if start < end:
            intervals.append(Interval(start, end))
    return sorted(intervals)


def is_available(start: datetime, end: datetime, busy: Iterable[Interval]) -> bool:
    """True iff no busy interval overlaps ``[start, end)``."""
    return not any(b.overlaps(start, end) for b in busy)


def free_intervals(
    window_start: datetime,
    window_end: datetime,
    busy: Iterable[Interval],
    duration_minutes: int,
) -> list[Interval]:
    """Tile ``[window_start, window_end)`` with slots that avoid *busy*.

    The cursor jumps to the end of each busy interval it meets, so gaps
    shorter than one duration yield no slot and slots are never truncated.
    """
    if duration_minutes <= 0:
        raise ValueError("duration_minutes must be positive")

    step = timedelta(minutes=duration_minutes)
    slots: list[Interval] = []
    cursor = window_start

    for interval in sorted(busy):
        limit = min(interval.start, window_end)
        while cursor + step <= limit:
            slots.append(Interval(cursor, cursor + step))
            cursor += step
        if interval.end > cursor:
            cursor = interval.end
        if cursor >= window_end:
            return slots

    while cursor + step <= window_end:
        slots.append(Interval(cursor, cursor + step))
        cursor += step
    return slots


def business_window(
    day: date,
    open_time: time,
    close_time: time,
    tz: ZoneInfo | None = None,
) -> tuple[datetime, datetime]:
    """Return the open/close instants for *day*, rolling close past midnight."""
    start = datetime.combine(day, open_time, tzinfo=tz)
    end = datetime.combine(day, close_time, tzinfo=tz)
    if end <= start:
        end += timedelta(days=1)
    return start, end
