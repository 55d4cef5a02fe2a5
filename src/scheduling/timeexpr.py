"""Resolve natural-language day and clock-time expressions.

``resolve_day`` never fails: anything it does not recognise resolves to
today with ``DaySource.FALLBACK`` so callers can tell a real match from the
default.  ``resolve_clock_time`` is strict and raises ``InvalidTimeFormat``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import StrEnum
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

_NEXT_WEEKDAY_RE = re.compile(r"^next\s+(" + "|".join(WEEKDAYS) + r")$")
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_CLOCK_RE = re.compile(r"^(\d{1,2})(?::(\d{2}))?(?::(\d{2}))?\s*(am|pm)?$")


class InvalidTimeFormat(ValueError):
    """Raised when a clock-time expression cannot be parsed."""


class DaySource(StrEnum):
    TODAY = "today"
    TOMORROW = "tomorrow"
    NEXT_WEEKDAY = "next_weekday"
    ISO_DATE = "iso_date"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class ResolvedDay:
    """A calendar date plus how it was obtained."""

    date: date
    source: DaySource

    @property
    def is_fallback(self) -> bool:
        return self.source is DaySource.FALLBACK


@dataclass(frozen=True)
class ClockTime:
    hour: int
    minute: int

    def to_time(self) -> time:
        return time(self.hour, self.minute)


def next_weekday(today: date, weekday: int) -> date:
    """Return the next occurrence of *weekday* (0=Monday), never *today*."""
    days_ahead = (weekday - today.weekday() + 7) % 7 or 7
    return today + timedelta(days=days_ahead)


def resolve_day(text: str, *, today: date | None = None) -> ResolvedDay:
    """Resolve ``today``, ``tomorrow``, ``next <weekday>`` or ``YYYY-MM-DD``.

    Args:
        text: The user's day expression (case-insensitive).
        today: Reference date; defaults to the local current date.
    """
    today = today or date.today()
    value = (text or "").strip().lower()

    if value == "today":
        return ResolvedDay(today, DaySource.TODAY)
    if value == "tomorrow":
        return ResolvedDay(today + timedelta(days=1), DaySource.TOMORROW)

    match = _NEXT_WEEKDAY_RE.match(value)
    if match:
        weekday = WEEKDAYS.index(match.group(1))
        return ResolvedDay(next_weekday(today, weekday), DaySource.NEXT_WEEKDAY)

    if _ISO_DATE_RE.match(value):
        try:
            return ResolvedDay(date.fromisoformat(value), DaySource.ISO_DATE)
        except ValueError:
            logger.warning("Day expression %r is not a real date", text)
    else:
        logger.warning("Unrecognised day expression %r, defaulting to today", text)

    return ResolvedDay(today, DaySource.FALLBACK)


def resolve_clock_time(text: str) -> ClockTime:
    """Parse ``H``, ``H:MM`` or ``H:MM:SS`` with an optional am/pm suffix.

    Seconds are accepted and discarded.

    Raises:
        InvalidTimeFormat: if the text does not describe a valid clock time.
    """
    value = (text or "").strip().lower()
    match = _CLOCK_RE.match(value)
    if not match:
        raise InvalidTimeFormat(f"Invalid time format: {text!r}")

    hour = int(match.group(1))
    minute = int(match.group(2) or 0)
    meridiem = match.group(4)

    if meridiem:
        if hour < 1 or hour > 12:
            raise InvalidTimeFormat(f"Invalid time format: {text!r}")
        if meridiem == "pm" and hour != 12:
            hour += 12
        elif meridiem == "am" and hour == 12:
            hour = 0

    if hour > 23 or minute > 59:
        raise InvalidTimeFormat(f"Invalid time format: {text!r}")
    return ClockTime(hour, minute)


def combine(
    day: date,
    clock: ClockTime | time,
    tz: str | ZoneInfo | None = None,
) -> datetime:
    """Compose a date and clock time into an instant (naive when *tz* is None)."""
    if isinstance(clock, ClockTime):
        clock = clock.to_time()
    tzinfo = ZoneInfo(tz) if isinstance(tz, str) else tz
    return datetime.combine(day, clock, tzinfo=tzinfo)
