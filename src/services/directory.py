"""Bookable-service descriptors (calendar id, hours, slot length, timezone).

Descriptors are read-only configuration loaded from a JSON file:

    {"services": [{"name": "General Consultation",
                   "calendar_id": "clinic-general@group.calendar.google.com",
                   "open_hours": "09:00", "close_hours": "17:00",
                   "duration_minutes": 30, "time_zone": "Europe/Madrid"}]}
"""

from __future__ import annotations

import json
import logging
from datetime import time
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

from src.scheduling.timeexpr import resolve_clock_time

logger = logging.getLogger(__name__)


class ServiceNotFoundError(LookupError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Calendar service '{name}' not found.")


class CalendarServiceDescriptor(BaseModel):
    name: str
    calendar_id: str
    open_hours: str = "09:00"
    close_hours: str = "17:00"
    duration_minutes: int = Field(30, gt=0)
    time_zone: str = "UTC"
    description: str = ""

    @field_validator("open_hours", "close_hours")
    @classmethod
    def _normalise_hours(cls, value: str) -> str:
        # Stored values sometimes keep the ISO "T" prefix, e.g. "T09:00:00".
        value = value.strip().removeprefix("T")
        clock = resolve_clock_time(value)
        return f"{clock.hour:02d}:{clock.minute:02d}"

    @field_validator("time_zone")
    @classmethod
    def _known_zone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except ZoneInfoNotFoundError as exc:
            raise ValueError(f"Unknown time zone: {value}") from exc
        return value

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.time_zone)

    @property
    def open_time(self) -> time:
        return time.fromisoformat(self.open_hours)

    @property
    def close_time(self) -> time:
        return time.fromisoformat(self.close_hours)


class ServiceDirectory:
    """Case-insensitive lookup of service descriptors by name."""

    def __init__(self, descriptors: list[CalendarServiceDescriptor]):
        self._by_name = {d.name.strip().lower(): d for d in descriptors}

    @classmethod
    def from_file(cls, path: str | Path) -> ServiceDirectory:
        path = Path(path)
        if not path.exists():
            logger.warning("Services file %s not found; no services configured", path)
            return cls([])
        raw = json.loads(path.read_text(encoding="utf-8"))
        descriptors = [CalendarServiceDescriptor(**item) for item in raw.get("services", [])]
        logger.info("Loaded %d calendar services from %s", len(descriptors), path)
        return cls(descriptors)

    def get(self, name: str) -> CalendarServiceDescriptor:
        """Return the descriptor for *name* or raise ``ServiceNotFoundError``."""
        descriptor = self._by_name.get((name or "").strip().lower())
        if descriptor is None:
            raise ServiceNotFoundError(name)
        return descriptor

    @property
    def names(self) -> list[str]:
        return [d.name for d in self._by_name.values()]

    def __len__(self) -> int:
        return len(self._by_name)
