"""List, update and delete existing appointments on a service's calendar."""

from __future__ import annotations

import logging
from datetime import datetime, time, timedelta
from typing import Any

from src.scheduling.timeexpr import (
    WEEKDAYS,
    InvalidTimeFormat,
    combine,
    resolve_clock_time,
    resolve_day,
)
from src.services.directory import ServiceNotFoundError
from src.services.http import ApiError
from src.tools.availability import format_dt, normalise_attendees
from src.tools.registry import ToolContext, ToolSpec
from src.tools.results import ErrorCode, ToolResponse, ToolStatus, failure

logger = logging.getLogger(__name__)

DEFAULT_LOOKAHEAD_DAYS = 14
MAX_LIST_RESULTS = 250

NO_UPDATES_MESSAGE = (
    "No updates provided. Please specify what you want to update "
    "(time, title, description, attendees, etc.)."
)


# ── list_calendar_events ─────────────────────────────────────────────


def _start_of_day(dt: datetime) -> datetime:
    return datetime.combine(dt.date(), time(0), tzinfo=dt.tzinfo)


def resolve_time_frame(
    time_frame: str | None, now: datetime,
) -> tuple[datetime, datetime, str]:
    """Map a time-frame phrase to ``(start, end, label)`` around *now*.

    ``None`` → the next 14 days; ``this week`` → now until Sunday night;
    ``next week`` → next Monday through Sunday; a bare weekday → that day
    this week (next week once it has passed); anything else is a day
    expression covering one full day.
    """
    value = (time_frame or "").strip().lower()
    today = _start_of_day(now)

    if not value:
        return now, now + timedelta(days=DEFAULT_LOOKAHEAD_DAYS), (
            f"in the next {DEFAULT_LOOKAHEAD_DAYS} days"
        )
    if value == "this week":
        return now, today + timedelta(days=7 - now.weekday()), "this week"
    if value == "next week":
        monday = today + timedelta(days=7 - now.weekday())
        return monday, monday + timedelta(days=7), "next week"
    if value in WEEKDAYS:
        day = today + timedelta(days=(WEEKDAYS.index(value) - now.weekday()) % 7)
        return day, day + timedelta(days=1), f"on {day:%A %d %B}"

    resolved = resolve_day(value, today=now.date())
    day = datetime.combine(resolved.date, time(0), tzinfo=now.tzinfo)
    return day, day + timedelta(days=1), f"on {day:%A %d %B}"


def _event_summary(event: dict[str, Any]) -> dict[str, Any]:
    start = event.get("start", {})
    end = event.get("end", {})
    return {
        "id": event.get("id"),
        "summary": event.get("summary", ""),
        "start": start.get("dateTime") or start.get("date"),
        "end": end.get("dateTime") or end.get("date"),
        "attendees": [a.get("email") for a in event.get("attendees", []) if a.get("email")],
        "html_link": event.get("htmlLink"),
    }


def list_calendar_events(
    service_name: str,
    time_frame: str | None = None,
    max_results: int = 50,
    *,
    context: ToolContext,
) -> dict[str, Any]:
    """List booked appointments for a service within a time frame."""
    try:
        descriptor = context.directory.get(service_name)
        start, end, label = resolve_time_frame(time_frame, context.now(descriptor.tz))
        limit = max(1, min(int(max_results), MAX_LIST_RESULTS))
        events = context.calendar.list_events(
            descriptor.calendar_id, start.isoformat(), end.isoformat(), limit,
        )
    except (ApiError, ServiceNotFoundError, ValueError) as exc:
        logger.warning("list_calendar_events failed: %s", exc)
        return failure(
            ErrorCode.CALENDAR_EVENTS_ERROR,
            f"Could not retrieve appointments: {exc}",
            data={"status": "ERROR", "events": []},
        )

    active = [_event_summary(e) for e in events if e.get("status") != "cancelled"]
    if not active:
        return ToolResponse(
            status=ToolStatus.NO_DATA,
            message=f"No appointments found {label}.",
            data={"status": "NO_EVENTS_FOUND", "events": []},
        ).to_payload()
    return ToolResponse(
        status=ToolStatus.SUCCESS,
        message=f"Found {len(active)} appointment(s) {label}.",
        data={"status": "EVENTS_FOUND", "events": active},
    ).to_payload()


# ── update_appointment ───────────────────────────────────────────────


def update_appointment(
    service_name: str,
    event_id: str,
    new_day: str | None = None,
    new_time: str | None = None,
    new_duration: int | None = None,
    event_details: dict[str, Any] | None = None,
    *,
    context: ToolContext,
) -> dict[str, Any]:
    """Move and/or edit an existing appointment.

    ``new_day`` and ``new_time`` must be given together; ``new_duration``
    only applies alongside them.
    """
    try:
        descriptor = context.directory.get(service_name)
    except ServiceNotFoundError as exc:
        return failure(ErrorCode.UPDATE_FAILED, str(exc))

    patch: dict[str, Any] = {}
    updated: list[str] = []

    if new_day or new_time:
        if not (new_day and new_time):
            return failure(
                ErrorCode.UPDATE_FAILED,
                "Both new_day and new_time must be provided to reschedule an appointment.",
            )
        now = context.now(descriptor.tz)
        resolved = resolve_day(new_day, today=now.date())
        try:
            start = combine(resolved.date, resolve_clock_time(new_time), descriptor.tz)
        except InvalidTimeFormat as exc:
            return failure(ErrorCode.INVALID_TIME_FORMAT, str(exc))
        if start <= now:
            return failure(
                ErrorCode.INVALID_TIME,
                "The new time has already passed. Please choose a future time.",
            )
        end = start + timedelta(minutes=new_duration or descriptor.duration_minutes)
        patch["start"] = {"dateTime": start.isoformat(), "timeZone": descriptor.time_zone}
        patch["end"] = {"dateTime": end.isoformat(), "timeZone": descriptor.time_zone}
        updated.append("time")
        if new_duration:
            updated.append("duration")
    elif new_duration:
        return failure(
            ErrorCode.UPDATE_FAILED,
            "Changing the duration requires new_day and new_time as well.",
        )

    details = event_details or {}
    for key in ("summary", "description"):
        if details.get(key):
            patch[key] = details[key]
            updated.append(key)
    if details.get("attendees"):
        patch["attendees"] = normalise_attendees(details["attendees"])
        updated.append("attendees")

    if not patch:
        return failure(ErrorCode.NO_UPDATES, NO_UPDATES_MESSAGE)

    try:
        event = context.calendar.update_event(descriptor.calendar_id, event_id, patch)
    except ApiError as exc:
        logger.error("Updating event %s failed: %s", event_id, exc)
        return failure(ErrorCode.UPDATE_FAILED, f"Failed to update appointment: {exc}")

    message = f"Appointment successfully updated. Updated: {', '.join(updated)}."
    if "start" in patch:
        message += f" New time: {format_dt(datetime.fromisoformat(patch['start']['dateTime']))}."
    return ToolResponse(
        status=ToolStatus.SUCCESS,
        message=message,
        data={"event_id": event.get("id", event_id), "updated_fields": updated},
    ).to_payload()


# ── delete_event ─────────────────────────────────────────────────────


def delete_event(service_name: str, event_id: str, *, context: ToolContext) -> dict[str, Any]:
    """Cancel (delete) an appointment from the service's calendar."""
    try:
        descriptor = context.directory.get(service_name)
    except ServiceNotFoundError as exc:
        return failure(ErrorCode.DELETE_EVENT_FAILED, str(exc), data={"status": "ERROR"})

    try:
        context.calendar.delete_event(descriptor.calendar_id, event_id)
    except ApiError as exc:
        logger.error("Deleting event %s failed: %s", event_id, exc)
        return failure(
            ErrorCode.DELETE_EVENT_FAILED,
            f"Failed to delete appointment: {exc}",
            data={"status": "ERROR"},
        )

    logger.info("Deleted event %s from %s", event_id, descriptor.calendar_id)
    return ToolResponse(
        status=ToolStatus.SUCCESS,
        message="Appointment successfully cancelled.",
        data={"status": "SUCCESS", "event_id": event_id},
    ).to_payload()


# ── Schemas ──────────────────────────────────────────────────────────

_SERVICE_NAME = {"type": "string", "description": "Name of the clinic service."}
_EVENT_ID = {"type": "string", "description": "Calendar event id from list_calendar_events."}

LIST_CALENDAR_EVENTS = ToolSpec(
    name="list_calendar_events",
    description="List booked appointments for a service.",
    parameters={
        "type": "object",
        "properties": {
            "service_name": _SERVICE_NAME,
            "time_frame": {
                "type": "string",
                "description": (
                    "Optional: 'this week', 'next week', a weekday name, 'today', "
                    "'tomorrow' or YYYY-MM-DD. Defaults to the next 14 days."
                ),
            },
            "max_results": {"type": "integer", "description": "Maximum events (default 50)."},
        },
        "required": ["service_name"],
    },
    handler=list_calendar_events,
    requires_context=True,
)

UPDATE_APPOINTMENT = ToolSpec(
    name="update_appointment",
    description=(
        "Reschedule or edit an existing appointment. To move it, give both "
        "new_day and new_time."
    ),
    parameters={
        "type": "object",
        "properties": {
            "service_name": _SERVICE_NAME,
            "event_id": _EVENT_ID,
            "new_day": {"type": "string", "description": "New day, e.g. 'tomorrow' or 2026-10-21."},
            "new_time": {"type": "string", "description": "New time, e.g. '10:30' or '4pm'."},
            "new_duration": {"type": "integer", "description": "New length in minutes."},
            "event_details": {
                "type": "object",
                "properties": {
                    "summary": {"type": "string"},
                    "description": {"type": "string"},
                    "attendees": {"type": "array", "items": {"type": "string"}},
                },
            },
        },
        "required": ["service_name", "event_id"],
    },
    handler=update_appointment,
    requires_context=True,
    writes=True,
)

DELETE_EVENT = ToolSpec(
    name="delete_event",
    description="Cancel an existing appointment.",
    parameters={
        "type": "object",
        "properties": {"service_name": _SERVICE_NAME, "event_id": _EVENT_ID},
        "required": ["service_name", "event_id"],
    },
    handler=delete_event,
    requires_context=True,
    writes=True,
)

TOOLS = [LIST_CALENDAR_EVENTS, UPDATE_APPOINTMENT, DELETE_EVENT]
