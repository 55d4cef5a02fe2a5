"""Availability and booking tools built on the slot calculator.

``check_free_busy_and_schedule`` is the main entry point the model uses:
it checks a requested slot, books it when free, and otherwise proposes the
remaining openings for that day.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo

from src.scheduling.slots import (
    Interval,
    business_window,
    free_intervals,
    is_available,
    parse_busy,
    parse_datetime,
)
from src.scheduling.timeexpr import InvalidTimeFormat, combine, resolve_clock_time, resolve_day
from src.services.directory import CalendarServiceDescriptor, ServiceNotFoundError
from src.services.http import ApiError
from src.tools.registry import ToolContext, ToolSpec
from src.tools.results import (
    AvailabilityStatus,
    ErrorCode,
    ToolResponse,
    ToolStatus,
    failure,
)

logger = logging.getLogger(__name__)

# Same-day suggestions must start at least this far in the future.
SAME_DAY_LEAD_TIME = timedelta(minutes=15)

PAST_TIME_MESSAGE = "The requested time has already passed. Please choose a future time."
PAST_DATE_MESSAGE = "The requested date has already passed. Please choose a future date."
NO_SLOTS_TODAY_MESSAGE = "Sorry, there are no more available appointments today."
NO_SLOTS_DAY_MESSAGE = "Sorry, there are no available appointments on that day."
TAKEN_WITH_SUGGESTIONS_MESSAGE = "That time is booked, but we have other openings on that day."


# ── Shared helpers ───────────────────────────────────────────────────


def format_dt(dt: datetime) -> str:
    """Human-friendly timestamp, e.g. ``Tuesday 20 October 2026 at 09:30``."""
    return dt.strftime("%A %d %B %Y at %H:%M")


def parse_instant(value: str, tz: ZoneInfo) -> datetime:
    """Parse ISO 8601; naive values are taken to be in the business zone."""
    dt = parse_datetime(value)
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=tz)


def fetch_busy(
    context: ToolContext,
    descriptor: CalendarServiceDescriptor,
    start: datetime,
    end: datetime,
) -> list[Interval]:
    """Query the calendar for busy intervals in ``[start, end)``.

    Raises:
        ApiError: when the calendar call fails or reports no calendar.
    """
    data = context.calendar.get_free_busy(
        descriptor.calendar_id, start.isoformat(), end.isoformat(),
    )
    calendars = data.get("calendars") or {}
    if not calendars:
        raise ApiError("Failed to retrieve availability information.")
    entry = calendars.get(descriptor.calendar_id) or next(iter(calendars.values()))
    if entry.get("errors"):
        raise ApiError(f"Calendar reported errors: {entry['errors']}")
    return parse_busy(entry.get("busy", []))


def normalise_attendees(attendees: list[Any] | None) -> list[dict[str, Any]]:
    result = []
    for attendee in attendees or []:
        if isinstance(attendee, str):
            result.append({"email": attendee})
        elif isinstance(attendee, dict) and attendee.get("email"):
            result.append(attendee)
    return result


def _event_body(
    descriptor: CalendarServiceDescriptor,
    start: datetime,
    end: datetime,
    details: dict[str, Any],
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "summary": details.get("summary") or f"{descriptor.name} Appointment",
        "description": details.get("description") or f"Appointment for {descriptor.name}",
        "start": {"dateTime": start.isoformat(), "timeZone": descriptor.time_zone},
        "end": {"dateTime": end.isoformat(), "timeZone": descriptor.time_zone},
    }
    attendees = normalise_attendees(details.get("attendees"))
    if attendees:
        body["attendees"] = attendees
    return body


def _availability_failed(exc: Exception) -> dict[str, Any]:
    logger.warning("Availability check failed: %s", exc)
    return failure(
        ErrorCode.AVAILABILITY_CHECK_FAILED,
        f"Could not check availability: {exc}",
        data={"status": AvailabilityStatus.UNAVAILABLE},
    )


def _as_bool(value: Any) -> bool:
    """Read a model-supplied flag; strings such as ``"false"`` count as false."""
    if isinstance(value, str):
        return value.strip().lower() not in ("", "false", "no", "0", "off")
    return bool(value)


def _suggestion(slot: Interval) -> dict[str, str]:
    return {**slot.to_dict(), "label": f"{slot.start:%H:%M} - {slot.end:%H:%M}"}


# ── Tool: check_specific_availability ────────────────────────────────


def check_specific_availability(
    service_name: str,
    time_min: str,
    time_max: str | None = None,
    *,
    context: ToolContext,
) -> dict[str, Any]:
    """Is ``[time_min, time_max)`` free?  ``time_max`` defaults to one slot."""
    try:
        descriptor = context.directory.get(service_name)
        start = parse_instant(time_min, descriptor.tz)
        if time_max:
            end = parse_instant(time_max, descriptor.tz)
        else:
            end = start + timedelta(minutes=descriptor.duration_minutes)
        if end <= start:
            raise ValueError("time_max must be after time_min")
        busy = fetch_busy(context, descriptor, start, end)
    except (ApiError, ServiceNotFoundError, ValueError, KeyError) as exc:
        logger.warning("check_specific_availability failed: %s", exc)
        return {"is_available": False, "error": str(exc)}

    return {
        "is_available": is_available(start, end, busy),
        "start": start.isoformat(),
        "end": end.isoformat(),
    }


# ── Tool: find_general_availability ──────────────────────────────────


def find_general_availability(
    date: str,
    service_name: str,
    *,
    context: ToolContext,
) -> dict[str, Any]:
    """List every free slot of the service's opening hours on *date*."""
    try:
        descriptor = context.directory.get(service_name)
        resolved = resolve_day(date, today=context.now(descriptor.tz).date())
        start, end = business_window(
            resolved.date, descriptor.open_time, descriptor.close_time, descriptor.tz,
        )
        busy = fetch_busy(context, descriptor, start, end)
    except (ApiError, ServiceNotFoundError, ValueError, KeyError) as exc:
        logger.warning("find_general_availability failed: %s", exc)
        return {"availability": "", "slots": [], "error": str(exc)}

    slots = free_intervals(start, end, busy, descriptor.duration_minutes)
    if slots:
        lines = [f"  - {s.start:%H:%M} - {s.end:%H:%M}" for s in slots]
        availability = "Available slots:\n" + "\n".join(lines)
    else:
        availability = "No available slots found."
    return {
        "date": resolved.date.isoformat(),
        "availability": availability,
        "slots": [s.to_dict() for s in slots],
    }


# ── Tool: check_free_busy_and_schedule ───────────────────────────────


def check_free_busy_and_schedule(
    service_name: str,
    day: str,
    hour: str | None = None,
    should_book: bool = True,
    event_details: dict[str, Any] | None = None,
    *,
    context: ToolContext,
) -> dict[str, Any]:
    """Check (and optionally book) a slot, falling back to same-day suggestions.

    Outcomes, by ``data.status``:
      * ``BOOKED`` / ``AVAILABLE``: the requested slot is free.
      * ``UNAVAILABLE_SUGGESTIONS``: requested slot taken, other openings listed.
      * ``AVAILABLE_SUGGESTIONS``: no hour requested, openings listed.
      * ``UNAVAILABLE``: past time, no openings, or an upstream failure
        (``error.code`` tells which).
    """
    try:
        descriptor = context.directory.get(service_name)
    except ServiceNotFoundError as exc:
        return _availability_failed(exc)

    tz = descriptor.tz
    now = context.now(tz)
    resolved = resolve_day(day, today=now.date())
    is_today = resolved.date == now.date()
    date_data: dict[str, Any] = {"date": resolved.date.isoformat()}
    if resolved.is_fallback:
        date_data["date_assumed"] = True

    if resolved.date < now.date():
        return ToolResponse(
            status=ToolStatus.FAILURE,
            message=PAST_DATE_MESSAGE,
            data={"status": AvailabilityStatus.UNAVAILABLE, **date_data},
        ).to_payload()

    duration = timedelta(minutes=descriptor.duration_minutes)
    window_start, window_end = business_window(
        resolved.date, descriptor.open_time, descriptor.close_time, tz,
    )

    if hour:
        try:
            start = combine(resolved.date, resolve_clock_time(hour), tz)
        except InvalidTimeFormat as exc:
            return failure(
                ErrorCode.INVALID_TIME_FORMAT,
                str(exc),
                data={"status": AvailabilityStatus.UNAVAILABLE, **date_data},
            )
        if is_today and start <= now:
            return ToolResponse(
                status=ToolStatus.FAILURE,
                message=PAST_TIME_MESSAGE,
                data={
                    "status": AvailabilityStatus.UNAVAILABLE,
                    "requested_time": start.isoformat(),
                    **date_data,
                },
            ).to_payload()

        end = start + duration
        within_hours = window_start <= start and end <= window_end
        if within_hours:
            try:
                busy = fetch_busy(context, descriptor, start, end)
            except (ApiError, ValueError, KeyError) as exc:
                return _availability_failed(exc)
        else:
            logger.info("Requested slot %s is outside opening hours", start)

        if within_hours and is_available(start, end, busy):
            if not _as_bool(should_book):
                return ToolResponse(
                    status=ToolStatus.SUCCESS,
                    message=f"The time slot on {format_dt(start)} is available.",
                    data={
                        "status": AvailabilityStatus.AVAILABLE,
                        "time": start.isoformat(),
                        **date_data,
                    },
                ).to_payload()

            body = _event_body(descriptor, start, end, event_details or {})
            try:
                event = context.calendar.create_event(descriptor.calendar_id, body)
            except ApiError as exc:
                logger.error("Booking %s at %s failed: %s", service_name, start, exc)
                return failure(
                    ErrorCode.BOOKING_FAILED,
                    f"Time slot is available but booking failed: {exc}",
                    data={
                        "status": AvailabilityStatus.UNAVAILABLE,
                        "requested_time": start.isoformat(),
                        **date_data,
                    },
                )

            logger.info("Booked %s at %s (event %s)", service_name, start, event.get("id"))
            return ToolResponse(
                status=ToolStatus.SUCCESS,
                message=f"Appointment successfully booked for {format_dt(start)}",
                data={
                    "status": AvailabilityStatus.BOOKED,
                    "time": start.isoformat(),
                    "event": {
                        "id": event.get("id"),
                        "summary": event.get("summary", body["summary"]),
                        "html_link": event.get("htmlLink"),
                    },
                    **date_data,
                },
            ).to_payload()

        logger.info("Requested slot %s is not bookable; looking for alternatives", start)

    try:
        busy = fetch_busy(context, descriptor, window_start, window_end)
    except (ApiError, ValueError, KeyError) as exc:
        return _availability_failed(exc)

    slots = free_intervals(window_start, window_end, busy, descriptor.duration_minutes)
    if is_today:
        cutoff = now + SAME_DAY_LEAD_TIME
        slots = [s for s in slots if s.start >= cutoff]

    if not slots:
        return ToolResponse(
            status=ToolStatus.NO_DATA,
            message=NO_SLOTS_TODAY_MESSAGE if is_today else NO_SLOTS_DAY_MESSAGE,
            data={"status": AvailabilityStatus.UNAVAILABLE, **date_data},
        ).to_payload()

    suggestions = [_suggestion(s) for s in slots]
    if hour:
        return ToolResponse(
            status=ToolStatus.PARTIAL_SUCCESS,
            message=TAKEN_WITH_SUGGESTIONS_MESSAGE,
            data={
                "status": AvailabilityStatus.UNAVAILABLE_SUGGESTIONS,
                "suggestions": suggestions,
                **date_data,
            },
        ).to_payload()
    return ToolResponse(
        status=ToolStatus.SUCCESS,
        message=f"Available appointments on {resolved.date:%A %d %B}.",
        data={
            "status": AvailabilityStatus.AVAILABLE_SUGGESTIONS,
            "suggestions": suggestions,
            **date_data,
        },
    ).to_payload()


# ── Schemas ──────────────────────────────────────────────────────────

_SERVICE_NAME = {
    "type": "string",
    "description": "Name of the clinic service, exactly as listed in the instructions.",
}

_EVENT_DETAILS = {
    "type": "object",
    "description": "Optional event fields.",
    "properties": {
        "summary": {"type": "string", "description": "Event title."},
        "description": {"type": "string", "description": "Event notes."},
        "attendees": {
            "type": "array",
            "description": "Attendee email addresses.",
            "items": {"type": "string"},
        },
    },
}

CHECK_SPECIFIC_AVAILABILITY = ToolSpec(
    name="check_specific_availability",
    description=(
        "Check whether an exact time range is free on a service's calendar. "
        "If time_max is omitted one appointment length is assumed."
    ),
    parameters={
        "type": "object",
        "properties": {
            "service_name": _SERVICE_NAME,
            "time_min": {"type": "string", "description": "ISO 8601 start, e.g. 2026-10-20T10:00:00."},
            "time_max": {"type": "string", "description": "Optional ISO 8601 end."},
        },
        "required": ["service_name", "time_min"],
    },
    handler=check_specific_availability,
    requires_context=True,
)

FIND_GENERAL_AVAILABILITY = ToolSpec(
    name="find_general_availability",
    description="List every free appointment slot for a service on a given day.",
    parameters={
        "type": "object",
        "properties": {
            "date": {
                "type": "string",
                "description": "YYYY-MM-DD, 'today', 'tomorrow' or 'next <weekday>'.",
            },
            "service_name": _SERVICE_NAME,
        },
        "required": ["date", "service_name"],
    },
    handler=find_general_availability,
    requires_context=True,
)

CHECK_FREE_BUSY_AND_SCHEDULE = ToolSpec(
    name="check_free_busy_and_schedule",
    description=(
        "Check availability for a service on a day and, when an hour is given and "
        "free, book it. If the hour is taken or omitted, returns the day's openings."
    ),
    parameters={
        "type": "object",
        "properties": {
            "service_name": _SERVICE_NAME,
            "day": {
                "type": "string",
                "description": "YYYY-MM-DD, 'today', 'tomorrow' or 'next <weekday>'.",
            },
            "hour": {"type": "string", "description": "Requested time, e.g. '17:00' or '5:30pm'."},
            "should_book": {
                "type": "boolean",
                "description": "Book the slot when free (default true). False only checks.",
            },
            "event_details": _EVENT_DETAILS,
        },
        "required": ["service_name", "day"],
    },
    handler=check_free_busy_and_schedule,
    requires_context=True,
    writes=True,
)

TOOLS = [CHECK_SPECIFIC_AVAILABILITY, FIND_GENERAL_AVAILABILITY, CHECK_FREE_BUSY_AND_SCHEDULE]
