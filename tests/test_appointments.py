"""Tests for listing, updating and deleting appointments."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from src.services.http import ApiError
from src.tools.appointments import (
    NO_UPDATES_MESSAGE,
    delete_event,
    list_calendar_events,
    resolve_time_frame,
    update_appointment,
)

WEDNESDAY_EVENING = datetime(2026, 10, 14, 18, 0, tzinfo=UTC)


def _day(d: int) -> datetime:
    return datetime(2026, 10, d, tzinfo=UTC)


class TestResolveTimeFrame:
    def test_default_is_next_fourteen_days(self):
        start, end, label = resolve_time_frame(None, WEDNESDAY_EVENING)
        assert start == WEDNESDAY_EVENING
        assert end == datetime(2026, 10, 28, 18, 0, tzinfo=UTC)
        assert label == "in the next 14 days"

    def test_this_week_runs_to_sunday_night(self):
        start, end, _ = resolve_time_frame("this week", WEDNESDAY_EVENING)
        assert start == WEDNESDAY_EVENING
        assert end == _day(19)

    def test_next_week(self):
        start, end, _ = resolve_time_frame("Next Week", WEDNESDAY_EVENING)
        assert (start, end) == (_day(19), _day(26))

    @pytest.mark.parametrize(
        ("weekday", "expected"),
        [("wednesday", 14), ("friday", 16), ("monday", 19)],
    )
    def test_bare_weekday(self, weekday, expected):
        start, end, _ = resolve_time_frame(weekday, WEDNESDAY_EVENING)
        assert start == _day(expected)
        assert end == _day(expected + 1)

    def test_day_expression(self):
        start, end, label = resolve_time_frame("2026-10-22", WEDNESDAY_EVENING)
        assert (start, end) == (_day(22), _day(23))
        assert label == "on Thursday 22 October"


class TestListCalendarEvents:
    def test_lists_active_events(self, tool_context, calendar):
        calendar.list_events.return_value = [
            {
                "id": "e1",
                "summary": "Consultation",
                "status": "confirmed",
                "start": {"dateTime": "2026-10-15T10:00:00Z"},
                "end": {"dateTime": "2026-10-15T10:30:00Z"},
                "attendees": [{"email": "ana@example.com"}],
            },
            {"id": "e2", "status": "cancelled", "start": {}, "end": {}},
        ]

        result = list_calendar_events("General Consultation", context=tool_context)

        assert result["data"]["status"] == "EVENTS_FOUND"
        assert result["message"] == "Found 1 appointment(s) in the next 14 days."
        event = result["data"]["events"][0]
        assert event["id"] == "e1"
        assert event["attendees"] == ["ana@example.com"]
        args = calendar.list_events.call_args[0]
        assert args[0] == "cal-general"
        assert args[3] == 50

    def test_no_events(self, tool_context):
        result = list_calendar_events("General Consultation", "next week", context=tool_context)
        assert result["data"]["status"] == "NO_EVENTS_FOUND"
        assert result["message"] == "No appointments found next week."

    def test_max_results_is_clamped(self, tool_context, calendar):
        list_calendar_events("General Consultation", max_results=10_000, context=tool_context)
        assert calendar.list_events.call_args[0][3] == 250

    def test_calendar_error(self, tool_context, calendar):
        calendar.list_events.side_effect = ApiError("boom", status_code=500)
        result = list_calendar_events("General Consultation", context=tool_context)
        assert result["data"]["status"] == "ERROR"
        assert result["error"]["code"] == "CALENDAR_EVENTS_ERROR"


class TestUpdateAppointment:
    def test_reschedule(self, tool_context, calendar):
        result = update_appointment(
            "General Consultation", "evt-1", new_day="tomorrow", new_time="3pm",
            context=tool_context,
        )
        assert result["status"] == "success"
        assert result["data"]["updated_fields"] == ["time"]
        _, event_id, patch = calendar.update_event.call_args[0]
        assert event_id == "evt-1"
        assert patch["start"]["dateTime"] == "2026-10-15T15:00:00+00:00"
        assert patch["end"]["dateTime"] == "2026-10-15T15:30:00+00:00"

    def test_reschedule_with_new_duration(self, tool_context, calendar):
        update_appointment(
            "General Consultation", "evt-1", new_day="tomorrow", new_time="3pm", new_duration=60,
            context=tool_context,
        )
        patch = calendar.update_event.call_args[0][2]
        assert patch["end"]["dateTime"] == "2026-10-15T16:00:00+00:00"

    def test_day_without_time(self, tool_context, calendar):
        result = update_appointment(
            "General Consultation", "evt-1", new_day="tomorrow", context=tool_context,
        )
        assert result["error"]["code"] == "UPDATE_FAILED"
        calendar.update_event.assert_not_called()

    def test_duration_alone_is_rejected(self, tool_context, calendar):
        result = update_appointment(
            "General Consultation", "evt-1", new_duration=45, context=tool_context,
        )
        assert result["error"]["code"] == "UPDATE_FAILED"
        calendar.update_event.assert_not_called()

    def test_past_time_rejected(self, tool_context, calendar):
        result = update_appointment(
            "General Consultation", "evt-1", new_day="today", new_time="9am", context=tool_context,
        )
        assert result["error"]["code"] == "INVALID_TIME"
        calendar.update_event.assert_not_called()

    def test_details_only(self, tool_context, calendar):
        result = update_appointment(
            "General Consultation",
            "evt-1",
            event_details={"summary": "Follow-up", "attendees": ["bo@example.com"]},
            context=tool_context,
        )
        assert result["data"]["updated_fields"] == ["summary", "attendees"]
        patch = calendar.update_event.call_args[0][2]
        assert patch == {"summary": "Follow-up", "attendees": [{"email": "bo@example.com"}]}

    def test_no_updates(self, tool_context, calendar):
        result = update_appointment("General Consultation", "evt-1", context=tool_context)
        assert result["error"]["code"] == "NO_UPDATES"
        assert result["message"] == NO_UPDATES_MESSAGE
        calendar.update_event.assert_not_called()

    def test_calendar_failure(self, tool_context, calendar):
        calendar.update_event.side_effect = ApiError("conflict", status_code=409)
        result = update_appointment(
            "General Consultation", "evt-1", event_details={"description": "x"},
            context=tool_context,
        )
        assert result["error"]["code"] == "UPDATE_FAILED"


class TestDeleteEvent:
    def test_deletes(self, tool_context, calendar):
        result = delete_event("General Consultation", "evt-9", context=tool_context)
        assert result["data"] == {"status": "SUCCESS", "event_id": "evt-9"}
        calendar.delete_event.assert_called_once_with("cal-general", "evt-9")

    def test_unknown_service(self, tool_context):
        result = delete_event("Massage", "evt-9", context=tool_context)
        assert result["data"]["status"] == "ERROR"
        assert result["message"] == "Calendar service 'Massage' not found."

    def test_calendar_failure(self, tool_context, calendar):
        calendar.delete_event.side_effect = ApiError("gone", status_code=410)
        result = delete_event("General Consultation", "evt-9", context=tool_context)
        assert result["error"]["code"] == "DELETE_EVENT_FAILED"
