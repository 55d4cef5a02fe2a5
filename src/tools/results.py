"""Typed results returned by the calendar tools to the model."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel


class ToolStatus(StrEnum):
    SUCCESS = "success"
    FAILURE = "failure"
    NO_DATA = "no_data"
    PARTIAL_SUCCESS = "partial_success"


class AvailabilityStatus(StrEnum):
    AVAILABLE = "AVAILABLE"
    AVAILABLE_SUGGESTIONS = "AVAILABLE_SUGGESTIONS"
    UNAVAILABLE_SUGGESTIONS = "UNAVAILABLE_SUGGESTIONS"
    UNAVAILABLE = "UNAVAILABLE"
    BOOKED = "BOOKED"


class ErrorCode(StrEnum):
    BOOKING_FAILED = "BOOKING_FAILED"
    AVAILABILITY_CHECK_FAILED = "AVAILABILITY_CHECK_FAILED"
    INVALID_TIME_FORMAT = "INVALID_TIME_FORMAT"
    INVALID_TIME = "INVALID_TIME"
    NO_UPDATES = "NO_UPDATES"
    UPDATE_FAILED = "UPDATE_FAILED"
    DELETE_EVENT_FAILED = "DELETE_EVENT_FAILED"
    CALENDAR_EVENTS_ERROR = "CALENDAR_EVENTS_ERROR"


class ToolError(BaseModel):
    code: ErrorCode
    message: str


class ToolResponse(BaseModel):
    status: ToolStatus
    message: str
    data: dict[str, Any] = {}
    error: ToolError | None = None

    def to_payload(self) -> dict[str, Any]:
        """JSON-safe dict for the conversation history."""
        return self.model_dump(mode="json", exclude_none=True)


def failure(
    code: ErrorCode,
    message: str,
    *,
    data: dict[str, Any] | None = None,
    status: ToolStatus = ToolStatus.FAILURE,
) -> dict[str, Any]:
    """Shorthand for a failed ``ToolResponse`` payload."""
    return ToolResponse(
        status=status,
        message=message,
        data=data or {},
        error=ToolError(code=code, message=message),
    ).to_payload()
