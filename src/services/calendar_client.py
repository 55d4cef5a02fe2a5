"""HTTP client for the calendar proxy service.

The proxy fronts the clinic's calendar provider and exposes a small REST
surface; every request carries the proxy's Bearer token.

    GET    /calendar/free-busy          free/busy for one calendar
    GET    /calendar/events             list events in a window
    POST   /calendar/events             create an event
    PATCH  /calendar/events/{id}        update an event
    DELETE /calendar/events/{id}        delete an event

Free/busy and event lists are never cached: availability changes in
real time.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from src.config import CALENDAR_API_TOKEN, CALENDAR_API_URL
from src.services.http import ApiRequester

logger = logging.getLogger(__name__)


class CalendarClient:
    """Calendar collaborator used by the availability and booking tools."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        *,
        requester: ApiRequester | None = None,
    ):
        self._http = requester or ApiRequester(
            base_url or CALENDAR_API_URL,
            service="calendar",
            token=token if token is not None else CALENDAR_API_TOKEN,
        )

    def get_free_busy(self, calendar_id: str, time_min: str, time_max: str) -> dict[str, Any]:
        """Return ``{"calendars": {<id>: {"busy": [{"start", "end"}, ...]}}}``.

        Args:
            calendar_id: External calendar identifier.
            time_min: ISO 8601 window start.
            time_max: ISO 8601 window end.
        """
        logger.debug("free/busy %s %s → %s", calendar_id, time_min, time_max)
        return self._http.get(
            "/calendar/free-busy",
            params={
                "timeMin": time_min,
                "timeMax": time_max,
                "items[0].id": calendar_id,
            },
        ) or {}

    def create_event(self, calendar_id: str, event: dict[str, Any]) -> dict[str, Any]:
        """Create an event and return the provider's event resource."""
        return self._http.post(
            "/calendar/events", json_body={**event, "calendarId": calendar_id},
        ) or {}

    def update_event(
        self, calendar_id: str, event_id: str, patch: dict[str, Any],
    ) -> dict[str, Any]:
        """Apply a partial update to an event."""
        return self._http.patch(
            f"/calendar/events/{event_id}",
            json_body={**patch, "calendarId": calendar_id},
        ) or {}

    def delete_event(self, calendar_id: str, event_id: str) -> None:
        self._http.delete(
            f"/calendar/events/{event_id}", params={"calendarId": calendar_id},
        )

    def list_events(
        self,
        calendar_id: str,
        time_min: str,
        time_max: str,
        max_results: int = 50,
    ) -> list[dict[str, Any]]:
        """List events whose start falls within the window, ordered by start."""
        data = self._http.get(
            "/calendar/events",
            params={
                "calendarId": calendar_id,
                "timeMin": time_min,
                "timeMax": time_max,
                "maxResults": max_results,
                "singleEvents": "true",
                "orderBy": "startTime",
            },
        ) or {}
        return data.get("items", [])


# ── Module-level singleton (thread-safe) ────────────────────────────
_client: CalendarClient | None = None
_client_lock = threading.Lock()


def get_calendar_client() -> CalendarClient:
    """Return a module-level CalendarClient singleton (double-checked locking)."""
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                _client = CalendarClient()
    return _client
