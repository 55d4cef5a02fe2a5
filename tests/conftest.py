"""Shared test fixtures for the concierge test suite."""

from __future__ import annotations

import os
from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any imports, so config.py won't fail on module load.
    """
    os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key-123")
    os.environ.setdefault("CALENDAR_API_TOKEN", "test-calendar-token-456")
    os.environ.setdefault("SERVICES_FILE", "does-not-exist.json")


# Wednesday 14 October 2026, 18:00 UTC
FIXED_NOW = datetime(2026, 10, 14, 18, 0, tzinfo=UTC)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def descriptor():
    from src.services.directory import CalendarServiceDescriptor

    return CalendarServiceDescriptor(
        name="General Consultation",
        calendar_id="cal-general",
        open_hours="09:00",
        close_hours="17:00",
        duration_minutes=30,
        time_zone="UTC",
    )


@pytest.fixture
def directory(descriptor):
    from src.services.directory import ServiceDirectory

    return ServiceDirectory([descriptor])


@pytest.fixture
def calendar():
    """Mocked calendar collaborator; free/busy reports no busy time by default."""
    mock = MagicMock()
    mock.get_free_busy.return_value = {"calendars": {"cal-general": {"busy": []}}}
    mock.create_event.return_value = {"id": "evt-1", "htmlLink": "https://cal/evt-1"}
    mock.update_event.return_value = {"id": "evt-1"}
    mock.list_events.return_value = []
    return mock


@pytest.fixture
def madrid_context(calendar, search):
    """Tool context for a Europe/Madrid service (UTC+2 until 25 October 2026)."""
    from src.services.directory import CalendarServiceDescriptor, ServiceDirectory
    from src.tools.registry import ToolContext

    madrid = CalendarServiceDescriptor(
        name="Physiotherapy",
        calendar_id="cal-madrid",
        open_hours="09:00",
        close_hours="17:00",
        duration_minutes=30,
        time_zone="Europe/Madrid",
    )
    return ToolContext(
        directory=ServiceDirectory([madrid]),
        calendar=calendar,
        search=search,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def search():
    return MagicMock()


@pytest.fixture
def tool_context(directory, calendar, search):
    from src.tools.registry import ToolContext

    return ToolContext(
        directory=directory,
        calendar=calendar,
        search=search,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def mock_api_response():
    """Factory fixture for creating mock httpx responses."""

    def _make(data: dict | None, status_code: int = 200):
        mock = MagicMock()
        mock.status_code = status_code
        mock.json.return_value = data
        mock.text = str(data)
        mock.content = b"" if data is None else str(data).encode()
        return mock

    return _make
