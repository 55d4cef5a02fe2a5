"""Tests for the CloudWatch metrics client."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from src.services.metrics import NAMESPACE, MetricsClient


def _client(*, enabled: bool = False) -> MetricsClient:
    with patch.dict("os.environ", {"METRICS_ENABLED": str(enabled).lower()}), \
            patch.object(MetricsClient, "_start_flush_thread"):
        return MetricsClient()


def _dims(point: dict) -> dict:
    return {d["Name"]: d["Value"] for d in point["Dimensions"]}


class TestRecording:
    def test_success_buffers_count_and_latency(self):
        client = _client()
        client.record_success("calendar", "GET /calendar/free-busy", latency_ms=42.0)
        names = [m["MetricName"] for m in client._buffer]
        assert names == ["Calls/Count", "Calls/Latency"]
        assert _dims(client._buffer[0]) == {"Service": "calendar", "Status": "success"}
        assert _dims(client._buffer[1])["Operation"] == "GET /calendar/free-busy"

    def test_failure_without_latency(self):
        client = _client()
        client.record_failure("llm", "generate", error_type="TimeoutError")
        names = [m["MetricName"] for m in client._buffer]
        assert names == ["Calls/Count", "Calls/Errors"]
        assert _dims(client._buffer[1])["ErrorType"] == "TimeoutError"

    def test_failure_with_latency(self):
        client = _client()
        client.record_failure("tool", "delete_event", error_type="ApiError", latency_ms=9.5)
        assert len(client._buffer) == 3
        assert client._buffer[2]["Unit"] == "Milliseconds"


class TestTimed:
    def test_records_success(self):
        client = _client()
        with client.timed("search", "embed"):
            pass
        assert _dims(client._buffer[0])["Status"] == "success"

    def test_records_and_reraises_failure(self):
        client = _client()
        with pytest.raises(KeyError):
            with client.timed("search", "query"):
                raise KeyError("matches")
        assert _dims(client._buffer[0])["Status"] == "failure"
        assert _dims(client._buffer[1])["ErrorType"] == "KeyError"


class TestFlush:
    def test_disabled_sends_nothing_but_clears(self):
        client = _client()
        client.record_success("whatsapp", "POST /messages", latency_ms=1.0)
        assert client.flush() == 0
        assert client._buffer == []

    def test_enabled_pushes_to_cloudwatch(self):
        client = _client(enabled=True)
        cw = MagicMock()
        client._cw_client = cw
        client.record_success("whatsapp", "POST /messages", latency_ms=1.0)

        assert client.flush() == 2
        kwargs = cw.put_metric_data.call_args.kwargs
        assert kwargs["Namespace"] == NAMESPACE == "ClinicConcierge"
        assert len(kwargs["MetricData"]) == 2

    def test_cloudwatch_error_is_logged_not_raised(self):
        client = _client(enabled=True)
        cw = MagicMock()
        cw.put_metric_data.side_effect = RuntimeError("throttled")
        client._cw_client = cw
        client.record_success("llm", "generate", latency_ms=1.0)
        assert client.flush() == 0

    def test_empty_buffer(self):
        assert _client(enabled=True).flush() == 0
