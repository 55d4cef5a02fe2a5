"""CloudWatch custom metrics emitter with background batching.

Every outbound dependency call (language model, calendar proxy, search,
WhatsApp) and every tool execution reports count, latency and errors.

* Data points are buffered in memory under a lock.
* A daemon thread flushes the buffer every ``FLUSH_INTERVAL_SECONDS``.
* Unless ``METRICS_ENABLED=true`` nothing is pushed; points are only
  debug-logged.
* One ``put_metric_data`` call carries at most 1 000 data points.

>>> from src.services.metrics import metrics
>>> with metrics.timed("calendar", "GET /calendar/free-busy"):
...     ...
"""

from __future__ import annotations

import atexit
import logging
import os
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

NAMESPACE = "ClinicConcierge"
FLUSH_INTERVAL_SECONDS = 60
MAX_BATCH_SIZE = 1_000


class MetricsClient:
    """Batched CloudWatch metrics publisher."""

    def __init__(self) -> None:
        self._enabled = os.getenv("METRICS_ENABLED", "false").lower() == "true"
        self._buffer: list[dict[str, Any]] = []
        self._lock = threading.Lock()
        self._cw_client = None

        if self._enabled:
            self._start_flush_thread()

    def _get_cw_client(self):
        if self._cw_client is None:
            import boto3

            self._cw_client = boto3.client("cloudwatch")
        return self._cw_client

    # ── Public API ────────────────────────────────────────────────────

    def record_success(self, service: str, operation: str, latency_ms: float) -> None:
        """Record a successful call."""
        now = datetime.now(UTC)
        service_dim = {"Name": "Service", "Value": service}
        self._append(self._point(
            "Calls/Count", [service_dim, {"Name": "Status", "Value": "success"}], now, 1, "Count",
        ))
        self._append(self._point(
            "Calls/Latency",
            [service_dim, {"Name": "Operation", "Value": operation}],
            now, latency_ms, "Milliseconds",
        ))
        logger.debug("Metric: %s %s success latency=%.1fms", service, operation, latency_ms)

    def record_failure(
        self,
        service: str,
        operation: str,
        error_type: str,
        latency_ms: float = 0,
    ) -> None:
        """Record a failed call."""
        now = datetime.now(UTC)
        service_dim = {"Name": "Service", "Value": service}
        self._append(self._point(
            "Calls/Count", [service_dim, {"Name": "Status", "Value": "failure"}], now, 1, "Count",
        ))
        self._append(self._point(
            "Calls/Errors", [service_dim, {"Name": "ErrorType", "Value": error_type}], now, 1, "Count",
        ))
        if latency_ms > 0:
            self._append(self._point(
                "Calls/Latency",
                [service_dim, {"Name": "Operation", "Value": operation}],
                now, latency_ms, "Milliseconds",
            ))
        logger.debug(
            "Metric: %s %s failure error=%s latency=%.1fms",
            service, operation, error_type, latency_ms,
        )

    @contextmanager
    def timed(self, service: str, operation: str) -> Iterator[None]:
        """Record success or failure (with latency) around a block.

        Exceptions are recorded and re-raised.
        """
        t0 = time.perf_counter()
        try:
            yield
        except Exception as exc:
            self.record_failure(
                service, operation,
                error_type=type(exc).__name__,
                latency_ms=(time.perf_counter() - t0) * 1000,
            )
            raise
        self.record_success(service, operation, latency_ms=(time.perf_counter() - t0) * 1000)

    def flush(self) -> int:
        """Send buffered metrics to CloudWatch.  Returns count sent."""
        with self._lock:
            if not self._buffer:
                return 0
            batch = self._buffer[:]
            self._buffer.clear()

        if not self._enabled:
            logger.debug("Metrics flush skipped (not enabled): %d items", len(batch))
            return 0

        sent = 0
        try:
            cw = self._get_cw_client()
            for i in range(0, len(batch), MAX_BATCH_SIZE):
                chunk = batch[i : i + MAX_BATCH_SIZE]
                cw.put_metric_data(Namespace=NAMESPACE, MetricData=chunk)
                sent += len(chunk)
            logger.info("Flushed %d metrics to CloudWatch", sent)
        except Exception:
            logger.exception("Failed to flush metrics to CloudWatch")
        return sent

    # ── Internal ──────────────────────────────────────────────────────

    @staticmethod
    def _point(
        name: str,
        dimensions: list[dict[str, str]],
        timestamp: datetime,
        value: float,
        unit: str,
    ) -> dict[str, Any]:
        return {
            "MetricName": name,
            "Dimensions": dimensions,
            "Timestamp": timestamp,
            "Value": value,
            "Unit": unit,
        }

    def _append(self, metric_data: dict[str, Any]) -> None:
        with self._lock:
            self._buffer.append(metric_data)

    def _start_flush_thread(self) -> None:
        def _loop():
            while True:
                time.sleep(FLUSH_INTERVAL_SECONDS)
                try:
                    self.flush()
                except Exception:
                    logger.exception("Metrics flush thread error")

        t = threading.Thread(target=_loop, daemon=True, name="metrics-flush")
        t.start()
        atexit.register(self.flush)
        logger.info("Metrics flush thread started (interval=%ds)", FLUSH_INTERVAL_SECONDS)


# ── Module-level singleton ──────────────────────────────────────────
metrics = MetricsClient()
