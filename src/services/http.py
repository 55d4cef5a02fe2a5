"""Shared JSON-over-HTTP requester with retries and per-call timeouts.

Every outbound REST collaborator (calendar proxy, embeddings, vector index,
WhatsApp Graph API) goes through ``ApiRequester`` so retry policy, error
typing and metrics stay identical across them.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from src.services.metrics import metrics

logger = logging.getLogger(__name__)

# ── Retry configuration ─────────────────────────────────────────────
MAX_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 1.0
REQUEST_TIMEOUT_SECONDS = 15.0


class ApiError(Exception):
    """Raised when an upstream call fails (after retries where applicable)."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class ApiRequester:
    """Thin httpx wrapper: bearer auth, JSON bodies, exponential backoff.

    Timeouts, connection errors and 5xx responses are retried up to
    ``MAX_RETRIES`` times; 4xx responses raise immediately.  A 204 (or an
    empty body) yields ``None``.
    """

    def __init__(
        self,
        base_url: str,
        *,
        service: str,
        token: str | None = None,
        headers: dict[str, str] | None = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ):
        self._service = service
        default_headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if token:
            default_headers["Authorization"] = f"Bearer {token}"
        default_headers.update(headers or {})
        self._client = httpx.Client(
            base_url=base_url,
            headers=default_headers,
            timeout=timeout,
        )

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        """Execute an HTTP request with exponential-backoff retries."""
        operation = f"{method} {path}"
        last_error: Exception | None = None
        for attempt in range(1, MAX_RETRIES + 1):
            t0 = time.perf_counter()
            try:
                response = self._client.request(
                    method,
                    path,
                    params=params,
                    json=json_body,
                )
                if response.status_code >= 500:
                    raise ApiError(
                        f"{self._service} server error {response.status_code}: {response.text}",
                        status_code=response.status_code,
                    )
                if response.status_code >= 400:
                    raise ApiError(
                        f"{self._service} client error {response.status_code}: {response.text}",
                        status_code=response.status_code,
                    )
                metrics.record_success(
                    self._service, operation, latency_ms=(time.perf_counter() - t0) * 1000,
                )
                if response.status_code == 204 or not response.content:
                    return None
                return response.json()

            except (httpx.TimeoutException, httpx.ConnectError) as exc:
                last_error = exc
                metrics.record_failure(
                    self._service, operation,
                    error_type=type(exc).__name__,
                    latency_ms=(time.perf_counter() - t0) * 1000,
                )
                logger.warning(
                    "%s attempt %d/%d failed (%s). Retrying in %.1fs…",
                    self._service,
                    attempt,
                    MAX_RETRIES,
                    type(exc).__name__,
                    INITIAL_BACKOFF_SECONDS * (2 ** (attempt - 1)),
                )
            except ApiError as exc:
                metrics.record_failure(
                    self._service, operation,
                    error_type=f"{exc.status_code}",
                    latency_ms=(time.perf_counter() - t0) * 1000,
                )
                if exc.status_code and exc.status_code >= 500:
                    last_error = exc
                    logger.warning(
                        "%s server error on attempt %d/%d. Retrying…",
                        self._service,
                        attempt,
                        MAX_RETRIES,
                    )
                else:
                    raise

            if attempt < MAX_RETRIES:
                time.sleep(INITIAL_BACKOFF_SECONDS * (2 ** (attempt - 1)))

        raise ApiError(
            f"{self._service} request failed after {MAX_RETRIES} attempts: {last_error}"
        )

    def get(self, path: str, **kwargs: Any) -> Any:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> Any:
        return self.request("POST", path, **kwargs)

    def patch(self, path: str, **kwargs: Any) -> Any:
        return self.request("PATCH", path, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> Any:
        return self.request("DELETE", path, **kwargs)

    def close(self) -> None:
        self._client.close()
