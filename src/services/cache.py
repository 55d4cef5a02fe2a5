"""Thread-safe in-memory LRU cache with a byte ceiling and optional TTL.

Backs the conversation store (serialised histories keyed by conversation
id) and the processed-message store used for webhook idempotency.

• **OrderedDict** for O(1) LRU eviction and promotion.
• **Size tracking** via ``json.dumps`` byte length.
• **threading.Lock** around every mutation; FastAPI background tasks and
  request handlers share one instance.
• Entries past their TTL behave as missing and are dropped on access.
• Purely ephemeral, data is lost on process restart.

>>> cache = LRUCache(max_bytes=20 * 1024 * 1024, ttl_seconds=3600)
>>> cache.put_if_absent("message:wamid.123", "processing")
True
>>> cache.put_if_absent("message:wamid.123", "processing")
False
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 20 * 1024 * 1024


class LRUCache:
    """Least-Recently-Used cache bounded by total estimated byte size."""

    def __init__(
        self,
        max_bytes: int = DEFAULT_MAX_BYTES,
        *,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_bytes = max_bytes
        self._ttl = ttl_seconds
        self._clock = clock
        self._current_bytes = 0
        # key → (value, estimated_size_bytes, expires_at | None)
        self._store: OrderedDict[str, tuple[Any, int, float | None]] = OrderedDict()
        self._lock = threading.Lock()

    # ── Size estimation ──────────────────────────────────────────────

    @staticmethod
    def _estimate_bytes(value: Any) -> int:
        try:
            return len(json.dumps(value, default=str).encode("utf-8"))
        except (TypeError, ValueError, OverflowError):
            return len(str(value).encode("utf-8"))

    # ── Internal (caller holds the lock) ─────────────────────────────

    def _pop(self, key: str) -> None:
        _, size, _ = self._store.pop(key)
        self._current_bytes -= size

    def _live(self, key: str) -> bool:
        entry = self._store.get(key)
        if entry is None:
            return False
        expires_at = entry[2]
        if expires_at is not None and self._clock() >= expires_at:
            self._pop(key)
            logger.debug("Cache: expired %s", key)
            return False
        return True

    def _insert(self, key: str, value: Any, size: int) -> None:
        if key in self._store:
            self._pop(key)
        while self._current_bytes + size > self._max_bytes and self._store:
            evicted_key, (_, evicted_size, _) = self._store.popitem(last=False)
            self._current_bytes -= evicted_size
            logger.debug("Cache: evicted %s (%d bytes)", evicted_key, evicted_size)
        expires_at = self._clock() + self._ttl if self._ttl is not None else None
        self._store[key] = (value, size, expires_at)
        self._current_bytes += size

    # ── Core operations ──────────────────────────────────────────────

    def get(self, key: str) -> Any | None:
        """Return the cached value (promoting it to MRU) or ``None``."""
        with self._lock:
            if not self._live(key):
                return None
            self._store.move_to_end(key)
            return self._store[key][0]

    def put(self, key: str, value: Any) -> None:
        """Insert or overwrite *key*.  Evicts LRU entries if needed.

        A value larger than the whole cache is not stored, and any previous
        value for *key* is removed.
        """
        size = self._estimate_bytes(value)
        if size > self._max_bytes:
            logger.warning(
                "Cache: dropping key %s (size %d > max %d)",
                key, size, self._max_bytes,
            )
            self.invalidate(key)
            return
        with self._lock:
            self._insert(key, value, size)

    def put_if_absent(self, key: str, value: Any) -> bool:
        """Atomically insert *key* unless a live entry exists.

        Returns ``True`` when this call stored the value.
        """
        size = self._estimate_bytes(value)
        with self._lock:
            if self._live(key):
                return False
            self._insert(key, value, size)
            return True

    def invalidate(self, key: str) -> bool:
        """Remove a single key.  Returns ``True`` if the key existed."""
        with self._lock:
            if key in self._store:
                self._pop(key)
                return True
            return False

    def clear(self) -> None:
        """Drop all entries."""
        with self._lock:
            self._store.clear()
            self._current_bytes = 0

    # ── Introspection ────────────────────────────────────────────────

    @property
    def current_bytes(self) -> int:
        return self._current_bytes

    @property
    def entry_count(self) -> int:
        return len(self._store)

    def has(self, key: str) -> bool:
        """Check if a live key is present *without* promoting it."""
        with self._lock:
            return self._live(key)
