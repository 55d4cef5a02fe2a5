"""Tests for the in-memory LRU cache."""

from __future__ import annotations

from src.services.cache import DEFAULT_MAX_BYTES, LRUCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


# ── Core operations ──────────────────────────────────────────────────


class TestBasics:
    def test_put_and_get(self):
        cache = LRUCache()
        cache.put("conversation:a", {"history": []})
        assert cache.get("conversation:a") == {"history": []}

    def test_missing_key(self):
        assert LRUCache().get("nope") is None

    def test_overwrite_keeps_single_entry(self):
        cache = LRUCache()
        cache.put("k", "short")
        size = cache.current_bytes
        cache.put("k", "a good deal longer")
        assert cache.entry_count == 1
        assert cache.current_bytes > size

    def test_invalidate(self):
        cache = LRUCache()
        cache.put("k", "v")
        assert cache.invalidate("k") is True
        assert cache.invalidate("k") is False
        assert cache.current_bytes == 0

    def test_clear(self):
        cache = LRUCache()
        cache.put("a", 1)
        cache.put("b", 2)
        cache.clear()
        assert (cache.entry_count, cache.current_bytes) == (0, 0)

    def test_default_limit(self):
        assert LRUCache()._max_bytes == DEFAULT_MAX_BYTES == 20 * 1024 * 1024


# ── Eviction ────────────────────────────────────────────────────────


class TestEviction:
    def test_evicts_least_recently_used(self):
        # '"aaa"' is 5 bytes, so two entries fill the cache.
        cache = LRUCache(max_bytes=10)
        cache.put("a", "aaa")
        cache.put("b", "bbb")
        cache.get("a")
        cache.put("c", "ccc")
        assert cache.get("a") == "aaa"
        assert cache.get("b") is None

    def test_oversized_value_is_skipped(self):
        cache = LRUCache(max_bytes=10)
        cache.put("huge", "x" * 100)
        assert cache.entry_count == 0

    def test_oversized_overwrite_drops_stale_value(self):
        cache = LRUCache(max_bytes=10)
        cache.put("conversation:a", "old")
        cache.put("conversation:a", "x" * 100)
        assert cache.get("conversation:a") is None
        assert cache.current_bytes == 0


# ── Expiry and claims ───────────────────────────────────────────────


class TestTtl:
    def test_entry_expires(self):
        clock = FakeClock()
        cache = LRUCache(ttl_seconds=60, clock=clock)
        cache.put("k", "v")
        clock.now += 59
        assert cache.has("k")
        clock.now += 1
        assert cache.get("k") is None
        assert cache.entry_count == 0

    def test_no_ttl_never_expires(self):
        clock = FakeClock()
        cache = LRUCache(clock=clock)
        cache.put("k", "v")
        clock.now += 10**9
        assert cache.get("k") == "v"


class TestPutIfAbsent:
    def test_first_claim_wins(self):
        cache = LRUCache()
        assert cache.put_if_absent("message:1", "processing") is True
        assert cache.put_if_absent("message:1", "processing") is False
        assert cache.get("message:1") == "processing"

    def test_expired_entry_can_be_claimed_again(self):
        clock = FakeClock()
        cache = LRUCache(ttl_seconds=5, clock=clock)
        cache.put_if_absent("message:1", "completed")
        clock.now += 5
        assert cache.put_if_absent("message:1", "processing") is True
