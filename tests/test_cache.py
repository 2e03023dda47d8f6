"""Tests for the in-memory cache."""

from datetime import UTC, datetime, timedelta

from mess_ledger.services.cache import InMemoryCache


def test_cache_expires_entries() -> None:
    now = datetime(2024, 3, 1, tzinfo=UTC)
    current = {"now": now}
    cache = InMemoryCache(clock=lambda: current["now"])

    cache.set("key", "value", ttl_seconds=10)
    assert cache.get("key") == "value"

    current["now"] = now + timedelta(seconds=10)
    assert cache.get("key") is None


def test_cache_delete() -> None:
    cache = InMemoryCache()
    cache.set("key", 1, ttl_seconds=60)

    cache.delete("key")
    cache.delete("missing")

    assert cache.get("key") is None
