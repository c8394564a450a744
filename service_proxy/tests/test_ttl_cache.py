"""
Unit tests for TTLCache.
"""

from service_proxy.app.caching.ttl_cache import MISSING, TTLCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestTTLCache:
    """Test cases for TTLCache."""

    def test_get_missing_key_returns_sentinel(self):
        cache = TTLCache(60, clock=FakeClock())
        assert cache.get("nope") is MISSING
        assert cache.get("nope", None) is None
        assert cache.misses == 2

    def test_value_is_served_until_ttl_elapses(self):
        clock = FakeClock()
        cache = TTLCache(60, clock=clock)
        cache.set("app", "value")

        clock.advance(59)
        assert cache.get("app") == "value"

        clock.advance(1)
        assert cache.get("app") is MISSING
        assert "app" not in cache

    def test_none_is_a_cacheable_value(self):
        cache = TTLCache(60, clock=FakeClock())
        cache.set("app", None)
        assert cache.get("app") is None
        assert "app" in cache

    def test_per_entry_ttl_overrides_default(self):
        clock = FakeClock()
        cache = TTLCache(60, clock=clock)
        cache.set("short", 1, ttl=5)
        cache.set("long", 2)

        clock.advance(10)
        assert cache.get("short") is MISSING
        assert cache.get("long") == 2

    def test_delete(self):
        cache = TTLCache(60, clock=FakeClock())
        cache.set("app", 1)
        assert cache.delete("app") is True
        assert cache.delete("app") is False
        assert cache.get("app") is MISSING

    def test_set_purges_expired_entries(self):
        clock = FakeClock()
        cache = TTLCache(10, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)

        clock.advance(11)
        cache.set("c", 3)
        assert len(cache) == 1

    def test_clear_and_stats(self):
        cache = TTLCache(60, clock=FakeClock())
        cache.set("a", 1)
        cache.get("a")
        cache.get("b")

        assert cache.stats() == {"keys": 1, "hits": 1, "misses": 1}
        cache.clear()
        assert len(cache) == 0
