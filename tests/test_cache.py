"""
test_cache.py — TTL cache freshness and lazy eviction.
"""

from conftest import FakeClock

from pulselens.core.cache import TTLCache


class TestTTLCache:
    def setup_method(self):
        self.clock = FakeClock()
        self.cache = TTLCache(ttl_seconds=30, clock=self.clock)

    def test_miss_returns_none(self):
        assert self.cache.get("global") is None

    def test_hit_within_ttl(self):
        self.cache.set("region:paris", {"n": 1})
        self.clock.advance(29.9)
        assert self.cache.get("region:paris") == {"n": 1}

    def test_stale_entry_is_deleted_on_lookup(self):
        self.cache.set("region:paris", {"n": 1})
        self.clock.advance(30)
        assert "region:paris" in self.cache  # nothing sweeps in the background
        assert self.cache.get("region:paris") is None
        assert "region:paris" not in self.cache

    def test_set_refreshes_timestamp(self):
        self.cache.set("global", 1)
        self.clock.advance(20)
        self.cache.set("global", 2)
        self.clock.advance(20)
        assert self.cache.get("global") == 2

    def test_clear(self):
        self.cache.set("a", 1)
        self.cache.set("b", 2)
        self.cache.clear()
        assert len(self.cache) == 0
