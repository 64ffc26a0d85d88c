"""Tests for the profile caches."""

import asyncio
import json

from conftest import FakeClock
from col_profiles.cache import (
    PROFILE_CACHE_TTL_SECONDS,
    DiskCache,
    MemoryCache,
    make_profile_cache_key,
)


def test_profile_cache_key():
    assert make_profile_cache_key("abc123") == "col:elevation:abc123"


def test_profile_ttl_is_one_week():
    assert PROFILE_CACHE_TTL_SECONDS == 604800


class TestMemoryCache:
    def test_get_set(self):
        cache = MemoryCache()
        asyncio.run(cache.set("k", {"a": 1}))
        assert asyncio.run(cache.get("k")) == {"a": 1}
        assert asyncio.run(cache.get("missing")) is None

    def test_ttl_expiry(self):
        clock = FakeClock(start=100.0)
        cache = MemoryCache(clock=clock)
        asyncio.run(cache.set("k", "v", ttl_seconds=10))
        clock.now = 109.0
        assert asyncio.run(cache.get("k")) == "v"
        clock.now = 110.0
        assert asyncio.run(cache.get("k")) is None
        assert cache.stats()["size"] == 0

    def test_no_ttl_never_expires(self):
        clock = FakeClock()
        cache = MemoryCache(clock=clock)
        asyncio.run(cache.set("k", "v"))
        clock.now = 10**9
        assert asyncio.run(cache.get("k")) == "v"

    def test_evicts_oldest_over_max_size(self):
        clock = FakeClock()
        cache = MemoryCache(max_size=2, clock=clock)
        for i, key in enumerate(["a", "b", "c"]):
            clock.now = float(i)
            asyncio.run(cache.set(key, i))
        assert asyncio.run(cache.get("a")) is None
        assert asyncio.run(cache.get("c")) == 2

    def test_stats_and_clear(self):
        cache = MemoryCache()
        asyncio.run(cache.set("k", 1))
        asyncio.run(cache.get("k"))
        asyncio.run(cache.get("x"))
        stats = cache.stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == "50.0%"
        assert cache.clear() == 1
        assert cache.stats()["size"] == 0


class TestDiskCache:
    def test_round_trip(self, tmp_path):
        cache = DiskCache(tmp_path / "cache")
        asyncio.run(cache.set("col:elevation:1", {"points": [1, 2, 3]}, ttl_seconds=60))
        assert asyncio.run(cache.get("col:elevation:1")) == {"points": [1, 2, 3]}

    def test_survives_new_instance(self, tmp_path):
        asyncio.run(DiskCache(tmp_path).set("k", [1, 2]))
        assert asyncio.run(DiskCache(tmp_path).get("k")) == [1, 2]

    def test_expired_entry_is_removed(self, tmp_path):
        clock = FakeClock(start=1000.0)
        cache = DiskCache(tmp_path, clock=clock)
        asyncio.run(cache.set("k", "v", ttl_seconds=5))
        clock.now = 1005.0
        assert asyncio.run(cache.get("k")) is None
        assert list(tmp_path.glob("*.json")) == [tmp_path / "cache_index.json"]

    def test_corrupt_entry_is_a_miss(self, tmp_path):
        cache = DiskCache(tmp_path)
        asyncio.run(cache.set("k", "v"))
        entry = next(p for p in tmp_path.glob("*.json") if p.name != "cache_index.json")
        entry.write_text("{not json")
        assert asyncio.run(cache.get("k")) is None

    def test_corrupt_index_starts_empty(self, tmp_path):
        (tmp_path / "cache_index.json").write_text("garbage")
        cache = DiskCache(tmp_path)
        assert asyncio.run(cache.get("k")) is None
        asyncio.run(cache.set("k", 1))
        assert json.loads((tmp_path / "cache_index.json").read_text())

    def test_clear(self, tmp_path):
        cache = DiskCache(tmp_path)
        asyncio.run(cache.set("a", 1))
        asyncio.run(cache.set("b", 2))
        assert cache.clear() == 2
        assert list(tmp_path.iterdir()) == []
        assert cache.stats()["size"] == 0
