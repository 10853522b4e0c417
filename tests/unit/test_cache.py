"""Tests for cache.py -- LRU eviction, TTL expiry and thread safety."""

import threading

import pytest

from deckmerge.cache import LRUCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestLRUCache:
    def test_get_set(self):
        cache: LRUCache[str, int] = LRUCache(2)
        cache.set("a", 1)
        assert cache.get("a") == 1
        assert cache.get("missing") is None
        assert cache.get("missing", 7) == 7

    def test_evicts_least_recently_used(self):
        cache: LRUCache[str, int] = LRUCache(2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)
        assert "b" not in cache
        assert cache.keys() == ["a", "c"]

    def test_overwrite_refreshes_position(self):
        cache: LRUCache[str, int] = LRUCache(2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)
        cache.set("c", 3)
        assert cache.get("a") == 10
        assert "b" not in cache

    def test_delete_and_clear(self):
        cache: LRUCache[str, int] = LRUCache(3)
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.delete("a") is True
        assert cache.delete("a") is False
        cache.clear()
        assert len(cache) == 0

    def test_ttl_expiry(self):
        clock = FakeClock()
        cache: LRUCache[str, int] = LRUCache(4, ttl_seconds=10, clock=clock)
        cache.set("a", 1)
        clock.now = 9.9
        assert cache.get("a") == 1
        clock.now = 10.0
        assert cache.get("a") is None
        assert "a" not in cache

    def test_expired_entries_not_counted(self):
        clock = FakeClock()
        cache: LRUCache[str, int] = LRUCache(4, ttl_seconds=5, clock=clock)
        cache.set("old", 1)
        clock.now = 3
        cache.set("new", 2)
        clock.now = 6
        assert cache.keys() == ["new"]
        assert len(cache) == 1

    @pytest.mark.parametrize(("capacity", "ttl"), [(0, None), (-1, None), (1, 0), (1, -5)])
    def test_invalid_arguments(self, capacity, ttl):
        with pytest.raises(ValueError):
            LRUCache(capacity, ttl_seconds=ttl)

    def test_concurrent_writers_respect_capacity(self):
        cache: LRUCache[int, int] = LRUCache(50)

        def writer(offset: int) -> None:
            for i in range(200):
                cache.set(offset * 1000 + i, i)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(cache) == 50
