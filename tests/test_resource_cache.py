"""Tests for the endpoint response cache."""

import json
from typing import List
from unittest.mock import AsyncMock

import pytest

from ontrack.application.cache import CacheEntry, CacheStatistics, ResourceCache
from ontrack.domain.exceptions import StorageError
from ontrack.enums import CacheFamily
from ontrack.infrastructure.storage import DurableStore

NOW = 1_700_000_000_000


class FakeClock:
    def __init__(self, now: int = NOW):
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(store: DurableStore, clock: FakeClock) -> ResourceCache:
    cache = ResourceCache(store, CacheFamily.DASHBOARD, freshness_ms=300_000, clock=clock)
    cache.init()
    return cache


class TestCacheEntry:
    def test_staleness_boundary(self) -> None:
        entry = CacheEntry(data=1, timestamp=NOW)
        assert not entry.is_stale(300_000, NOW + 299_999)
        assert entry.is_stale(300_000, NOW + 300_000)

    def test_entry_five_minutes_and_a_second_old_is_stale(self) -> None:
        entry = CacheEntry(data={"total": 42}, timestamp=NOW - 301_000)
        assert entry.is_stale(300_000, NOW)

    @pytest.mark.parametrize(
        "raw",
        [None, [], {"timestamp": NOW}, {"data": 1}, {"data": 1, "timestamp": "x"}],
    )
    def test_malformed_entries_are_rejected(self, raw: object) -> None:
        assert CacheEntry.from_dict(raw) is None


class TestCacheStatistics:
    def test_hit_rate(self) -> None:
        stats = CacheStatistics()
        stats.record_hit()
        stats.record_hit()
        stats.record_stale()
        stats.record_miss()

        assert stats.hit_rate == 0.5
        assert stats.get_stats()["stale_hits"] == 1

        stats.reset()
        assert stats.get_stats()["hits"] == 0


class TestResourceCache:
    """Test cases for ResourceCache."""

    @pytest.mark.anyio
    async def test_put_then_fresh_lookup(
        self, cache: ResourceCache, store: DurableStore
    ) -> None:
        await cache.put("/cohorts/total", {"total": 5})

        entry, fresh = cache.lookup("/cohorts/total")

        assert fresh
        assert entry.data == {"total": 5}
        assert entry.timestamp == NOW
        assert json.loads(store.get_item("dashboardCache")) == {
            "/cohorts/total": {"data": {"total": 5}, "timestamp": NOW}
        }

    @pytest.mark.anyio
    async def test_entries_go_stale_but_are_kept(
        self, cache: ResourceCache, clock: FakeClock
    ) -> None:
        await cache.put("/cohorts/total", {"total": 5})
        clock.now += 301_000

        entry, fresh = cache.lookup("/cohorts/total")

        assert not fresh
        assert entry.data == {"total": 5}
        assert cache.get_fresh("/cohorts/total") is None
        assert cache.statistics.stale_hits == 2

    @pytest.mark.anyio
    async def test_writes_merge_with_entries_from_other_writers(
        self, store: DurableStore, clock: FakeClock
    ) -> None:
        first = ResourceCache(store, CacheFamily.DASHBOARD, clock=clock)
        second = ResourceCache(store, CacheFamily.DASHBOARD, clock=clock)
        first.init()
        second.init()

        await first.put("/a", 1)
        await second.put("/b", 2)

        stored = json.loads(store.get_item("dashboardCache"))
        assert set(stored) == {"/a", "/b"}
        assert second.get("/a").data == 1

    @pytest.mark.anyio
    async def test_write_picks_up_newer_entries_of_held_keys(
        self, store: DurableStore, clock: FakeClock
    ) -> None:
        first = ResourceCache(store, CacheFamily.DASHBOARD, clock=clock)
        second = ResourceCache(store, CacheFamily.DASHBOARD, clock=clock)
        first.init()
        second.init()
        await first.put("/a", "old")
        await second.put("/b", 2)

        clock.now += 60_000
        await first.put("/a", "new")
        clock.now += 1_000
        await second.put("/c", 3)

        assert second.get("/a") == CacheEntry(data="new", timestamp=NOW + 60_000)

    @pytest.mark.anyio
    async def test_write_keeps_held_entry_newer_than_stored(
        self, store: DurableStore, clock: FakeClock
    ) -> None:
        cache = ResourceCache(store, CacheFamily.DASHBOARD, clock=clock)
        cache.init()
        await cache.put("/a", "current")
        store.set_item(
            "dashboardCache",
            json.dumps({"/a": {"data": "older", "timestamp": NOW - 1_000}}),
        )

        await cache.put("/b", 2)

        assert cache.get("/a").data == "current"

    @pytest.mark.anyio
    async def test_families_use_separate_keys(
        self, store: DurableStore, clock: FakeClock
    ) -> None:
        dashboard = ResourceCache(store, CacheFamily.DASHBOARD, clock=clock)
        public = ResourceCache(store, CacheFamily.PUBLIC, clock=clock)

        await dashboard.put("/x", "private")
        await public.put("/x", "public")

        assert json.loads(store.get_item("dashboardCache"))["/x"]["data"] == "private"
        assert json.loads(store.get_item("publicApiCache"))["/x"]["data"] == "public"

    def test_init_loads_persisted_entries(
        self, store: DurableStore, clock: FakeClock
    ) -> None:
        store.set_item(
            "publicApiCache",
            json.dumps(
                {
                    "/assessments/total": {"data": {"total": 3}, "timestamp": NOW},
                    "/broken": {"nope": True},
                }
            ),
        )
        cache = ResourceCache(store, CacheFamily.PUBLIC, clock=clock)

        cache.init()

        assert cache.keys() == ["/assessments/total"]

    def test_unreadable_mapping_is_ignored(
        self, store: DurableStore, clock: FakeClock
    ) -> None:
        store.set_item("dashboardCache", "not json")
        cache = ResourceCache(store, CacheFamily.DASHBOARD, clock=clock)

        cache.init()

        assert cache.keys() == []

    @pytest.mark.anyio
    async def test_persist_failure_keeps_memory_entry(
        self, store: DurableStore, clock: FakeClock
    ) -> None:
        store.flush = AsyncMock(side_effect=StorageError("disk full"))
        cache = ResourceCache(store, CacheFamily.DASHBOARD, clock=clock)

        entry = await cache.put("/x", 1)

        assert cache.get("/x") is entry
        assert cache.statistics.persist_failures == 1

    @pytest.mark.anyio
    async def test_invalidate_and_clear(
        self, cache: ResourceCache, store: DurableStore
    ) -> None:
        await cache.put("/a", 1)
        await cache.put("/b", 2)

        cache.invalidate("/a")
        assert cache.keys() == ["/b"]
        assert set(json.loads(store.get_item("dashboardCache"))) == {"/b"}

        cache.clear()
        assert cache.keys() == []
        assert store.get_item("dashboardCache") is None

    def test_lookup_miss_is_counted(self, cache: ResourceCache) -> None:
        entry, fresh = cache.lookup("/missing")

        assert entry is None
        assert not fresh
        assert cache.statistics.misses == 1

    @pytest.mark.anyio
    async def test_timestamps_follow_clock(
        self, cache: ResourceCache, clock: FakeClock
    ) -> None:
        timestamps: List[int] = []
        for step in range(3):
            clock.now = NOW + step * 1000
            timestamps.append((await cache.put("/x", step)).timestamp)

        assert timestamps == [NOW, NOW + 1000, NOW + 2000]
