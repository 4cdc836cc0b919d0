"""
Unit tests for the versioned read cache.
"""

import pytest
import fakeredis
from unittest.mock import AsyncMock, MagicMock

from service_opname.app.caching.versioned_cache import (
    KEY_PREFIX,
    VersionedReadCache,
    is_cacheable,
    normalize_query,
)
from service_opname.app.store import LocalVersionCounter
from shared.test_helpers import DummyMetrics, FakeClock


class CountingLoader:
    """Loader returning a fixed payload and counting live loads."""

    def __init__(self, payload):
        self.payload = payload
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return self.payload


class TestCacheHelpers:
    """Test cases for module-level helpers."""

    def test_normalize_query_drops_none_and_trims(self):
        assert normalize_query({"operator": " ani@gudang.id ", "filter": None}) == {"operator": "ani@gudang.id"}
        assert normalize_query(None) == {}

    def test_is_cacheable(self):
        assert is_cacheable({"success": True, "products": [{"sku": "SKU-001"}]})
        assert not is_cacheable({"success": True, "products": []})
        assert not is_cacheable({"success": False, "message": "Location not found"})
        assert not is_cacheable(None)


class TestVersionedReadCache:
    """Test cases for VersionedReadCache."""

    @pytest.fixture
    def redis_client(self):
        """In-process Redis."""
        return fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer())

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def version(self):
        return LocalVersionCounter()

    @pytest.fixture
    def metrics(self):
        return DummyMetrics()

    @pytest.fixture
    def cache(self, redis_client, version, clock, metrics):
        """Cache with a 30 second history TTL."""
        return VersionedReadCache(
            redis_client,
            version,
            ttls={"getHistory": 30},
            metrics=metrics,
            clock=clock,
        )

    def test_key_is_bounded_and_namespaced(self, cache):
        """Keys carry the operation name and a fixed-length digest."""
        key = cache.make_key("getHistory", 3, {"operator": "x" * 500})
        assert key.startswith(f"{KEY_PREFIX}:getHistory:")
        assert len(key) < 80

    def test_key_depends_on_version(self, cache):
        query = {"operator": "ani@gudang.id"}
        assert cache.make_key("getHistory", 1, query) != cache.make_key("getHistory", 2, query)
        assert cache.make_key("getHistory", 1, query) == cache.make_key("getHistory", 1, {"operator": "ani@gudang.id "})

    @pytest.mark.asyncio
    async def test_stores_sharing_redis_do_not_share_entries(self, redis_client, clock):
        """Two counters at the same version number read disjoint entries."""
        first = VersionedReadCache(redis_client, LocalVersionCounter(), clock=clock)
        second = VersionedReadCache(redis_client, LocalVersionCounter(), clock=clock)
        query = {"locationCode": "LOC-NEW"}

        await first.put("getProducts", query, 1, {"success": True, "products": [{"sku": "SKU-777"}]})

        assert first.make_key("getProducts", 1, query) != second.make_key("getProducts", 1, query)
        assert await first.get("getProducts", query, 1) is not None
        assert await second.get("getProducts", query, 1) is None

    @pytest.mark.asyncio
    async def test_read_through_miss_then_hit(self, cache, metrics):
        """Second read at the same version is served from Redis."""
        loader = CountingLoader({"success": True, "history": [{"rowId": "R-1"}]})

        first = await cache.read_through("getHistory", {"operator": "ani"}, loader)
        second = await cache.read_through("getHistory", {"operator": "ani"}, loader)

        assert first == second
        assert loader.calls == 1
        assert metrics.count("cache_misses_total", operation="getHistory") == 1
        assert metrics.count("cache_hits_total", operation="getHistory") == 1

    @pytest.mark.asyncio
    async def test_version_bump_makes_entries_unreachable(self, cache, version):
        loader = CountingLoader({"success": True, "history": [{"rowId": "R-1"}]})
        await cache.read_through("getHistory", {"operator": "ani"}, loader)

        await version.bump()
        loader.payload = {"success": True, "history": [{"rowId": "R-1"}, {"rowId": "R-2"}]}
        result = await cache.read_through("getHistory", {"operator": "ani"}, loader)

        assert loader.calls == 2
        assert len(result["history"]) == 2

    @pytest.mark.asyncio
    async def test_entry_expires_after_ttl(self, cache, clock):
        """TTL is enforced at read time against the entry's write time."""
        loader = CountingLoader({"success": True, "history": [{"rowId": "R-1"}]})
        await cache.read_through("getHistory", {"operator": "ani"}, loader)

        clock.advance(29)
        await cache.read_through("getHistory", {"operator": "ani"}, loader)
        assert loader.calls == 1

        clock.advance(2)
        await cache.read_through("getHistory", {"operator": "ani"}, loader)
        assert loader.calls == 2

    @pytest.mark.asyncio
    async def test_failed_and_empty_results_are_not_cached(self, cache):
        failed = CountingLoader({"success": False, "message": "Location not found"})
        await cache.read_through("getProducts", {"locationCode": "NOPE"}, failed)
        await cache.read_through("getProducts", {"locationCode": "NOPE"}, failed)
        assert failed.calls == 2

        empty = CountingLoader({"success": True, "products": []})
        await cache.read_through("searchProducts", {"query": "zz"}, empty)
        await cache.read_through("searchProducts", {"query": "zz"}, empty)
        assert empty.calls == 2

    @pytest.mark.asyncio
    async def test_corrupt_entry_is_a_miss(self, cache, redis_client):
        await redis_client.set(cache.make_key("getHistory", 0, {"operator": "ani"}), "not-json")

        assert await cache.get("getHistory", {"operator": "ani"}, 0) is None

    @pytest.mark.asyncio
    async def test_storage_errors_degrade_to_live_reads(self, version, clock):
        """A failing Redis never fails the read."""
        broken = MagicMock()
        broken.get = AsyncMock(side_effect=ConnectionError("redis down"))
        broken.setex = AsyncMock(side_effect=ConnectionError("redis down"))
        cache = VersionedReadCache(broken, version, clock=clock)
        loader = CountingLoader({"success": True, "products": [{"sku": "SKU-001"}]})

        result = await cache.read_through("getProducts", {"locationCode": "RAK-A1"}, loader)

        assert result == loader.payload
        assert loader.calls == 1
        assert await cache.put("getProducts", {}, 0, loader.payload) is False

    @pytest.mark.asyncio
    async def test_version_read_failure_bypasses_cache(self, redis_client, clock):
        version = MagicMock()
        version.current = AsyncMock(side_effect=ConnectionError("redis down"))
        cache = VersionedReadCache(redis_client, version, clock=clock)
        loader = CountingLoader({"success": True, "products": [{"sku": "SKU-001"}]})

        await cache.read_through("getProducts", {"locationCode": "RAK-A1"}, loader)
        await cache.read_through("getProducts", {"locationCode": "RAK-A1"}, loader)

        assert loader.calls == 2

    @pytest.mark.asyncio
    async def test_disabled_cache_always_loads(self, version):
        cache = VersionedReadCache(None, version)
        loader = CountingLoader({"success": True, "products": [{"sku": "SKU-001"}]})

        await cache.read_through("getProducts", None, loader)
        await cache.read_through("getProducts", None, loader)

        assert not cache.enabled
        assert loader.calls == 2
        assert await cache.clear() == 0

    @pytest.mark.asyncio
    async def test_clear_spares_version_and_other_operations(self, redis_client, clock):
        version = LocalVersionCounter()
        await version.bump()
        cache = VersionedReadCache(redis_client, version, clock=clock)

        await cache.put("getHistory", {"operator": "ani"}, 1, {"success": True, "history": [{"rowId": "R-1"}]})
        await cache.put("searchProducts", {"query": "in"}, 1, {"success": True, "products": [{"sku": "SKU-001"}]})

        assert await cache.clear("getHistory") == 1
        assert await cache.get("searchProducts", {"query": "in"}, 1) is not None
        assert await cache.clear() == 1
        assert await version.current() == 1
