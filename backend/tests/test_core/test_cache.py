"""Tests for cache backends, key builders and TTL constants."""

import asyncio
import time
from unittest.mock import AsyncMock, patch

from depinsight.core.cache import (
    NEGATIVE_CACHE_MARKER,
    CacheKeys,
    CacheService,
    CacheTTL,
    InMemoryCache,
    create_cache,
)


class TestCacheTTLValues:
    """All TTL constants must be positive integers."""

    def test_all_ttls_positive(self):
        for attr in (
            "PACKUMENT",
            "INSTALL_SIZE",
            "DEPENDENCY_ANALYSIS",
            "DEPENDENCY_ANALYSIS_STALE",
            "NEGATIVE_RESULT",
        ):
            value = getattr(CacheTTL, attr)
            assert isinstance(value, int), attr
            assert value > 0, attr

    def test_install_size_is_multi_hour(self):
        assert CacheTTL.INSTALL_SIZE >= 2 * 3600

    def test_negative_result_shorter_than_packument(self):
        assert CacheTTL.NEGATIVE_RESULT < CacheTTL.PACKUMENT


class TestCacheKeys:
    def test_packument_key(self):
        assert CacheKeys.packument("@scope/pkg") == "packument:@scope/pkg"

    def test_install_size_key(self):
        assert CacheKeys.install_size("lodash", "4.17.21") == "install-size:lodash@4.17.21"

    def test_dependency_analysis_key_is_versioned(self):
        key = CacheKeys.dependency_analysis("lodash", "4.17.21")
        assert key == "dependency-analysis:v2:lodash@4.17.21"

    def test_dependency_analysis_key_follows_version_constant(self):
        with patch.object(CacheKeys, "DEPENDENCY_ANALYSIS_VERSION", "v3"):
            assert CacheKeys.dependency_analysis("a", "1.0.0").startswith("dependency-analysis:v3:")


class TestInMemoryCache:
    def test_set_and_get(self):
        cache = InMemoryCache()

        async def run():
            await cache.set("k", {"a": 1}, 60)
            return await cache.get("k")

        assert asyncio.run(run()) == {"a": 1}

    def test_missing_key_returns_none(self):
        assert asyncio.run(InMemoryCache().get("nope")) is None

    def test_expired_entry_is_dropped(self):
        cache = InMemoryCache()

        async def run():
            await cache.set("k", "v", 60)
            with patch("depinsight.core.cache.time.time", return_value=time.time() + 61):
                return await cache.get("k")

        assert asyncio.run(run()) is None
        assert len(cache) == 0

    def test_lru_eviction(self):
        cache = InMemoryCache(max_entries=2)

        async def run():
            await cache.set("a", 1, 60)
            await cache.set("b", 2, 60)
            await cache.get("a")  # a is now most recently used
            await cache.set("c", 3, 60)
            return await cache.get("a"), await cache.get("b"), await cache.get("c")

        assert asyncio.run(run()) == (1, None, 3)
        assert len(cache) == 2

    def test_delete(self):
        cache = InMemoryCache()

        async def run():
            await cache.set("k", "v", 60)
            deleted = await cache.delete("k")
            return deleted, await cache.get("k"), await cache.delete("k")

        assert asyncio.run(run()) == (True, None, False)

    def test_health_check_reports_hit_rate(self):
        cache = InMemoryCache()

        async def run():
            await cache.set("k", "v", 60)
            await cache.get("k")
            await cache.get("missing")
            return await cache.health_check()

        health = asyncio.run(run())
        assert health["status"] == "healthy"
        assert health["backend"] == "memory"
        assert health["hit_rate"] == 50.0


class TestGetOrFetch:
    def test_fetches_once_then_serves_cache(self):
        cache = InMemoryCache()
        fetch = AsyncMock(return_value={"v": 1})

        async def run():
            first = await cache.get_or_fetch("k", fetch, ttl_seconds=60)
            second = await cache.get_or_fetch("k", fetch, ttl_seconds=60)
            return first, second

        assert asyncio.run(run()) == ({"v": 1}, {"v": 1})
        fetch.assert_awaited_once()

    def test_none_result_is_not_cached(self):
        cache = InMemoryCache()
        fetch = AsyncMock(return_value=None)

        async def run():
            await cache.get_or_fetch("k", fetch, ttl_seconds=60)
            await cache.get_or_fetch("k", fetch, ttl_seconds=60)

        asyncio.run(run())
        assert fetch.await_count == 2

    def test_fetch_errors_propagate(self):
        cache = InMemoryCache()
        fetch = AsyncMock(side_effect=RuntimeError("boom"))

        async def run():
            await cache.get_or_fetch("k", fetch, ttl_seconds=60)

        try:
            asyncio.run(run())
        except RuntimeError as e:
            assert str(e) == "boom"
        else:
            raise AssertionError("expected RuntimeError")


class TestStaleWhileRevalidate:
    def test_fresh_entry_is_served_without_refresh(self):
        cache = InMemoryCache()
        fetch = AsyncMock(side_effect=[{"v": 1}, {"v": 2}])

        async def run():
            first = await cache.get_or_fetch("k", fetch, ttl_seconds=60, stale_ttl_seconds=600)
            second = await cache.get_or_fetch("k", fetch, ttl_seconds=60, stale_ttl_seconds=600)
            return first, second

        assert asyncio.run(run()) == ({"v": 1}, {"v": 1})
        assert fetch.await_count == 1

    def test_stale_entry_served_and_refreshed_in_background(self):
        cache = InMemoryCache()
        fetch = AsyncMock(side_effect=[{"v": 1}, {"v": 2}])
        later = time.time() + 120

        async def run():
            await cache.get_or_fetch("k", fetch, ttl_seconds=60, stale_ttl_seconds=600)
            with patch("depinsight.core.cache.time.time", return_value=later):
                stale = await cache.get_or_fetch(
                    "k", fetch, ttl_seconds=60, stale_ttl_seconds=600
                )
                # Let the background refresh run
                await asyncio.gather(*list(cache._background_tasks))
                fresh = await cache.get_or_fetch(
                    "k", fetch, ttl_seconds=60, stale_ttl_seconds=600
                )
            return stale, fresh

        stale, fresh = asyncio.run(run())
        assert stale == {"v": 1}
        assert fresh == {"v": 2}
        assert fetch.await_count == 2

    def test_single_refresh_per_key(self):
        cache = InMemoryCache()
        calls = []

        async def fetch():
            calls.append(1)
            await asyncio.sleep(0)
            return {"n": len(calls)}

        later = time.time() + 120

        async def run():
            await cache.get_or_fetch("k", fetch, ttl_seconds=60, stale_ttl_seconds=600)
            with patch("depinsight.core.cache.time.time", return_value=later):
                await asyncio.gather(
                    *(
                        cache.get_or_fetch("k", fetch, ttl_seconds=60, stale_ttl_seconds=600)
                        for _ in range(5)
                    )
                )
                await asyncio.gather(*list(cache._background_tasks))

        asyncio.run(run())
        assert len(calls) == 2

    def test_failed_refresh_keeps_stale_value(self):
        cache = InMemoryCache()
        fetch = AsyncMock(side_effect=[{"v": 1}, RuntimeError("down")])
        later = time.time() + 120

        async def run():
            await cache.get_or_fetch("k", fetch, ttl_seconds=60, stale_ttl_seconds=600)
            with patch("depinsight.core.cache.time.time", return_value=later):
                await cache.get_or_fetch("k", fetch, ttl_seconds=60, stale_ttl_seconds=600)
                await asyncio.gather(*list(cache._background_tasks))
                return await cache.get_or_fetch("k", fetch, ttl_seconds=60, stale_ttl_seconds=600)

        assert asyncio.run(run()) == {"v": 1}


class TestCacheService:
    def test_make_key_uses_prefix(self):
        service = CacheService(url="redis://localhost:6399/0", prefix="di:")
        assert service._make_key("packument:lodash") == "di:packument:lodash"

    def test_unavailable_redis_degrades_to_miss(self):
        service = CacheService(url="redis://localhost:6399/0", prefix="di:")

        async def run():
            with patch.object(service, "get_client", AsyncMock(side_effect=OSError("refused"))):
                return await service.get("k"), await service.set("k", "v", 60)

        assert asyncio.run(run()) == (None, False)

    def test_calculate_hit_rate(self):
        service = CacheService(url="redis://localhost:6399/0")
        assert service._calculate_hit_rate(0, 0) == 0.0
        assert service._calculate_hit_rate(3, 1) == 75.0


class TestCreateCache:
    def test_memory_backend_when_disabled(self):
        with patch("depinsight.core.cache.settings.CACHE_ENABLED", False):
            assert isinstance(create_cache(), InMemoryCache)

    def test_redis_backend_when_enabled(self):
        with patch("depinsight.core.cache.settings.CACHE_ENABLED", True):
            assert isinstance(create_cache(), CacheService)


def test_negative_marker_is_json_serializable():
    import json

    assert json.loads(json.dumps(NEGATIVE_CACHE_MARKER)) == NEGATIVE_CACHE_MARKER
