"""
Cache layer for registry documents and analysis results.

Two interchangeable backends share one async interface:
- CacheService: Redis-backed, shared by every worker process
- InMemoryCache: per-process, bounded, least-recently-used eviction

Both provide TTL-based expiration, batch operations and a cache-through
helper with optional stale-while-revalidate semantics. The engine never
reaches for a global cache; an instance is injected into each client and
service (see depinsight.api.deps).
"""

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Tuple

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from depinsight.core.config import settings

logger = logging.getLogger(__name__)

# Envelope keys used by stale-while-revalidate entries
_SWR_VALUE = "__swr_value__"
_SWR_FRESH_UNTIL = "__swr_fresh_until__"


class BaseCache(ABC):
    """Common cache-through logic on top of get/set primitives."""

    def __init__(self):
        self._refreshing: Set[str] = set()
        self._background_tasks: Set[asyncio.Task] = set()

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        pass

    async def get_or_fetch(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
        ttl_seconds: Optional[int] = None,
        stale_ttl_seconds: Optional[int] = None,
    ) -> Any:
        """
        Get from cache or fetch and cache if missing.

        With stale_ttl_seconds set, an entry older than ttl_seconds but still
        inside the stale window is returned immediately while a single
        background task refreshes it.

        Args:
            key: Cache key
            fetch_fn: Async function to call on a cache miss
            ttl_seconds: Freshness lifetime of the cached value
            stale_ttl_seconds: Extra lifetime during which a stale value is served

        Returns:
            Cached or freshly fetched value
        """
        if ttl_seconds is None:
            ttl_seconds = settings.CACHE_DEFAULT_TTL_HOURS * 3600

        if not stale_ttl_seconds:
            cached = await self.get(key)
            if cached is not None:
                return cached
            data = await fetch_fn()
            if data is not None:
                await self.set(key, data, ttl_seconds)
            return data

        cached = await self.get(key)
        if isinstance(cached, dict) and _SWR_VALUE in cached:
            if time.time() >= cached.get(_SWR_FRESH_UNTIL, 0):
                self._schedule_refresh(key, fetch_fn, ttl_seconds, stale_ttl_seconds)
            return cached[_SWR_VALUE]

        data = await fetch_fn()
        if data is not None:
            await self._store_envelope(key, data, ttl_seconds, stale_ttl_seconds)
        return data

    async def _store_envelope(
        self, key: str, data: Any, ttl_seconds: int, stale_ttl_seconds: int
    ) -> bool:
        envelope = {_SWR_VALUE: data, _SWR_FRESH_UNTIL: time.time() + ttl_seconds}
        return await self.set(key, envelope, ttl_seconds + stale_ttl_seconds)

    def _schedule_refresh(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
        ttl_seconds: int,
        stale_ttl_seconds: int,
    ) -> None:
        if key in self._refreshing:
            return
        self._refreshing.add(key)

        async def refresh() -> None:
            try:
                data = await fetch_fn()
                if data is not None:
                    await self._store_envelope(key, data, ttl_seconds, stale_ttl_seconds)
            except Exception as e:
                logger.warning(f"Background refresh failed for {key}: {e}")
            finally:
                self._refreshing.discard(key)

        task = asyncio.create_task(refresh())
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "healthy", "available": True, "backend": type(self).__name__}

    async def close(self) -> None:
        for task in list(self._background_tasks):
            task.cancel()


class InMemoryCache(BaseCache):
    """
    Process-local cache with per-entry TTL and LRU eviction.

    Entries expire lazily on access; once max_entries is reached the least
    recently used entry is evicted on insert.
    """

    def __init__(self, max_entries: Optional[int] = None):
        super().__init__()
        self.max_entries = max_entries or settings.MEMORY_CACHE_MAX_ENTRIES
        self._entries: "OrderedDict[str, Tuple[float, Any]]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        expires_at, value = entry
        if expires_at <= time.time():
            del self._entries[key]
            self.misses += 1
            return None
        self._entries.move_to_end(key)
        self.hits += 1
        return value

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        if ttl_seconds is None:
            ttl_seconds = settings.CACHE_DEFAULT_TTL_HOURS * 3600
        self._entries[key] = (time.time() + ttl_seconds, value)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
        return True

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def health_check(self) -> Dict[str, Any]:
        total = self.hits + self.misses
        return {
            "status": "healthy",
            "available": True,
            "backend": "memory",
            "total_keys": len(self._entries),
            "max_entries": self.max_entries,
            "hit_rate": round((self.hits / total) * 100, 2) if total else 0.0,
        }


class CacheService(BaseCache):
    """
    Distributed cache service using Redis.

    All worker processes share the same cache, so a packument fetched while
    resolving one package is reused by every other resolution.
    """

    def __init__(self, url: Optional[str] = None, prefix: Optional[str] = None):
        super().__init__()
        self._url = url or settings.REDIS_URL
        self._prefix = settings.CACHE_PREFIX if prefix is None else prefix
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[redis.Redis] = None
        self._available: bool = True
        self._lock: asyncio.Lock = asyncio.Lock()

    async def get_client(self) -> redis.Redis:
        """Get or create Redis client with connection pooling.

        Uses a lock so concurrent coroutines initialize the pool only once.
        """
        if self._client is not None and self._pool is not None:
            return self._client

        async with self._lock:
            if self._client is not None and self._pool is not None:
                return self._client

            try:
                self._pool = ConnectionPool.from_url(
                    self._url,
                    encoding="utf-8",
                    decode_responses=True,
                    max_connections=20,
                )
                self._client = redis.Redis(connection_pool=self._pool)
                await self._client.ping()
                self._available = True
                logger.info("Redis cache connection established")
            except Exception as e:
                logger.warning(f"Redis connection failed: {e}. Cache will be disabled.")
                self._available = False
                raise
        return self._client

    async def close(self) -> None:
        """Close Redis connection pool."""
        await super().close()
        if self._client:
            await self._client.aclose()
            self._client = None
        if self._pool:
            await self._pool.disconnect()
            self._pool = None

    def _make_key(self, key: str) -> str:
        """Create prefixed cache key."""
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache.

        Returns:
            Cached value or None if not found, expired or Redis is unavailable
        """
        if not self._available:
            return None

        try:
            client = await self.get_client()
            data = await client.get(self._make_key(key))
            if data:
                return json.loads(data)
            return None
        except redis.ConnectionError:
            logger.warning("Redis connection lost, disabling cache temporarily")
            self._available = False
            return None
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to decode cached value for {key}: {e}")
            return None
        except Exception as e:
            logger.warning(f"Cache get error for {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        """
        Set value in cache with TTL.

        Returns:
            True if cached successfully, False otherwise
        """
        if not self._available:
            return False

        if ttl_seconds is None:
            ttl_seconds = settings.CACHE_DEFAULT_TTL_HOURS * 3600

        try:
            client = await self.get_client()
            serialized = json.dumps(value, default=str)
            await client.setex(self._make_key(key), ttl_seconds, serialized)
            return True
        except redis.ConnectionError:
            logger.warning("Redis connection lost, disabling cache temporarily")
            self._available = False
            return False
        except (TypeError, ValueError) as e:
            logger.warning(f"Failed to serialize value for {key}: {e}")
            return False
        except Exception as e:
            logger.warning(f"Cache set error for {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        """Delete a key from cache."""
        if not self._available:
            return False

        try:
            client = await self.get_client()
            await client.delete(self._make_key(key))
            return True
        except Exception as e:
            logger.warning(f"Cache delete error for {key}: {e}")
            return False

    async def health_check(self) -> Dict[str, Any]:
        """Cache health status and Redis statistics."""
        try:
            client = await self.get_client()
            info = await client.info(section="memory")
            stats = await client.info(section="stats")

            return {
                "status": "healthy",
                "available": self._available,
                "backend": "redis",
                "used_memory": info.get("used_memory_human", "unknown"),
                "total_keys": await client.dbsize(),
                "keyspace_hits": stats.get("keyspace_hits", 0),
                "keyspace_misses": stats.get("keyspace_misses", 0),
                "hit_rate": self._calculate_hit_rate(
                    stats.get("keyspace_hits", 0), stats.get("keyspace_misses", 0)
                ),
            }
        except Exception as e:
            return {
                "status": "unhealthy",
                "available": False,
                "backend": "redis",
                "error": str(e),
            }

    def _calculate_hit_rate(self, hits: int, misses: int) -> float:
        """Calculate cache hit rate as percentage."""
        total = hits + misses
        if total == 0:
            return 0.0
        return round((hits / total) * 100, 2)


def create_cache() -> BaseCache:
    """Build the configured cache backend."""
    if settings.CACHE_ENABLED:
        return CacheService()
    return InMemoryCache()


# Cache TTL constants (in seconds) for different data types
class CacheTTL:
    """Standard TTL values for different types of cached data."""

    # Registry documents change on every publish
    PACKUMENT = 1 * 3600  # 1 hour

    # Computed results
    INSTALL_SIZE = 6 * 3600  # 6 hours
    DEPENDENCY_ANALYSIS = 1 * 3600  # 1 hour
    DEPENDENCY_ANALYSIS_STALE = 6 * 3600  # served stale while refreshing

    # Negative cache (when the registry has no such package)
    NEGATIVE_RESULT = 10 * 60  # 10 minutes


class CacheKeys:
    """Cache key builders for consistent key naming."""

    # Bump when the serialized analysis format changes
    DEPENDENCY_ANALYSIS_VERSION = "v2"

    @staticmethod
    def packument(name: str) -> str:
        return f"packument:{name}"

    @staticmethod
    def install_size(name: str, version: str) -> str:
        return f"install-size:{name}@{version}"

    @staticmethod
    def dependency_analysis(name: str, version: str) -> str:
        return f"dependency-analysis:{CacheKeys.DEPENDENCY_ANALYSIS_VERSION}:{name}@{version}"


# Stored in place of a packument the registry does not have
NEGATIVE_CACHE_MARKER = {"__missing__": True}
