"""
Cache backends for cache-aside lookups.

Two interchangeable backends with absolute + sliding expiry semantics:
- MemoryCache: in-process, for single-instance deployments and tests
- RedisCache: shared across API instances (redis.asyncio)

The backend is selected by CACHE_TYPE and shared process-wide via get_cache().
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass

import redis.asyncio as redis

from app.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


class CacheBackend:
    """Async string cache with absolute and optional sliding expiry (seconds)."""

    async def get(self, key: str) -> str | None:
        raise NotImplementedError

    async def set(
        self,
        key: str,
        value: str,
        absolute_expiry: int,
        sliding_expiry: int | None = None,
    ) -> None:
        raise NotImplementedError

    async def remove(self, key: str) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        return None


@dataclass
class _MemoryEntry:
    value: str
    absolute_deadline: float
    sliding_expiry: int | None
    sliding_deadline: float | None

    def deadline(self) -> float:
        if self.sliding_deadline is None:
            return self.absolute_deadline
        return min(self.absolute_deadline, self.sliding_deadline)


class MemoryCache(CacheBackend):
    """
    In-process cache.

    A read inside the sliding window pushes the window forward, but an entry
    never outlives its absolute deadline.
    """

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._entries: dict[str, _MemoryEntry] = {}
        self._lock = asyncio.Lock()
        self._clock = clock or time.monotonic

    async def get(self, key: str) -> str | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            now = self._clock()
            if now >= entry.deadline():
                del self._entries[key]
                return None
            if entry.sliding_expiry is not None:
                entry.sliding_deadline = now + entry.sliding_expiry
            return entry.value

    async def set(
        self,
        key: str,
        value: str,
        absolute_expiry: int,
        sliding_expiry: int | None = None,
    ) -> None:
        now = self._clock()
        entry = _MemoryEntry(
            value=value,
            absolute_deadline=now + absolute_expiry,
            sliding_expiry=sliding_expiry,
            sliding_deadline=now + sliding_expiry if sliding_expiry is not None else None,
        )
        async with self._lock:
            self._entries[key] = entry

    async def remove(self, key: str) -> None:
        async with self._lock:
            self._entries.pop(key, None)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()


class RedisCache(CacheBackend):
    """
    Redis cache.

    The value key carries the current TTL. For sliding entries a companion
    key stores the sliding window and the absolute deadline so that a read can
    re-expire the value without extending it past the absolute deadline.
    """

    def __init__(self, client: redis.Redis) -> None:  # type: ignore[type-arg]
        self._client = client

    @staticmethod
    def _meta_key(key: str) -> str:
        return f"{key}:sliding"

    async def get(self, key: str) -> str | None:
        value = await self._client.get(key)
        if value is None:
            return None
        if isinstance(value, bytes):
            value = value.decode("utf-8")

        meta = await self._client.get(self._meta_key(key))
        if meta:
            if isinstance(meta, bytes):
                meta = meta.decode("utf-8")
            sliding, absolute_deadline = (int(part) for part in meta.split(":"))
            remaining = absolute_deadline - int(time.time())
            ttl = min(sliding, remaining)
            if ttl > 0:
                pipe = self._client.pipeline()
                pipe.expire(key, ttl)
                pipe.expire(self._meta_key(key), ttl)
                await pipe.execute()
        return str(value)

    async def set(
        self,
        key: str,
        value: str,
        absolute_expiry: int,
        sliding_expiry: int | None = None,
    ) -> None:
        ttl = min(absolute_expiry, sliding_expiry) if sliding_expiry else absolute_expiry
        pipe = self._client.pipeline()
        pipe.set(key, value, ex=ttl)
        if sliding_expiry:
            absolute_deadline = int(time.time()) + absolute_expiry
            pipe.set(self._meta_key(key), f"{sliding_expiry}:{absolute_deadline}", ex=ttl)
        else:
            pipe.delete(self._meta_key(key))
        await pipe.execute()

    async def remove(self, key: str) -> None:
        await self._client.delete(key, self._meta_key(key))

    async def close(self) -> None:
        await self._client.aclose()


_cache: CacheBackend | None = None


def create_cache() -> CacheBackend:
    """Build the backend named by CACHE_TYPE."""
    if settings.CACHE_TYPE == "redis":
        client = redis.from_url(
            str(settings.REDIS_URL),
            encoding="utf-8",
            decode_responses=True,
        )
        logger.info("cache_backend_selected", backend="redis")
        return RedisCache(client)
    logger.info("cache_backend_selected", backend="memory")
    return MemoryCache()


def get_cache() -> CacheBackend:
    """Process-wide cache backend (created on first use). Usable as a dependency."""
    global _cache
    if _cache is None:
        _cache = create_cache()
    return _cache


def set_cache(cache: CacheBackend | None) -> None:
    """Replace the process-wide backend (application startup and tests)."""
    global _cache
    _cache = cache


async def close_cache() -> None:
    global _cache
    if _cache is not None:
        await _cache.close()
        _cache = None
