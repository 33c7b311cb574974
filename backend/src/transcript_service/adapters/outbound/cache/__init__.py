"""Ephemeral cache adapters implementing EphemeralCachePort.

The memory adapter is the default, process-local tier.  The Redis adapter
shares the tier across workers when ``REDIS_URL`` points at a real server
and falls back to memory otherwise.  Either way the tier is advisory:
errors read as misses.
"""

from __future__ import annotations

import time
from typing import Callable

import redis.asyncio as redis
import structlog

from transcript_service.ports.outbound import EphemeralCachePort

logger = structlog.get_logger(__name__)

DEFAULT_TTL_SECONDS = 300
SWEEP_INTERVAL_SECONDS = 60


class MemoryCacheAdapter(EphemeralCachePort):
    """In-process cache with a fixed default TTL.

    Expired keys are dropped when read, and swept from the whole map on
    ``set`` at most once per ``sweep_interval_seconds``.
    """

    def __init__(
        self,
        *,
        default_ttl_seconds: int = DEFAULT_TTL_SECONDS,
        sweep_interval_seconds: float = SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._data: dict[str, str] = {}
        self._expiry: dict[str, float] = {}
        self._default_ttl = default_ttl_seconds
        self._sweep_interval = sweep_interval_seconds
        self._clock = clock
        self._next_sweep = clock() + sweep_interval_seconds
        logger.info("cache_initialized_memory", default_ttl_s=default_ttl_seconds)

    async def get(self, key: str) -> str | None:
        if key in self._expiry and self._expiry[key] <= self._clock():
            del self._data[key]
            del self._expiry[key]
            return None
        return self._data.get(key)

    async def set(self, key: str, value: str, *, ttl_seconds: int | None = None) -> None:
        ttl = ttl_seconds or self._default_ttl
        now = self._clock()
        if now >= self._next_sweep:
            self._sweep(now)
        self._data[key] = value
        self._expiry[key] = now + ttl

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)
        self._expiry.pop(key, None)

    def _sweep(self, now: float) -> None:
        expired = [k for k, expires_at in self._expiry.items() if expires_at <= now]
        for key in expired:
            del self._data[key]
            del self._expiry[key]
        self._next_sweep = now + self._sweep_interval
        if expired:
            logger.debug("cache_memory_swept", evicted=len(expired), remaining=len(self._data))

    async def close(self) -> None:
        self._data.clear()
        self._expiry.clear()

    async def health_check(self) -> bool:
        return True

    def __len__(self) -> int:
        return len(self._data)


class RedisCacheAdapter(EphemeralCachePort):
    """Async Redis adapter for a shared ephemeral tier."""

    def __init__(
        self,
        url: str,
        max_connections: int = 50,
        *,
        default_ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ) -> None:
        self._default_ttl = default_ttl_seconds
        self._use_memory = not url

        if self._use_memory:
            logger.info("redis_url_missing_falling_back_to_memory")
            self._memory = MemoryCacheAdapter(default_ttl_seconds=default_ttl_seconds)
            return

        try:
            self._pool = redis.ConnectionPool.from_url(
                url,
                max_connections=max_connections,
                decode_responses=True,
            )
            self._client = redis.Redis(connection_pool=self._pool)
        except (redis.RedisError, ValueError) as e:
            logger.error("redis_init_failed", error=str(e))
            self._use_memory = True
            self._memory = MemoryCacheAdapter(default_ttl_seconds=default_ttl_seconds)

    @property
    def uses_memory(self) -> bool:
        return self._use_memory

    async def get(self, key: str) -> str | None:
        if self._use_memory:
            return await self._memory.get(key)
        try:
            return await self._client.get(key)
        except redis.RedisError as exc:
            logger.error("redis_get_error", key=key, error=str(exc))
            return None

    async def set(self, key: str, value: str, *, ttl_seconds: int | None = None) -> None:
        if self._use_memory:
            return await self._memory.set(key, value, ttl_seconds=ttl_seconds)
        try:
            await self._client.setex(key, ttl_seconds or self._default_ttl, value)
        except redis.RedisError as exc:
            logger.error("redis_set_error", key=key, error=str(exc))

    async def delete(self, key: str) -> None:
        if self._use_memory:
            return await self._memory.delete(key)
        try:
            await self._client.delete(key)
        except redis.RedisError as exc:
            logger.error("redis_delete_error", key=key, error=str(exc))

    async def close(self) -> None:
        if self._use_memory:
            return await self._memory.close()
        await self._client.aclose()
        await self._pool.aclose()

    async def health_check(self) -> bool:
        if self._use_memory:
            return True
        try:
            return await self._client.ping()
        except redis.RedisError:
            return False


def create_ephemeral_cache(url: str, max_connections: int, *, default_ttl_seconds: int) -> EphemeralCachePort:
    if not url:
        return MemoryCacheAdapter(default_ttl_seconds=default_ttl_seconds)
    return RedisCacheAdapter(url, max_connections, default_ttl_seconds=default_ttl_seconds)
