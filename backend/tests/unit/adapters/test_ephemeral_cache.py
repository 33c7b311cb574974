"""Tests for the ephemeral cache adapters."""

from __future__ import annotations

import pytest

from fakes import FakeClock
from transcript_service.adapters.outbound.cache import (
    MemoryCacheAdapter,
    RedisCacheAdapter,
    create_ephemeral_cache,
)


class TestMemoryCacheAdapter:
    @pytest.mark.asyncio
    async def test_set_get_delete(self):
        cache = MemoryCacheAdapter()
        await cache.set("k", "v")
        assert await cache.get("k") == "v"
        await cache.delete("k")
        assert await cache.get("k") is None
        assert await cache.health_check() is True

    @pytest.mark.asyncio
    async def test_entries_expire(self, clock: FakeClock):
        cache = MemoryCacheAdapter(default_ttl_seconds=300, clock=clock)
        await cache.set("short", "v", ttl_seconds=10)
        await cache.set("default", "v")

        clock.advance(10)
        assert await cache.get("short") is None
        assert await cache.get("default") == "v"

        clock.advance(290)
        assert await cache.get("default") is None
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_expired_keys_are_reclaimed_without_being_read(self, clock: FakeClock):
        cache = MemoryCacheAdapter(default_ttl_seconds=300, sweep_interval_seconds=60, clock=clock)
        for i in range(1000):
            await cache.set(f"video-{i}", "v")
        assert len(cache) == 1000

        clock.advance(10_000)
        await cache.set("fresh", "v")

        assert len(cache) == 1
        assert await cache.get("fresh") == "v"

    @pytest.mark.asyncio
    async def test_sweep_runs_at_most_once_per_interval(self, clock: FakeClock):
        cache = MemoryCacheAdapter(default_ttl_seconds=300, sweep_interval_seconds=60, clock=clock)
        await cache.set("short", "v", ttl_seconds=10)

        clock.advance(30)
        await cache.set("other", "v")
        assert len(cache) == 2  # expired but not yet swept

        clock.advance(30)
        await cache.set("third", "v")
        assert len(cache) == 2

    @pytest.mark.asyncio
    async def test_close_clears(self):
        cache = MemoryCacheAdapter()
        await cache.set("k", "v")
        await cache.close()
        assert len(cache) == 0


class TestEphemeralFactory:
    def test_empty_url_uses_memory(self):
        assert isinstance(create_ephemeral_cache("", 10, default_ttl_seconds=60), MemoryCacheAdapter)

    def test_redis_url_uses_redis(self):
        cache = create_ephemeral_cache("redis://localhost:6379/0", 10, default_ttl_seconds=60)
        assert isinstance(cache, RedisCacheAdapter)
        assert not cache.uses_memory

    @pytest.mark.asyncio
    async def test_redis_adapter_without_url_falls_back(self):
        cache = RedisCacheAdapter("")
        assert cache.uses_memory
        await cache.set("k", "v", ttl_seconds=5)
        assert await cache.get("k") == "v"
        assert await cache.health_check() is True
