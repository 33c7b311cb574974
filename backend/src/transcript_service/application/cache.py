"""Two-tier transcript cache.

Reads go ephemeral tier first, then the durable tier.  Writes go to both.
Positive results live for ``positive_ttl`` (7 days by default), negative
results for the much shorter ``negative_ttl`` (24 hours) so a provider
outage cannot pin a "no transcript" answer for long.

The durable tier is authoritative but optional at runtime: its errors are
logged and read as a miss, or dropped on write.  The ephemeral tier is
advisory and always keyed by cache version, so a version bump orphans
every ephemeral entry.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import orjson
import structlog

from transcript_service.domain.entities import CacheEntry
from transcript_service.domain.exceptions import CacheError
from transcript_service.ports.outbound import EphemeralCachePort, TranscriptCacheRepository
from transcript_service.shared.observability.metrics import (
    CACHE_LOOKUPS_TOTAL,
    CACHE_WRITES_TOTAL,
)

logger = structlog.get_logger(__name__)

DEFAULT_POSITIVE_TTL = timedelta(days=7)
DEFAULT_NEGATIVE_TTL = timedelta(hours=24)
DEFAULT_EPHEMERAL_TTL_SECONDS = 300


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CacheLayer:
    """Read-through cache in front of the fetch orchestrator."""

    def __init__(
        self,
        ephemeral: EphemeralCachePort,
        durable: TranscriptCacheRepository,
        *,
        positive_ttl: timedelta = DEFAULT_POSITIVE_TTL,
        negative_ttl: timedelta = DEFAULT_NEGATIVE_TTL,
        ephemeral_ttl_seconds: int = DEFAULT_EPHEMERAL_TTL_SECONDS,
        version: str = "1",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if negative_ttl >= positive_ttl:
            raise ValueError("negative_ttl must be shorter than positive_ttl")
        self._ephemeral = ephemeral
        self._durable = durable
        self._positive_ttl = positive_ttl
        self._negative_ttl = negative_ttl
        self._ephemeral_ttl = ephemeral_ttl_seconds
        self._version = version
        self._clock = clock

    @property
    def version(self) -> str:
        return self._version

    def ttl_for(self, has_content: bool) -> timedelta:
        return self._positive_ttl if has_content else self._negative_ttl

    # ── Reads ────────────────────────────────────────────────
    async def lookup(self, key: str) -> CacheEntry | None:
        now = self._clock()
        log = logger.bind(key=key)

        entry = await self._ephemeral_get(key, now)
        if entry is not None:
            CACHE_LOOKUPS_TOTAL.labels(tier="ephemeral", result="hit").inc()
            await self._touch(entry, now)
            log.debug("transcript_cache_hit", tier="ephemeral", has_content=entry.has_content)
            return entry
        CACHE_LOOKUPS_TOTAL.labels(tier="ephemeral", result="miss").inc()

        try:
            entry = await self._durable.get(key)
        except CacheError as exc:
            CACHE_LOOKUPS_TOTAL.labels(tier="durable", result="error").inc()
            log.warning("transcript_cache_read_failed", error=exc.message)
            return None

        if entry is None or not entry.is_usable(now, self._version):
            CACHE_LOOKUPS_TOTAL.labels(tier="durable", result="miss").inc()
            log.debug(
                "transcript_cache_miss",
                reason="absent" if entry is None else "stale",
            )
            return None

        CACHE_LOOKUPS_TOTAL.labels(tier="durable", result="hit").inc()
        await self._touch(entry, now)
        await self._ephemeral_set(entry, now)
        log.debug("transcript_cache_hit", tier="durable", has_content=entry.has_content)
        return entry

    # ── Writes ───────────────────────────────────────────────
    async def store(self, key: str, payload: dict[str, Any], *, has_content: bool) -> CacheEntry:
        """Overwrite whatever is cached for ``key``.  Last write wins."""
        now = self._clock()
        entry = CacheEntry(
            key=key,
            payload=payload,
            has_content=has_content,
            cached_at=now,
            expires_at=now + self.ttl_for(has_content),
            version=self._version,
        )
        CACHE_WRITES_TOTAL.labels(kind="positive" if has_content else "negative").inc()

        try:
            await self._durable.upsert(entry)
        except CacheError as exc:
            logger.warning("transcript_cache_write_failed", key=key, error=exc.message)

        await self._ephemeral_set(entry, now)
        logger.debug(
            "transcript_cached",
            key=key,
            has_content=has_content,
            expires_at=entry.expires_at.isoformat(),
        )
        return entry

    async def invalidate(self, key: str) -> bool:
        """Drop ``key`` from both tiers.  Returns whether a durable row existed."""
        await self._ephemeral.delete(self._ephemeral_key(key))
        try:
            removed = await self._durable.delete(key)
        except CacheError as exc:
            logger.warning("transcript_cache_invalidate_failed", key=key, error=exc.message)
            return False
        logger.info("transcript_cache_invalidated", key=key, removed=removed)
        return removed

    async def purge_expired(self) -> int:
        """Delete expired durable rows.  Errors propagate to the caller."""
        purged = await self._durable.purge_expired(self._clock())
        logger.info("transcript_cache_purged", purged=purged)
        return purged

    # ── Internals ────────────────────────────────────────────
    def _ephemeral_key(self, key: str) -> str:
        return f"transcript:v{self._version}:{key}"

    async def _ephemeral_get(self, key: str, now: datetime) -> CacheEntry | None:
        raw = await self._ephemeral.get(self._ephemeral_key(key))
        if raw is None:
            return None
        try:
            entry = CacheEntry.from_dict(orjson.loads(raw))
        except (orjson.JSONDecodeError, KeyError, TypeError, ValueError):
            logger.warning("ephemeral_cache_entry_corrupt", key=key)
            await self._ephemeral.delete(self._ephemeral_key(key))
            return None
        if not entry.is_usable(now, self._version):
            return None
        return entry

    async def _ephemeral_set(self, entry: CacheEntry, now: datetime) -> None:
        remaining = int((entry.expires_at - now).total_seconds())
        if remaining <= 0:
            return
        await self._ephemeral.set(
            self._ephemeral_key(entry.key),
            orjson.dumps(entry.to_dict()).decode(),
            ttl_seconds=min(self._ephemeral_ttl, remaining),
        )

    async def _touch(self, entry: CacheEntry, now: datetime) -> None:
        try:
            count = await self._durable.increment_access(entry.key, accessed_at=now)
        except CacheError as exc:
            logger.warning("transcript_cache_touch_failed", key=entry.key, error=exc.message)
            count = None
        entry.access_count = count if count is not None else entry.access_count + 1
        entry.last_accessed_at = now
