"""Transcript acquisition service.

Composes the two-tier ``CacheLayer`` with the ``FetchOrchestrator``:
a cache hit short-circuits the provider chain; a miss walks the chain
and caches whatever comes back, positive or negative.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import structlog

from transcript_service.application.cache import CacheLayer
from transcript_service.domain.entities import CacheEntry, Transcript
from transcript_service.domain.exceptions import TranscriptNotFoundError
from transcript_service.domain.value_objects import VideoId
from transcript_service.shared.providers.orchestrator import FetchOrchestrator

logger = structlog.get_logger(__name__)


@dataclass
class TranscriptResult:
    """A transcript plus where it came from."""

    video_id: str
    transcript: Transcript
    cached: bool
    cached_at: datetime
    expires_at: datetime
    access_count: int = 0


class TranscriptService:
    def __init__(self, cache: CacheLayer, orchestrator: FetchOrchestrator) -> None:
        self._cache = cache
        self._orchestrator = orchestrator

    @property
    def orchestrator(self) -> FetchOrchestrator:
        return self._orchestrator

    async def get_transcript(self, raw_id: str, *, force_refresh: bool = False) -> TranscriptResult:
        """Return the transcript for a video id or URL.

        Raises ``InvalidVideoIdError`` for unparseable input and
        ``TranscriptNotFoundError`` when every provider failed, now or
        within the negative TTL.
        """
        video_id = VideoId.parse(raw_id).value
        log = logger.bind(video_id=video_id)

        if not force_refresh:
            entry = await self._cache.lookup(video_id)
            if entry is not None:
                return self._from_entry(entry, cached=True)
        else:
            log.info("transcript_refresh_forced")

        outcome = await self._orchestrator.fetch_with_fallback(video_id)
        if outcome.ok:
            entry = await self._cache.store(
                video_id, outcome.payload.to_dict(), has_content=True
            )
            log.info("transcript_acquired", provider=outcome.provider_id)
            return self._from_entry(entry, cached=False)

        await self._cache.store(
            video_id,
            {"error": outcome.message, "errors": [e.to_dict() for e in outcome.errors]},
            has_content=False,
        )
        raise TranscriptNotFoundError(video_id, outcome.message)

    async def invalidate(self, raw_id: str) -> bool:
        return await self._cache.invalidate(VideoId.parse(raw_id).value)

    async def purge_expired(self) -> int:
        return await self._cache.purge_expired()

    @staticmethod
    def _from_entry(entry: CacheEntry, *, cached: bool) -> TranscriptResult:
        transcript = entry.transcript
        if transcript is None:
            raise TranscriptNotFoundError(
                entry.key, entry.error_message or "No transcript providers available"
            )
        return TranscriptResult(
            video_id=entry.key,
            transcript=transcript,
            cached=cached,
            cached_at=entry.cached_at,
            expires_at=entry.expires_at,
            access_count=entry.access_count,
        )
