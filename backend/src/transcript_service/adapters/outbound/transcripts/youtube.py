"""Free scraper provider built on ``youtube-transcript-api``.

The library is synchronous, so each fetch runs in a worker thread.
Library exceptions are mapped onto the ``ProviderError`` hierarchy:
blocked requests count as rate limiting, missing captions as no content.
When none of the preferred languages exist, the first available track
(manual before generated) is used instead.
"""

from __future__ import annotations

import asyncio
from typing import Any, Sequence

import structlog
from youtube_transcript_api import (
    CouldNotRetrieveTranscript,
    NoTranscriptFound,
    RequestBlocked,
    TranscriptsDisabled,
    VideoUnavailable,
    YouTubeTranscriptApi,
)

from transcript_service.domain.entities import (
    ProviderFetchResult,
    Transcript,
    TranscriptSegment,
)
from transcript_service.domain.exceptions import (
    ProviderError,
    ProviderRateLimitedError,
    TranscriptUnavailableError,
)
from transcript_service.ports.outbound import TranscriptProvider

logger = structlog.get_logger(__name__)

SOURCE_LABEL = "youtube-transcript"


class YouTubeTranscriptProvider(TranscriptProvider):
    """Scrapes captions directly from YouTube.  Needs no credentials."""

    provider_id = "youtube-transcript"

    def __init__(
        self,
        *,
        languages: Sequence[str] = ("en",),
        api: Any | None = None,
    ) -> None:
        self._languages = list(languages) or ["en"]
        self._api = api or YouTubeTranscriptApi()

    def is_configured(self) -> bool:
        return True

    def _fetch_blocking(self, video_id: str) -> Any:
        try:
            return self._api.fetch(video_id, languages=self._languages)
        except NoTranscriptFound:
            for track in self._api.list(video_id):
                logger.debug(
                    "youtube_transcript_language_fallback",
                    video_id=video_id,
                    requested=self._languages,
                    language=getattr(track, "language_code", None),
                )
                return track.fetch()
            raise

    async def fetch(self, video_id: str) -> ProviderFetchResult:
        try:
            fetched = await asyncio.to_thread(self._fetch_blocking, video_id)
        except (TranscriptsDisabled, NoTranscriptFound, VideoUnavailable) as exc:
            raise TranscriptUnavailableError(
                self.provider_id, f"No transcript found: {type(exc).__name__}"
            ) from exc
        except RequestBlocked as exc:
            raise ProviderRateLimitedError(
                self.provider_id, "YouTube blocked the request (rate limit)", status_code=None
            ) from exc
        except CouldNotRetrieveTranscript as exc:
            lines = str(exc).strip().splitlines()
            raise ProviderError(
                self.provider_id, lines[0] if lines else type(exc).__name__
            ) from exc

        segments = [
            TranscriptSegment(
                text=snippet.text,
                offset=float(snippet.start),
                duration=float(snippet.duration),
            )
            for snippet in fetched
        ]
        if not segments:
            raise TranscriptUnavailableError(self.provider_id)

        transcript = Transcript.from_segments(
            video_id,
            segments,
            source=SOURCE_LABEL,
            language=getattr(fetched, "language_code", None),
        )
        logger.debug("youtube_transcript_fetched", video_id=video_id, segments=len(segments))
        return ProviderFetchResult(has_content=True, transcript=transcript, source=SOURCE_LABEL)
