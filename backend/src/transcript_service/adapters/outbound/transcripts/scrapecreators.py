"""ScrapeCreators transcript API adapter (pay per request).

The transcript array may arrive under ``transcript``, ``segments`` or
``content`` depending on the API version.
"""

from __future__ import annotations

from typing import Any

import httpx

from transcript_service.domain.entities import ProviderFetchResult, Transcript
from transcript_service.domain.exceptions import ProviderError, TranscriptUnavailableError

from .base import ApiTranscriptProvider, segments_from_items

SOURCE_LABEL = "scrapecreators-api"

_ARRAY_KEYS = ("transcript", "segments", "content")


class ScrapeCreatorsProvider(ApiTranscriptProvider):
    """Requires ``SCRAPECREATORS_API_KEY``."""

    provider_id = "scrapecreators"
    display_name = "ScrapeCreators"
    api_key_setting = "SCRAPECREATORS_API_KEY"

    async def _request(self, video_id: str) -> httpx.Response:
        return await self._client.get(
            "/youtube/transcript",
            params={"videoId": video_id},
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
        )

    def _parse(self, video_id: str, data: dict[str, Any]) -> ProviderFetchResult:
        if data.get("error"):
            status = data.get("status")
            raise ProviderError(
                self.provider_id,
                f"ScrapeCreators API error: {data['error']}",
                status_code=status if isinstance(status, int) else None,
            )

        items: Any = None
        for key in _ARRAY_KEYS:
            if isinstance(data.get(key), list):
                items = data[key]
                break

        segments = segments_from_items(items or [])
        if not segments:
            raise TranscriptUnavailableError(self.provider_id, "No transcript data in response")

        transcript = Transcript.from_segments(
            video_id,
            segments,
            source=SOURCE_LABEL,
            language=data.get("language") or data.get("lang"),
        )
        return ProviderFetchResult(has_content=True, transcript=transcript, source=SOURCE_LABEL)
