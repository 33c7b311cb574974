"""Supadata transcript API adapter.

``GET /youtube/transcript?videoId=...&text=false`` authenticated with an
``x-api-key`` header.  Segment offsets and durations come back in
milliseconds.
"""

from __future__ import annotations

from typing import Any

import httpx

from transcript_service.domain.entities import ProviderFetchResult, Transcript
from transcript_service.domain.exceptions import (
    MalformedProviderResponseError,
    ProviderRateLimitedError,
    TranscriptUnavailableError,
)

from .base import ApiTranscriptProvider, segments_from_items


SOURCE_LABEL = "supadata-api"


class SupadataProvider(ApiTranscriptProvider):
    """Requires ``SUPADATA_API_KEY``."""

    provider_id = "supadata"
    display_name = "Supadata"
    api_key_setting = "SUPADATA_API_KEY"

    async def _request(self, video_id: str) -> httpx.Response:
        return await self._client.get(
            "/youtube/transcript",
            params={"videoId": video_id, "text": "false"},
            headers={"x-api-key": self._api_key, "Content-Type": "application/json"},
        )

    def _parse(self, video_id: str, data: dict[str, Any]) -> ProviderFetchResult:
        message = str(data.get("message") or "")
        # Quota errors sometimes arrive with a 200 status
        if data.get("error") or "limit" in message.lower():
            raise ProviderRateLimitedError(
                self.provider_id,
                f"Supadata API error: {message or data.get('error')}",
            )

        content = data.get("content")
        if not isinstance(content, list):
            raise MalformedProviderResponseError(
                self.provider_id, "Invalid Supadata API response format"
            )

        segments = segments_from_items(content, time_scale=0.001)
        if not segments:
            raise TranscriptUnavailableError(self.provider_id)

        transcript = Transcript.from_segments(
            video_id,
            segments,
            source=SOURCE_LABEL,
            language=data.get("lang"),
            available_languages=list(data.get("availableLangs") or []),
        )
        return ProviderFetchResult(has_content=True, transcript=transcript, source=SOURCE_LABEL)
