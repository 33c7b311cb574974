"""Shared plumbing for HTTP transcript APIs.

Subclasses supply the request and the payload parsing; this base turns
HTTP status codes and error bodies into the ``ProviderError`` hierarchy
so the orchestrator can classify them.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any

import httpx
import structlog

from transcript_service.domain.entities import ProviderFetchResult, TranscriptSegment
from transcript_service.domain.exceptions import (
    MalformedProviderResponseError,
    ProviderError,
    ProviderNotConfiguredError,
    ProviderRateLimitedError,
)
from transcript_service.ports.outbound import TranscriptProvider

logger = structlog.get_logger(__name__)

_ERROR_BODY_LIMIT = 300


class ApiTranscriptProvider(TranscriptProvider):
    """Base class for key-authenticated transcript APIs."""

    provider_id: str = ""
    display_name: str = ""
    api_key_setting: str = ""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key.strip()
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._owns_client = client is None

    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def fetch(self, video_id: str) -> ProviderFetchResult:
        if not self.is_configured():
            raise ProviderNotConfiguredError(self.provider_id, self.api_key_setting)

        try:
            response = await self._request(video_id)
        except httpx.TransportError as exc:
            raise ProviderError(
                self.provider_id, f"{self.display_name} request failed: {exc}"
            ) from exc

        if response.status_code >= 400:
            body = response.text[:_ERROR_BODY_LIMIT]
            message = f"{self.display_name} API error ({response.status_code}): {body}"
            if response.status_code == 429:
                raise ProviderRateLimitedError(self.provider_id, message)
            raise ProviderError(self.provider_id, message, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedProviderResponseError(
                self.provider_id, f"{self.display_name} returned a non-JSON body"
            ) from exc

        if not isinstance(data, dict):
            data = {"content": data}
        return self._parse(video_id, data)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @abstractmethod
    async def _request(self, video_id: str) -> httpx.Response: ...

    @abstractmethod
    def _parse(self, video_id: str, data: dict[str, Any]) -> ProviderFetchResult: ...


def coerce_float(*values: Any) -> float:
    """First value that parses as a float, else 0.0."""
    for value in values:
        if value is None or value == "":
            continue
        try:
            return float(value)
        except (TypeError, ValueError):
            continue
    return 0.0


def segments_from_items(items: list[Any], *, time_scale: float = 1.0) -> list[TranscriptSegment]:
    segments: list[TranscriptSegment] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        segments.append(
            TranscriptSegment(
                text=str(item.get("text") or item.get("content") or ""),
                offset=coerce_float(item.get("offset"), item.get("start"), item.get("timestamp"))
                * time_scale,
                duration=coerce_float(item.get("duration"), item.get("dur")) * time_scale,
            )
        )
    return segments
