"""Domain entities and result types for transcript acquisition."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Union

_WS_RE = re.compile(r"\s+")


def normalize_text(parts: list[str]) -> str:
    """Join segment texts with single spaces, collapsing runs of whitespace."""
    return _WS_RE.sub(" ", " ".join(parts)).strip()


# ═══════════════════════════════════════════════════════════════
#  Transcript
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class TranscriptSegment:
    text: str
    offset: float = 0.0
    duration: float = 0.0


@dataclass(slots=True)
class Transcript:
    """A fetched transcript, normalised across providers."""

    video_id: str
    segments: list[TranscriptSegment] = field(default_factory=list)
    full_text: str = ""
    source: str = ""
    language: str | None = None
    available_languages: list[str] = field(default_factory=list)

    @classmethod
    def from_segments(
        cls,
        video_id: str,
        segments: list[TranscriptSegment],
        *,
        source: str,
        language: str | None = None,
        available_languages: list[str] | None = None,
    ) -> Transcript:
        return cls(
            video_id=video_id,
            segments=segments,
            full_text=normalize_text([s.text for s in segments]),
            source=source,
            language=language,
            available_languages=available_languages or [],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "video_id": self.video_id,
            "segments": [
                {"text": s.text, "offset": s.offset, "duration": s.duration}
                for s in self.segments
            ],
            "full_text": self.full_text,
            "source": self.source,
            "language": self.language,
            "available_languages": list(self.available_languages),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Transcript:
        return cls(
            video_id=data["video_id"],
            segments=[
                TranscriptSegment(
                    text=s.get("text", ""),
                    offset=float(s.get("offset", 0.0)),
                    duration=float(s.get("duration", 0.0)),
                )
                for s in data.get("segments", [])
            ],
            full_text=data.get("full_text", ""),
            source=data.get("source", ""),
            language=data.get("language"),
            available_languages=list(data.get("available_languages", [])),
        )


@dataclass(frozen=True, slots=True)
class ProviderFetchResult:
    """What a single provider call returns."""

    has_content: bool
    transcript: Transcript | None = None
    source: str = ""


# ═══════════════════════════════════════════════════════════════
#  Fetch outcome
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class ProviderAttemptError:
    provider_id: str
    message: str
    is_rate_limited: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider_id": self.provider_id,
            "message": self.message,
            "is_rate_limited": self.is_rate_limited,
        }


@dataclass(frozen=True, slots=True)
class FetchSuccess:
    payload: Transcript
    provider_id: str

    ok = True


@dataclass(frozen=True, slots=True)
class FetchFailure:
    errors: tuple[ProviderAttemptError, ...] = ()

    ok = False

    @property
    def message(self) -> str:
        if not self.errors:
            return "No transcript providers available"
        last = self.errors[-1]
        return f"Transcript fetch failed: {last.message} (provider: {last.provider_id})"


FetchOutcome = Union[FetchSuccess, FetchFailure]


# ═══════════════════════════════════════════════════════════════
#  Cache entry
# ═══════════════════════════════════════════════════════════════
@dataclass(slots=True)
class CacheEntry:
    """One cached fetch outcome, positive or negative."""

    key: str
    payload: dict[str, Any]
    has_content: bool
    cached_at: datetime
    expires_at: datetime
    version: str
    access_count: int = 0
    last_accessed_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def is_usable(self, now: datetime, version: str) -> bool:
        return self.version == version and not self.is_expired(now)

    @property
    def transcript(self) -> Transcript | None:
        if not self.has_content:
            return None
        return Transcript.from_dict(self.payload)

    @property
    def error_message(self) -> str | None:
        if self.has_content:
            return None
        return self.payload.get("error")

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "payload": self.payload,
            "has_content": self.has_content,
            "cached_at": self.cached_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "version": self.version,
            "access_count": self.access_count,
            "last_accessed_at": (
                self.last_accessed_at.isoformat() if self.last_accessed_at else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CacheEntry:
        last = data.get("last_accessed_at")
        return cls(
            key=data["key"],
            payload=data.get("payload") or {},
            has_content=bool(data["has_content"]),
            cached_at=datetime.fromisoformat(data["cached_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
            version=str(data["version"]),
            access_count=int(data.get("access_count", 0)),
            last_accessed_at=datetime.fromisoformat(last) if last else None,
        )
