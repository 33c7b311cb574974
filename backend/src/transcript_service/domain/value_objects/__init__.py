"""Domain value objects — immutable, self-validating types."""

from __future__ import annotations

import re
from dataclasses import dataclass

from transcript_service.domain.exceptions import InvalidVideoIdError

_VIDEO_ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")
_VIDEO_URL_RE = re.compile(
    r"(?:youtube\.com/watch\?(?:[^#]*&)?v=|youtu\.be/|youtube\.com/embed/|youtube\.com/shorts/)"
    r"([A-Za-z0-9_-]{11})"
)


@dataclass(frozen=True, slots=True)
class VideoId:
    """Validated 11-character YouTube video id."""

    value: str

    def __post_init__(self) -> None:
        if not _VIDEO_ID_RE.match(self.value):
            raise InvalidVideoIdError(self.value)

    @classmethod
    def parse(cls, raw: str) -> VideoId:
        """Accept a bare id or any of the common watch / share / embed URLs."""
        candidate = (raw or "").strip()
        if _VIDEO_ID_RE.match(candidate):
            return cls(candidate)
        match = _VIDEO_URL_RE.search(candidate)
        if match:
            return cls(match.group(1))
        raise InvalidVideoIdError(raw)

    def __str__(self) -> str:
        return self.value
