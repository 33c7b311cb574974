"""Domain-specific exception hierarchy.

All exceptions inherit from ``DomainError`` so callers can catch the entire
family in one clause while still discriminating on subclass.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for all domain-layer errors."""

    def __init__(self, message: str, *, code: str = "DOMAIN_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


# ── Validation ───────────────────────────────────────────────
class ValidationError(DomainError):
    """Input failed domain validation rules."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="VALIDATION_ERROR")


class InvalidVideoIdError(ValidationError):
    def __init__(self, raw: str) -> None:
        super().__init__(f"Invalid video ID or URL: {raw!r}")
        self.code = "INVALID_VIDEO_ID"


# ── Providers ────────────────────────────────────────────────
class ProviderError(DomainError):
    """A single transcript provider failed.

    ``status_code`` carries the upstream HTTP status when there is one, and
    ``rate_limited`` marks quota / throttling failures explicitly.
    """

    def __init__(
        self,
        provider_id: str,
        message: str,
        *,
        status_code: int | None = None,
        rate_limited: bool = False,
        code: str = "PROVIDER_ERROR",
    ) -> None:
        self.provider_id = provider_id
        self.status_code = status_code
        self.rate_limited = rate_limited
        super().__init__(message, code=code)


class ProviderNotConfiguredError(ProviderError):
    def __init__(self, provider_id: str, setting: str) -> None:
        super().__init__(
            provider_id,
            f"{setting} not configured",
            code="PROVIDER_NOT_CONFIGURED",
        )


class ProviderRateLimitedError(ProviderError):
    def __init__(self, provider_id: str, message: str, *, status_code: int | None = 429) -> None:
        super().__init__(
            provider_id,
            message,
            status_code=status_code,
            rate_limited=True,
            code="PROVIDER_RATE_LIMITED",
        )


class TranscriptUnavailableError(ProviderError):
    """The provider answered, but the video has no transcript."""

    def __init__(self, provider_id: str, message: str = "No transcript found") -> None:
        super().__init__(provider_id, message, code="TRANSCRIPT_UNAVAILABLE")


class MalformedProviderResponseError(ProviderError):
    def __init__(self, provider_id: str, message: str) -> None:
        super().__init__(provider_id, message, code="MALFORMED_PROVIDER_RESPONSE")


# ── Aggregated outcome ──────────────────────────────────────
class TranscriptNotFoundError(DomainError):
    """Every provider failed (or a cached negative result was served)."""

    def __init__(self, video_id: str, message: str) -> None:
        self.video_id = video_id
        super().__init__(message, code="TRANSCRIPT_NOT_FOUND")


# ── Cache ────────────────────────────────────────────────────
class CacheError(DomainError):
    def __init__(self, message: str) -> None:
        super().__init__(message, code="CACHE_ERROR")
