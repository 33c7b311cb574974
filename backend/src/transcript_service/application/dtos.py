"""Data Transfer Objects — Pydantic models for API boundaries.

DTOs handle serialisation, validation, and documentation.  They live in the
application layer because they are *not* domain objects — they adapt between
the external world and the domain.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


# ═══════════════════════════════════════════════════════════════
#  Common
# ═══════════════════════════════════════════════════════════════
class ErrorResponse(BaseModel):
    code: str
    message: str


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    environment: str = "development"
    services: dict[str, str] = Field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════
#  Transcripts
# ═══════════════════════════════════════════════════════════════
class SegmentResponse(BaseModel):
    text: str
    offset: float
    duration: float


class TranscriptResponse(BaseModel):
    video_id: str
    source: str
    language: str | None = None
    available_languages: list[str] = Field(default_factory=list)
    full_text: str
    segments: list[SegmentResponse]
    cached: bool
    cached_at: datetime
    expires_at: datetime
    access_count: int = 0


class CacheInvalidationResponse(BaseModel):
    video_id: str
    removed: bool


class CachePurgeResponse(BaseModel):
    purged: int


# ═══════════════════════════════════════════════════════════════
#  Providers
# ═══════════════════════════════════════════════════════════════
class ProviderStatusResponse(BaseModel):
    provider_id: str
    name: str
    kind: str
    priority: int
    configured: bool
    in_cooldown: bool
    cooldown_remaining_seconds: int
    total_requests: int
    total_successes: int
    total_failures: int
    consecutive_failures: int
    success_rate: float | None = None
    last_error: str | None = None
    last_success: float | None = None


class ProviderStatusSummary(BaseModel):
    providers: dict[str, ProviderStatusResponse]
    stats: dict[str, Any]


class ProviderResetResponse(BaseModel):
    status: str = "reset"
    provider_id: str | None = None
