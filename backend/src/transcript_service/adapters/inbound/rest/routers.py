"""Health, Transcripts, Providers — REST routers."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from starlette.responses import JSONResponse, Response

from transcript_service.application.dtos import (
    CacheInvalidationResponse,
    CachePurgeResponse,
    ErrorResponse,
    HealthResponse,
    ProviderResetResponse,
    ProviderStatusSummary,
    TranscriptResponse,
)
from transcript_service.application.services import TranscriptResult, TranscriptService
from transcript_service.dependencies import (
    Container,
    get_container,
    get_orchestrator,
    get_transcript_service,
)
from transcript_service.shared.providers import FetchOrchestrator


# ═══════════════════════════════════════════════════════════════
#  Health
# ═══════════════════════════════════════════════════════════════
health_router = APIRouter(tags=["Health"])


@health_router.get("/health", response_model=HealthResponse)
async def health_check(container: Container = Depends(get_container)) -> Response:
    # ── Check cache tier ─────────────────────────────────────
    cache_status = "connected"
    try:
        if not await container.ephemeral.health_check():
            cache_status = "disconnected"
    except Exception:
        cache_status = "disconnected"

    # ── Check Database ───────────────────────────────────────
    db_status = "connected"
    try:
        async with container.session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception:
        db_status = "disconnected"

    # The durable tier fails open, so a dead database degrades but does not break fetches
    overall = "ok" if db_status == "connected" else "degraded"
    body = HealthResponse(
        status=overall,
        environment=container.settings.app_env.value,
        services={"database": db_status, "cache": cache_status},
    )
    return JSONResponse(
        content=body.model_dump(),
        status_code=200 if overall == "ok" else 503,
    )


@health_router.get("/metrics")
async def prometheus_metrics() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


# ═══════════════════════════════════════════════════════════════
#  Transcripts
# ═══════════════════════════════════════════════════════════════
transcripts_router = APIRouter(prefix="/transcripts", tags=["Transcripts"])


def _to_response(result: TranscriptResult) -> TranscriptResponse:
    t = result.transcript
    return TranscriptResponse(
        video_id=result.video_id,
        source=t.source,
        language=t.language,
        available_languages=t.available_languages,
        full_text=t.full_text,
        segments=[
            {"text": s.text, "offset": s.offset, "duration": s.duration} for s in t.segments
        ],
        cached=result.cached,
        cached_at=result.cached_at,
        expires_at=result.expires_at,
        access_count=result.access_count,
    )


@transcripts_router.post("/cache/purge", response_model=CachePurgeResponse)
async def purge_expired_cache(
    service: TranscriptService = Depends(get_transcript_service),
) -> CachePurgeResponse:
    """Delete expired rows from the durable cache tier."""
    return CachePurgeResponse(purged=await service.purge_expired())


@transcripts_router.delete("/{video_id}/cache", response_model=CacheInvalidationResponse)
async def invalidate_transcript_cache(
    video_id: str,
    service: TranscriptService = Depends(get_transcript_service),
) -> CacheInvalidationResponse:
    removed = await service.invalidate(video_id)
    return CacheInvalidationResponse(video_id=video_id, removed=removed)


@transcripts_router.get(
    "",
    response_model=TranscriptResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def get_transcript_by_url(
    url: str = Query(..., min_length=1, description="Video id or any YouTube URL"),
    refresh: bool = Query(False, description="Bypass the cache and refetch"),
    service: TranscriptService = Depends(get_transcript_service),
) -> TranscriptResponse:
    """Fetch a transcript for a URL passed as a query parameter.

    Use this for ``watch?v=...`` links, whose own query string cannot
    travel inside a path segment.
    """
    result = await service.get_transcript(url, force_refresh=refresh)
    return _to_response(result)


@transcripts_router.get(
    "/{video_id:path}",
    response_model=TranscriptResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def get_transcript(
    video_id: str,
    refresh: bool = Query(False, description="Bypass the cache and refetch"),
    service: TranscriptService = Depends(get_transcript_service),
) -> TranscriptResponse:
    """Fetch a transcript by video id or a query-less YouTube URL.

    Share, embed and shorts links work in the path; ``watch?v=`` links go
    through ``GET /transcripts?url=...``.
    """
    result = await service.get_transcript(video_id, force_refresh=refresh)
    return _to_response(result)


# ═══════════════════════════════════════════════════════════════
#  Providers
# ═══════════════════════════════════════════════════════════════
providers_router = APIRouter(prefix="/providers", tags=["Provider Health"])


@providers_router.get("/status", response_model=ProviderStatusSummary)
async def provider_status(
    orchestrator: FetchOrchestrator = Depends(get_orchestrator),
) -> dict:
    """Health and cooldown state for every registered provider."""
    return orchestrator.get_provider_status()


@providers_router.post("/reset", response_model=ProviderResetResponse)
async def reset_all_providers(
    orchestrator: FetchOrchestrator = Depends(get_orchestrator),
) -> ProviderResetResponse:
    orchestrator.reset_all()
    return ProviderResetResponse()


@providers_router.post("/{provider_id}/reset", response_model=ProviderResetResponse)
async def reset_provider(
    provider_id: str,
    orchestrator: FetchOrchestrator = Depends(get_orchestrator),
) -> ProviderResetResponse:
    """Admin: clear cooldown, failure history and limiter counters for a provider."""
    if orchestrator.registry.get(provider_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown provider: {provider_id}",
        )
    orchestrator.reset_provider(provider_id)
    return ProviderResetResponse(provider_id=provider_id)
