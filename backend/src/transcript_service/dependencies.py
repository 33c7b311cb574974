"""Dependency injection container — wires adapters to ports.

One ``Container`` is built per application in the lifespan hook and kept
on ``app.state``.  It owns the health tracker and limiter registry, so two
apps (or two tests) never share circuit-breaker or rate-limit state.
FastAPI's ``Depends()`` factories below read from it.
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache

import structlog
from fastapi import Request

from transcript_service.adapters.outbound.cache import create_ephemeral_cache
from transcript_service.adapters.outbound.persistence.database import (
    create_engine,
    create_session_factory,
    create_tables,
)
from transcript_service.adapters.outbound.persistence.repositories import (
    SQLAlchemyTranscriptCacheRepository,
)
from transcript_service.adapters.outbound.transcripts import build_provider_registry
from transcript_service.application.cache import CacheLayer
from transcript_service.application.services import TranscriptService
from transcript_service.config import Settings, get_settings
from transcript_service.ports.outbound import EphemeralCachePort, TranscriptProvider
from transcript_service.shared.providers import (
    FetchOrchestrator,
    HealthConfig,
    ProviderHealthTracker,
    RateLimiterRegistry,
)

logger = structlog.get_logger(__name__)


# ── Settings ─────────────────────────────────────────────────
@lru_cache(maxsize=1)
def get_cached_settings() -> Settings:
    return get_settings()


# ═══════════════════════════════════════════════════════════════
#  Container
# ═══════════════════════════════════════════════════════════════
class Container:
    def __init__(
        self,
        settings: Settings,
        *,
        providers: dict[str, TranscriptProvider] | None = None,
        ephemeral: EphemeralCachePort | None = None,
    ) -> None:
        self.settings = settings

        # ── Cache tiers ──────────────────────────────────────
        self.engine = create_engine(settings)
        self.session_factory = create_session_factory(engine=self.engine)
        self.ephemeral = ephemeral or create_ephemeral_cache(
            settings.redis_url,
            settings.redis_max_connections,
            default_ttl_seconds=settings.transcript_cache_ephemeral_ttl_seconds,
        )
        self.cache = CacheLayer(
            self.ephemeral,
            SQLAlchemyTranscriptCacheRepository(self.session_factory),
            positive_ttl=timedelta(hours=settings.transcript_cache_positive_ttl_hours),
            negative_ttl=timedelta(hours=settings.transcript_cache_negative_ttl_hours),
            ephemeral_ttl_seconds=settings.transcript_cache_ephemeral_ttl_seconds,
            version=settings.transcript_cache_version,
        )

        # ── Provider chain ───────────────────────────────────
        self.registry = build_provider_registry(settings, providers)
        self.health = ProviderHealthTracker(
            HealthConfig(
                failure_threshold=settings.provider_failure_threshold,
                failure_window_seconds=settings.provider_failure_window_seconds,
                success_reset_threshold=settings.provider_success_reset_threshold,
                default_cooldown_base_seconds=settings.provider_cooldown_base_seconds,
                max_cooldown_seconds=settings.provider_max_cooldown_seconds,
            )
        )
        self.limiters = RateLimiterRegistry()
        self.orchestrator = FetchOrchestrator(
            self.registry,
            health=self.health,
            limiters=self.limiters,
            deadline_seconds=settings.fetch_deadline_seconds,
            health_log_interval=settings.provider_health_log_interval,
            retry_jitter=settings.provider_retry_jitter,
        )
        self.transcripts = TranscriptService(self.cache, self.orchestrator)

    async def startup(self) -> None:
        await create_tables(self.engine)
        logger.info("container_started", database=self.engine.url.get_backend_name())

    async def shutdown(self) -> None:
        for entry in self.registry:
            try:
                await entry.provider.close()
            except Exception as exc:
                logger.warning("provider_close_failed", provider=entry.provider_id, error=str(exc))
        await self.ephemeral.close()
        await self.engine.dispose()
        logger.info("container_stopped")


# ── Request-scoped accessors ─────────────────────────────────
def get_container(request: Request) -> Container:
    return request.app.state.container


def get_transcript_service(request: Request) -> TranscriptService:
    return get_container(request).transcripts


def get_orchestrator(request: Request) -> FetchOrchestrator:
    return get_container(request).orchestrator
