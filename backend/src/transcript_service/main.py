"""FastAPI application entry-point.

Assembles routers, middleware, exception handlers, and lifecycle hooks.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from transcript_service.adapters.inbound.rest.routers import (
    health_router,
    providers_router,
    transcripts_router,
)
from transcript_service.config import Settings
from transcript_service.dependencies import Container, get_cached_settings
from transcript_service.ports.outbound import TranscriptProvider
from transcript_service.shared.errors import register_exception_handlers
from transcript_service.shared.middleware import (
    LoggingMiddleware,
    MetricsMiddleware,
    RequestIdMiddleware,
)
from transcript_service.shared.observability import configure_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifecycle — startup & shutdown hooks."""
    settings: Settings = app.state.settings
    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.is_production,
    )
    logger.info("application_starting", env=settings.app_env.value)

    container = Container(settings, providers=app.state.provider_overrides)
    await container.startup()
    app.state.container = container

    yield

    await container.shutdown()
    logger.info("application_shutdown")


def create_app(
    settings: Settings | None = None,
    *,
    providers: dict[str, TranscriptProvider] | None = None,
) -> FastAPI:
    """Application factory — creates a fully configured FastAPI instance.

    ``providers`` replaces transcript provider adapters by id.
    """
    settings = settings or get_cached_settings()

    app = FastAPI(
        title="Transcript Service",
        description=(
            "Resilient multi-provider YouTube transcript acquisition with "
            "circuit breaking, rate limiting and a two-tier cache."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.provider_overrides = providers

    # ── Middleware (order matters: first added = outermost) ───
    cors_origins = settings.cors_origins
    # CORSMiddleware rejects ["*"] together with allow_credentials
    allow_all_origins = "*" in cors_origins

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[] if allow_all_origins else cors_origins,
        allow_origin_regex=".*" if allow_all_origins else None,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if settings.prometheus_enabled:
        app.add_middleware(MetricsMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # ── Exception handlers ───────────────────────────────────
    register_exception_handlers(app)

    # ── REST routers (versioned) ─────────────────────────────
    api_v1 = "/api/v1"
    app.include_router(health_router, prefix=api_v1)
    app.include_router(transcripts_router, prefix=api_v1)
    app.include_router(providers_router, prefix=api_v1)

    @app.get("/")
    async def root():
        return {
            "message": f"{settings.app_name} is running",
            "docs": "/docs",
            "health": f"{api_v1}/health",
        }

    return app


# Uvicorn entry-point: ``uvicorn transcript_service.main:app``
app = create_app()
