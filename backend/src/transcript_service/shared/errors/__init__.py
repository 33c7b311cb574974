"""Global exception handlers — map domain errors to HTTP responses.

Every domain error renders as ``{"code": ..., "message": ...}``.  Handlers
are registered most-specific first; Starlette resolves by MRO anyway, so
the order only matters for readability.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse
import structlog

from transcript_service.domain.exceptions import (
    CacheError,
    DomainError,
    ProviderError,
    TranscriptNotFoundError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

# (exception, HTTP status, log event or None)
_DOMAIN_ERROR_STATUS: tuple[tuple[type[DomainError], int, str | None], ...] = (
    (ValidationError, 422, None),
    (TranscriptNotFoundError, 404, None),
    (ProviderError, 502, "provider_error_http"),
    (CacheError, 503, "cache_error_http"),
    (DomainError, 400, None),
)


def _domain_handler(status_code: int, log_event: str | None):  # type: ignore[no-untyped-def]
    async def handle(request: Request, exc: DomainError) -> ORJSONResponse:
        if log_event is not None:
            logger.error(log_event, code=exc.code, message=exc.message, path=request.url.path)
        return ORJSONResponse(
            status_code=status_code,
            content={"code": exc.code, "message": exc.message},
        )

    return handle


def register_exception_handlers(app: FastAPI) -> None:
    """Register all domain→HTTP exception mappings."""
    for exc_class, status_code, log_event in _DOMAIN_ERROR_STATUS:
        app.add_exception_handler(exc_class, _domain_handler(status_code, log_event))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("unhandled_exception", error=str(exc))
        return ORJSONResponse(
            status_code=500,
            content={
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            },
        )
