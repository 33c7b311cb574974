"""FastAPI middleware stack — request ID, logging, metrics."""

from __future__ import annotations

import re
import time
import uuid
from collections.abc import Awaitable, Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from transcript_service.shared.observability.metrics import (
    HTTP_REQUEST_DURATION,
    HTTP_REQUESTS_TOTAL,
)

logger = structlog.get_logger(__name__)

# /api/v1/transcripts/<anything> collapses to one label
_TRANSCRIPT_PATH_RE = re.compile(r"^(/api/v\d+/transcripts)/(?!cache/purge$).+$")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Injects a unique X-Request-ID header into every request/response."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")
        response.headers["X-Request-ID"] = request_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """One ``http_request`` event per request.

    4xx and upstream failures (502, 503) log at warning, any other 5xx
    at error.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        start = time.monotonic()
        response = await call_next(request)
        elapsed_ms = round((time.monotonic() - start) * 1000, 2)

        status = response.status_code
        if status >= 500 and status not in (502, 503):
            emit = logger.error
        elif status >= 400:
            emit = logger.warning
        else:
            emit = logger.info
        emit(
            "http_request",
            method=request.method,
            path=request.url.path,
            query=request.url.query or None,
            status=status,
            duration_ms=elapsed_ms,
            client=request.client.host if request.client else "unknown",
        )
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Collects Prometheus HTTP metrics."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        start = time.monotonic()
        response = await call_next(request)
        duration = time.monotonic() - start

        endpoint = normalize_endpoint(request.url.path)
        HTTP_REQUESTS_TOTAL.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()
        HTTP_REQUEST_DURATION.labels(
            method=request.method,
            endpoint=endpoint,
        ).observe(duration)

        return response


def normalize_endpoint(path: str) -> str:
    """Collapse per-video and per-provider paths to keep label cardinality flat."""
    match = _TRANSCRIPT_PATH_RE.match(path)
    if match:
        suffix = "/{video_id}/cache" if path.endswith("/cache") else "/{video_id}"
        return match.group(1) + suffix
    if "/providers/" in path and path.endswith("/reset") and not path.endswith("/providers/reset"):
        return path.split("/providers/")[0] + "/providers/{provider_id}/reset"
    return path
