"""Fetch orchestrator — the main entry-point for provider calls.

Composes ProviderRegistry, ProviderHealthTracker, RateLimiterRegistry and
RetryPolicy into one fallback walk.  Providers are tried strictly in
priority order, one at a time; the first provider that returns content
wins and the rest are never called.  Individual provider failures are
always absorbed here; only total exhaustion reaches the caller, as a
``FetchFailure`` value.
"""

from __future__ import annotations

import asyncio
import math
import time
from dataclasses import asdict
from typing import Any, Callable

import structlog

from transcript_service.domain.entities import (
    FetchFailure,
    FetchOutcome,
    FetchSuccess,
    ProviderAttemptError,
    ProviderFetchResult,
)
from transcript_service.domain.exceptions import ProviderNotConfiguredError
from transcript_service.shared.observability.metrics import (
    PROVIDER_ATTEMPTS_TOTAL,
    PROVIDER_LATENCY,
)
from transcript_service.shared.providers.health import ProviderHealthTracker
from transcript_service.shared.providers.rate_limiter import RateLimitConfig, RateLimiterRegistry
from transcript_service.shared.providers.registry import ProviderRegistry, RegisteredProvider
from transcript_service.shared.providers.retry import RetryOptions, RetryPolicy, is_rate_limit_error
from transcript_service.shared.providers.types import ProviderStatus

logger = structlog.get_logger(__name__)


class FetchOrchestrator:
    """Ordered fallback across transcript providers.

    Usage::

        orchestrator = FetchOrchestrator(registry, health=ProviderHealthTracker())
        outcome = await orchestrator.fetch_with_fallback("dQw4w9WgXcQ")
        if outcome.ok:
            transcript = outcome.payload

    ``deadline_seconds`` bounds the whole chain; once it is spent the
    remaining providers are not tried.  ``None`` or ``0`` disables it.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        *,
        health: ProviderHealthTracker | None = None,
        limiters: RateLimiterRegistry | None = None,
        retry_policy: RetryPolicy | None = None,
        deadline_seconds: float | None = None,
        health_log_interval: int = 50,
        retry_jitter: bool = False,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._registry = registry
        self._health = health or ProviderHealthTracker()
        self._limiters = limiters or RateLimiterRegistry()
        self._retry = retry_policy or RetryPolicy()
        self._deadline = deadline_seconds or None
        self._health_log_interval = health_log_interval
        self._retry_jitter = retry_jitter
        self._clock = clock
        self._wall_clock = wall_clock

        self._total_requests = 0
        self._last_request_at: float | None = None

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    @property
    def health(self) -> ProviderHealthTracker:
        return self._health

    @property
    def limiters(self) -> RateLimiterRegistry:
        return self._limiters

    # ── Main entry-point ─────────────────────────────────────
    async def fetch_with_fallback(self, video_id: str) -> FetchOutcome:
        errors: list[ProviderAttemptError] = []
        started = self._clock()
        log = logger.bind(video_id=video_id)

        self._total_requests += 1
        self._last_request_at = self._wall_clock()
        if self._health_log_interval > 0 and self._total_requests % self._health_log_interval == 0:
            self._log_health_stats()

        for entry in self._registry.by_priority():
            pid = entry.provider_id

            if not entry.configured:
                continue

            if self._health.is_in_cooldown(pid):
                log.debug(
                    "provider_skipped_cooldown",
                    provider=pid,
                    remaining_cooldown_s=math.ceil(self._health.cooldown_remaining(pid)),
                )
                continue

            budget = self._remaining_budget(started)
            if budget is not None and budget <= 0:
                errors.append(
                    ProviderAttemptError(pid, f"Fetch deadline of {self._deadline}s exceeded")
                )
                log.warning("fetch_deadline_exceeded", provider=pid, deadline_s=self._deadline)
                continue

            attempt_start = self._clock()
            try:
                if budget is None:
                    result = await self._call_provider(entry, video_id)
                else:
                    result = await asyncio.wait_for(
                        self._call_provider(entry, video_id), timeout=budget
                    )
            except ProviderNotConfiguredError as exc:
                log.debug("provider_not_configured", provider=pid, error=exc.message)
                continue
            except asyncio.TimeoutError:
                message = f"Timeout after {entry.descriptor.timeout_seconds}s"
                if budget is not None and budget < entry.descriptor.timeout_seconds:
                    message = f"Fetch deadline of {self._deadline}s exceeded"
                self._record_failure(entry, message, rate_limited=False, errors=errors)
                log.warning("provider_timeout", provider=pid, error=message)
                continue
            except Exception as exc:
                rate_limited = is_rate_limit_error(exc)
                self._record_failure(entry, exc, rate_limited=rate_limited, errors=errors)
                log.debug(
                    "provider_failed",
                    provider=pid,
                    error=str(exc),
                    rate_limited=rate_limited,
                )
                continue
            finally:
                PROVIDER_LATENCY.labels(provider=pid).observe(self._clock() - attempt_start)

            if result.has_content and result.transcript is not None:
                self._health.record_success(pid)
                PROVIDER_ATTEMPTS_TOTAL.labels(provider=pid, outcome="success").inc()
                log.debug(
                    "transcript_fetched",
                    provider=pid,
                    source=result.source or result.transcript.source,
                    segment_count=len(result.transcript.segments),
                    attempts=len(errors) + 1,
                )
                return FetchSuccess(payload=result.transcript, provider_id=pid)

            self._record_failure(entry, "No transcript found", rate_limited=False, errors=errors)
            log.debug("provider_no_content", provider=pid)

        failure = FetchFailure(errors=tuple(errors))
        log.warning(
            "all_transcript_providers_failed",
            errors=[e.to_dict() for e in errors],
            message=failure.message,
        )
        return failure

    # ── Provider-level attempt (limiter + retries) ───────────
    async def _call_provider(self, entry: RegisteredProvider, video_id: str) -> ProviderFetchResult:
        descriptor = entry.descriptor

        async def _once() -> ProviderFetchResult:
            return await asyncio.wait_for(
                entry.provider.fetch(video_id), timeout=descriptor.timeout_seconds
            )

        async def _with_retry() -> ProviderFetchResult:
            if not descriptor.supports_retry:
                return await _once()

            def _on_retry(attempt: int, delay: float, error: BaseException) -> None:
                logger.warning(
                    "provider_retry",
                    provider=descriptor.provider_id,
                    video_id=video_id,
                    attempt=attempt,
                    delay_s=round(delay, 3),
                    error=str(error),
                )

            return await self._retry.execute(
                _once,
                RetryOptions(
                    max_retries=descriptor.max_retries,
                    base_delay=descriptor.retry_base_delay_seconds,
                    max_delay=descriptor.retry_max_delay_seconds,
                    on_retry=_on_retry,
                    jitter=self._retry_jitter,
                ),
            )

        if not descriptor.rate_limited:
            return await _with_retry()

        limiter = self._limiters.get(
            descriptor.provider_id,
            RateLimitConfig(
                requests_per_minute=descriptor.requests_per_minute,
                max_concurrent=descriptor.max_concurrent,
                inter_request_delay_seconds=descriptor.inter_request_delay_seconds,
            ),
        )
        async with limiter.slot():
            return await _with_retry()

    def _record_failure(
        self,
        entry: RegisteredProvider,
        error: BaseException | str,
        *,
        rate_limited: bool,
        errors: list[ProviderAttemptError],
    ) -> None:
        pid = entry.provider_id
        self._health.record_failure(
            pid,
            error,
            rate_limited=rate_limited,
            cooldown_base_seconds=entry.descriptor.cooldown_base_seconds,
        )
        PROVIDER_ATTEMPTS_TOTAL.labels(
            provider=pid, outcome="rate_limited" if rate_limited else "failure"
        ).inc()
        errors.append(ProviderAttemptError(pid, str(error), is_rate_limited=rate_limited))

    def _remaining_budget(self, started: float) -> float | None:
        if self._deadline is None:
            return None
        return self._deadline - (self._clock() - started)

    # ── Health observation ───────────────────────────────────
    def provider_statuses(self) -> list[ProviderStatus]:
        statuses: list[ProviderStatus] = []
        for entry in self._registry.by_priority():
            pid = entry.provider_id
            state = self._health.snapshot(pid)
            remaining = self._health.cooldown_remaining(pid)
            statuses.append(
                ProviderStatus(
                    provider_id=pid,
                    name=entry.descriptor.name or pid,
                    kind=entry.descriptor.kind.value,
                    priority=entry.descriptor.priority,
                    configured=entry.configured,
                    in_cooldown=remaining > 0,
                    cooldown_remaining_seconds=math.ceil(remaining),
                    total_requests=state.total_requests,
                    total_successes=state.total_successes,
                    total_failures=state.total_failures,
                    consecutive_failures=state.consecutive_failures,
                    success_rate=state.success_rate,
                    last_error=state.last_error,
                    last_success=state.last_success_at,
                )
            )
        return statuses

    def get_provider_status(self) -> dict[str, Any]:
        return {
            "providers": {s.provider_id: asdict(s) for s in self.provider_statuses()},
            "stats": {
                "total_requests": self._total_requests,
                "last_request_at": self._last_request_at,
            },
        }

    def reset_provider(self, provider_id: str) -> None:
        """Admin reset — clears health history and limiter counters for a provider."""
        self._health.reset(provider_id)
        self._limiters.reset(provider_id)
        logger.info("provider_admin_reset", provider=provider_id)

    def reset_all(self) -> None:
        self._health.reset_all()
        self._limiters.reset_all()
        logger.info("provider_admin_reset_all")

    def _log_health_stats(self) -> None:
        summary = {
            s.provider_id: {
                "total_requests": s.total_requests,
                "success_rate": s.success_rate,
                "consecutive_failures": s.consecutive_failures,
                "in_cooldown": s.in_cooldown,
                "last_error": s.last_error,
            }
            for s in self.provider_statuses()
        }
        logger.info(
            "transcript_provider_health",
            total_requests=self._total_requests,
            providers=summary,
        )
