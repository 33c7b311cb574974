"""Per-provider health tracker and circuit breaker.

State machine:
    HEALTHY      → (rate-limit error, or N consecutive failures) → COOLING_DOWN
    COOLING_DOWN → (timer elapses)                              → eligible again
    any          → (M consecutive successes)                    → fully reset

A cooling-down provider becomes eligible again once ``cooldown_until`` has
passed, but its failure history is only cleared by enough consecutive
successes.
"""

from __future__ import annotations

import threading
import time
from typing import Callable

import structlog

from transcript_service.shared.observability.metrics import PROVIDER_COOLDOWNS_TOTAL
from transcript_service.shared.providers.retry import is_rate_limit_error
from transcript_service.shared.providers.types import (
    HealthConfig,
    HealthState,
    ProviderHealthState,
)

logger = structlog.get_logger(__name__)


class ProviderHealthTracker:
    """Thread-safe registry of per-provider health state.

    State is created lazily on first reference and lives as long as the
    tracker.  Inject one tracker per pipeline; tests build their own.
    """

    def __init__(
        self,
        config: HealthConfig | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config or HealthConfig()
        self._clock = clock
        self._states: dict[str, ProviderHealthState] = {}
        self._lock = threading.Lock()

    @property
    def config(self) -> HealthConfig:
        return self._config

    # ── Recording ────────────────────────────────────────────
    def record_failure(
        self,
        provider_id: str,
        error: BaseException | str,
        *,
        rate_limited: bool | None = None,
        cooldown_base_seconds: float | None = None,
    ) -> None:
        """Record a failed attempt; may start (or extend) a cooldown."""
        if rate_limited is None:
            rate_limited = isinstance(error, BaseException) and is_rate_limit_error(error)
        message = str(error)
        base = (
            cooldown_base_seconds
            if cooldown_base_seconds is not None
            else self._config.default_cooldown_base_seconds
        )

        with self._lock:
            state = self._get_or_create(provider_id)
            now = self._clock()

            state.failure_timestamps.append(now)
            window_start = now - self._config.failure_window_seconds
            state.failure_timestamps = [t for t in state.failure_timestamps if t >= window_start]
            state.consecutive_failures += 1
            state.consecutive_successes = 0
            state.last_error = message
            state.total_failures += 1
            state.total_requests += 1

            if rate_limited or state.consecutive_failures >= self._config.failure_threshold:
                cooldown = self._cooldown_seconds(base, state.consecutive_failures)
                state.cooldown_until = now + cooldown
                PROVIDER_COOLDOWNS_TOTAL.labels(provider=provider_id).inc()
                logger.warning(
                    "provider_cooldown_entered",
                    provider=provider_id,
                    cooldown_s=cooldown,
                    consecutive_failures=state.consecutive_failures,
                    rate_limited=rate_limited,
                    error=message,
                )

    def record_success(self, provider_id: str) -> None:
        with self._lock:
            state = self._get_or_create(provider_id)
            state.consecutive_successes += 1
            state.consecutive_failures = 0
            state.last_success_at = self._clock()
            state.total_successes += 1
            state.total_requests += 1

            if state.consecutive_successes >= self._config.success_reset_threshold:
                was_cooling = state.cooldown_until is not None
                state.cooldown_until = None
                state.failure_timestamps = []
                if was_cooling:
                    logger.info(
                        "provider_health_restored",
                        provider=provider_id,
                        consecutive_successes=state.consecutive_successes,
                    )

    # ── Queries ──────────────────────────────────────────────
    def is_in_cooldown(self, provider_id: str) -> bool:
        with self._lock:
            state = self._get_or_create(provider_id)
            return state.cooldown_until is not None and self._clock() < state.cooldown_until

    def cooldown_remaining(self, provider_id: str) -> float:
        """Seconds left in the current cooldown, 0.0 when not cooling down."""
        with self._lock:
            state = self._get_or_create(provider_id)
            if state.cooldown_until is None:
                return 0.0
            return max(0.0, state.cooldown_until - self._clock())

    def state(self, provider_id: str) -> HealthState:
        if self.is_in_cooldown(provider_id):
            return HealthState.COOLING_DOWN
        return HealthState.HEALTHY

    def snapshot(self, provider_id: str) -> ProviderHealthState:
        """Copy of the provider's state; mutating it has no effect."""
        with self._lock:
            return self._get_or_create(provider_id).copy()

    # ── Admin ────────────────────────────────────────────────
    def reset(self, provider_id: str) -> bool:
        """Forget a provider's history (e.g. after a credential change)."""
        with self._lock:
            removed = self._states.pop(provider_id, None) is not None
        if removed:
            logger.info("provider_health_reset", provider=provider_id)
        return removed

    def reset_all(self) -> None:
        with self._lock:
            self._states.clear()
        logger.info("provider_health_reset_all")

    # ── Internals ────────────────────────────────────────────
    def _get_or_create(self, provider_id: str) -> ProviderHealthState:
        """Caller must hold lock."""
        state = self._states.get(provider_id)
        if state is None:
            state = ProviderHealthState(provider_id=provider_id)
            self._states[provider_id] = state
        return state

    def _cooldown_seconds(self, base: float, consecutive_failures: int) -> float:
        doublings = min(max(consecutive_failures - 1, 0), self._config.max_doublings)
        return min(base * (2**doublings), self._config.max_cooldown_seconds)
