"""Sliding-window rate limiter with a concurrency cap.

Each rate-limited dependency gets one limiter.  ``acquire`` waits until
a request fits the trailing window, the concurrency cap, and the minimum
spacing between requests; ``release`` gives the concurrency slot back.
Timestamps always age out of the window, so ``acquire`` eventually
succeeds for any quota > 0, but there is no fairness between waiters.
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable

import structlog

logger = structlog.get_logger(__name__)

WINDOW_SECONDS = 60.0
GUARD_BAND_SECONDS = 0.1
POLL_INTERVAL_SECONDS = 0.2


@dataclass(frozen=True)
class RateLimitConfig:
    requests_per_minute: int = 60
    max_concurrent: int = 5
    inter_request_delay_seconds: float = 0.1
    warning_threshold: float = 0.90


class SlidingWindowRateLimiter:
    """Per-dependency limiter.  Check-and-increment is atomic under a lock."""

    def __init__(
        self,
        limiter_id: str,
        config: RateLimitConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        window_seconds: float = WINDOW_SECONDS,
    ) -> None:
        self._limiter_id = limiter_id
        self._config = config or RateLimitConfig()
        if self._config.requests_per_minute <= 0 or self._config.max_concurrent <= 0:
            raise ValueError("requests_per_minute and max_concurrent must be positive")
        self._clock = clock
        self._sleep = sleep
        self._window = window_seconds

        self._timestamps: deque[float] = deque()
        self._active = 0
        self._last_request_at: float | None = None
        self._lock = threading.Lock()
        self._warning_emitted = False

    @property
    def limiter_id(self) -> str:
        return self._limiter_id

    # ── Acquisition ──────────────────────────────────────────
    async def acquire(self) -> None:
        """Wait for a slot, then take it."""
        while True:
            wait = self._try_acquire()
            if wait <= 0:
                return
            logger.debug("rate_limiter_waiting", limiter=self._limiter_id, wait_s=round(wait, 3))
            await self._sleep(wait)

    def release(self) -> None:
        with self._lock:
            self._active = max(0, self._active - 1)

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Scoped acquisition: the slot is released on every exit path."""
        await self.acquire()
        try:
            yield
        finally:
            self.release()

    # ── Observation ──────────────────────────────────────────
    @property
    def requests_in_window(self) -> int:
        with self._lock:
            self._evict(self._clock())
            return len(self._timestamps)

    @property
    def active_requests(self) -> int:
        with self._lock:
            return self._active

    @property
    def remaining_pct(self) -> float:
        with self._lock:
            self._evict(self._clock())
            used = len(self._timestamps)
            return round(max(0.0, 1.0 - used / self._config.requests_per_minute) * 100, 1)

    def reset(self) -> None:
        """Force-reset all counters (for admin override)."""
        with self._lock:
            self._timestamps.clear()
            self._active = 0
            self._last_request_at = None
            self._warning_emitted = False

    # ── Internals ────────────────────────────────────────────
    def _try_acquire(self) -> float:
        """Grant a slot and return 0, or return how long to wait before re-checking."""
        with self._lock:
            now = self._clock()
            self._evict(now)

            if len(self._timestamps) >= self._config.requests_per_minute:
                oldest = self._timestamps[0]
                return max(oldest + self._window - now, 0.0) + GUARD_BAND_SECONDS

            if self._active >= self._config.max_concurrent:
                return POLL_INTERVAL_SECONDS

            if self._last_request_at is not None:
                since_last = now - self._last_request_at
                if since_last < self._config.inter_request_delay_seconds:
                    return self._config.inter_request_delay_seconds - since_last

            self._active += 1
            self._last_request_at = now
            self._timestamps.append(now)
            self._check_warning()
            return 0.0

    def _evict(self, now: float) -> None:
        """Remove timestamps outside the sliding window. Caller holds lock."""
        cutoff = now - self._window
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()
        if len(self._timestamps) / self._config.requests_per_minute < self._config.warning_threshold:
            self._warning_emitted = False

    def _check_warning(self) -> None:
        """Emit early warning when approaching the limit. Caller holds lock."""
        if self._warning_emitted:
            return
        usage_pct = len(self._timestamps) / self._config.requests_per_minute
        if usage_pct >= self._config.warning_threshold:
            self._warning_emitted = True
            logger.warning(
                "rate_limit_warning",
                limiter=self._limiter_id,
                usage_pct=round(usage_pct * 100, 1),
                requests_used=len(self._timestamps),
                rpm_limit=self._config.requests_per_minute,
            )


class RateLimiterRegistry:
    """Owns one limiter per rate-limited dependency, created on first use."""

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._limiters: dict[str, SlidingWindowRateLimiter] = {}
        self._lock = threading.Lock()

    def get(self, limiter_id: str, config: RateLimitConfig | None = None) -> SlidingWindowRateLimiter:
        with self._lock:
            limiter = self._limiters.get(limiter_id)
            if limiter is None:
                limiter = SlidingWindowRateLimiter(
                    limiter_id, config, clock=self._clock, sleep=self._sleep
                )
                self._limiters[limiter_id] = limiter
            return limiter

    def reset(self, limiter_id: str) -> None:
        with self._lock:
            limiter = self._limiters.get(limiter_id)
        if limiter is not None:
            limiter.reset()

    def reset_all(self) -> None:
        with self._lock:
            limiters = list(self._limiters.values())
        for limiter in limiters:
            limiter.reset()
