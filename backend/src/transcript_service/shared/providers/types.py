"""Core types for the multi-provider resilience framework."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


class HealthState(str, enum.Enum):
    """Circuit state of a transcript provider."""

    HEALTHY = "healthy"
    COOLING_DOWN = "cooling_down"


class ProviderKind(str, enum.Enum):
    SCRAPER = "scraper"
    API = "api"


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static configuration for a single provider.

    Attributes:
        provider_id:     Unique identifier (e.g. "supadata").
        priority:        Lower = tried first.
        name:            Human-readable name for status output.
        kind:            Scraper library or paid API.
        rate_limited:    Wrap calls in the provider's sliding-window limiter.
        requires_config: Provider needs credentials before it can be used.
        cooldown_base_seconds: Base of the exponential cooldown.
        max_retries:     Local retries for transient errors (0 = no retry).
        retry_base_delay_seconds / retry_max_delay_seconds: Backoff bounds.
        requests_per_minute / max_concurrent / inter_request_delay_seconds:
                         Limiter settings, used only when ``rate_limited``.
        timeout_seconds: Per-call timeout.
    """

    provider_id: str
    priority: int = 10
    name: str = ""
    kind: ProviderKind = ProviderKind.API
    rate_limited: bool = False
    requires_config: bool = True
    cooldown_base_seconds: float = 300.0
    max_retries: int = 0
    retry_base_delay_seconds: float = 2.0
    retry_max_delay_seconds: float = 30.0
    requests_per_minute: int = 60
    max_concurrent: int = 5
    inter_request_delay_seconds: float = 0.1
    timeout_seconds: float = 30.0

    @property
    def supports_retry(self) -> bool:
        return self.max_retries > 0


@dataclass(frozen=True)
class HealthConfig:
    """Thresholds shared by every provider's circuit breaker."""

    failure_threshold: int = 3
    failure_window_seconds: float = 600.0
    success_reset_threshold: int = 3
    default_cooldown_base_seconds: float = 300.0
    max_cooldown_seconds: float = 3600.0
    max_doublings: int = 3


@dataclass
class ProviderHealthState:
    """Mutable per-provider health record.  Owned by ``ProviderHealthTracker``."""

    provider_id: str
    failure_timestamps: list[float] = field(default_factory=list)
    consecutive_failures: int = 0
    consecutive_successes: int = 0
    cooldown_until: float | None = None
    last_error: str | None = None
    last_success_at: float | None = None
    total_requests: int = 0
    total_successes: int = 0
    total_failures: int = 0

    def copy(self) -> ProviderHealthState:
        return ProviderHealthState(
            provider_id=self.provider_id,
            failure_timestamps=list(self.failure_timestamps),
            consecutive_failures=self.consecutive_failures,
            consecutive_successes=self.consecutive_successes,
            cooldown_until=self.cooldown_until,
            last_error=self.last_error,
            last_success_at=self.last_success_at,
            total_requests=self.total_requests,
            total_successes=self.total_successes,
            total_failures=self.total_failures,
        )

    @property
    def success_rate(self) -> float | None:
        """Percentage with one decimal, or None before the first request."""
        if self.total_requests == 0:
            return None
        return round(self.total_successes / self.total_requests * 100, 1)


@dataclass
class ProviderStatus:
    """Read-only status row returned by ``FetchOrchestrator.get_provider_status``."""

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
    success_rate: float | None
    last_error: str | None
    last_success: float | None
