"""Multi-provider resilience framework.

Provides ordered fallback, circuit breaking with exponential cooldowns,
sliding-window rate limiting, and classified retries for transcript
providers.
"""

from transcript_service.shared.providers.types import (
    HealthConfig,
    HealthState,
    ProviderDescriptor,
    ProviderHealthState,
    ProviderKind,
    ProviderStatus,
)
from transcript_service.shared.providers.health import ProviderHealthTracker
from transcript_service.shared.providers.rate_limiter import (
    RateLimitConfig,
    RateLimiterRegistry,
    SlidingWindowRateLimiter,
)
from transcript_service.shared.providers.retry import RetryOptions, RetryPolicy, is_rate_limit_error
from transcript_service.shared.providers.registry import ProviderRegistry
from transcript_service.shared.providers.orchestrator import FetchOrchestrator

__all__ = [
    "FetchOrchestrator",
    "HealthConfig",
    "HealthState",
    "ProviderDescriptor",
    "ProviderHealthState",
    "ProviderHealthTracker",
    "ProviderKind",
    "ProviderRegistry",
    "ProviderStatus",
    "RateLimitConfig",
    "RateLimiterRegistry",
    "RetryOptions",
    "RetryPolicy",
    "SlidingWindowRateLimiter",
    "is_rate_limit_error",
]
