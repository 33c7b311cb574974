"""Prometheus metrics for the transcript service."""

from __future__ import annotations

from prometheus_client import Counter, Histogram


# ── HTTP metrics ─────────────────────────────────────────────
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Provider metrics ─────────────────────────────────────────
PROVIDER_ATTEMPTS_TOTAL = Counter(
    "transcript_provider_attempts_total",
    "Transcript provider attempts by outcome",
    ["provider", "outcome"],  # success / failure / rate_limited
)

PROVIDER_LATENCY = Histogram(
    "transcript_provider_latency_seconds",
    "Transcript provider call latency, including retries and limiter waits",
    ["provider"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

PROVIDER_COOLDOWNS_TOTAL = Counter(
    "transcript_provider_cooldowns_total",
    "Times a provider entered cooldown",
    ["provider"],
)

# ── Cache metrics ────────────────────────────────────────────
CACHE_LOOKUPS_TOTAL = Counter(
    "transcript_cache_lookups_total",
    "Transcript cache lookups by tier and result",
    ["tier", "result"],  # ephemeral|durable / hit|miss|error
)

CACHE_WRITES_TOTAL = Counter(
    "transcript_cache_writes_total",
    "Transcript cache writes",
    ["kind"],  # positive / negative
)
