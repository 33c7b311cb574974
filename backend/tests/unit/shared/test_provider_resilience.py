"""Tests for the multi-provider resilience system.

Covers ProviderHealthTracker, RetryPolicy, SlidingWindowRateLimiter,
ProviderRegistry and FetchOrchestrator.  All time is fake: clocks are
injected and sleeps advance them instead of waiting.
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from fakes import FakeClock, FakeProvider, VIDEO_ID
from transcript_service.domain.exceptions import (
    MalformedProviderResponseError,
    ProviderError,
    ProviderNotConfiguredError,
    ProviderRateLimitedError,
)
from transcript_service.shared.providers import (
    FetchOrchestrator,
    HealthConfig,
    HealthState,
    ProviderDescriptor,
    ProviderHealthTracker,
    ProviderRegistry,
    RateLimitConfig,
    RateLimiterRegistry,
    RetryOptions,
    RetryPolicy,
    SlidingWindowRateLimiter,
    is_rate_limit_error,
)
from transcript_service.shared.providers.registry import apply_priority_order
from transcript_service.shared.providers.retry import calculate_delay


# ═══════════════════════════════════════════════════════════════
#  Fixtures
# ═══════════════════════════════════════════════════════════════
@pytest.fixture
def health(clock: FakeClock) -> ProviderHealthTracker:
    return ProviderHealthTracker(HealthConfig(), clock=clock)


def _descriptor(provider_id: str, priority: int, **kwargs) -> ProviderDescriptor:  # type: ignore[no-untyped-def]
    kwargs.setdefault("requires_config", False)
    return ProviderDescriptor(provider_id=provider_id, priority=priority, **kwargs)


def _orchestrator(
    providers: list[tuple[ProviderDescriptor, FakeProvider]],
    clock: FakeClock,
    *,
    health: ProviderHealthTracker | None = None,
    deadline_seconds: float | None = None,
) -> FetchOrchestrator:
    return FetchOrchestrator(
        ProviderRegistry(providers),
        health=health or ProviderHealthTracker(HealthConfig(), clock=clock),
        limiters=RateLimiterRegistry(clock=clock, sleep=clock.sleep),
        retry_policy=RetryPolicy(sleep=clock.sleep),
        deadline_seconds=deadline_seconds,
        clock=clock,
        wall_clock=clock,
    )


# ═══════════════════════════════════════════════════════════════
#  ProviderHealthTracker
# ═══════════════════════════════════════════════════════════════
class TestProviderHealthTracker:
    def test_initial_state_is_healthy(self, health):
        assert health.state("alpha") == HealthState.HEALTHY
        assert not health.is_in_cooldown("alpha")
        assert health.snapshot("alpha").success_rate is None

    def test_cooldown_after_threshold_consecutive_failures(self, health):
        health.record_failure("alpha", "boom", rate_limited=False)
        health.record_failure("alpha", "boom", rate_limited=False)
        assert not health.is_in_cooldown("alpha")

        health.record_failure("alpha", "boom", rate_limited=False)
        assert health.is_in_cooldown("alpha")
        assert health.state("alpha") == HealthState.COOLING_DOWN
        # third failure: base * 2**(3-1)
        assert health.cooldown_remaining("alpha") == pytest.approx(1200.0)

    def test_rate_limit_error_enters_cooldown_immediately(self, health):
        health.record_failure("alpha", ProviderRateLimitedError("alpha", "429 Too Many Requests"))
        assert health.is_in_cooldown("alpha")
        assert health.cooldown_remaining("alpha") == pytest.approx(300.0)

    def test_cooldown_formula_doubles_then_caps(self, clock):
        tracker = ProviderHealthTracker(HealthConfig(max_cooldown_seconds=3600), clock=clock)
        observed = []
        for _ in range(5):
            tracker.record_failure("alpha", "quota", rate_limited=True)
            observed.append(tracker.cooldown_remaining("alpha"))
        assert observed == [300.0, 600.0, 1200.0, 2400.0, 2400.0]

    def test_cooldown_capped_by_max(self, clock):
        tracker = ProviderHealthTracker(HealthConfig(max_cooldown_seconds=3600), clock=clock)
        for _ in range(3):
            tracker.record_failure("alpha", "quota", rate_limited=True, cooldown_base_seconds=1000)
        assert tracker.cooldown_remaining("alpha") == pytest.approx(3600.0)

    def test_cooldown_expires_with_time(self, health, clock):
        health.record_failure("alpha", "quota", rate_limited=True)
        clock.advance(299)
        assert health.is_in_cooldown("alpha")
        clock.advance(2)
        assert not health.is_in_cooldown("alpha")

    def test_reset_requires_consecutive_successes(self, health, clock):
        for _ in range(3):
            health.record_failure("alpha", "boom", rate_limited=False)
        clock.advance(1300)

        health.record_success("alpha")
        health.record_success("alpha")
        state = health.snapshot("alpha")
        assert state.cooldown_until is not None
        assert len(state.failure_timestamps) == 3

        health.record_success("alpha")
        state = health.snapshot("alpha")
        assert state.cooldown_until is None
        assert state.failure_timestamps == []
        assert state.consecutive_failures == 0

    def test_failure_interrupts_success_streak(self, health):
        health.record_success("alpha")
        health.record_success("alpha")
        health.record_failure("alpha", "boom", rate_limited=False)
        assert health.snapshot("alpha").consecutive_successes == 0
        assert health.snapshot("alpha").consecutive_failures == 1

    def test_failure_window_prunes_old_timestamps(self, health, clock):
        health.record_failure("alpha", "boom", rate_limited=False)
        clock.advance(601)
        health.record_failure("alpha", "boom", rate_limited=False)
        assert len(health.snapshot("alpha").failure_timestamps) == 1

    def test_totals_and_success_rate(self, health):
        health.record_success("alpha")
        health.record_failure("alpha", "boom", rate_limited=False)
        health.record_success("alpha")
        state = health.snapshot("alpha")
        assert state.total_requests == 3
        assert state.total_successes == 2
        assert state.total_failures == 1
        assert state.success_rate == 66.7
        assert state.last_error == "boom"

    def test_snapshot_is_a_copy(self, health):
        health.record_failure("alpha", "boom", rate_limited=False)
        snap = health.snapshot("alpha")
        snap.consecutive_failures = 99
        snap.failure_timestamps.clear()
        assert health.snapshot("alpha").consecutive_failures == 1
        assert len(health.snapshot("alpha").failure_timestamps) == 1

    def test_reset_and_reset_all(self, health):
        health.record_failure("alpha", "quota", rate_limited=True)
        health.record_failure("beta", "quota", rate_limited=True)

        assert health.reset("alpha") is True
        assert not health.is_in_cooldown("alpha")
        assert health.is_in_cooldown("beta")

        health.reset_all()
        assert not health.is_in_cooldown("beta")
        assert health.reset("gamma") is False


# ═══════════════════════════════════════════════════════════════
#  Retry classification & policy
# ═══════════════════════════════════════════════════════════════
class TestIsRateLimitError:
    def test_typed_rate_limit_error(self):
        assert is_rate_limit_error(ProviderRateLimitedError("p", "slow down"))

    def test_provider_error_with_429(self):
        assert is_rate_limit_error(ProviderError("p", "error", status_code=429))

    def test_other_client_errors_are_fatal(self):
        assert not is_rate_limit_error(ProviderError("p", "rate limit?", status_code=400))
        assert not is_rate_limit_error(ProviderError("p", "forbidden", status_code=403))

    def test_malformed_payload_is_fatal(self):
        assert not is_rate_limit_error(
            MalformedProviderResponseError("p", "Invalid API response format")
        )

    def test_message_indicators(self):
        assert is_rate_limit_error(RuntimeError("Too Many Requests"))
        assert is_rate_limit_error(RuntimeError("monthly quota exceeded"))
        assert is_rate_limit_error(RuntimeError("Rate-limit hit"))
        assert is_rate_limit_error(RuntimeError("API error (429): slow"))
        assert not is_rate_limit_error(RuntimeError("connection reset"))

    def test_httpx_status_error(self):
        request = httpx.Request("GET", "https://example.test")
        throttled = httpx.HTTPStatusError(
            "throttled", request=request, response=httpx.Response(429, request=request)
        )
        broken = httpx.HTTPStatusError(
            "broken", request=request, response=httpx.Response(500, request=request)
        )
        assert is_rate_limit_error(throttled)
        assert not is_rate_limit_error(broken)


class TestRetryPolicy:
    @pytest.mark.asyncio
    async def test_succeeds_after_transient_errors(self, clock):
        attempts = 0

        async def op() -> str:
            nonlocal attempts
            attempts += 1
            if attempts < 3:
                raise ProviderRateLimitedError("p", "429")
            return "done"

        result = await RetryPolicy(sleep=clock.sleep).execute(
            op, RetryOptions(max_retries=3, base_delay=2.0, max_delay=30.0)
        )
        assert result == "done"
        assert attempts == 3
        assert clock.sleeps == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_non_retryable_error_raises_immediately(self, clock):
        attempts = 0

        async def op() -> str:
            nonlocal attempts
            attempts += 1
            raise ProviderError("p", "bad request", status_code=400)

        with pytest.raises(ProviderError):
            await RetryPolicy(sleep=clock.sleep).execute(op, RetryOptions(max_retries=3))
        assert attempts == 1
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_exhausts_retries_and_rethrows_last_error(self, clock):
        attempts = 0

        async def op() -> str:
            nonlocal attempts
            attempts += 1
            raise ProviderRateLimitedError("p", f"429 #{attempts}")

        with pytest.raises(ProviderRateLimitedError, match="#4"):
            await RetryPolicy(sleep=clock.sleep).execute(
                op, RetryOptions(max_retries=3, base_delay=2.0, max_delay=5.0)
            )
        assert attempts == 4
        assert clock.sleeps == [2.0, 4.0, 5.0]

    @pytest.mark.asyncio
    async def test_on_retry_receives_attempt_delay_and_error(self, clock):
        seen: list[tuple[int, float, str]] = []
        calls = 0

        async def op() -> int:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("quota exceeded")
            return calls

        await RetryPolicy(sleep=clock.sleep).execute(
            op,
            RetryOptions(
                max_retries=2,
                base_delay=1.0,
                on_retry=lambda attempt, delay, err: seen.append((attempt, delay, str(err))),
            ),
        )
        assert seen == [(1, 1.0, "quota exceeded")]

    @pytest.mark.asyncio
    async def test_zero_retries_calls_once(self, clock):
        attempts = 0

        async def op() -> str:
            nonlocal attempts
            attempts += 1
            raise ProviderRateLimitedError("p", "429")

        with pytest.raises(ProviderRateLimitedError):
            await RetryPolicy(sleep=clock.sleep).execute(op, RetryOptions(max_retries=0))
        assert attempts == 1
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_jittered_delays_are_slept_and_reported(self, clock):
        reported: list[float] = []
        attempts = 0

        async def op() -> str:
            nonlocal attempts
            attempts += 1
            if attempts <= 3:
                raise ProviderRateLimitedError("p", "429")
            return "ok"

        result = await RetryPolicy(sleep=clock.sleep).execute(
            op,
            RetryOptions(
                max_retries=3,
                base_delay=2.0,
                max_delay=30.0,
                jitter=True,
                on_retry=lambda attempt, delay, err: reported.append(delay),
            ),
        )
        assert result == "ok"
        assert clock.sleeps == reported
        for delay, nominal in zip(clock.sleeps, [2.0, 4.0, 8.0]):
            assert nominal * 0.5 <= delay <= nominal * 1.5

    def test_calculate_delay_without_jitter(self):
        options = RetryOptions(base_delay=2.0, max_delay=30.0)
        assert [calculate_delay(a, options) for a in range(6)] == [2.0, 4.0, 8.0, 16.0, 30.0, 30.0]

    def test_jitter_stays_within_bounds(self):
        options = RetryOptions(base_delay=2.0, max_delay=30.0, jitter=True)
        for _ in range(50):
            delay = calculate_delay(2, options)
            assert 4.0 <= delay <= 12.0


# ═══════════════════════════════════════════════════════════════
#  SlidingWindowRateLimiter
# ═══════════════════════════════════════════════════════════════
def _limiter(clock: FakeClock, **kwargs) -> SlidingWindowRateLimiter:  # type: ignore[no-untyped-def]
    kwargs.setdefault("inter_request_delay_seconds", 0.0)
    return SlidingWindowRateLimiter(
        "test", RateLimitConfig(**kwargs), clock=clock, sleep=clock.sleep
    )


class TestSlidingWindowRateLimiter:
    @pytest.mark.asyncio
    async def test_requests_beyond_quota_wait_for_window(self, clock):
        limiter = _limiter(clock, requests_per_minute=10, max_concurrent=2)
        start = clock.now
        granted: list[float] = []

        for _ in range(12):
            async with limiter.slot():
                granted.append(clock.now)

        assert granted[:10] == [start] * 10
        assert granted[10] >= start + 60
        assert granted[11] >= start + 60
        assert clock.sleeps[0] == pytest.approx(60.1)

    @pytest.mark.asyncio
    async def test_window_never_exceeds_quota(self, clock):
        limiter = _limiter(clock, requests_per_minute=10, max_concurrent=5)
        granted: list[float] = []
        for _ in range(25):
            await limiter.acquire()
            granted.append(clock.now)
            limiter.release()
            clock.advance(1.0)

        for t in granted:
            in_window = [g for g in granted if t - 60 < g <= t]
            assert len(in_window) <= 10

    @pytest.mark.asyncio
    async def test_concurrency_cap(self, clock):
        limiter = _limiter(clock, requests_per_minute=100, max_concurrent=2)
        active = 0
        peak = 0

        async def worker() -> None:
            nonlocal active, peak
            async with limiter.slot():
                active += 1
                peak = max(peak, active)
                for _ in range(3):
                    await asyncio.sleep(0)
                active -= 1

        await asyncio.gather(*(worker() for _ in range(6)))
        assert peak == 2
        assert limiter.active_requests == 0
        assert limiter.requests_in_window == 6

    @pytest.mark.asyncio
    async def test_inter_request_delay(self, clock):
        limiter = _limiter(
            clock, requests_per_minute=100, max_concurrent=5, inter_request_delay_seconds=0.5
        )
        await limiter.acquire()
        await limiter.acquire()
        assert clock.sleeps == [pytest.approx(0.5)]

    @pytest.mark.asyncio
    async def test_slot_released_on_error(self, clock):
        limiter = _limiter(clock, requests_per_minute=10, max_concurrent=1)
        with pytest.raises(RuntimeError):
            async with limiter.slot():
                raise RuntimeError("provider blew up")
        assert limiter.active_requests == 0

    def test_release_never_goes_negative(self, clock):
        limiter = _limiter(clock)
        limiter.release()
        limiter.release()
        assert limiter.active_requests == 0

    @pytest.mark.asyncio
    async def test_remaining_pct_and_reset(self, clock):
        limiter = _limiter(clock, requests_per_minute=10, max_concurrent=5)
        for _ in range(3):
            await limiter.acquire()
        assert limiter.remaining_pct == 70.0
        assert limiter.active_requests == 3

        limiter.reset()
        assert limiter.remaining_pct == 100.0
        assert limiter.active_requests == 0

    def test_rejects_non_positive_limits(self, clock):
        with pytest.raises(ValueError):
            _limiter(clock, requests_per_minute=0)
        with pytest.raises(ValueError):
            _limiter(clock, max_concurrent=0)

    @pytest.mark.asyncio
    async def test_registry_owns_one_limiter_per_id(self, clock):
        registry = RateLimiterRegistry(clock=clock, sleep=clock.sleep)
        first = registry.get("supadata", RateLimitConfig(requests_per_minute=5))
        assert registry.get("supadata") is first
        assert registry.get("scrapecreators") is not first

        await first.acquire()
        registry.reset("supadata")
        assert first.requests_in_window == 0

        await first.acquire()
        registry.reset_all()
        assert first.active_requests == 0


# ═══════════════════════════════════════════════════════════════
#  ProviderRegistry
# ═══════════════════════════════════════════════════════════════
class TestProviderRegistry:
    def test_sorted_by_priority(self):
        registry = ProviderRegistry(
            [
                (_descriptor("c", 3), FakeProvider("c")),
                (_descriptor("a", 1), FakeProvider("a")),
                (_descriptor("b", 2), FakeProvider("b")),
            ]
        )
        assert [e.provider_id for e in registry.by_priority()] == ["a", "b", "c"]

    def test_equal_priorities_keep_registration_order(self):
        registry = ProviderRegistry(
            [(_descriptor("x", 1), FakeProvider("x")), (_descriptor("y", 1), FakeProvider("y"))]
        )
        assert [e.provider_id for e in registry] == ["x", "y"]

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ValueError):
            ProviderRegistry(
                [(_descriptor("a", 1), FakeProvider("a")), (_descriptor("a", 2), FakeProvider("a"))]
            )

    def test_fallback_chain_excludes_unconfigured(self):
        registry = ProviderRegistry(
            [
                (_descriptor("free", 1), FakeProvider("free", configured=False)),
                (_descriptor("paid", 2, requires_config=True), FakeProvider("paid", configured=False)),
                (_descriptor("other", 3, requires_config=True), FakeProvider("other")),
            ]
        )
        # providers without credentials are never "unconfigured"
        assert [e.provider_id for e in registry.fallback_chain()] == ["free", "other"]
        assert registry.is_configured("free")
        assert not registry.is_configured("paid")
        assert not registry.is_configured("missing")

    def test_apply_priority_order(self):
        descriptors = [_descriptor("a", 1), _descriptor("b", 2), _descriptor("c", 3)]
        reordered = apply_priority_order(descriptors, "c, a")
        priorities = {d.provider_id: d.priority for d in reordered}
        assert priorities["c"] < priorities["a"] < priorities["b"]


# ═══════════════════════════════════════════════════════════════
#  FetchOrchestrator
# ═══════════════════════════════════════════════════════════════
class TestFetchOrchestrator:
    @pytest.mark.asyncio
    async def test_first_success_wins_and_later_providers_untouched(self, clock):
        p1 = FakeProvider("p1", [ProviderError("p1", "scrape failed", status_code=500)])
        p2 = FakeProvider("p2")
        p3 = FakeProvider("p3")
        orch = _orchestrator(
            [(_descriptor("p1", 1), p1), (_descriptor("p2", 2), p2), (_descriptor("p3", 3), p3)],
            clock,
        )

        outcome = await orch.fetch_with_fallback(VIDEO_ID)

        assert outcome.ok
        assert outcome.provider_id == "p2"
        assert outcome.payload.source == "p2"
        assert p3.calls == 0
        state = orch.health.snapshot("p1")
        assert state.consecutive_failures == 1
        assert not orch.health.is_in_cooldown("p1")

    @pytest.mark.asyncio
    async def test_order_is_stable_across_calls(self, clock):
        log: list[str] = []
        providers = [
            (_descriptor(pid, prio), FakeProvider(pid, default=RuntimeError("down"), call_log=log))
            for pid, prio in (("p3", 3), ("p1", 1), ("p2", 2))
        ]
        orch = _orchestrator(
            providers,
            clock,
            health=ProviderHealthTracker(HealthConfig(failure_threshold=10), clock=clock),
        )

        await orch.fetch_with_fallback(VIDEO_ID)
        await orch.fetch_with_fallback(VIDEO_ID)

        assert log == ["p1", "p2", "p3", "p1", "p2", "p3"]

    @pytest.mark.asyncio
    async def test_rate_limited_provider_cools_down_and_is_skipped(self, clock):
        p1 = FakeProvider("p1", default=ProviderRateLimitedError("p1", "429 Too Many Requests"))
        p2 = FakeProvider("p2")
        orch = _orchestrator(
            [
                (_descriptor("p1", 1, max_retries=2, retry_base_delay_seconds=1.0), p1),
                (_descriptor("p2", 2), p2),
            ],
            clock,
        )

        first = await orch.fetch_with_fallback(VIDEO_ID)
        assert first.ok and first.provider_id == "p2"
        # one logical attempt, three calls with local retries
        assert p1.calls == 3
        assert clock.sleeps == [1.0, 2.0]
        assert orch.health.is_in_cooldown("p1")

        await orch.fetch_with_fallback(VIDEO_ID)
        await orch.fetch_with_fallback(VIDEO_ID)
        assert p1.calls == 3
        assert p2.calls == 3

        clock.advance(301)
        await orch.fetch_with_fallback(VIDEO_ID)
        assert p1.calls == 6

    @pytest.mark.asyncio
    async def test_threshold_failures_trigger_cooldown(self, clock):
        p1 = FakeProvider("p1", default=RuntimeError("parse error"))
        p2 = FakeProvider("p2")
        orch = _orchestrator([(_descriptor("p1", 1), p1), (_descriptor("p2", 2), p2)], clock)

        for _ in range(3):
            await orch.fetch_with_fallback(VIDEO_ID)
        assert p1.calls == 3
        assert orch.health.is_in_cooldown("p1")

        await orch.fetch_with_fallback(VIDEO_ID)
        await orch.fetch_with_fallback(VIDEO_ID)
        assert p1.calls == 3

    @pytest.mark.asyncio
    async def test_aggregated_failure_names_last_provider(self, clock):
        orch = _orchestrator(
            [
                (_descriptor("p1", 1), FakeProvider("p1", default=RuntimeError("down-1"))),
                (_descriptor("p2", 2), FakeProvider("p2", default=RuntimeError("down-2"))),
            ],
            clock,
        )

        outcome = await orch.fetch_with_fallback(VIDEO_ID)

        assert not outcome.ok
        assert [e.provider_id for e in outcome.errors] == ["p1", "p2"]
        assert outcome.message == "Transcript fetch failed: down-2 (provider: p2)"

    @pytest.mark.asyncio
    async def test_no_content_counts_as_failure(self, clock):
        p1 = FakeProvider("p1", default=None)
        orch = _orchestrator([(_descriptor("p1", 1), p1)], clock)

        outcome = await orch.fetch_with_fallback(VIDEO_ID)

        assert not outcome.ok
        assert outcome.errors[0].message == "No transcript found"
        assert orch.health.snapshot("p1").total_failures == 1

    @pytest.mark.asyncio
    async def test_unconfigured_providers_are_skipped_without_health_record(self, clock):
        paid = FakeProvider("paid", configured=False)
        late = FakeProvider(
            "late", default=ProviderNotConfiguredError("late", "LATE_API_KEY")
        )
        orch = _orchestrator(
            [
                (_descriptor("paid", 1, requires_config=True), paid),
                (_descriptor("late", 2), late),
            ],
            clock,
        )

        outcome = await orch.fetch_with_fallback(VIDEO_ID)

        assert not outcome.ok
        assert outcome.errors == ()
        assert outcome.message == "No transcript providers available"
        assert paid.calls == 0
        assert late.calls == 1
        assert orch.health.snapshot("late").total_requests == 0

    @pytest.mark.asyncio
    async def test_provider_timeout_is_recorded(self, clock):
        async def hang() -> None:
            await asyncio.sleep(5)

        slow = FakeProvider("slow", on_call=hang)
        orch = _orchestrator([(_descriptor("slow", 1, timeout_seconds=0.01), slow)], clock)

        outcome = await orch.fetch_with_fallback(VIDEO_ID)

        assert not outcome.ok
        assert outcome.errors[0].message == "Timeout after 0.01s"
        assert orch.health.snapshot("slow").total_failures == 1

    @pytest.mark.asyncio
    async def test_deadline_stops_the_chain(self, clock):
        async def burn_time() -> None:
            clock.advance(6)

        p1 = FakeProvider("p1", default=RuntimeError("slow failure"), on_call=burn_time)
        p2 = FakeProvider("p2")
        p3 = FakeProvider("p3")
        orch = _orchestrator(
            [(_descriptor("p1", 1), p1), (_descriptor("p2", 2), p2), (_descriptor("p3", 3), p3)],
            clock,
            deadline_seconds=5,
        )

        outcome = await orch.fetch_with_fallback(VIDEO_ID)

        assert not outcome.ok
        assert p2.calls == 0 and p3.calls == 0
        assert [e.provider_id for e in outcome.errors] == ["p1", "p2", "p3"]
        assert outcome.errors[-1].message == "Fetch deadline of 5s exceeded"
        assert orch.health.snapshot("p2").total_requests == 0

    @pytest.mark.asyncio
    async def test_rate_limited_provider_goes_through_its_limiter(self, clock):
        api = FakeProvider("api")
        orch = _orchestrator(
            [
                (
                    _descriptor(
                        "api",
                        1,
                        rate_limited=True,
                        requests_per_minute=1,
                        inter_request_delay_seconds=0.0,
                    ),
                    api,
                )
            ],
            clock,
        )

        await orch.fetch_with_fallback(VIDEO_ID)
        await orch.fetch_with_fallback(VIDEO_ID)

        assert api.calls == 2
        assert clock.sleeps == [pytest.approx(60.1)]
        assert orch.limiters.get("api").active_requests == 0

    @pytest.mark.asyncio
    async def test_provider_status_and_reset(self, clock):
        p1 = FakeProvider("p1", default=ProviderRateLimitedError("p1", "quota"))
        p2 = FakeProvider("p2")
        paid = FakeProvider("paid", configured=False)
        orch = _orchestrator(
            [
                (_descriptor("p1", 1, name="Primary"), p1),
                (_descriptor("p2", 2), p2),
                (_descriptor("paid", 3, requires_config=True), paid),
            ],
            clock,
        )
        await orch.fetch_with_fallback(VIDEO_ID)

        status = orch.get_provider_status()
        assert list(status["providers"]) == ["p1", "p2", "paid"]
        p1_status = status["providers"]["p1"]
        assert p1_status["name"] == "Primary"
        assert p1_status["in_cooldown"] is True
        assert p1_status["cooldown_remaining_seconds"] == 300
        assert p1_status["success_rate"] == 0.0
        assert p1_status["last_error"] == "quota"
        assert status["providers"]["p2"]["success_rate"] == 100.0
        assert status["providers"]["paid"]["configured"] is False
        assert status["providers"]["paid"]["success_rate"] is None
        assert status["stats"]["total_requests"] == 1
        assert status["stats"]["last_request_at"] == clock.now

        orch.reset_provider("p1")
        assert not orch.health.is_in_cooldown("p1")

        await orch.fetch_with_fallback(VIDEO_ID)
        orch.reset_all()
        assert orch.health.snapshot("p1").total_requests == 0
