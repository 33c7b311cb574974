"""Retry with exponential backoff for a single provider call.

Retrying within one attempt is independent of circuit breaking across
attempts: the policy only decides whether to call the operation again, and
re-raises the final error for the caller to record.  The loop itself is
``tenacity.AsyncRetrying``; this module only maps provider options onto it.
"""

from __future__ import annotations

import asyncio
import random
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from transcript_service.domain.exceptions import ProviderError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_RATE_LIMIT_RE = re.compile(
    r"\b429\b|too many requests|rate[ -]?limit|quota|limit exceeded",
    re.IGNORECASE,
)


def is_rate_limit_error(error: BaseException) -> bool:
    """True for throttling / quota failures that are worth retrying."""
    if isinstance(error, ProviderError):
        if error.rate_limited or error.status_code == 429:
            return True
        if error.status_code is not None and 400 <= error.status_code < 500:
            return False
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code == 429
    return bool(_RATE_LIMIT_RE.search(str(error)))


@dataclass
class RetryOptions:
    max_retries: int = 3
    base_delay: float = 2.0
    max_delay: float = 30.0
    should_retry: Callable[[BaseException], bool] = is_rate_limit_error
    on_retry: Callable[[int, float, BaseException], None] | None = None
    jitter: bool = False


def calculate_delay(attempt: int, options: RetryOptions) -> float:
    """``min(base * 2**attempt, max)``, optionally spread by ±50% jitter."""
    delay = min(options.base_delay * (2**attempt), options.max_delay)
    if options.jitter:
        delay = min(delay * (0.5 + random.random()), options.max_delay)
    return delay


class RetryPolicy:
    """Executes an async operation with bounded, classified retries."""

    def __init__(
        self,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._sleep = sleep

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        options: RetryOptions | None = None,
    ) -> T:
        options = options or RetryOptions()
        retrying = AsyncRetrying(
            stop=stop_after_attempt(options.max_retries + 1),
            wait=_wait_for(options),
            retry=retry_if_exception(options.should_retry),
            before_sleep=_before_sleep(options),
            sleep=self._sleep,
            reraise=True,
        )
        return await retrying(operation)


def _wait_for(options: RetryOptions):  # type: ignore[no-untyped-def]
    if not options.jitter:
        return wait_exponential(multiplier=options.base_delay, max=options.max_delay)

    # attempt_number is 1 after the first failure
    def _jittered(state: RetryCallState) -> float:
        return calculate_delay(state.attempt_number - 1, options)

    return _jittered


def _before_sleep(options: RetryOptions) -> Callable[[RetryCallState], None]:
    def _notify(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        delay = state.next_action.sleep if state.next_action else 0.0
        if options.on_retry is not None and error is not None:
            options.on_retry(state.attempt_number, delay, error)
        else:
            logger.warning(
                "retry_scheduled",
                attempt=state.attempt_number,
                max_retries=options.max_retries,
                delay_s=round(delay, 3),
                error=str(error),
            )

    return _notify
