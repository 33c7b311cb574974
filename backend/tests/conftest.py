"""Shared test fixtures."""

from __future__ import annotations

import pytest

from fakes import FakeClock, FakeDateClock, InMemoryTranscriptCacheRepository


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def date_clock() -> FakeDateClock:
    return FakeDateClock()


@pytest.fixture
def repository() -> InMemoryTranscriptCacheRepository:
    return InMemoryTranscriptCacheRepository()
