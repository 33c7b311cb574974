"""Outbound ports — interfaces that infrastructure adapters must implement.

The orchestration and application layers depend only on these
abstractions, never on concrete provider clients, cache backends, or
database drivers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from transcript_service.domain.entities import CacheEntry, ProviderFetchResult


# ═══════════════════════════════════════════════════════════════
#  Transcript provider port
# ═══════════════════════════════════════════════════════════════
class TranscriptProvider(ABC):
    """A single external source of transcripts.

    ``fetch`` returns a result with ``has_content`` set when a transcript
    was found, and raises a ``ProviderError`` subclass otherwise.
    """

    provider_id: str

    @abstractmethod
    def is_configured(self) -> bool: ...

    @abstractmethod
    async def fetch(self, video_id: str) -> ProviderFetchResult: ...

    async def close(self) -> None:
        """Release any network resources held by the provider."""


# ═══════════════════════════════════════════════════════════════
#  Cache ports
# ═══════════════════════════════════════════════════════════════
class EphemeralCachePort(ABC):
    """Fast, short-lived, advisory key-value cache."""

    @abstractmethod
    async def get(self, key: str) -> str | None: ...

    @abstractmethod
    async def set(self, key: str, value: str, *, ttl_seconds: int | None = None) -> None: ...

    @abstractmethod
    async def delete(self, key: str) -> None: ...

    @abstractmethod
    async def close(self) -> None: ...

    @abstractmethod
    async def health_check(self) -> bool: ...


class TranscriptCacheRepository(ABC):
    """Durable keyed store for cached fetch outcomes."""

    @abstractmethod
    async def get(self, key: str) -> CacheEntry | None: ...

    @abstractmethod
    async def upsert(self, entry: CacheEntry) -> None: ...

    @abstractmethod
    async def increment_access(self, key: str, *, accessed_at: datetime) -> int | None:
        """Atomically bump ``access_count``; returns the new count or None if absent."""

    @abstractmethod
    async def delete(self, key: str) -> bool: ...

    @abstractmethod
    async def purge_expired(self, now: datetime) -> int: ...
