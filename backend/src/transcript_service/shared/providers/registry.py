"""Provider registry — the fixed, priority-ordered list of transcript providers.

Order is decided once, at construction.  Health state never reorders the
chain; it only decides whether a provider is skipped on a given call.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Sequence

import structlog

from transcript_service.ports.outbound import TranscriptProvider
from transcript_service.shared.providers.types import ProviderDescriptor

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RegisteredProvider:
    descriptor: ProviderDescriptor
    provider: TranscriptProvider

    @property
    def provider_id(self) -> str:
        return self.descriptor.provider_id

    @property
    def configured(self) -> bool:
        if not self.descriptor.requires_config:
            return True
        return self.provider.is_configured()


class ProviderRegistry:
    """Static, ordered list of provider descriptors and their adapters."""

    def __init__(
        self,
        providers: Sequence[tuple[ProviderDescriptor, TranscriptProvider]],
    ) -> None:
        seen: set[str] = set()
        entries: list[RegisteredProvider] = []
        for descriptor, provider in providers:
            if descriptor.provider_id in seen:
                raise ValueError(f"Duplicate provider id: {descriptor.provider_id!r}")
            seen.add(descriptor.provider_id)
            entries.append(RegisteredProvider(descriptor, provider))
        # sorted() is stable, so equal priorities keep registration order
        self._entries = sorted(entries, key=lambda e: e.descriptor.priority)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):  # type: ignore[no-untyped-def]
        return iter(self._entries)

    def by_priority(self) -> list[RegisteredProvider]:
        """Every provider, configured or not, in the order they are tried."""
        return list(self._entries)

    def fallback_chain(self) -> list[RegisteredProvider]:
        """Configured providers only, in priority order."""
        chain = [e for e in self._entries if e.configured]
        if not chain:
            logger.warning("no_configured_providers", total_registered=len(self._entries))
        return chain

    def get(self, provider_id: str) -> RegisteredProvider | None:
        return next((e for e in self._entries if e.provider_id == provider_id), None)

    def descriptors(self) -> list[ProviderDescriptor]:
        return [e.descriptor for e in self._entries]

    def is_configured(self, provider_id: str) -> bool:
        entry = self.get(provider_id)
        return entry is not None and entry.configured


def apply_priority_order(
    descriptors: Sequence[ProviderDescriptor], priority_order: str
) -> list[ProviderDescriptor]:
    """Re-number priorities from a comma-separated id list.

    Ids missing from the list keep their own priority, offset after the
    listed ones.
    """
    priority_map: dict[str, int] = {}
    for idx, name in enumerate(priority_order.split(",")):
        name = name.strip().lower()
        if name and name not in priority_map:
            priority_map[name] = idx + 1

    offset = len(priority_map)
    return [
        replace(
            d,
            priority=priority_map.get(d.provider_id, offset + d.priority),
        )
        for d in descriptors
    ]
