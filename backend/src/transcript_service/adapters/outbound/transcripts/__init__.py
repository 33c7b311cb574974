"""Transcript provider adapters and registry assembly.

Three providers implement the ``TranscriptProvider`` port:

* ``youtube-transcript`` (free scraper, no credentials)
* ``supadata``          (paid API, rate limited, local retry)
* ``scrapecreators``    (paid API, rate limited, local retry)

``build_provider_registry`` wires them into a ``ProviderRegistry`` in the
order given by ``TRANSCRIPT_PROVIDER_PRIORITY``.
"""

from __future__ import annotations

from typing import Callable

import structlog

from transcript_service.config import Settings
from transcript_service.ports.outbound import TranscriptProvider
from transcript_service.shared.providers.registry import ProviderRegistry, apply_priority_order
from transcript_service.shared.providers.types import ProviderDescriptor, ProviderKind

from .scrapecreators import ScrapeCreatorsProvider
from .supadata import SupadataProvider
from .youtube import YouTubeTranscriptProvider

logger = structlog.get_logger(__name__)

__all__ = [
    "ScrapeCreatorsProvider",
    "SupadataProvider",
    "YouTubeTranscriptProvider",
    "build_provider_descriptors",
    "build_providers",
    "build_provider_registry",
]


def build_provider_descriptors(settings: Settings) -> list[ProviderDescriptor]:
    """Build ProviderDescriptor list from settings values."""
    timeout = settings.provider_timeout_seconds

    def cooldown(override: float | None) -> float:
        return override if override is not None else settings.provider_cooldown_base_seconds

    descriptors = [
        ProviderDescriptor(
            provider_id=YouTubeTranscriptProvider.provider_id,
            priority=1,
            name="YouTube Transcript (scraper)",
            kind=ProviderKind.SCRAPER,
            rate_limited=False,
            requires_config=False,
            cooldown_base_seconds=cooldown(settings.youtube_transcript_cooldown_seconds),
            timeout_seconds=timeout,
        ),
        ProviderDescriptor(
            provider_id=SupadataProvider.provider_id,
            priority=2,
            name="Supadata API",
            kind=ProviderKind.API,
            rate_limited=True,
            requires_config=True,
            requests_per_minute=settings.supadata_rpm,
            max_concurrent=settings.supadata_max_concurrent,
            inter_request_delay_seconds=settings.supadata_inter_request_delay_seconds,
            max_retries=settings.supadata_max_retries,
            retry_base_delay_seconds=settings.supadata_retry_base_delay_seconds,
            retry_max_delay_seconds=settings.supadata_retry_max_delay_seconds,
            cooldown_base_seconds=cooldown(settings.supadata_cooldown_seconds),
            timeout_seconds=timeout,
        ),
        ProviderDescriptor(
            provider_id=ScrapeCreatorsProvider.provider_id,
            priority=3,
            name="ScrapeCreators API",
            kind=ProviderKind.API,
            rate_limited=True,
            requires_config=True,
            requests_per_minute=settings.scrapecreators_rpm,
            max_concurrent=settings.scrapecreators_max_concurrent,
            inter_request_delay_seconds=settings.scrapecreators_inter_request_delay_seconds,
            max_retries=settings.scrapecreators_max_retries,
            retry_base_delay_seconds=settings.scrapecreators_retry_base_delay_seconds,
            retry_max_delay_seconds=settings.scrapecreators_retry_max_delay_seconds,
            cooldown_base_seconds=cooldown(settings.scrapecreators_cooldown_seconds),
            timeout_seconds=timeout,
        ),
    ]
    return apply_priority_order(descriptors, settings.transcript_provider_priority)


def build_providers(
    settings: Settings, overrides: dict[str, TranscriptProvider] | None = None
) -> dict[str, TranscriptProvider]:
    """Default adapters keyed by provider id.  ``overrides`` replaces adapters by id."""
    overrides = overrides or {}
    timeout = settings.provider_timeout_seconds
    factories: dict[str, Callable[[], TranscriptProvider]] = {
        YouTubeTranscriptProvider.provider_id: lambda: YouTubeTranscriptProvider(
            languages=settings.language_list,
        ),
        SupadataProvider.provider_id: lambda: SupadataProvider(
            settings.supadata_api_key,
            base_url=settings.supadata_base_url,
            timeout=timeout,
        ),
        ScrapeCreatorsProvider.provider_id: lambda: ScrapeCreatorsProvider(
            settings.scrapecreators_api_key,
            base_url=settings.scrapecreators_base_url,
            timeout=timeout,
        ),
    }
    return {
        pid: overrides[pid] if pid in overrides else factory()
        for pid, factory in factories.items()
    }


def build_provider_registry(
    settings: Settings,
    providers: dict[str, TranscriptProvider] | None = None,
) -> ProviderRegistry:
    """Pair each descriptor with its adapter in configured priority order."""
    adapters = build_providers(settings, providers)

    registry = ProviderRegistry(
        [(d, adapters[d.provider_id]) for d in build_provider_descriptors(settings)]
    )
    logger.info(
        "transcript_providers_registered",
        order=[e.provider_id for e in registry.by_priority()],
        configured=[e.provider_id for e in registry.fallback_chain()],
    )
    return registry
