"""Transcript Service — Application Configuration."""

from __future__ import annotations

import enum
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, enum.Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Centralised, validated configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ──────────────────────────────────────────
    app_name: str = "transcript-service"
    app_env: Environment = Environment.DEVELOPMENT
    app_debug: bool = False
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "INFO"
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # ── Database (durable cache tier) ────────────────────────
    database_url: str = "sqlite+aiosqlite:///./transcripts.db"
    database_pool_size: int = 20
    database_max_overflow: int = 10

    # ── Redis (optional ephemeral tier) ──────────────────────
    redis_url: str = ""
    redis_max_connections: int = 50

    # ── Transcript providers ─────────────────────────────────
    transcript_provider_priority: str = "youtube-transcript,supadata,scrapecreators"
    transcript_languages: str = "en"
    supadata_api_key: str = ""
    supadata_base_url: str = "https://api.supadata.ai/v1"
    scrapecreators_api_key: str = ""
    scrapecreators_base_url: str = "https://api.scrapecreators.com/v1"
    provider_timeout_seconds: float = 30.0

    # Per-provider rate limits
    supadata_rpm: int = 30
    supadata_max_concurrent: int = 3
    supadata_inter_request_delay_seconds: float = 0.2
    scrapecreators_rpm: int = 60
    scrapecreators_max_concurrent: int = 5
    scrapecreators_inter_request_delay_seconds: float = 0.1

    # Local retry (API providers)
    supadata_max_retries: int = 3
    supadata_retry_base_delay_seconds: float = 2.0
    supadata_retry_max_delay_seconds: float = 30.0
    scrapecreators_max_retries: int = 2
    scrapecreators_retry_base_delay_seconds: float = 1.0
    scrapecreators_retry_max_delay_seconds: float = 10.0
    provider_retry_jitter: bool = False

    # ── Provider health / circuit breaking ───────────────────
    provider_failure_threshold: int = 3
    provider_failure_window_seconds: float = 600.0
    provider_success_reset_threshold: int = 3
    provider_cooldown_base_seconds: float = 300.0
    # Per-provider cooldown base; unset uses provider_cooldown_base_seconds
    youtube_transcript_cooldown_seconds: float | None = None
    supadata_cooldown_seconds: float | None = None
    scrapecreators_cooldown_seconds: float | None = None
    provider_max_cooldown_seconds: float = 3600.0
    provider_health_log_interval: int = 50

    # Overall budget across the whole fallback chain (0 = unbounded)
    fetch_deadline_seconds: float = 120.0

    # ── Transcript cache ─────────────────────────────────────
    transcript_cache_positive_ttl_hours: float = 24.0 * 7
    transcript_cache_negative_ttl_hours: float = 24.0
    transcript_cache_ephemeral_ttl_seconds: int = 300
    transcript_cache_version: str = "1"

    # ── Observability ────────────────────────────────────────
    prometheus_enabled: bool = True

    # ── Derived helpers ──────────────────────────────────────
    @property
    def is_production(self) -> bool:
        return self.app_env == Environment.PRODUCTION

    @property
    def language_list(self) -> list[str]:
        return [lang.strip() for lang in self.transcript_languages.split(",") if lang.strip()]

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper()

    @field_validator("database_url")
    @classmethod
    def _validate_database_url(cls, v: str) -> str:
        if not v.startswith(("postgresql", "sqlite")):
            raise ValueError("database_url must start with 'postgresql' or 'sqlite'")
        return v

    @field_validator(
        "provider_failure_threshold",
        "provider_success_reset_threshold",
        "supadata_rpm",
        "scrapecreators_rpm",
        "supadata_max_concurrent",
        "scrapecreators_max_concurrent",
    )
    @classmethod
    def _positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator("supadata_max_retries", "scrapecreators_max_retries")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @model_validator(mode="after")
    def _guard_ttl_asymmetry(self) -> Settings:
        """Negative results must never outlive positive ones."""
        if self.transcript_cache_negative_ttl_hours >= self.transcript_cache_positive_ttl_hours:
            raise ValueError(
                "transcript_cache_negative_ttl_hours must be shorter than "
                "transcript_cache_positive_ttl_hours"
            )
        return self


def get_settings(**overrides: Any) -> Settings:
    """Factory that allows test-time overrides."""
    return Settings(**overrides)
