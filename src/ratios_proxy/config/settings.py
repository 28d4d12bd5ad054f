# src/ratios_proxy/config/settings.py
# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""Ratios Proxy Configuration (Pydantic Settings, v2)

Summary:
    Typed, validated application configuration for the proxy. Only the
    dependency wiring and the app factory read it; use cases receive plain
    values through constructors.

Design:
    - Pydantic v2 BaseSettings with `extra='forbid'` to catch unknown env.
    - Explicit field declarations with constrained types and ranges.
    - The upstream credential is optional at load time: its absence is a
      per-request configuration error (HTTP 500), not a startup crash.
    - Singleton accessor `get_settings()` with LRU cache.
    - Safe, structured logging (no secrets).
"""

from __future__ import annotations

import logging
from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Environment(str, Enum):
    """Logical deployment environment."""

    DEVELOPMENT = "development"
    TEST = "test"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Typed application configuration for the proxy."""

    # ---------------------------
    # Core environment
    # ---------------------------
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Logical deployment environment.",
        validation_alias="ENVIRONMENT",
    )

    service_version: str = Field(
        default="0.1.0",
        description="Version string reported in OpenAPI and startup logs.",
        validation_alias="SERVICE_VERSION",
    )

    # ---------------------------
    # Upstream provider
    # ---------------------------
    alpha_api_key: SecretStr | None = Field(
        default=None,
        description="Alpha Vantage API key. Absence makes every proxied request fail with 500.",
        validation_alias="ALPHA_API_KEY",
    )

    alpha_base_url: str = Field(
        default="https://www.alphavantage.co/query",
        description="Alpha Vantage query endpoint.",
        validation_alias="ALPHA_BASE_URL",
    )

    alpha_timeout_s: float = Field(
        default=10.0,
        ge=0.1,
        le=60.0,
        description="Per-request timeout in seconds for upstream calls.",
        validation_alias="ALPHA_TIMEOUT_S",
    )

    # ---------------------------
    # Cache
    # ---------------------------
    redis_url: str | None = Field(
        default=None,
        description="Redis URL for the shared cache. When unset, a process-local cache is used.",
        validation_alias="REDIS_URL",
    )

    cache_generation: str = Field(
        default="v3",
        min_length=1,
        pattern=r"^[A-Za-z0-9_.-]+$",
        description="Cache namespace generation. Bump it when the cached payload shape changes.",
        validation_alias="CACHE_GENERATION",
    )

    cache_fresh_ttl_s: int = Field(
        default=86400 * 3,
        ge=0,
        description="Seconds a cached response is served without revalidation.",
        validation_alias="CACHE_FRESH_TTL_S",
    )

    cache_stale_window_s: int = Field(
        default=86400,
        ge=0,
        description="Seconds past freshness a response may still be served while refreshing.",
        validation_alias="CACHE_STALE_WINDOW_S",
    )

    # ---------------------------
    # Throttle handling
    # ---------------------------
    retry_min_delay_s: float = Field(
        default=1.0,
        ge=0.0,
        le=30.0,
        description="Lower bound of the backoff before the single throttle retry.",
        validation_alias="RETRY_MIN_DELAY_S",
    )

    retry_max_delay_s: float = Field(
        default=1.8,
        ge=0.0,
        le=30.0,
        description="Upper bound of the backoff before the single throttle retry.",
        validation_alias="RETRY_MAX_DELAY_S",
    )

    rate_limit_retry_after_s: int = Field(
        default=65,
        ge=0,
        description="Retry-After hint sent on 429 when the provider gives none.",
        validation_alias="RATE_LIMIT_RETRY_AFTER_S",
    )

    # ---------------------------
    # HTTP surface
    # ---------------------------
    cors_allow_origin: str = Field(
        default="*",
        min_length=1,
        description="Value of Access-Control-Allow-Origin on every response.",
        validation_alias="CORS_ALLOW_ORIGIN",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="forbid",
        case_sensitive=False,
        populate_by_name=True,
    )

    @model_validator(mode="after")
    def _validate_cross_fields(self) -> Settings:
        """Validate cross-field invariants.

        Returns:
            Settings: The validated settings instance.

        Raises:
            ValueError: If the backoff window is inverted or CORS is too open
                for production.
        """
        if self.retry_min_delay_s > self.retry_max_delay_s:
            raise ValueError("RETRY_MIN_DELAY_S must be <= RETRY_MAX_DELAY_S")
        if self.cors_allow_origin == "*" and self.environment is Environment.PRODUCTION:
            raise ValueError("'*' CORS origin is not allowed in production.")
        return self

    @property
    def has_alpha_api_key(self) -> bool:
        """Return True when a non-empty upstream credential is configured."""
        return bool(self.alpha_api_key and self.alpha_api_key.get_secret_value())


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton `Settings` instance.

    Returns:
        Settings: Validated application settings.

    Raises:
        RuntimeError: If configuration is invalid.
    """
    try:
        settings = Settings()
    except ValidationError as exc:
        logger.error("Invalid configuration", extra={"extra": {"errors": exc.errors()}})
        raise RuntimeError(f"Invalid configuration: {exc}") from exc

    logger.info(
        "Settings initialized",
        extra={
            "extra": {
                "environment": settings.environment.value,
                "cache_generation": settings.cache_generation,
                "cache_backend": "redis" if settings.redis_url else "memory",
                "alpha_api_key_configured": settings.has_alpha_api_key,
            }
        },
    )
    return settings
