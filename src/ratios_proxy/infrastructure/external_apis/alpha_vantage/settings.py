# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""Pydantic settings for the Alpha Vantage transport client."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AlphaVantageSettings(BaseSettings):
    """Configuration for the Alpha Vantage client.

    Environment variables (with ``model_config.env_prefix``):

    * ``ALPHA_BASE_URL``
    * ``ALPHA_TIMEOUT_S``
    * ``ALPHA_USER_AGENT``
    * ``ALPHA_RETRY_AFTER_S``

    The API key is not part of the transport settings; it is passed per call
    so a missing credential surfaces as a request-level configuration error.
    """

    base_url: str = Field(
        "https://www.alphavantage.co/query",
        description="Alpha Vantage query endpoint.",
    )
    timeout_s: float = Field(
        10.0,
        gt=0,
        description="Per-request timeout in seconds for the transport client.",
    )
    user_agent: str = Field(
        "ratios-proxy/0.1",
        description="User-Agent sent on every upstream request.",
    )
    retry_after_s: float = Field(
        65.0,
        ge=0,
        description="Retry-After hint reported when the provider throttles without one.",
    )

    model_config: SettingsConfigDict = SettingsConfigDict(
        env_prefix="ALPHA_",
        extra="ignore",
    )
