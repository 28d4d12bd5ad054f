# src/ratios_proxy/adapters/schemas/proxy.py
# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""HTTP Schemas for the proxy endpoint (Adapters Layer).

Purpose:
    Transport-facing shapes: the normalized inbound query and the error body
    returned on every non-2xx response.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from ratios_proxy.domain.enums.request_kind import RequestKind

__all__ = ["ProxyQuery", "ProxyErrorBody"]


class ProxyQuery(BaseModel):
    """Normalized query parameters for ``GET /api/alpha``."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    symbol: str = Field(description="Ticker, upper-cased.")
    kind: RequestKind | None = Field(
        default=None, description="Statement kind; required unless bundle is set."
    )
    bundle: bool = Field(default=False, description="Fetch all four statements at once.")
    no_cache: bool = Field(default=False, description="Skip the cache read; still write.")


class ProxyErrorBody(BaseModel):
    """Error body returned by the proxy.

    ``kind`` is one of ``bad_request``, ``rate_limited``, ``upstream_failure``
    or ``config_error``.
    """

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "examples": [
                {
                    "error": "Alpha Vantage",
                    "detail": "Our standard API rate limit is 25 requests per day.",
                    "kind": "rate_limited",
                }
            ]
        },
    )

    error: str = Field(description="Short error title.")
    detail: str = Field(description="Human-readable cause.")
    kind: str = Field(description="Stable error classification.")
