# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""Health endpoint (Adapters Layer).

Purpose:
    Liveness signal for load balancers. Reports the cache backend and whether
    the upstream credential is configured; never calls the upstream.
"""

from __future__ import annotations

import typing as t
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ratios_proxy.dependencies.proxy import ProxyContext, get_proxy_context
from ratios_proxy.infrastructure.caching.redis_cache import RedisCacheStore

router = APIRouter()


class HealthResponse(BaseModel):
    """Liveness payload."""

    status: t.Literal["ok", "degraded"]
    version: str
    cache_backend: t.Literal["redis", "memory"]
    upstream_configured: bool = Field(description="True when ALPHA_API_KEY is set.")
    inflight: int = Field(ge=0, description="Upstream loads currently in flight.")


@router.get(
    "/healthz",
    response_model=HealthResponse,
    summary="Liveness probe",
    tags=["Health"],
)
async def healthz(ctx: Annotated[ProxyContext, Depends(get_proxy_context)]) -> HealthResponse:
    """Return process liveness with configuration hints."""
    configured = ctx.settings.has_alpha_api_key
    return HealthResponse(
        status="ok" if configured else "degraded",
        version=ctx.settings.service_version,
        cache_backend="redis" if isinstance(ctx.cache, RedisCacheStore) else "memory",
        upstream_configured=configured,
        inflight=ctx.flights.pending_count,
    )
