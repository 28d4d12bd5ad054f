# src/ratios_proxy/adapters/routers/metrics_router.py
# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""Prometheus scrape endpoint (`/metrics`).

The proxy's counters are created lazily; the first scrape registers them so
series exist (at zero) before any traffic.

Layer:
    adapters/routers
"""

from __future__ import annotations

from contextlib import suppress

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from ratios_proxy.infrastructure.observability.metrics import (
    get_background_refresh_total,
    get_cache_lookups_total,
    get_singleflight_joins_total,
    get_upstream_requests_total,
    get_upstream_retries_total,
)

router = APIRouter()


def _warm_collectors() -> None:
    for getter in (
        get_upstream_requests_total,
        get_upstream_retries_total,
        get_cache_lookups_total,
        get_singleflight_joins_total,
        get_background_refresh_total,
    ):
        with suppress(Exception):
            getter()


@router.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    """Expose Prometheus metrics in text format."""
    _warm_collectors()
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
