# src/ratios_proxy/infrastructure/observability/metrics.py
# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""Proxy observability helpers and Prometheus metrics.

Exports
-------
Core collectors (names are part of the public contract and must remain stable):

* ``ratios_proxy_upstream_requests_total`` (Counter)
* ``ratios_proxy_upstream_retries_total`` (Counter)
* ``ratios_proxy_cache_lookups_total`` (Counter)
* ``ratios_proxy_singleflight_joins_total`` (Counter)
* ``ratios_proxy_background_refresh_total`` (Counter)

Design
------
All collectors are created against the *current* default registry
(:data:`prometheus_client.REGISTRY`). If a collector with the same name already
exists in the active registry, the existing instance is reused instead of
registering a duplicate, which keeps module re-imports and registry swaps in
tests safe.
"""

from __future__ import annotations

from collections.abc import Sequence

import prometheus_client as prom
from prometheus_client import Counter
from prometheus_client.registry import CollectorRegistry

__all__ = [
    "get_upstream_requests_total",
    "get_upstream_retries_total",
    "get_cache_lookups_total",
    "get_singleflight_joins_total",
    "get_background_refresh_total",
]


def _get_or_create_counter(
    name: str,
    doc: str,
    labelnames: Sequence[str] | None = None,
) -> Counter:
    """Return a counter bound to the current default registry.

    1. Look up an existing collector with the given name in the current
       :data:`prom.REGISTRY` and reuse it if it is a :class:`Counter`.
    2. Otherwise, attempt to register a new counter on the same registry.
    3. If a concurrent registration caused a ``Duplicated timeseries`` error,
       look up the collector again and reuse it.

    Args:
        name: Metric name without the ``_total`` suffix handling concerns.
        doc: Human-readable metric description.
        labelnames: Optional iterable of label names.

    Returns:
        A :class:`Counter` bound to the current :data:`prom.REGISTRY`.
    """
    registry: CollectorRegistry = prom.REGISTRY
    mapping = getattr(registry, "_names_to_collectors", {})
    existing = mapping.get(name)
    if isinstance(existing, Counter):
        return existing

    labels = tuple(labelnames) if labelnames is not None else ()
    try:
        return Counter(name, doc, labels, registry=registry)
    except ValueError as exc:
        if "Duplicated timeseries" in str(exc):
            mapping = getattr(registry, "_names_to_collectors", {})
            again = mapping.get(name)
            if isinstance(again, Counter):
                return again
        raise


def get_upstream_requests_total() -> Counter:
    """Upstream GETs by statement kind and outcome (``ok`` or a problem kind)."""
    return _get_or_create_counter(
        "ratios_proxy_upstream_requests_total",
        "Upstream requests issued to the financial-data provider.",
        labelnames=("kind", "outcome"),
    )


def get_upstream_retries_total() -> Counter:
    """Second attempts taken after a throttle signal (``single`` or ``bundle``)."""
    return _get_or_create_counter(
        "ratios_proxy_upstream_retries_total",
        "Retries taken after an upstream throttle signal.",
        labelnames=("scope",),
    )


def get_cache_lookups_total() -> Counter:
    """Cache reads by result (``hit``, ``stale``, ``miss``, ``bypass``)."""
    return _get_or_create_counter(
        "ratios_proxy_cache_lookups_total",
        "Cache lookups by result.",
        labelnames=("result",),
    )


def get_singleflight_joins_total() -> Counter:
    """Callers that joined an already in-flight fetch instead of starting one."""
    return _get_or_create_counter(
        "ratios_proxy_singleflight_joins_total",
        "Callers that awaited an existing in-flight upstream fetch.",
    )


def get_background_refresh_total() -> Counter:
    """Stale-while-revalidate refreshes by outcome (``ok`` or ``failed``)."""
    return _get_or_create_counter(
        "ratios_proxy_background_refresh_total",
        "Background refreshes of stale cache entries.",
        labelnames=("outcome",),
    )
