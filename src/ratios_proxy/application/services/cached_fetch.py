# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""Cached fetch: the shared read path of every proxy use case.

Flow for one key::

    no_cache? ──yes──────────────────────────────┐
       │ no                                      │
    cache.get ── fresh ──> HIT                   │
       │ ─────── stale ──> STALE (+ background refresh)
       │ miss                                    │
       └──> single-flight(key) ──> load ──> put ──> MISS | BYPASS
                                   │
                          rate_limited ──> servable cached copy? ──> FALLBACK

Nothing is written on a failure path. A forced refresh (``no_cache``) skips
the read but still writes on success.

Layer:
    application/services
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from contextlib import suppress

from ratios_proxy.application.interfaces.cache_port import CacheStorePort
from ratios_proxy.application.services.refresher import BackgroundRefresher
from ratios_proxy.application.services.single_flight import SingleFlight
from ratios_proxy.domain.entities.cache_entry import CacheEntry, CacheKey
from ratios_proxy.domain.entities.proxy_result import JSON_CONTENT_TYPE, ProxyResult
from ratios_proxy.domain.enums.request_kind import CacheStatus
from ratios_proxy.domain.exceptions.proxy import UpstreamRateLimited
from ratios_proxy.infrastructure.logging.logger import get_json_logger
from ratios_proxy.infrastructure.observability.metrics import get_cache_lookups_total

logger = get_json_logger(__name__)

#: Produces the response body for a key, raising ``UpstreamError`` on failure.
Loader = Callable[[], Awaitable[bytes]]


class CachedFetch:
    """Cache-aside reader with stale-while-revalidate and single-flight.

    Args:
        cache: Cache store.
        flights: Single-flight coordinator shared by the execution context.
        refresher: Background task runner for stale refreshes.
        fresh_ttl_s: Freshness TTL for new entries.
        stale_window_s: Stale window for new entries.
        clock: Epoch-seconds clock; injectable for tests.
    """

    def __init__(
        self,
        *,
        cache: CacheStorePort,
        flights: SingleFlight[ProxyResult],
        refresher: BackgroundRefresher,
        fresh_ttl_s: int,
        stale_window_s: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._cache = cache
        self._flights = flights
        self._refresher = refresher
        self._fresh_ttl_s = fresh_ttl_s
        self._stale_window_s = stale_window_s
        self._clock = clock
        self._lookups = get_cache_lookups_total()

    async def fetch(self, key: CacheKey, loader: Loader, *, no_cache: bool = False) -> ProxyResult:
        """Serve ``key`` from cache or via ``loader``.

        Args:
            key: Cache key (also the single-flight key).
            loader: Produces the body on a miss; raises ``UpstreamError``.
            no_cache: Skip the cache read; the result is still written.

        Returns:
            The servable result with its cache status.

        Raises:
            UpstreamError: When the load fails and no cached copy can mask it.
        """
        if no_cache:
            self._count("bypass")
        else:
            lookup = await self._cache.get(key)
            if lookup is not None and not lookup.stale:
                self._count("hit")
                return ProxyResult.from_entry(lookup.entry, CacheStatus.HIT)
            if lookup is not None:
                self._count("stale")
                self._refresher.schedule(key.render(), lambda: self._refresh(key, loader))
                return ProxyResult.from_entry(lookup.entry, CacheStatus.STALE)
            self._count("miss")

        status = CacheStatus.BYPASS if no_cache else CacheStatus.MISS
        try:
            return await self._flights.run_exclusive(
                key, lambda: self._load_and_store(key, loader, status)
            )
        except UpstreamRateLimited:
            fallback = await self._cache.get(key)
            if fallback is None:
                raise
            logger.info(
                "cache.fallback_on_throttle",
                extra={"extra": {"key": key.render(), "stale": fallback.stale}},
            )
            return ProxyResult.from_entry(fallback.entry, CacheStatus.FALLBACK)

    async def _refresh(self, key: CacheKey, loader: Loader) -> None:
        await self._flights.run_exclusive(
            key, lambda: self._load_and_store(key, loader, CacheStatus.MISS)
        )

    async def _load_and_store(
        self, key: CacheKey, loader: Loader, status: CacheStatus
    ) -> ProxyResult:
        body = await loader()
        entry = CacheEntry(
            body=body,
            content_type=JSON_CONTENT_TYPE,
            created_at=self._clock(),
            fresh_ttl_s=self._fresh_ttl_s,
            stale_window_s=self._stale_window_s,
        )
        await self._cache.put(key, entry)
        logger.info(
            "cache.stored",
            extra={"extra": {"key": key.render(), "bytes": len(body)}},
        )
        return ProxyResult.from_entry(entry, status)

    def _count(self, result: str) -> None:
        with suppress(Exception):
            self._lookups.labels(result=result).inc()
