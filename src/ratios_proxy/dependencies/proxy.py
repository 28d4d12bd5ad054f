# src/ratios_proxy/dependencies/proxy.py
# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""Dependency wiring for the proxy (cache, single-flight, gateway, use cases).

Overview:
    The proxy's mutable collaborators (in-flight registry, background
    refresher, cache store, HTTP client) live in one :class:`ProxyContext`
    built per application instance, i.e. per execution context. The FastAPI
    lifespan creates it and stores it on ``app.state``; tests build isolated
    contexts and install them with ``app.dependency_overrides``.

Layer:
    dependencies

Design:
    * No module-level registries; every mutable object hangs off the context.
    * Select cache implementation by settings:
        - RedisCacheStore when ``REDIS_URL`` is set.
        - InMemoryCacheStore otherwise (local dev, tests).
    * Use cases are cheap to build and are constructed per request.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass, field
from typing import Annotated

import httpx
from fastapi import Depends, Request

from ratios_proxy.application.interfaces.cache_port import CacheStorePort
from ratios_proxy.application.interfaces.statement_gateway import StatementGateway
from ratios_proxy.application.services.cached_fetch import CachedFetch
from ratios_proxy.application.services.refresher import BackgroundRefresher
from ratios_proxy.application.services.single_flight import SingleFlight
from ratios_proxy.application.use_cases.get_bundle import GetBundle
from ratios_proxy.application.use_cases.get_statement import GetStatement
from ratios_proxy.config.settings import Settings
from ratios_proxy.domain.entities.proxy_result import ProxyResult
from ratios_proxy.infrastructure.caching.memory_cache import InMemoryCacheStore
from ratios_proxy.infrastructure.caching.redis_cache import RedisCacheStore
from ratios_proxy.infrastructure.caching.redis_client import (
    RedisClient,
    close_redis_client,
    create_redis_client,
)
from ratios_proxy.infrastructure.external_apis.alpha_vantage.client import AlphaVantageClient
from ratios_proxy.infrastructure.external_apis.alpha_vantage.settings import (
    AlphaVantageSettings,
)
from ratios_proxy.infrastructure.logging.logger import get_json_logger
from ratios_proxy.infrastructure.resilience.retry import RetryPolicy, Sleep

logger = get_json_logger(__name__)


@dataclass
class ProxyContext:
    """Per-execution-context collaborators shared by all requests.

    Attributes:
        settings: Resolved settings.
        cache: Cache store.
        gateway: Upstream statement gateway.
        flights: Single-flight coordinator (the in-flight registry).
        refresher: Background refresher for stale entries.
        sleep: Awaitable sleep used by the retry backoff.
    """

    settings: Settings
    cache: CacheStorePort
    gateway: StatementGateway
    flights: SingleFlight[ProxyResult] = field(
        default_factory=lambda: SingleFlight(copier=ProxyResult.clone)
    )
    refresher: BackgroundRefresher = field(default_factory=BackgroundRefresher)
    sleep: Sleep = asyncio.sleep

    @property
    def retry_policy(self) -> RetryPolicy:
        """Backoff window derived from settings."""
        return RetryPolicy(
            min_delay_s=self.settings.retry_min_delay_s,
            max_delay_s=self.settings.retry_max_delay_s,
        )

    def cached_fetch(self) -> CachedFetch:
        """Build the shared read path over this context's collaborators."""
        return CachedFetch(
            cache=self.cache,
            flights=self.flights,
            refresher=self.refresher,
            fresh_ttl_s=self.settings.cache_fresh_ttl_s,
            stale_window_s=self.settings.cache_stale_window_s,
        )


def alpha_settings_from(settings: Settings) -> AlphaVantageSettings:
    """Map application settings onto the transport client settings."""
    return AlphaVantageSettings(
        base_url=settings.alpha_base_url,
        timeout_s=settings.alpha_timeout_s,
        retry_after_s=float(settings.rate_limit_retry_after_s),
    )


@asynccontextmanager
async def open_proxy_context(
    settings: Settings,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> AsyncIterator[ProxyContext]:
    """Create a :class:`ProxyContext` and tear it down on exit.

    Args:
        settings: Resolved settings.
        http_client: Optional shared HTTP client; owned by the context if omitted.

    Yields:
        The ready context.
    """
    owns_http = http_client is None
    http = http_client or httpx.AsyncClient(timeout=settings.alpha_timeout_s)
    redis: RedisClient | None = None

    cache: CacheStorePort
    if settings.redis_url:
        redis = create_redis_client(settings.redis_url)
        cache = RedisCacheStore(redis)
    else:
        cache = InMemoryCacheStore()

    ctx = ProxyContext(
        settings=settings,
        cache=cache,
        gateway=AlphaVantageClient(alpha_settings_from(settings), http=http),
    )
    logger.info(
        "proxy_context.open",
        extra={"extra": {"cache_backend": "redis" if redis is not None else "memory"}},
    )
    try:
        yield ctx
    finally:
        try:
            await ctx.refresher.drain()
        except Exception:
            logger.exception("proxy_context.drain_failed")
        if redis is not None:
            with suppress(Exception):
                await close_redis_client(redis)
        if owns_http:
            await http.aclose()
        logger.info("proxy_context.close")


def get_proxy_context(request: Request) -> ProxyContext:
    """Return the context installed on the app by the lifespan."""
    ctx: ProxyContext | None = getattr(request.app.state, "proxy_context", None)
    if ctx is None:
        raise RuntimeError("ProxyContext not initialized (lifespan did not run)")
    return ctx


def get_statement_uc(
    ctx: Annotated[ProxyContext, Depends(get_proxy_context)],
) -> GetStatement:
    """Build the single-statement use case for this request."""
    return GetStatement(
        gateway=ctx.gateway,
        fetcher=ctx.cached_fetch(),
        api_key=ctx.settings.alpha_api_key,
        generation=ctx.settings.cache_generation,
        retry_policy=ctx.retry_policy,
        sleep=ctx.sleep,
    )


def get_bundle_uc(
    ctx: Annotated[ProxyContext, Depends(get_proxy_context)],
) -> GetBundle:
    """Build the bundle use case for this request."""
    return GetBundle(
        gateway=ctx.gateway,
        fetcher=ctx.cached_fetch(),
        api_key=ctx.settings.alpha_api_key,
        generation=ctx.settings.cache_generation,
        retry_policy=ctx.retry_policy,
        sleep=ctx.sleep,
    )


def get_cors_origin(ctx: Annotated[ProxyContext, Depends(get_proxy_context)]) -> str:
    """Return the configured ``Access-Control-Allow-Origin`` value."""
    return ctx.settings.cors_allow_origin


def get_retry_after_s(ctx: Annotated[ProxyContext, Depends(get_proxy_context)]) -> int:
    """Return the ``Retry-After`` hint used when a throttle carries none."""
    return ctx.settings.rate_limit_retry_after_s
