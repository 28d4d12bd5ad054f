# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""
Use Case: Get Statement

Purpose:
    Serve one (statement kind, symbol) resource through the cache, fetching
    from the upstream provider on a miss with one throttle retry.

Layer: application/use_cases
"""

from __future__ import annotations

import asyncio
from contextlib import suppress

from pydantic import SecretStr

from ratios_proxy.application.interfaces.statement_gateway import StatementGateway
from ratios_proxy.application.services.cached_fetch import CachedFetch
from ratios_proxy.domain.entities.cache_entry import CacheKey
from ratios_proxy.domain.entities.proxy_result import ProxyResult
from ratios_proxy.domain.enums.request_kind import RequestKind
from ratios_proxy.domain.exceptions.proxy import (
    InvalidProxyRequest,
    ProxyConfigurationError,
    error_for_problem,
)
from ratios_proxy.infrastructure.logging.logger import get_json_logger
from ratios_proxy.infrastructure.observability.metrics import get_upstream_retries_total
from ratios_proxy.infrastructure.resilience.retry import (
    RetryPolicy,
    Sleep,
    retry_once_on_throttle,
)

logger = get_json_logger(__name__)


class GetStatement:
    """Use case to fetch one statement for one symbol.

    Args:
        gateway: Upstream statement gateway.
        fetcher: Shared cached read path.
        api_key: Upstream credential; ``None`` means not configured.
        generation: Cache generation token for keys.
        retry_policy: Backoff window for the single throttle retry.
        sleep: Awaitable sleep; injectable for tests.

    Raises:
        ProxyConfigurationError: If the credential is missing.
        UpstreamError: If the upstream fails and no cached copy can be served.
    """

    def __init__(
        self,
        *,
        gateway: StatementGateway,
        fetcher: CachedFetch,
        api_key: SecretStr | None,
        generation: str,
        retry_policy: RetryPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._gateway = gateway
        self._fetcher = fetcher
        self._api_key = api_key
        self._generation = generation
        self._policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._retries = get_upstream_retries_total()

    async def execute(
        self, kind: RequestKind, symbol: str, *, no_cache: bool = False
    ) -> ProxyResult:
        """Serve the statement.

        Args:
            kind: One of the four statement kinds.
            symbol: Ticker (any case).
            no_cache: Skip the cache read but still write on success.

        Returns:
            ProxyResult with the provider's JSON body.
        """
        if not kind.is_statement:
            raise InvalidProxyRequest("Bad request: missing/invalid function.")
        api_key = self._api_key
        if api_key is None or not api_key.get_secret_value():
            raise ProxyConfigurationError("ALPHA_API_KEY is not configured.")

        key = CacheKey(generation=self._generation, kind=kind, symbol=symbol)

        async def _load() -> bytes:
            return await self._load(kind, key.symbol, api_key)

        return await self._fetcher.fetch(key, _load, no_cache=no_cache)

    async def _load(self, kind: RequestKind, symbol: str, api_key: SecretStr) -> bytes:
        outcome = await retry_once_on_throttle(
            lambda: self._gateway.fetch_statement(kind, symbol, api_key),
            policy=self._policy,
            is_throttled=lambda reply: reply.is_rate_limited,
            sleep=self._sleep,
        )
        if outcome.retried:
            with suppress(Exception):
                self._retries.labels(scope="single").inc()

        reply = outcome.result
        if reply.problem is not None:
            logger.info(
                "statement.failed",
                extra={
                    "extra": {
                        "kind": kind.value,
                        "symbol": symbol,
                        "problem": reply.problem.kind.value,
                        "attempts": outcome.attempts,
                    }
                },
            )
            raise error_for_problem(reply.problem)
        return reply.text.encode("utf-8")
