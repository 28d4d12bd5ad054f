# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""
Use Case: Get Bundle

Purpose:
    Serve all four statements for one symbol in a single response. The four
    upstream calls run concurrently; a throttle on any leg retries the whole
    round once after one shared backoff. Only a complete bundle is cached.

Layer: application/use_cases
"""

from __future__ import annotations

import asyncio
import json
from contextlib import suppress

from pydantic import SecretStr

from ratios_proxy.application.interfaces.statement_gateway import StatementGateway
from ratios_proxy.application.services.cached_fetch import CachedFetch
from ratios_proxy.domain.entities.bundle import BundleResult
from ratios_proxy.domain.entities.cache_entry import CacheKey
from ratios_proxy.domain.entities.proxy_result import ProxyResult
from ratios_proxy.domain.entities.upstream import UpstreamProblem
from ratios_proxy.domain.enums.problem_kind import ProblemKind
from ratios_proxy.domain.enums.request_kind import STATEMENT_KINDS, RequestKind
from ratios_proxy.domain.exceptions.proxy import ProxyConfigurationError, error_for_problem
from ratios_proxy.infrastructure.logging.logger import get_json_logger
from ratios_proxy.infrastructure.observability.metrics import get_upstream_retries_total
from ratios_proxy.infrastructure.resilience.retry import (
    RetryPolicy,
    Sleep,
    retry_once_on_throttle,
)

logger = get_json_logger(__name__)


class GetBundle:
    """Use case to fetch the four-statement bundle for one symbol.

    Args:
        gateway: Upstream statement gateway.
        fetcher: Shared cached read path.
        api_key: Upstream credential; ``None`` means not configured.
        generation: Cache generation token for keys.
        retry_policy: Backoff window for the single round retry.
        sleep: Awaitable sleep; injectable for tests.
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

    async def execute(self, symbol: str, *, no_cache: bool = False) -> ProxyResult:
        """Serve the bundle.

        Args:
            symbol: Ticker (any case).
            no_cache: Skip the cache read but still write on success.

        Returns:
            ProxyResult whose body is
            ``{"income_statement", "balance_sheet", "cash_flow", "overview"}``.

        Raises:
            ProxyConfigurationError: If the credential is missing.
            UpstreamError: If the bundle is incomplete after at most two rounds.
        """
        api_key = self._api_key
        if api_key is None or not api_key.get_secret_value():
            raise ProxyConfigurationError("ALPHA_API_KEY is not configured.")

        key = CacheKey(generation=self._generation, kind=RequestKind.BUNDLE, symbol=symbol)

        async def _load() -> bytes:
            return await self._load(key.symbol, api_key)

        return await self._fetcher.fetch(key, _load, no_cache=no_cache)

    async def fetch_bundle(self, symbol: str, api_key: SecretStr) -> BundleResult:
        """Run at most two concurrent rounds and return the final bundle."""
        outcome = await retry_once_on_throttle(
            lambda: self._round(symbol, api_key),
            policy=self._policy,
            is_throttled=lambda bundle: bundle.is_throttled,
            sleep=self._sleep,
        )
        if outcome.retried:
            with suppress(Exception):
                self._retries.labels(scope="bundle").inc()
        return outcome.result

    async def _round(self, symbol: str, api_key: SecretStr) -> BundleResult:
        replies = await asyncio.gather(
            *(self._gateway.fetch_statement(kind, symbol, api_key) for kind in STATEMENT_KINDS)
        )
        return BundleResult.from_replies(dict(zip(STATEMENT_KINDS, replies, strict=True)))

    async def _load(self, symbol: str, api_key: SecretStr) -> bytes:
        bundle = await self.fetch_bundle(symbol, api_key)
        if not bundle.is_complete:
            problem = bundle.failure or UpstreamProblem(
                kind=ProblemKind.RATE_LIMITED,
                detail="Bundle incomplete and no cached copy",
                source="bundle",
            )
            logger.info(
                "bundle.incomplete",
                extra={
                    "extra": {
                        "symbol": symbol,
                        "problem": problem.kind.value,
                        "source": problem.source,
                        "failed_legs": sorted(k.value for k in bundle.problems),
                    }
                },
            )
            raise error_for_problem(problem)
        return json.dumps(bundle.to_payload(), separators=(",", ":")).encode("utf-8")
