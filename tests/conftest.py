# tests/conftest.py
from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest
from proxy_fakes import FRESH_TTL_S, STALE_WINDOW_S, ManualClock, RecordingSleep, ScriptedGateway

from ratios_proxy.application.services.cached_fetch import CachedFetch
from ratios_proxy.application.services.refresher import BackgroundRefresher
from ratios_proxy.application.services.single_flight import SingleFlight
from ratios_proxy.config.settings import Settings
from ratios_proxy.domain.entities.proxy_result import ProxyResult
from ratios_proxy.infrastructure.caching.memory_cache import InMemoryCacheStore
from ratios_proxy.infrastructure.resilience.retry import RetryPolicy


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def gateway() -> ScriptedGateway:
    return ScriptedGateway()


@pytest.fixture
def memory_cache(clock: ManualClock) -> InMemoryCacheStore:
    return InMemoryCacheStore(clock=clock)


@pytest.fixture
def make_fetcher(
    memory_cache: InMemoryCacheStore, clock: ManualClock
) -> Callable[..., CachedFetch]:
    """Factory for CachedFetch over shared flights/refresher."""
    flights: SingleFlight[ProxyResult] = SingleFlight(copier=ProxyResult.clone)
    refresher = BackgroundRefresher()

    def _make(**overrides: Any) -> CachedFetch:
        params: dict[str, Any] = {
            "cache": memory_cache,
            "flights": flights,
            "refresher": refresher,
            "fresh_ttl_s": FRESH_TTL_S,
            "stale_window_s": STALE_WINDOW_S,
            "clock": clock,
        }
        params.update(overrides)
        return CachedFetch(**params)

    return _make


@pytest.fixture
def fast_policy() -> RetryPolicy:
    return RetryPolicy(min_delay_s=1.0, max_delay_s=1.8)


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Build Settings without reading the process environment or .env."""

    def _make(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "ENVIRONMENT": "test",
            "ALPHA_API_KEY": "demo-key",
            "REDIS_URL": None,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make
