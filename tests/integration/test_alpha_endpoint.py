# tests/integration/test_alpha_endpoint.py
from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

import httpx
import pytest
from proxy_fakes import (
    RecordingSleep,
    ScriptedGateway,
    bad_symbol_reply,
    failed_reply,
    throttled_reply,
)

from ratios_proxy.config.settings import Settings
from ratios_proxy.dependencies.proxy import ProxyContext
from ratios_proxy.domain.enums.request_kind import RequestKind
from ratios_proxy.infrastructure.caching.memory_cache import InMemoryCacheStore
from ratios_proxy.main import create_app

pytestmark = pytest.mark.integration

ORIGIN = "https://ratios.example"


@pytest.fixture
def build_client(
    make_settings: Callable[..., Settings], gateway: ScriptedGateway
) -> Callable[..., Any]:
    """Return an async-context factory wiring the app to the scripted gateway."""

    @asynccontextmanager
    async def _build(**overrides) -> AsyncIterator[httpx.AsyncClient]:
        settings = make_settings(CORS_ALLOW_ORIGIN=ORIGIN, **overrides)
        app = create_app(settings)
        ctx = ProxyContext(
            settings=settings,
            cache=InMemoryCacheStore(),
            gateway=gateway,
            sleep=RecordingSleep(),
        )
        app.state.proxy_context = ctx
        transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
        async with httpx.AsyncClient(transport=transport, base_url="http://proxy.test") as client:
            yield client
        await ctx.refresher.drain()

    return _build


def _assert_cors(response: httpx.Response) -> None:
    assert response.headers["access-control-allow-origin"] == ORIGIN
    assert response.headers["access-control-allow-methods"] == "GET, OPTIONS"
    assert response.headers["access-control-allow-headers"] == "Content-Type"
    assert response.headers["vary"] == "Origin"


@pytest.mark.asyncio
async def test_statement_miss_then_hit(build_client, gateway: ScriptedGateway) -> None:
    async with build_client() as client:
        r1 = await client.get("/api/alpha", params={"symbol": "ibm", "function": "overview"})
        r2 = await client.get("/api/alpha", params={"symbol": "IBM", "function": "OVERVIEW"})

    assert r1.status_code == 200
    assert r1.headers["x-proxy-cache"] == "MISS"
    assert r1.headers["cache-control"] == "public, max-age=259200, stale-while-revalidate=86400"
    assert r1.json() == {"symbol": "IBM", "function": "OVERVIEW"}
    assert r2.headers["x-proxy-cache"] == "HIT"
    assert r2.content == r1.content
    assert gateway.count() == 1
    _assert_cors(r1)
    assert "x-request-id" in r1.headers


@pytest.mark.asyncio
async def test_bundle_response_and_nocache_bypass(build_client, gateway: ScriptedGateway) -> None:
    async with build_client() as client:
        r1 = await client.get("/api/alpha", params={"symbol": "IBM", "bundle": "1"})
        r2 = await client.get("/api/alpha", params={"symbol": "IBM", "bundle": "1"})
        r3 = await client.get("/api/alpha", params={"symbol": "IBM", "bundle": "1", "nocache": "1"})

    assert r1.status_code == 200
    assert set(r1.json()) == {"income_statement", "balance_sheet", "cash_flow", "overview"}
    assert r1.headers["x-proxy-cache"] == "MISS"
    assert r2.headers["x-proxy-cache"] == "HIT"
    assert r3.headers["x-proxy-cache"] == "BYPASS"
    assert gateway.count() == 8


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("params", "detail"),
    [
        ({}, "Bad request: missing symbol."),
        ({"function": "OVERVIEW", "bundle": "1"}, "Bad request: missing symbol."),
        ({"symbol": "IBM"}, "Bad request: missing/invalid function."),
        ({"symbol": "IBM", "function": "TIME_SERIES_DAILY"}, "Bad request: missing/invalid function."),
    ],
)
async def test_invalid_queries_are_400(
    build_client, gateway: ScriptedGateway, params, detail
) -> None:
    async with build_client() as client:
        r = await client.get("/api/alpha", params=params)
    assert r.status_code == 400
    assert r.json()["detail"] == detail
    assert gateway.calls == []
    _assert_cors(r)


@pytest.mark.asyncio
async def test_missing_credential_is_500(build_client, gateway: ScriptedGateway) -> None:
    async with build_client(ALPHA_API_KEY=None) as client:
        r = await client.get("/api/alpha", params={"symbol": "IBM", "function": "OVERVIEW"})
    assert r.status_code == 500
    assert r.json()["detail"] == "ALPHA_API_KEY is not configured."
    assert gateway.calls == []
    _assert_cors(r)


@pytest.mark.asyncio
async def test_persistent_throttle_is_429_with_retry_after(
    build_client, gateway: ScriptedGateway
) -> None:
    gateway.set(RequestKind.OVERVIEW, throttled_reply("Please slow down."))
    async with build_client() as client:
        r = await client.get("/api/alpha", params={"symbol": "IBM", "function": "OVERVIEW"})
    assert r.status_code == 429
    assert r.headers["retry-after"] == "65"
    assert r.json() == {"error": "Alpha Vantage", "detail": "Please slow down.", "kind": "rate_limited"}
    assert gateway.count() == 2
    _assert_cors(r)


@pytest.mark.asyncio
async def test_bundle_throttled_twice_is_429(build_client, gateway: ScriptedGateway) -> None:
    gateway.set(RequestKind.INCOME_STATEMENT, throttled_reply())
    async with build_client() as client:
        r = await client.get("/api/alpha", params={"symbol": "IBM", "bundle": "1"})
    assert r.status_code == 429
    assert r.json()["kind"] == "rate_limited"
    assert gateway.count() == 8


@pytest.mark.asyncio
async def test_bundle_with_failed_leg_is_429_with_default_retry_after(
    build_client, gateway: ScriptedGateway
) -> None:
    gateway.set(RequestKind.OVERVIEW, failed_reply(503))
    async with build_client() as client:
        r = await client.get("/api/alpha", params={"symbol": "IBM", "bundle": "1"})
    assert r.status_code == 429
    assert r.headers["retry-after"] == "65"
    body = r.json()
    assert body["kind"] == "rate_limited"
    assert "overview" in body["detail"]
    assert gateway.count() == 4
    _assert_cors(r)


@pytest.mark.asyncio
async def test_bundle_failure_uses_configured_retry_after(
    build_client, gateway: ScriptedGateway
) -> None:
    gateway.set(RequestKind.CASH_FLOW, bad_symbol_reply())
    async with build_client(RATE_LIMIT_RETRY_AFTER_S=30) as client:
        r = await client.get("/api/alpha", params={"symbol": "IBM", "bundle": "1"})
    assert r.status_code == 429
    assert r.headers["retry-after"] == "30"


@pytest.mark.asyncio
async def test_upstream_error_statuses(build_client, gateway: ScriptedGateway) -> None:
    gateway.set(RequestKind.BALANCE_SHEET, bad_symbol_reply())
    gateway.set(RequestKind.CASH_FLOW, failed_reply(503))
    async with build_client() as client:
        r400 = await client.get("/api/alpha", params={"symbol": "X", "function": "BALANCE_SHEET"})
        r502 = await client.get("/api/alpha", params={"symbol": "X", "function": "CASH_FLOW"})
    assert r400.status_code == 400
    assert r400.json()["kind"] == "bad_request"
    assert r502.status_code == 502
    assert json.loads(r502.content)["kind"] == "upstream_failure"
    _assert_cors(r502)


@pytest.mark.asyncio
async def test_options_preflight(build_client) -> None:
    async with build_client() as client:
        r = await client.options("/api/alpha")
    assert r.status_code == 200
    assert r.content == b""
    _assert_cors(r)
    assert "x-proxy-cache" not in r.headers
    assert "cache-control" not in r.headers


@pytest.mark.asyncio
async def test_unsupported_method_gets_cors_headers(build_client) -> None:
    async with build_client() as client:
        r = await client.post("/api/alpha", params={"symbol": "IBM"})
    assert r.status_code == 405
    _assert_cors(r)


@pytest.mark.asyncio
async def test_missing_context_is_500_with_cors(make_settings) -> None:
    app = create_app(make_settings(CORS_ALLOW_ORIGIN=ORIGIN))
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://proxy.test") as client:
        r = await client.get("/api/alpha", params={"symbol": "IBM", "function": "OVERVIEW"})
    assert r.status_code == 500
    assert r.json()["kind"] == "internal_error"
    _assert_cors(r)


@pytest.mark.asyncio
async def test_healthz_and_metrics(build_client) -> None:
    async with build_client() as client:
        await client.get("/api/alpha", params={"symbol": "IBM", "function": "OVERVIEW"})
        health = await client.get("/healthz")
        metrics = await client.get("/metrics")

    assert health.status_code == 200
    assert health.json()["status"] == "ok"
    assert health.json()["cache_backend"] == "memory"
    assert metrics.status_code == 200
    assert "ratios_proxy_cache_lookups_total" in metrics.text
