# tests/unit/infrastructure/external_apis/test_alpha_vantage_client.py
from __future__ import annotations

import httpx
import pytest
import respx
from pydantic import SecretStr

from ratios_proxy.domain.enums.problem_kind import ProblemKind
from ratios_proxy.domain.enums.request_kind import RequestKind
from ratios_proxy.infrastructure.external_apis.alpha_vantage.client import (
    AlphaVantageClient,
    classify_reply,
)
from ratios_proxy.infrastructure.external_apis.alpha_vantage.settings import (
    AlphaVantageSettings,
)
from ratios_proxy.infrastructure.logging.logger import set_request_context

KEY = SecretStr("k-123")


@pytest.mark.asyncio
@respx.mock
async def test_fetch_statement_builds_params_and_returns_raw_text() -> None:
    cfg = AlphaVantageSettings()
    body = '{"symbol": "IBM", "annualReports": []}'
    route = respx.get(cfg.base_url).mock(return_value=httpx.Response(200, text=body))
    async with httpx.AsyncClient() as http:
        client = AlphaVantageClient(cfg, http=http)
        reply = await client.fetch_statement(RequestKind.INCOME_STATEMENT, "ibm", KEY)

    assert route.called
    request = route.calls.last.request
    assert request.url.params["function"] == "INCOME_STATEMENT"
    assert request.url.params["symbol"] == "IBM"
    assert request.url.params["apikey"] == "k-123"
    assert request.headers["Cache-Control"] == "no-cache"
    assert request.headers["User-Agent"] == cfg.user_agent
    assert reply.ok
    assert reply.status == 200
    assert reply.text == body
    assert reply.data == {"symbol": "IBM", "annualReports": []}


@pytest.mark.asyncio
@respx.mock
async def test_embedded_note_in_http_200_is_rate_limited() -> None:
    cfg = AlphaVantageSettings()
    note = "Thank you for using Alpha Vantage! Our standard API call frequency is 5 calls per minute."
    respx.get(cfg.base_url).mock(return_value=httpx.Response(200, json={"Note": note}))
    async with httpx.AsyncClient() as http:
        reply = await AlphaVantageClient(cfg, http=http).fetch_statement(
            RequestKind.OVERVIEW, "IBM", KEY
        )

    assert not reply.ok
    assert reply.is_rate_limited
    assert reply.problem is not None
    assert reply.problem.detail == note
    assert reply.problem.retry_after_s == cfg.retry_after_s


@pytest.mark.asyncio
@respx.mock
async def test_http_429_uses_upstream_retry_after_header() -> None:
    cfg = AlphaVantageSettings()
    respx.get(cfg.base_url).mock(
        return_value=httpx.Response(429, text="slow down", headers={"Retry-After": "12"})
    )
    async with httpx.AsyncClient() as http:
        reply = await AlphaVantageClient(cfg, http=http).fetch_statement(
            RequestKind.CASH_FLOW, "IBM", KEY
        )

    assert reply.problem is not None
    assert reply.problem.kind is ProblemKind.RATE_LIMITED
    assert reply.problem.retry_after_s == 12.0


@pytest.mark.asyncio
@respx.mock
async def test_transport_error_becomes_upstream_failure_without_raising() -> None:
    cfg = AlphaVantageSettings()
    respx.get(cfg.base_url).mock(side_effect=httpx.ConnectError("boom"))
    async with httpx.AsyncClient() as http:
        reply = await AlphaVantageClient(cfg, http=http).fetch_statement(
            RequestKind.BALANCE_SHEET, "IBM", KEY
        )

    assert reply.status is None
    assert reply.problem is not None
    assert reply.problem.kind is ProblemKind.UPSTREAM_FAILURE
    assert reply.problem.source == "transport"


@pytest.mark.asyncio
@respx.mock
async def test_request_id_is_propagated_upstream() -> None:
    cfg = AlphaVantageSettings()
    route = respx.get(cfg.base_url).mock(return_value=httpx.Response(200, json={}))
    set_request_context(request_id="rid-42")
    async with httpx.AsyncClient() as http:
        await AlphaVantageClient(cfg, http=http).fetch_statement(RequestKind.OVERVIEW, "IBM", KEY)

    assert route.calls.last.request.headers["X-Request-ID"] == "rid-42"


@pytest.mark.asyncio
async def test_bundle_is_not_an_upstream_function() -> None:
    client = AlphaVantageClient(AlphaVantageSettings())
    try:
        with pytest.raises(ValueError):
            await client.fetch_statement(RequestKind.BUNDLE, "IBM", KEY)
    finally:
        await client.aclose()


@pytest.mark.parametrize(
    ("status", "data", "kind", "source"),
    [
        (429, None, ProblemKind.RATE_LIMITED, "429"),
        (200, {"Note": "n"}, ProblemKind.RATE_LIMITED, "note"),
        (200, {"Information": "i"}, ProblemKind.RATE_LIMITED, "info"),
        (200, {"Error Message": "bad"}, ProblemKind.BAD_REQUEST, "error"),
        (None, None, ProblemKind.UPSTREAM_FAILURE, "transport"),
        (500, {"x": 1}, ProblemKind.UPSTREAM_FAILURE, "http"),
        (200, None, ProblemKind.UPSTREAM_FAILURE, "parse"),
    ],
)
def test_classify_reply_priority(status, data, kind, source) -> None:
    problem = classify_reply(status, data)
    assert problem is not None
    assert problem.kind is kind
    assert problem.source == source


def test_throttle_notice_beats_error_message_and_status() -> None:
    problem = classify_reply(500, {"Error Message": "bad", "Note": "slow"})
    assert problem is not None
    assert problem.kind is ProblemKind.RATE_LIMITED


def test_clean_success_has_no_problem() -> None:
    assert classify_reply(200, {"symbol": "IBM"}) is None
    assert classify_reply(200, {"Note": ""}) is None
