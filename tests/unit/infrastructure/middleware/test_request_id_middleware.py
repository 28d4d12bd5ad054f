# tests/unit/infrastructure/middleware/test_request_id_middleware.py
from __future__ import annotations

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from starlette.responses import PlainTextResponse

from ratios_proxy.infrastructure.logging.logger import get_request_id
from ratios_proxy.infrastructure.middleware.request_id import (
    _REQUEST_ID_HEADER,
    _SAFE_RE,
    RequestIdMiddleware,
)


def _app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(RequestIdMiddleware)

    @app.get("/id")
    async def get_id(request: Request):
        return {"state": request.state.request_id, "ctx": get_request_id()}

    return app


def test_generates_id_when_missing() -> None:
    client = TestClient(_app())
    r = client.get("/id")
    rid = r.headers[_REQUEST_ID_HEADER]
    assert _SAFE_RE.match(rid)
    assert r.json() == {"state": rid, "ctx": rid}


def test_keeps_valid_incoming_and_replaces_invalid() -> None:
    client = TestClient(_app())
    r1 = client.get("/id", headers={_REQUEST_ID_HEADER: "abc-123"})
    assert r1.headers[_REQUEST_ID_HEADER] == "abc-123"

    r2 = client.get("/id", headers={_REQUEST_ID_HEADER: "bad id with space"})
    assert r2.headers[_REQUEST_ID_HEADER] != "bad id with space"


@pytest.mark.asyncio
async def test_request_id_is_unbound_after_dispatch() -> None:
    seen: list[str | None] = []

    async def call_next(request: Request):
        seen.append(get_request_id())
        return PlainTextResponse("ok")

    scope = {
        "type": "http",
        "method": "GET",
        "path": "/id",
        "headers": [(b"x-request-id", b"rid-7")],
        "query_string": b"",
    }
    before = get_request_id()
    middleware = RequestIdMiddleware(FastAPI())
    response = await middleware.dispatch(Request(scope), call_next)

    assert seen == ["rid-7"]
    assert response.headers[_REQUEST_ID_HEADER] == "rid-7"
    assert get_request_id() == before
