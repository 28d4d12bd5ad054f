# src/ratios_proxy/adapters/routers/alpha_router.py
# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""Alpha Router.

Summary:
    Public proxy endpoint for financial statements at ``/api/alpha``.

Query:
    symbol    Ticker (required, case-insensitive).
    function  INCOME_STATEMENT | BALANCE_SHEET | CASH_FLOW | OVERVIEW.
    bundle    ``1`` fetches all four statements in one response.
    nocache   ``1`` forces an upstream fetch (the result is still cached).

Layer:
    adapters/routers
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status

from ratios_proxy.adapters.presenters.proxy_presenter import ProxyPresenter
from ratios_proxy.adapters.schemas.proxy import ProxyErrorBody, ProxyQuery
from ratios_proxy.application.use_cases.get_bundle import GetBundle
from ratios_proxy.application.use_cases.get_statement import GetStatement
from ratios_proxy.dependencies.proxy import (
    get_bundle_uc,
    get_cors_origin,
    get_retry_after_s,
    get_statement_uc,
)
from ratios_proxy.domain.enums.request_kind import RequestKind
from ratios_proxy.domain.exceptions.base import DomainError
from ratios_proxy.domain.exceptions.proxy import InvalidProxyRequest
from ratios_proxy.infrastructure.logging.logger import get_json_logger

logger = get_json_logger(__name__)
router = APIRouter(prefix="/api/alpha", tags=["Alpha Vantage"])

_ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    code: {"model": ProxyErrorBody} for code in (400, 429, 500, 502)
}


def parse_proxy_query(
    symbol: str | None,
    function: str | None,
    bundle: str | None,
    nocache: str | None,
) -> ProxyQuery:
    """Normalize raw query values.

    A missing symbol is rejected before anything else is looked at. When
    ``bundle`` is set, ``function`` is ignored.

    Raises:
        InvalidProxyRequest: On a missing symbol or a missing/invalid function.
    """
    ticker = (symbol or "").strip().upper()
    if not ticker:
        raise InvalidProxyRequest("Bad request: missing symbol.")
    no_cache = nocache == "1"
    if bundle == "1":
        return ProxyQuery(symbol=ticker, bundle=True, no_cache=no_cache)
    kind = RequestKind.parse_statement(function)
    if kind is None:
        raise InvalidProxyRequest("Bad request: missing/invalid function.")
    return ProxyQuery(symbol=ticker, kind=kind, no_cache=no_cache)


@router.get(
    "",
    status_code=status.HTTP_200_OK,
    responses=_ERROR_RESPONSES,
    summary="Proxy one statement or a four-statement bundle",
)
async def get_alpha(
    statement_uc: Annotated[GetStatement, Depends(get_statement_uc)],
    bundle_uc: Annotated[GetBundle, Depends(get_bundle_uc)],
    origin: Annotated[str, Depends(get_cors_origin)],
    retry_after_s: Annotated[int, Depends(get_retry_after_s)],
    symbol: Annotated[str | None, Query(examples=["IBM"])] = None,
    function: Annotated[str | None, Query(examples=["INCOME_STATEMENT"])] = None,
    bundle: Annotated[str | None, Query(examples=["1"])] = None,
    nocache: Annotated[str | None, Query(examples=["1"])] = None,
) -> Response:
    """Serve the requested resource, from cache when possible."""
    presenter = ProxyPresenter(origin, default_retry_after_s=retry_after_s)
    try:
        query = parse_proxy_query(symbol, function, bundle, nocache)
        if query.bundle:
            result = await bundle_uc.execute(query.symbol, no_cache=query.no_cache)
        else:
            if query.kind is None:
                raise InvalidProxyRequest("Bad request: missing/invalid function.")
            result = await statement_uc.execute(query.kind, query.symbol, no_cache=query.no_cache)
    except DomainError as exc:
        logger.info(
            "alpha.request_failed",
            extra={"extra": {"symbol": symbol, "function": function, "code": exc.code}},
        )
        return presenter.present_error(exc)
    return presenter.present_success(result)


@router.options("", include_in_schema=False, status_code=status.HTTP_200_OK)
async def options_alpha(origin: Annotated[str, Depends(get_cors_origin)]) -> Response:
    """CORS preflight."""
    return ProxyPresenter(origin).present_preflight()
