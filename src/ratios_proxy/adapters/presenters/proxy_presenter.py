# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""Proxy presenter.

Purpose:
    Shape use-case results and domain errors into HTTP responses.

Responsibilities:
    * CORS headers on every response, success or error.
    * ``Cache-Control`` and the ``x-proxy-cache`` diagnostic on success.
    * Status mapping for the error taxonomy, with ``Retry-After`` on 429.

Layer:
    adapters/presenters
"""

from __future__ import annotations

import math
from typing import Final

from fastapi import Response, status
from fastapi.responses import JSONResponse

from ratios_proxy.adapters.schemas.proxy import ProxyErrorBody
from ratios_proxy.domain.entities.proxy_result import ProxyResult
from ratios_proxy.domain.enums.problem_kind import ProblemKind
from ratios_proxy.domain.exceptions.base import DomainError
from ratios_proxy.domain.exceptions.proxy import (
    InvalidProxyRequest,
    ProxyConfigurationError,
    UpstreamError,
)

CACHE_STATUS_HEADER: Final[str] = "x-proxy-cache"
UPSTREAM_TITLE: Final[str] = "Alpha Vantage"
DEFAULT_RETRY_AFTER_S: Final[float] = 65.0

_STATUS_BY_PROBLEM: Final[dict[ProblemKind, int]] = {
    ProblemKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ProblemKind.BAD_REQUEST: status.HTTP_400_BAD_REQUEST,
    ProblemKind.UPSTREAM_FAILURE: status.HTTP_502_BAD_GATEWAY,
}


def cors_headers(origin: str) -> dict[str, str]:
    """Return the CORS headers attached to every response."""
    return {
        "Access-Control-Allow-Origin": origin or "*",
        "Access-Control-Allow-Methods": "GET, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type",
        "Vary": "Origin",
    }


class ProxyPresenter:
    """Builds responses for the proxy router.

    Args:
        origin: Value for ``Access-Control-Allow-Origin``.
        default_retry_after_s: ``Retry-After`` for throttles without a hint.
    """

    def __init__(
        self, origin: str = "*", *, default_retry_after_s: float = DEFAULT_RETRY_AFTER_S
    ) -> None:
        self._origin = origin
        self._default_retry_after_s = default_retry_after_s

    def present_preflight(self) -> Response:
        """Empty response carrying only CORS headers."""
        return Response(status_code=status.HTTP_200_OK, headers=cors_headers(self._origin))

    def present_success(self, result: ProxyResult) -> Response:
        """Serve the body byte-for-byte with cache diagnostics."""
        headers = cors_headers(self._origin)
        headers["Cache-Control"] = (
            f"public, max-age={result.fresh_ttl_s}, "
            f"stale-while-revalidate={result.stale_window_s}"
        )
        headers[CACHE_STATUS_HEADER] = result.cache_status.value
        return Response(
            content=result.body,
            status_code=status.HTTP_200_OK,
            headers=headers,
            media_type=result.content_type,
        )

    def present_error(self, exc: DomainError) -> JSONResponse:
        """Map a domain error onto status, body and headers."""
        headers = cors_headers(self._origin)
        if isinstance(exc, UpstreamError):
            problem = exc.problem
            code = _STATUS_BY_PROBLEM[problem.kind]
            body = ProxyErrorBody(
                error=UPSTREAM_TITLE, detail=problem.detail, kind=problem.kind.value
            )
            if problem.kind is ProblemKind.RATE_LIMITED:
                retry_after = problem.retry_after_s
                if retry_after is None:
                    retry_after = self._default_retry_after_s
                headers["Retry-After"] = str(math.ceil(retry_after))
        elif isinstance(exc, InvalidProxyRequest):
            code = status.HTTP_400_BAD_REQUEST
            body = ProxyErrorBody(error="Bad request", detail=str(exc), kind="bad_request")
        elif isinstance(exc, ProxyConfigurationError):
            code = status.HTTP_500_INTERNAL_SERVER_ERROR
            body = ProxyErrorBody(error="Configuration", detail=str(exc), kind="config_error")
        else:
            code = status.HTTP_500_INTERNAL_SERVER_ERROR
            body = ProxyErrorBody(
                error="Internal", detail=str(exc) or exc.code, kind=exc.code.lower()
            )
        return JSONResponse(status_code=code, content=body.model_dump(), headers=headers)

    def present_unhandled(self) -> JSONResponse:
        """Generic 500 for exceptions outside the domain taxonomy."""
        body = ProxyErrorBody(
            error="Internal", detail="Internal server error", kind="internal_error"
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=body.model_dump(),
            headers=cors_headers(self._origin),
        )
