# src/ratios_proxy/infrastructure/external_apis/alpha_vantage/client.py
# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""Alpha Vantage Transport Client (async).

This transport is framework-agnostic and provides:

* Async HTTP (httpx) with per-request timeout.
* Exactly one outbound GET per call, sent with ``Cache-Control: no-cache``;
  the proxy owns caching.
* Deterministic classification of replies into ``rate_limited``,
  ``bad_request`` and ``upstream_failure``, including throttle notices that
  the provider embeds in HTTP 200 bodies.
* Prometheus counters per statement kind and outcome.

It never raises for HTTP status codes or transport errors: both are reported
through :class:`UpstreamReply`. Retrying is the caller's concern.
"""

from __future__ import annotations

from collections.abc import Mapping
from contextlib import suppress
from typing import Any, Final

import httpx
from pydantic import SecretStr

from ratios_proxy.domain.entities.upstream import UpstreamProblem, UpstreamReply
from ratios_proxy.domain.enums.problem_kind import ProblemKind
from ratios_proxy.domain.enums.request_kind import RequestKind
from ratios_proxy.infrastructure.external_apis.alpha_vantage.settings import (
    AlphaVantageSettings,
)
from ratios_proxy.infrastructure.logging.logger import get_json_logger, get_request_id
from ratios_proxy.infrastructure.observability.metrics import get_upstream_requests_total

logger = get_json_logger(__name__)

#: Retry hint when the provider throttles without saying how long to wait.
DEFAULT_RETRY_AFTER_S: Final[float] = 65.0

# Provider-specific body fields.
_NOTE_FIELD: Final[str] = "Note"
_INFO_FIELD: Final[str] = "Information"
_ERROR_FIELD: Final[str] = "Error Message"


def _parse_retry_after(val: str | None) -> float | None:
    """Parse the HTTP ``Retry-After`` header (seconds form only).

    Args:
        val: Header value as a string, or ``None``.

    Returns:
        The seconds to wait as a float if parseable, otherwise ``None``.
    """
    if not val:
        return None
    try:
        return max(0.0, float(val))
    except ValueError:
        return None


def classify_reply(
    status: int | None,
    data: Mapping[str, Any] | None,
    *,
    retry_after_s: float | None = None,
    default_retry_after_s: float = DEFAULT_RETRY_AFTER_S,
) -> UpstreamProblem | None:
    """Classify one upstream reply.

    Priority order: HTTP 429, embedded ``Note``/``Information`` throttle
    notice, embedded ``Error Message``, non-2xx status or missing body.

    Args:
        status: HTTP status, or ``None`` when the upstream was unreachable.
        data: Parsed JSON object, or ``None`` when the body did not parse.
        retry_after_s: Retry hint from the upstream ``Retry-After`` header.
        default_retry_after_s: Hint used when the upstream gives none.

    Returns:
        The problem, or ``None`` for a clean success.
    """
    hint = retry_after_s if retry_after_s is not None else default_retry_after_s
    if status == 429:
        return UpstreamProblem(
            kind=ProblemKind.RATE_LIMITED,
            detail="rate_limited",
            source="429",
            retry_after_s=hint,
        )
    if data is not None:
        if data.get(_NOTE_FIELD):
            return UpstreamProblem(
                kind=ProblemKind.RATE_LIMITED,
                detail=str(data[_NOTE_FIELD]),
                source="note",
                retry_after_s=hint,
            )
        if data.get(_INFO_FIELD):
            return UpstreamProblem(
                kind=ProblemKind.RATE_LIMITED,
                detail=str(data[_INFO_FIELD]),
                source="info",
                retry_after_s=hint,
            )
        if data.get(_ERROR_FIELD):
            return UpstreamProblem(
                kind=ProblemKind.BAD_REQUEST,
                detail=str(data[_ERROR_FIELD]),
                source="error",
            )
    if status is None:
        return UpstreamProblem(
            kind=ProblemKind.UPSTREAM_FAILURE, detail="Upstream unreachable", source="transport"
        )
    if not 200 <= status <= 299:
        return UpstreamProblem(
            kind=ProblemKind.UPSTREAM_FAILURE, detail=f"Upstream {status}", source="http"
        )
    if data is None:
        return UpstreamProblem(
            kind=ProblemKind.UPSTREAM_FAILURE,
            detail="Upstream returned an unparseable body",
            source="parse",
        )
    return None


def _parse_body(response: httpx.Response) -> dict[str, Any] | None:
    """Return the body as a JSON object, or ``None`` if it is anything else."""
    try:
        parsed = response.json()
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


class AlphaVantageClient:
    """Instrumented transport client for Alpha Vantage fundamentals."""

    def __init__(
        self,
        settings: AlphaVantageSettings,
        *,
        http: httpx.AsyncClient | None = None,
        timeout_s: float | None = None,
    ) -> None:
        """Initialize the transport client.

        Args:
            settings: Provider settings loaded from environment or DI.
            http: Optional shared ``httpx.AsyncClient``. If omitted, a client
                is created and owned by this instance.
            timeout_s: Optional per-request timeout override in seconds.
        """
        self._settings = settings
        self._url = settings.base_url
        self._timeout = float(timeout_s if timeout_s is not None else settings.timeout_s)
        self._owns_client = http is None
        self._client = http or httpx.AsyncClient(timeout=self._timeout)
        self._headers: dict[str, str] = {
            "Accept": "application/json",
            "User-Agent": settings.user_agent,
            "Cache-Control": "no-cache",
        }
        self._requests_total = get_upstream_requests_total()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance owns it."""
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    async def fetch_statement(
        self, kind: RequestKind, symbol: str, api_key: SecretStr
    ) -> UpstreamReply:
        """Issue one GET for ``(kind, symbol)`` and classify the reply.

        Args:
            kind: Statement kind; sent as the provider ``function``.
            symbol: Ticker; normalized to uppercase.
            api_key: Provider credential.

        Returns:
            UpstreamReply with status, parsed body, raw text and problem.
        """
        if not kind.is_statement:
            raise ValueError(f"{kind.value} is not an upstream function")

        params = {
            "function": kind.value,
            "symbol": symbol.strip().upper(),
            "apikey": api_key.get_secret_value(),
        }
        headers = dict(self._headers)
        request_id = get_request_id()
        if request_id:
            headers["X-Request-ID"] = request_id

        try:
            response = await self._client.get(
                self._url, params=params, headers=headers, timeout=self._timeout
            )
        except httpx.RequestError as exc:
            # Transport/network errors (including timeouts) are upstream failures.
            logger.warning(
                "alpha.transport_error",
                extra={
                    "extra": {"kind": kind.value, "symbol": params["symbol"], "error": str(exc)}
                },
            )
            problem = classify_reply(None, None)
            self._observe(kind, problem)
            return UpstreamReply(status=None, data=None, text=str(exc), problem=problem)

        text = response.text
        data = _parse_body(response)
        problem = classify_reply(
            response.status_code,
            data,
            retry_after_s=_parse_retry_after(response.headers.get("Retry-After")),
            default_retry_after_s=self._settings.retry_after_s,
        )
        self._observe(kind, problem)
        if problem is not None:
            logger.info(
                "alpha.problem",
                extra={
                    "extra": {
                        "kind": kind.value,
                        "symbol": params["symbol"],
                        "status": response.status_code,
                        "problem": problem.kind.value,
                        "source": problem.source,
                    }
                },
            )
        return UpstreamReply(status=response.status_code, data=data, text=text, problem=problem)

    def _observe(self, kind: RequestKind, problem: UpstreamProblem | None) -> None:
        outcome = problem.kind.value if problem is not None else "ok"
        with suppress(Exception):
            self._requests_total.labels(kind=kind.value, outcome=outcome).inc()
