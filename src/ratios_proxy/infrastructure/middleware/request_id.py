# src/ratios_proxy/infrastructure/middleware/request_id.py
# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""``X-Request-ID`` correlation for proxy requests.

A caller-supplied id is kept when it is short and made of safe characters;
anything else is replaced with a fresh UUID4. The id is stored on
``request.state``, echoed on the response and bound to the logging context so
log lines and the outbound provider call carry it. The binding is undone once
the response is produced.
"""

from __future__ import annotations

import re
import uuid
from typing import Final

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from ratios_proxy.infrastructure.logging.logger import (
    reset_request_context,
    set_request_context,
)

_REQUEST_ID_HEADER: Final[str] = "X-Request-ID"
_SAFE_RE: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9\-_.:@]{1,128}$")


def _coerce_request_id(raw: str | None) -> str:
    if raw and _SAFE_RE.match(raw):
        return raw
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Assign, bind and echo the request correlation id."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        req_id = _coerce_request_id(request.headers.get(_REQUEST_ID_HEADER))
        request.state.request_id = req_id
        token = set_request_context(request_id=req_id)
        try:
            response = await call_next(request)
        finally:
            reset_request_context(token)
        response.headers.setdefault(_REQUEST_ID_HEADER, req_id)
        return response
