# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""Application Interface: Statement Gateway.

Synopsis:
    Port for the upstream financial-data provider. One call is one network
    request for one (kind, symbol) pair; the reply is already classified.

Layer:
    application/interfaces
"""

from __future__ import annotations

from typing import Protocol

from pydantic import SecretStr

from ratios_proxy.domain.entities.upstream import UpstreamReply
from ratios_proxy.domain.enums.request_kind import RequestKind


class StatementGateway(Protocol):
    """Upstream fetcher used by the use cases."""

    async def fetch_statement(
        self, kind: RequestKind, symbol: str, api_key: SecretStr
    ) -> UpstreamReply:
        """Fetch one statement.

        Implementations never raise for HTTP status codes or transport errors;
        those are reported through :attr:`UpstreamReply.problem`.
        """
