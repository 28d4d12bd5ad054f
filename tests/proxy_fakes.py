# tests/proxy_fakes.py
"""Shared fakes and reply builders for the test suite."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping
from typing import Any

from pydantic import SecretStr

from ratios_proxy.domain.entities.upstream import UpstreamProblem, UpstreamReply
from ratios_proxy.domain.enums.problem_kind import ProblemKind
from ratios_proxy.domain.enums.request_kind import RequestKind

FRESH_TTL_S = 100
STALE_WINDOW_S = 50


def ok_reply(payload: Mapping[str, Any]) -> UpstreamReply:
    """Clean 200 reply carrying ``payload``."""
    return UpstreamReply(status=200, data=dict(payload), text=json.dumps(payload))


def throttled_reply(note: str = "Please slow down.") -> UpstreamReply:
    """HTTP 200 reply with an embedded throttle notice."""
    body = {"Note": note}
    return UpstreamReply(
        status=200,
        data=body,
        text=json.dumps(body),
        problem=UpstreamProblem(
            kind=ProblemKind.RATE_LIMITED, detail=note, source="note", retry_after_s=65.0
        ),
    )


def bad_symbol_reply() -> UpstreamReply:
    body = {"Error Message": "Invalid API call."}
    return UpstreamReply(
        status=200,
        data=body,
        text=json.dumps(body),
        problem=UpstreamProblem(
            kind=ProblemKind.BAD_REQUEST, detail="Invalid API call.", source="error"
        ),
    )


def failed_reply(status: int = 503) -> UpstreamReply:
    return UpstreamReply(
        status=status,
        data=None,
        text="unavailable",
        problem=UpstreamProblem(
            kind=ProblemKind.UPSTREAM_FAILURE, detail=f"Upstream {status}", source="http"
        ),
    )


class ScriptedGateway:
    """Statement gateway that replays scripted replies per kind.

    Each kind has a queue; the last reply repeats once the queue is down to one.
    An optional ``gate`` event holds every call until set.
    """

    def __init__(self, script: Mapping[RequestKind, list[UpstreamReply]] | None = None) -> None:
        self.script: dict[RequestKind, list[UpstreamReply]] = {
            k: list(v) for k, v in (script or {}).items()
        }
        self.calls: list[tuple[RequestKind, str, str]] = []
        self.gate: asyncio.Event | None = None

    def set(self, kind: RequestKind, *replies: UpstreamReply) -> None:
        self.script[kind] = list(replies)

    def count(self, kind: RequestKind | None = None) -> int:
        return sum(1 for c in self.calls if kind is None or c[0] is kind)

    async def fetch_statement(
        self, kind: RequestKind, symbol: str, api_key: SecretStr
    ) -> UpstreamReply:
        self.calls.append((kind, symbol, api_key.get_secret_value()))
        if self.gate is not None:
            await self.gate.wait()
        queue = self.script.get(kind)
        if not queue:
            return ok_reply({"symbol": symbol, "function": kind.value})
        return queue.pop(0) if len(queue) > 1 else queue[0]


class ManualClock:
    """Settable epoch clock."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Awaitable sleep stand-in that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


