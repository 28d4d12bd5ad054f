# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""Upstream Reply and Problem Entities.

Purpose:
    Immutable representation of one upstream fetch and its classification
    (no I/O).

Layer:
    domain/entities
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ratios_proxy.domain.enums.problem_kind import ProblemKind


@dataclass(frozen=True, slots=True)
class UpstreamProblem:
    """Classification of a failed or degraded upstream reply.

    Attributes:
        kind:
            One of ``rate_limited``, ``bad_request`` or ``upstream_failure``.
        detail:
            Human-readable message, usually the provider's own wording.
        source:
            Short token naming what triggered the classification
            (``"429"``, ``"note"``, ``"info"``, ``"error"``, ``"http"``,
            ``"parse"``, ``"transport"``).
        retry_after_s:
            Suggested delay before retrying; only set for ``rate_limited``.
    """

    kind: ProblemKind
    detail: str
    source: str
    retry_after_s: float | None = None

    def __post_init__(self) -> None:
        """Validate invariants."""
        if self.retry_after_s is not None and self.kind is not ProblemKind.RATE_LIMITED:
            raise ValueError("retry_after_s is only meaningful for rate_limited problems")

    @property
    def is_rate_limited(self) -> bool:
        """Return True when this problem is a throttle signal."""
        return self.kind is ProblemKind.RATE_LIMITED


@dataclass(frozen=True, slots=True)
class UpstreamReply:
    """Result of a single upstream GET.

    Attributes:
        status:
            HTTP status, or ``None`` when the upstream could not be reached.
        data:
            Parsed JSON object, or ``None`` when the body was not a JSON object.
        text:
            Raw response text (or transport error text) kept for diagnostics.
        problem:
            Classification of the reply; ``None`` means clean success.
    """

    status: int | None
    data: dict[str, Any] | None
    text: str
    problem: UpstreamProblem | None = None

    @property
    def ok(self) -> bool:
        """Return True when the reply is a clean, servable success."""
        return self.problem is None and self.data is not None

    @property
    def is_rate_limited(self) -> bool:
        """Return True when the reply carries a throttle signal."""
        return self.problem is not None and self.problem.is_rate_limited
