# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""Bundle Result Entity.

Purpose:
    Aggregate of the four statement legs fetched for one symbol. A bundle is
    only cacheable when every leg is clean; partial bundles are never served.

Layer:
    domain/entities
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ratios_proxy.domain.entities.upstream import UpstreamProblem, UpstreamReply
from ratios_proxy.domain.enums.problem_kind import ProblemKind
from ratios_proxy.domain.enums.request_kind import STATEMENT_KINDS, RequestKind

#: Payload key for each leg.
LEG_NAMES: dict[RequestKind, str] = {
    RequestKind.INCOME_STATEMENT: "income_statement",
    RequestKind.BALANCE_SHEET: "balance_sheet",
    RequestKind.CASH_FLOW: "cash_flow",
    RequestKind.OVERVIEW: "overview",
}


@dataclass(frozen=True)
class BundleResult:
    """Four named sub-results; each leg is a parsed object or absent.

    Attributes:
        income_statement: Parsed income statement, or ``None`` if that leg failed.
        balance_sheet: Parsed balance sheet, or ``None``.
        cash_flow: Parsed cash flow statement, or ``None``.
        overview: Parsed company overview, or ``None``.
        problems: Classification of every failed leg, keyed by kind.
    """

    income_statement: dict[str, Any] | None = None
    balance_sheet: dict[str, Any] | None = None
    cash_flow: dict[str, Any] | None = None
    overview: dict[str, Any] | None = None
    problems: dict[RequestKind, UpstreamProblem] = field(default_factory=dict)

    @classmethod
    def from_replies(cls, replies: Mapping[RequestKind, UpstreamReply]) -> BundleResult:
        """Assemble a bundle from one reply per statement kind."""
        legs: dict[str, Any] = {}
        problems: dict[RequestKind, UpstreamProblem] = {}
        for kind in STATEMENT_KINDS:
            reply = replies[kind]
            if reply.ok:
                legs[LEG_NAMES[kind]] = reply.data
            elif reply.problem is not None:
                problems[kind] = reply.problem
        return cls(**legs, problems=problems)

    @property
    def is_complete(self) -> bool:
        """Return True when all four legs succeeded cleanly."""
        return not self.problems and all(
            getattr(self, name) is not None for name in LEG_NAMES.values()
        )

    @property
    def is_throttled(self) -> bool:
        """Return True when any leg carries a throttle signal."""
        return any(p.is_rate_limited for p in self.problems.values())

    @property
    def problem(self) -> UpstreamProblem | None:
        """Return the leg problem that best explains an incomplete bundle.

        A throttled leg wins over any other failure; otherwise the first
        failed leg in bundle order is reported.
        """
        for p in self.problems.values():
            if p.is_rate_limited:
                return p
        for kind in STATEMENT_KINDS:
            if kind in self.problems:
                return self.problems[kind]
        return None

    @property
    def failure(self) -> UpstreamProblem | None:
        """Return the throttle problem that an incomplete bundle fails with.

        An incomplete bundle is always reported as ``rate_limited``. A leg's own
        throttle problem is passed through with its retry hint; any other leg
        failure is wrapped, keeping the leg name and detail.
        """
        leg = self.problem
        if leg is None:
            if self.is_complete:
                return None
            return UpstreamProblem(
                kind=ProblemKind.RATE_LIMITED,
                detail="Bundle incomplete and no cached copy",
                source="bundle",
            )
        if leg.is_rate_limited:
            return leg
        failed = next(k for k in STATEMENT_KINDS if k in self.problems)
        return UpstreamProblem(
            kind=ProblemKind.RATE_LIMITED,
            detail=f"Bundle incomplete: {LEG_NAMES[failed]}: {leg.detail}",
            source="bundle",
        )

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON object served to clients."""
        return {name: getattr(self, name) for name in LEG_NAMES.values()}
