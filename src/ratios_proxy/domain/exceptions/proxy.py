# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""Proxy Domain Exceptions.

Synopsis:
    Error conditions raised by the proxy use cases. Upstream errors carry the
    :class:`UpstreamProblem` that caused them so adapters can surface the
    provider detail and retry hint without re-classifying.

Design:
    * Inherit from :class:`DomainError` for consistent ``.code``.
    * Keep HTTP concerns out of the domain; status codes are mapped by the
      presenter.

Layer:
    domain/exceptions
"""

from __future__ import annotations

from ratios_proxy.domain.entities.upstream import UpstreamProblem
from ratios_proxy.domain.enums.problem_kind import ProblemKind
from ratios_proxy.domain.exceptions.base import DomainError


class InvalidProxyRequest(DomainError):
    """Inbound query parameters are missing or invalid."""

    code = "BAD_REQUEST"


class ProxyConfigurationError(DomainError):
    """Required server-side configuration (the upstream credential) is absent."""

    code = "CONFIG_ERROR"


class UpstreamError(DomainError):
    """Base for failures classified from an upstream reply.

    Attributes:
        problem: The classification that produced this error.
    """

    code = "UPSTREAM_ERROR"

    def __init__(self, problem: UpstreamProblem) -> None:
        super().__init__(problem.detail, details={"source": problem.source})
        self.problem = problem


class UpstreamRateLimited(UpstreamError):
    """Upstream throttled us and the single retry did not help."""

    code = "RATE_LIMITED"


class UpstreamBadRequest(UpstreamError):
    """Provider reported the input (usually the symbol) as invalid."""

    code = "UPSTREAM_BAD_REQUEST"


class UpstreamFailure(UpstreamError):
    """Upstream unreachable, non-2xx, or returned an unparseable body."""

    code = "UPSTREAM_FAILURE"


_BY_KIND: dict[ProblemKind, type[UpstreamError]] = {
    ProblemKind.RATE_LIMITED: UpstreamRateLimited,
    ProblemKind.BAD_REQUEST: UpstreamBadRequest,
    ProblemKind.UPSTREAM_FAILURE: UpstreamFailure,
}


def error_for_problem(problem: UpstreamProblem) -> UpstreamError:
    """Return the exception instance matching ``problem.kind``."""
    return _BY_KIND[problem.kind](problem)
