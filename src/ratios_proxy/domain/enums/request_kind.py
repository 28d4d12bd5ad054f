# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""Request Kind Enumerations.

Synopsis:
    Closed vocabulary of upstream resources the proxy can serve, plus the
    diagnostic cache status reported on every successful response.

Layer:
    domain/enums
"""

from __future__ import annotations

from enum import Enum
from typing import Final


class RequestKind(str, Enum):
    """Logical resource kind; the four statements plus the bundle aggregate."""

    INCOME_STATEMENT = "INCOME_STATEMENT"
    BALANCE_SHEET = "BALANCE_SHEET"
    CASH_FLOW = "CASH_FLOW"
    OVERVIEW = "OVERVIEW"
    BUNDLE = "BUNDLE"

    @property
    def is_statement(self) -> bool:
        """Return True for the four single-statement kinds."""
        return self is not RequestKind.BUNDLE

    @classmethod
    def parse_statement(cls, raw: str | None) -> RequestKind | None:
        """Parse a provider ``function`` value into a statement kind.

        Args:
            raw: Query value, case-insensitive.

        Returns:
            The matching statement kind, or ``None`` when unknown, empty or
            ``BUNDLE`` (bundle is never a valid ``function``).
        """
        if not raw:
            return None
        try:
            kind = cls(raw.strip().upper())
        except ValueError:
            return None
        return kind if kind.is_statement else None


#: Bundle leg order; also the order of keys in the bundle payload.
STATEMENT_KINDS: Final[tuple[RequestKind, ...]] = (
    RequestKind.INCOME_STATEMENT,
    RequestKind.BALANCE_SHEET,
    RequestKind.CASH_FLOW,
    RequestKind.OVERVIEW,
)


class CacheStatus(str, Enum):
    """Value of the ``x-proxy-cache`` diagnostic header."""

    HIT = "HIT"
    STALE = "STALE"
    MISS = "MISS"
    BYPASS = "BYPASS"
    FALLBACK = "FALLBACK"
