# tests/unit/domain/test_request_kind.py
from __future__ import annotations

import pytest

from ratios_proxy.domain.enums.request_kind import STATEMENT_KINDS, RequestKind


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("INCOME_STATEMENT", RequestKind.INCOME_STATEMENT),
        ("balance_sheet", RequestKind.BALANCE_SHEET),
        (" Cash_Flow ", RequestKind.CASH_FLOW),
        ("overview", RequestKind.OVERVIEW),
    ],
)
def test_parse_statement_is_case_insensitive(raw: str, expected: RequestKind) -> None:
    assert RequestKind.parse_statement(raw) is expected


@pytest.mark.parametrize("raw", [None, "", "BUNDLE", "bundle", "TIME_SERIES_DAILY", "EARNINGS"])
def test_parse_statement_rejects_unknown_and_bundle(raw: str | None) -> None:
    assert RequestKind.parse_statement(raw) is None


def test_statement_kinds_are_the_bundle_legs_in_order() -> None:
    assert [k.value for k in STATEMENT_KINDS] == [
        "INCOME_STATEMENT",
        "BALANCE_SHEET",
        "CASH_FLOW",
        "OVERVIEW",
    ]
    assert all(k.is_statement for k in STATEMENT_KINDS)
    assert not RequestKind.BUNDLE.is_statement
