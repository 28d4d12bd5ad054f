# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""Upstream problem classification."""

from __future__ import annotations

from enum import Enum


class ProblemKind(str, Enum):
    """Why an upstream reply cannot be served as-is."""

    RATE_LIMITED = "rate_limited"
    BAD_REQUEST = "bad_request"
    UPSTREAM_FAILURE = "upstream_failure"
