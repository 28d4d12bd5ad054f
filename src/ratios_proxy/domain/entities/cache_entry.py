# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""Cache Key and Cache Entry Entities.

Purpose:
    Immutable cache addressing and freshness bookkeeping (no I/O).

Design:
    * A key is the tuple ``(generation, kind, symbol)``. The generation is an
      explicit field; bumping it is how a payload schema change invalidates
      old entries without eviction.
    * Entries are never mutated. A refresh writes a new entry that replaces
      the previous one wholesale.

Layer:
    domain/entities
"""

from __future__ import annotations

from dataclasses import dataclass

from ratios_proxy.domain.enums.request_kind import RequestKind

#: Product prefix for rendered keys.
KEY_PREFIX = "ratios-proxy"


@dataclass(frozen=True, slots=True)
class CacheKey:
    """Address of one logical cached resource.

    Attributes:
        generation: Cache namespace generation (e.g. ``"v3"``).
        kind: Statement kind, or ``BUNDLE``.
        symbol: Ticker; normalized to stripped upper-case.

    Raises:
        ValueError: If generation or symbol is empty.
    """

    generation: str
    kind: RequestKind
    symbol: str

    def __post_init__(self) -> None:
        """Normalize the symbol and validate invariants."""
        symbol = self.symbol.strip().upper()
        if not symbol:
            raise ValueError("symbol must be non-empty")
        if not self.generation or ":" in self.generation:
            raise ValueError("generation must be a non-empty token without ':'")
        object.__setattr__(self, "symbol", symbol)

    def render(self) -> str:
        """Return the storage key, e.g. ``ratios-proxy:v3:OVERVIEW:AAPL``."""
        return f"{KEY_PREFIX}:{self.generation}:{self.kind.value}:{self.symbol}"

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """Last good response body for a key plus its freshness deadlines.

    Attributes:
        body: Raw response bytes exactly as they will be served.
        content_type: Media type of ``body``.
        created_at: Epoch seconds when the entry was produced.
        fresh_ttl_s: Seconds the entry is served without revalidation.
        stale_window_s: Seconds past freshness during which the entry may still
            be served while a background refresh runs.
    """

    body: bytes
    content_type: str
    created_at: float
    fresh_ttl_s: int
    stale_window_s: int

    def __post_init__(self) -> None:
        """Validate invariants."""
        if self.fresh_ttl_s < 0 or self.stale_window_s < 0:
            raise ValueError("ttl values must be >= 0")

    @property
    def fresh_until(self) -> float:
        """Epoch seconds after which the entry is stale."""
        return self.created_at + self.fresh_ttl_s

    @property
    def servable_until(self) -> float:
        """Epoch seconds after which the entry must not be served."""
        return self.fresh_until + self.stale_window_s

    def is_fresh(self, now: float) -> bool:
        """Return True while ``now`` is within the freshness TTL."""
        return now < self.fresh_until

    def is_servable(self, now: float) -> bool:
        """Return True while ``now`` is within freshness or the stale window."""
        return now < self.servable_until


@dataclass(frozen=True, slots=True)
class CacheLookup:
    """A servable entry returned by a cache read.

    Attributes:
        entry: The cached entry.
        stale: True when the entry is past freshness but inside the stale window.
    """

    entry: CacheEntry
    stale: bool = False
