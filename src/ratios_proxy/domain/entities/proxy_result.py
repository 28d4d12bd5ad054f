# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""Proxy Result Entity.

Purpose:
    What a use case hands to the presenter: the response body plus the cache
    diagnostics needed to render headers.

Layer:
    domain/entities
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass

from ratios_proxy.domain.entities.cache_entry import CacheEntry
from ratios_proxy.domain.enums.request_kind import CacheStatus

JSON_CONTENT_TYPE = "application/json; charset=utf-8"


@dataclass(frozen=True, slots=True)
class ProxyResult:
    """Servable response.

    Attributes:
        body: Response bytes.
        content_type: Media type of ``body``.
        cache_status: Value for the ``x-proxy-cache`` header.
        fresh_ttl_s: Freshness TTL used for ``Cache-Control: max-age``.
        stale_window_s: Stale window used for ``stale-while-revalidate``.
    """

    body: bytes
    content_type: str
    cache_status: CacheStatus
    fresh_ttl_s: int
    stale_window_s: int

    @classmethod
    def from_entry(cls, entry: CacheEntry, status: CacheStatus) -> ProxyResult:
        """Build a result that serves a cached entry."""
        return cls(
            body=entry.body,
            content_type=entry.content_type,
            cache_status=status,
            fresh_ttl_s=entry.fresh_ttl_s,
            stale_window_s=entry.stale_window_s,
        )

    def clone(self) -> ProxyResult:
        """Return an independent copy (fresh ``bytes`` object)."""
        return dataclasses.replace(self, body=bytes(bytearray(self.body)))
