# src/ratios_proxy/application/interfaces/cache_port.py
# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""Application Interface: Cache Store Port.

Synopsis:
    Minimal entry cache used by the proxy read path. Enables swapping Redis,
    in-memory, or other cache implementations.

Layer:
    application/interfaces
"""

from __future__ import annotations

from typing import Protocol

from ratios_proxy.domain.entities.cache_entry import CacheEntry, CacheKey, CacheLookup


class CacheStorePort(Protocol):
    """Key-value store of :class:`CacheEntry` with fresh/stale semantics.

    Implementations must treat an entry past its stale window as absent, and
    ``put`` must replace any previous entry for the key (last writer wins).
    """

    async def get(self, key: CacheKey) -> CacheLookup | None:
        """Read a servable entry.

        Args:
            key: Cache key.

        Returns:
            The entry with ``stale`` set when past freshness, or ``None`` when
            absent or past the stale window.
        """

    async def put(self, key: CacheKey, entry: CacheEntry) -> None:
        """Store ``entry`` under ``key``, replacing any prior entry.

        Args:
            key: Cache key.
            entry: Entry to store.
        """
