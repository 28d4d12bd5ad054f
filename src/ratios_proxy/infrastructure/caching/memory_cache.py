# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""In-memory cache store.

Process-local implementation of :class:`CacheStorePort`. Used when no Redis
URL is configured and in tests. Entries past their stale window are dropped
lazily on read.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from ratios_proxy.domain.entities.cache_entry import CacheEntry, CacheKey, CacheLookup


class InMemoryCacheStore:
    """Dict-backed entry store with an injectable clock."""

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: CacheKey) -> CacheLookup | None:
        """Return the servable entry for ``key``, marking stale ones."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        now = self._clock()
        if not entry.is_servable(now):
            self._entries.pop(key, None)
            return None
        return CacheLookup(entry=entry, stale=not entry.is_fresh(now))

    async def put(self, key: CacheKey, entry: CacheEntry) -> None:
        """Replace the entry for ``key``."""
        self._entries[key] = entry
