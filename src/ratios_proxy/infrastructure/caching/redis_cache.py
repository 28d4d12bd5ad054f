# src/ratios_proxy/infrastructure/caching/redis_cache.py
# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""Entry Cache (Redis-backed).

Synopsis:
    Implements the application :class:`CacheStorePort` on top of an async Redis
    client. One JSON envelope per key holds the body and its freshness
    metadata, so any replica reading the key applies the same fresh/stale
    decision.

Design:
    * Keys are :meth:`CacheKey.render` strings, so the cache generation is
      part of every key; bumping it orphans old entries, which then expire.
    * Redis TTL = fresh TTL + stale window: Redis drops entries that can no
      longer be served.
    * Pure JSON (utf-8); bodies are stored as text. No pickle.
    * Redis errors degrade to a miss on read and a skipped write on put.

Layer:
    infrastructure/caching
"""

from __future__ import annotations

import json
import math
import time
from collections.abc import Callable
from typing import Any

from redis.exceptions import RedisError

from ratios_proxy.domain.entities.cache_entry import CacheEntry, CacheKey, CacheLookup
from ratios_proxy.infrastructure.caching.redis_client import RedisClient
from ratios_proxy.infrastructure.logging.logger import get_json_logger

__all__ = ["RedisCacheStore", "encode_entry", "decode_entry"]

logger = get_json_logger(__name__)


def encode_entry(entry: CacheEntry) -> str:
    """Serialize an entry to its JSON envelope."""
    return json.dumps(
        {
            "body": entry.body.decode("utf-8"),
            "content_type": entry.content_type,
            "created_at": entry.created_at,
            "fresh_ttl_s": entry.fresh_ttl_s,
            "stale_window_s": entry.stale_window_s,
        },
        separators=(",", ":"),
    )


def decode_entry(raw: str) -> CacheEntry:
    """Deserialize a JSON envelope.

    Raises:
        ValueError: If the envelope is malformed.
    """
    try:
        doc: dict[str, Any] = json.loads(raw)
        return CacheEntry(
            body=str(doc["body"]).encode("utf-8"),
            content_type=str(doc["content_type"]),
            created_at=float(doc["created_at"]),
            fresh_ttl_s=int(doc["fresh_ttl_s"]),
            stale_window_s=int(doc["stale_window_s"]),
        )
    except (KeyError, TypeError) as exc:
        raise ValueError(f"malformed cache envelope: {exc}") from exc


class RedisCacheStore:
    """Redis-backed implementation of the cache store port.

    Args:
        client: Async Redis client (``decode_responses=True``).
        clock: Epoch-seconds clock; injectable for tests.
    """

    def __init__(
        self,
        client: RedisClient,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._redis = client
        self._clock = clock

    async def get(self, key: CacheKey) -> CacheLookup | None:
        """Read the envelope for ``key`` and apply fresh/stale rules."""
        rendered = key.render()
        try:
            raw = await self._redis.get(rendered)
        except RedisError as exc:
            logger.warning(
                "cache.get_failed", extra={"extra": {"key": rendered, "error": str(exc)}}
            )
            return None
        if raw is None:
            return None

        try:
            entry = decode_entry(raw)
        except ValueError as exc:
            logger.warning(
                "cache.decode_failed", extra={"extra": {"key": rendered, "error": str(exc)}}
            )
            return None

        now = self._clock()
        if not entry.is_servable(now):
            return None
        return CacheLookup(entry=entry, stale=not entry.is_fresh(now))

    async def put(self, key: CacheKey, entry: CacheEntry) -> None:
        """Replace the envelope for ``key``; expiry covers the stale window."""
        rendered = key.render()
        remaining = entry.servable_until - self._clock()
        if remaining <= 0:
            return
        try:
            await self._redis.set(rendered, encode_entry(entry), ex=max(1, math.ceil(remaining)))
        except RedisError as exc:
            logger.warning(
                "cache.put_failed", extra={"extra": {"key": rendered, "error": str(exc)}}
            )
