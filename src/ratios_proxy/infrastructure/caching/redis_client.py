# src/ratios_proxy/infrastructure/caching/redis_client.py
# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""Async Redis client factory."""

from __future__ import annotations

from contextlib import suppress
from typing import Any, Protocol, cast, runtime_checkable

import redis.asyncio as aioredis

__all__ = [
    "RedisClient",
    "create_redis_client",
    "close_redis_client",
]


@runtime_checkable
class RedisClient(Protocol):
    """Minimal async Redis protocol used by the proxy."""

    async def ping(self) -> Any: ...
    async def get(self, key: str) -> Any: ...
    async def set(
        self,
        key: str,
        value: Any,
        *,
        ex: int | None = None,
        px: int | None = None,
        nx: bool | None = None,
        xx: bool | None = None,
    ) -> Any: ...


def create_redis_client(
    url: str,
    *,
    socket_timeout_s: float = 3.0,
    health_check_interval_s: int = 15,
) -> RedisClient:
    """Build the concrete asyncio Redis client from URL."""
    # Call through an untyped shim so mypy doesn't care whether the installed
    # redis stubs define a typed or untyped `from_url`.
    _from_url: Any = aioredis.from_url
    client = _from_url(
        url=url,
        encoding="utf-8",
        decode_responses=True,
        health_check_interval=health_check_interval_s,
        socket_timeout=socket_timeout_s,
        socket_connect_timeout=socket_timeout_s,
    )
    return cast(RedisClient, client)


async def close_redis_client(client: RedisClient) -> None:
    """Close a client created by :func:`create_redis_client`."""
    closer = getattr(client, "aclose", None) or getattr(client, "close", None)
    if closer is None:
        return
    with suppress(RuntimeError):
        await closer()
