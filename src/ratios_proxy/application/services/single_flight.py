# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""Single-flight coordinator.

Synopsis:
    Suppresses duplicate concurrent work for the same key. The first caller
    (the leader) runs the producer; every caller that arrives while it is
    pending awaits the same future and receives its own copy of the result.

Design:
    * The in-flight registry belongs to the instance; construct one per
      execution context and inject it. There is no module-level state.
    * Registry entries are removed in ``finally`` so a failing producer can
      neither leak an entry nor wedge later callers.
    * Followers await through ``asyncio.shield`` so one follower being
      cancelled does not cancel the shared work.

Layer:
    application/services
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Awaitable, Callable, Hashable
from contextlib import suppress
from typing import Generic, TypeVar

from ratios_proxy.infrastructure.logging.logger import get_json_logger
from ratios_proxy.infrastructure.observability.metrics import get_singleflight_joins_total

T = TypeVar("T")

logger = get_json_logger(__name__)


class SingleFlight(Generic[T]):
    """At most one in-flight producer invocation per key.

    Args:
        copier: Produces an independent copy of a shared result for each
            follower. Defaults to :func:`copy.deepcopy`.
    """

    def __init__(self, *, copier: Callable[[T], T] | None = None) -> None:
        self._inflight: dict[Hashable, asyncio.Future[T]] = {}
        self._copy: Callable[[T], T] = copier or copy.deepcopy
        self._joins = get_singleflight_joins_total()

    @property
    def pending_count(self) -> int:
        """Number of keys with a producer currently running."""
        return len(self._inflight)

    def is_pending(self, key: Hashable) -> bool:
        """Return True if a producer for ``key`` is currently running."""
        return key in self._inflight

    async def run_exclusive(self, key: Hashable, producer: Callable[[], Awaitable[T]]) -> T:
        """Run ``producer`` unless a run for ``key`` is already pending.

        Args:
            key: Deduplication key.
            producer: Zero-arg coroutine factory; invoked at most once per
                concurrent burst for ``key``.

        Returns:
            The producer's result (a copy of it for followers).

        Raises:
            Exception: Whatever the producer raised, for leader and followers.
        """
        pending = self._inflight.get(key)
        if pending is not None:
            with suppress(Exception):
                self._joins.inc()
            logger.debug("singleflight.join", extra={"extra": {"key": str(key)}})
            shared = await asyncio.shield(pending)
            return self._copy(shared)

        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            result = await producer()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # Retrieve it so a leader without followers does not trigger
            # "exception was never retrieved" warnings.
            future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            self._inflight.pop(key, None)
