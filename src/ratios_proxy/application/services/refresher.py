# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""Background refresher for stale-while-revalidate.

Fire-and-forget tasks: a failed refresh is logged and dropped, leaving the
stale entry in place. Tasks are tracked so shutdown (and tests) can drain
them.

Layer:
    application/services
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import suppress
from typing import Any

from ratios_proxy.infrastructure.logging.logger import get_json_logger
from ratios_proxy.infrastructure.observability.metrics import get_background_refresh_total

logger = get_json_logger(__name__)


class BackgroundRefresher:
    """Schedules and tracks best-effort refresh tasks."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[None]] = set()
        self._outcomes = get_background_refresh_total()

    @property
    def pending(self) -> int:
        """Number of refresh tasks not yet finished."""
        return len(self._tasks)

    def schedule(self, name: str, refresh: Callable[[], Awaitable[Any]]) -> asyncio.Task[None]:
        """Start ``refresh`` in the background.

        Args:
            name: Label for logs (usually the rendered cache key).
            refresh: Zero-arg coroutine factory.

        Returns:
            The created task.
        """
        task = asyncio.create_task(self._run(name, refresh), name=f"refresh:{name}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, name: str, refresh: Callable[[], Awaitable[Any]]) -> None:
        try:
            await refresh()
        except Exception as exc:
            with suppress(Exception):
                self._outcomes.labels(outcome="failed").inc()
            logger.info(
                "refresh.failed",
                extra={"extra": {"key": name, "error": type(exc).__name__, "detail": str(exc)}},
            )
        else:
            with suppress(Exception):
                self._outcomes.labels(outcome="ok").inc()
            logger.debug("refresh.ok", extra={"extra": {"key": name}})

    async def drain(self) -> None:
        """Wait for every scheduled refresh to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
