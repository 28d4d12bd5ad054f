# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""Throttle-aware retry (async): at most one extra attempt after a jittered wait.

State machine::

    FIRST --clean or non-throttle problem--> DONE
    FIRST --throttled--> BACKOFF --> SECOND --> DONE

The second attempt's result is returned as-is, whatever it is. Unbounded
retries would turn the proxy itself into a rate-limit violator during
sustained throttling.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


class RetryPhase(str, Enum):
    """Phases of the two-attempt machine."""

    FIRST = "first"
    BACKOFF = "backoff"
    SECOND = "second"
    DONE = "done"


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded random delay window between the two attempts."""

    min_delay_s: float = 1.0
    max_delay_s: float = 1.8

    def __post_init__(self) -> None:
        if self.min_delay_s < 0 or self.max_delay_s < self.min_delay_s:
            raise ValueError("require 0 <= min_delay_s <= max_delay_s")

    def next_delay(self, rng: random.Random | None = None) -> float:
        """Draw a delay uniformly from ``[min_delay_s, max_delay_s]``."""
        draw = (rng or random).uniform  # noqa: S311
        return draw(self.min_delay_s, self.max_delay_s)


@dataclass
class RetryOutcome(Generic[T]):
    """Final result plus the path the machine took."""

    result: T
    attempts: int
    delay_s: float | None = None
    phases: list[RetryPhase] = field(default_factory=list)

    @property
    def retried(self) -> bool:
        """Return True when the second attempt ran."""
        return self.attempts == 2


async def retry_once_on_throttle(
    attempt: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    is_throttled: Callable[[T], bool],
    sleep: Sleep = asyncio.sleep,
    rng: random.Random | None = None,
) -> RetryOutcome[T]:
    """Run ``attempt`` once, and once more after a backoff if it was throttled.

    Exceptions raised by ``attempt`` are not retried; they propagate.

    Args:
        attempt: Zero-arg coroutine factory for one logical upstream attempt.
        policy: Delay window for the backoff.
        is_throttled: Predicate applied to the first result.
        sleep: Awaitable sleep; injectable for tests.
        rng: Optional random source for the delay draw.

    Returns:
        RetryOutcome with the final result, attempt count and visited phases.
    """
    phase = RetryPhase.FIRST
    outcome: RetryOutcome[T] | None = None
    delay: float | None = None
    phases: list[RetryPhase] = []

    while phase is not RetryPhase.DONE:
        phases.append(phase)
        if phase is RetryPhase.FIRST:
            first = await attempt()
            outcome = RetryOutcome(result=first, attempts=1, phases=phases)
            phase = RetryPhase.BACKOFF if is_throttled(first) else RetryPhase.DONE
        elif phase is RetryPhase.BACKOFF:
            delay = policy.next_delay(rng)
            await sleep(delay)
            phase = RetryPhase.SECOND
        else:
            second = await attempt()
            outcome = RetryOutcome(result=second, attempts=2, delay_s=delay, phases=phases)
            phase = RetryPhase.DONE

    phases.append(RetryPhase.DONE)
    if outcome is None:
        raise RuntimeError("retry machine finished without an attempt")
    return outcome
