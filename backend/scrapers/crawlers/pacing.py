"""
Human-like pacing between browser interactions.

The delays are a fixed randomized jitter between two bounds. Tests use
Pacing.disabled() so nothing sleeps.
"""

import asyncio
import random
from typing import Awaitable, Callable, Optional


class Pacing:
    """
    Randomized delay policy.

    Usage:
        pacing = Pacing(min_seconds=1.0, max_seconds=2.0, settle_seconds=1.5)
        await pacing.pause()            # random delay in [1.0, 2.0]
        await pacing.pause(0.7, 1.6)    # random delay in explicit bounds
        await pacing.settle()           # fixed delay after a page navigation
    """

    def __init__(
        self,
        min_seconds: float = 1.0,
        max_seconds: float = 2.0,
        settle_seconds: float = 1.5,
        enabled: bool = True,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        rng: Optional[random.Random] = None,
    ):
        if min_seconds < 0 or max_seconds < min_seconds:
            raise ValueError(f"Invalid delay bounds: {min_seconds}..{max_seconds}")
        self.min_seconds = min_seconds
        self.max_seconds = max_seconds
        self.settle_seconds = settle_seconds
        self.enabled = enabled
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()

    @classmethod
    def disabled(cls) -> 'Pacing':
        """A policy that never waits."""
        return cls(min_seconds=0.0, max_seconds=0.0, settle_seconds=0.0, enabled=False)

    @classmethod
    def from_settings(cls, settings) -> 'Pacing':
        return cls(
            min_seconds=settings.delay_min_seconds,
            max_seconds=settings.delay_max_seconds,
            settle_seconds=settings.settle_seconds,
        )

    def jitter(self, low: Optional[float] = None, high: Optional[float] = None) -> float:
        if not self.enabled:
            return 0.0
        low = self.min_seconds if low is None else low
        high = self.max_seconds if high is None else high
        return self._rng.uniform(low, high)

    def randint(self, low: int, high: int) -> int:
        return self._rng.randint(low, high)

    async def pause(self, low: Optional[float] = None, high: Optional[float] = None) -> float:
        """Sleep for a random time between the bounds and return it."""
        delay = self.jitter(low, high)
        if delay > 0:
            await self._sleep(delay)
        return delay

    async def settle(self) -> float:
        """Sleep for the fixed settle delay after navigating."""
        if not self.enabled or self.settle_seconds <= 0:
            return 0.0
        await self._sleep(self.settle_seconds)
        return self.settle_seconds
