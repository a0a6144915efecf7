"""
Call Pacing

Randomized pauses between suggestion-source calls. Kept apart from the
phase logic so tests can swap the sleep function or disable pacing.

Bounds (defaults, seconds):
- Between calls:      1.2 - 2.0
- Every 5th call:     an extra 3.0 - 5.0
- Between bulk calls: 1.5 - 3.0
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, List, Optional

logger = logging.getLogger(__name__)


class Pacer:
    """
    Injectable delay primitive.

    Every delay goes through `sleep`, so a test can pass a recorder and
    assert on the exact pauses without waiting.
    """

    def __init__(
        self,
        min_delay: float = 1.2,
        max_delay: float = 2.0,
        long_pause_every: int = 5,
        long_pause_min: float = 3.0,
        long_pause_max: float = 5.0,
        batch_delay_min: float = 1.5,
        batch_delay_max: float = 3.0,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        enabled: bool = True,
    ):
        if min_delay > max_delay or long_pause_min > long_pause_max or batch_delay_min > batch_delay_max:
            raise ValueError("Pacing lower bounds must not exceed upper bounds")
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.long_pause_every = long_pause_every
        self.long_pause_min = long_pause_min
        self.long_pause_max = long_pause_max
        self.batch_delay_min = batch_delay_min
        self.batch_delay_max = batch_delay_max
        self.rng = rng or random.Random()
        self.enabled = enabled
        self._sleep = sleep
        self.delays: List[float] = []

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "Pacer":
        return cls(
            min_delay=settings.CALL_DELAY_MIN,
            max_delay=settings.CALL_DELAY_MAX,
            long_pause_every=settings.LONG_PAUSE_EVERY,
            long_pause_min=settings.LONG_PAUSE_MIN,
            long_pause_max=settings.LONG_PAUSE_MAX,
            batch_delay_min=settings.BATCH_DELAY_MIN,
            batch_delay_max=settings.BATCH_DELAY_MAX,
            **kwargs,
        )

    @classmethod
    def disabled(cls) -> "Pacer":
        """A pacer that never waits."""
        return cls(enabled=False)

    async def _wait(self, seconds: float) -> float:
        if not self.enabled or seconds <= 0:
            return 0.0
        self.delays.append(seconds)
        await self._sleep(seconds)
        return seconds

    async def between_calls(self, calls_done: int) -> float:
        """
        Pause after the calls_done-th call of a phase.

        Adds the longer pause every long_pause_every calls.
        """
        delay = self.rng.uniform(self.min_delay, self.max_delay)
        if self.long_pause_every > 0 and calls_done > 0 and calls_done % self.long_pause_every == 0:
            delay += self.rng.uniform(self.long_pause_min, self.long_pause_max)
            logger.debug(f"Long pause after {calls_done} calls")
        return await self._wait(delay)

    async def between_batches(self) -> float:
        return await self._wait(self.rng.uniform(self.batch_delay_min, self.batch_delay_max))

    async def extra_pause(self) -> float:
        """Occasional longer pause, e.g. between child-phase parents."""
        return await self._wait(self.rng.uniform(self.long_pause_min, self.long_pause_max))

    @property
    def average_delay(self) -> float:
        if not self.delays:
            return 0.0
        return sum(self.delays) / len(self.delays)
