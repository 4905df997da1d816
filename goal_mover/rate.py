"""Fixed-rate loop timing.

Every polling loop in the mover (50 Hz execution, 20 Hz obstacle monitor)
paces itself with ``LoopRate``. Clock and sleep are injectable so tests can
drive loops on simulated time.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


class LoopRate:
    """Holds a loop at a fixed rate by sleeping until the next period boundary.

    Uses wall-clock timestamps, so a slow tick shortens the following sleep
    instead of accumulating drift. If a tick overruns a whole period the
    schedule restarts from now.
    """

    def __init__(self, rate_hz: float, clock: Clock = time.monotonic, sleep: Sleeper = asyncio.sleep):
        if rate_hz <= 0:
            raise ValueError(f"Rate must be positive, got {rate_hz}")
        self.period = 1.0 / rate_hz
        self._clock = clock
        self._sleep = sleep
        self._next: Optional[float] = None

    async def sleep(self) -> None:
        """Sleep until the next period boundary."""
        now = self._clock()
        if self._next is None:
            self._next = now
        self._next += self.period
        delay = self._next - now
        if delay < 0:
            self._next = now
            delay = 0.0
        await self._sleep(delay)
