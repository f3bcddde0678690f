from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable


class MinIntervalLimiter:
    """Enforces a minimum delay between consecutive calls to one external service."""

    def __init__(
        self,
        min_interval_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.min_interval_seconds = max(0.0, min_interval_seconds)
        self._clock = clock
        self._sleep = sleep
        self._last_call_at: float | None = None
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        async with self._lock:
            if self._last_call_at is not None and self.min_interval_seconds > 0:
                remaining = self.min_interval_seconds - (self._clock() - self._last_call_at)
                if remaining > 0:
                    await self._sleep(remaining)
            self._last_call_at = self._clock()
