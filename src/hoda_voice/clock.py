"""Time source and cooperative cancellation shared by the voice components."""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Clock(Protocol):
    """Monotonic time, awaitable sleeps and one-shot timers."""

    def now(self) -> float:
        """Return a monotonic timestamp in seconds."""

    async def sleep(self, seconds: float) -> None:
        """Suspend the calling coroutine for ``seconds``."""

    def call_later(self, seconds: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``seconds``; the handle cancels it."""


class AsyncioClock:
    """Clock backed by the running asyncio event loop."""

    def now(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))

    def call_later(self, seconds: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(max(0.0, seconds), callback)


class CancellationToken:
    """Cooperative stop flag checked at every suspension point."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def sleep(self, clock: Clock, seconds: float) -> bool:
        """Sleep unless cancelled first. Returns ``False`` when interrupted."""
        if self.cancelled:
            return False
        if seconds <= 0:
            await asyncio.sleep(0)
            return not self.cancelled

        sleeper = asyncio.ensure_future(clock.sleep(seconds))
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, waiter):
                if not task.done():
                    task.cancel()
        return not self.cancelled
