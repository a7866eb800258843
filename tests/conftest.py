from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable

import pytest


@dataclass(eq=False)
class _ManualTimer:
    deadline: float
    callback: Callable[[], None]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock:
    """Virtual clock: time only moves when a test calls ``advance``."""

    def __init__(self) -> None:
        self._now = 0.0
        self._timers: list[_ManualTimer] = []

    def now(self) -> float:
        return self._now

    def call_later(self, seconds: float, callback: Callable[[], None]) -> _ManualTimer:
        timer = _ManualTimer(deadline=self._now + max(0.0, seconds), callback=callback)
        self._timers.append(timer)
        return timer

    async def sleep(self, seconds: float) -> None:
        future = asyncio.get_running_loop().create_future()

        def _wake() -> None:
            if not future.done():
                future.set_result(None)

        timer = self.call_later(seconds, _wake)
        try:
            await future
        finally:
            timer.cancel()

    @property
    def pending(self) -> int:
        return sum(1 for timer in self._timers if not timer.cancelled)

    def advance(self, seconds: float) -> None:
        target = self._now + seconds
        while True:
            due = [timer for timer in self._timers if not timer.cancelled and timer.deadline <= target]
            if not due:
                break
            timer = min(due, key=lambda item: item.deadline)
            self._timers.remove(timer)
            self._now = timer.deadline
            timer.callback()
        self._timers = [timer for timer in self._timers if not timer.cancelled]
        self._now = target


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()
