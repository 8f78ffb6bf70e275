from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol


logger = logging.getLogger(__name__)


class Clock(Protocol):
    """Time source for every timed session transition."""

    async def sleep(self, seconds: float) -> None:  # pragma: no cover
        ...


class SystemClock:
    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


TickHandler = Callable[[], Awaitable[bool]]


class RoundScheduler:
    """Per-session round ticker.

    Contract:
      - `start()` launches one background task that calls `on_tick` every `interval`.
      - the task stops on its own once `on_tick` returns False (session left fighting).
      - `cancel()` tears it down; safe to call any number of times, including from inside `on_tick`.
    """

    def __init__(self, *, session_id: str, clock: Clock, interval: float, on_tick: TickHandler) -> None:
        self.session_id = session_id
        self._clock = clock
        self._interval = interval
        self._on_tick = on_tick
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=f"round-scheduler:{self.session_id}")

    def cancel(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        # The tick that ends a round runs on this task; it returns by itself.
        if task is asyncio.current_task():
            return
        task.cancel()

    async def _run(self) -> None:
        try:
            while True:
                await self._clock.sleep(self._interval)
                if not await self._on_tick():
                    return
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Round scheduler for session %s crashed", self.session_id)
