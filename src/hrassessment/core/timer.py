"\"\"\"Countdown timer driving the session deadline.\"\"\""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import structlog

DEFAULT_DURATION_SECONDS = 600

TickCallback = Callable[[int], None]
ExpireCallback = Callable[[], None]
Sleeper = Callable[[float], Awaitable[None]]


def format_remaining(seconds: int) -> str:
    """Render a second count as ``MM:SS``."""
    seconds = max(0, int(seconds))
    minutes, rest = divmod(seconds, 60)
    return f"{minutes:02d}:{rest:02d}"


class CountdownTimer:
    """One-second resolution countdown running as an asyncio task.

    Callbacks are plain functions: the owner is expected to forward them to its
    own serialization point rather than doing work inside the timer task.
    ``on_expire`` fires exactly once, when the remaining time reaches zero.
    There is no pause or resume.
    """

    def __init__(
        self,
        duration: int = DEFAULT_DURATION_SECONDS,
        *,
        on_tick: TickCallback | None = None,
        on_expire: ExpireCallback | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        if duration <= 0:
            raise ValueError("Timer duration must be positive")
        self._duration = duration
        self._remaining = duration
        self._on_tick = on_tick
        self._on_expire = on_expire
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None
        self._expired = False
        self._stopped = False
        self._logger = structlog.get_logger(__name__)

    @property
    def duration(self) -> int:
        return self._duration

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def expired(self) -> bool:
        return self._expired

    def start(self, duration: int | None = None) -> None:
        if self.running:
            raise RuntimeError("Timer already running")
        if self._stopped or self._expired:
            raise RuntimeError("Timer cannot be restarted")
        if duration is not None:
            if duration <= 0:
                raise ValueError("Timer duration must be positive")
            self._duration = duration
        self._remaining = self._duration
        self._task = asyncio.get_running_loop().create_task(self._countdown())
        self._logger.info("timer.started", duration=self._duration)

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._logger.info("timer.stopped", remaining=self._remaining)

    async def wait(self) -> None:
        """Wait for the countdown task to finish, whether expired or stopped."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise

    async def _countdown(self) -> None:
        while self._remaining > 0 and not self._stopped:
            await self._sleep(1)
            if self._stopped:
                return
            self._remaining -= 1
            if self._on_tick is not None:
                self._on_tick(self._remaining)
        if self._remaining == 0 and not self._stopped and not self._expired:
            self._expired = True
            self._logger.info("timer.expired", duration=self._duration)
            if self._on_expire is not None:
                self._on_expire()
