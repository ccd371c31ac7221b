"""
Tick-based timer scheduling for match sessions.

Sessions express every duration in ticks and never read the clock. The
asyncio implementation maps one tick to ``tick_seconds`` of event-loop time;
tests substitute a logical clock that only moves when told to.

Cancellation contract: ``TimerHandle.cancel()`` is idempotent, and once it
returns the callback will not start again. A callback that is already running
(for example one that cancels its own periodic timer) is allowed to finish.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.get_logger()

TimerCallback = Callable[[], Awaitable[None]]


class TimerHandle(ABC):
    @property
    @abstractmethod
    def cancelled(self) -> bool: ...

    @abstractmethod
    def cancel(self) -> None:
        """Stop the timer. Safe to call more than once."""
        ...


class TimerScheduler(ABC):
    """Schedule one-shot and periodic callbacks measured in ticks."""

    @abstractmethod
    def call_later(self, ticks: int, callback: TimerCallback) -> TimerHandle:
        """Run callback once after the given number of ticks."""
        ...

    @abstractmethod
    def call_every(self, ticks: int, callback: TimerCallback) -> TimerHandle:
        """Run callback every `ticks` ticks until cancelled."""
        ...


class AsyncioTimerHandle(TimerHandle):
    def __init__(self) -> None:
        self._task: asyncio.Task[None] | None = None
        self._cancelled = False
        self._firing = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def start(self, delay_seconds: float, callback: TimerCallback, *, repeat: bool) -> None:
        self._task = asyncio.create_task(self._run(delay_seconds, callback, repeat=repeat))

    def cancel(self) -> None:
        self._cancelled = True
        # never interrupt a running callback, it may be the one cancelling us
        if self._task is not None and not self._task.done() and not self._firing:
            self._task.cancel()

    async def _run(self, delay_seconds: float, callback: TimerCallback, *, repeat: bool) -> None:
        try:
            while not self._cancelled:
                await asyncio.sleep(delay_seconds)
                if self._cancelled:
                    return
                self._firing = True
                try:
                    await callback()
                except (RuntimeError, OSError, ConnectionError, ValueError):  # fmt: skip
                    # a periodic timer keeps ticking after a failed callback
                    logger.exception("timer callback failed", repeat=repeat)
                finally:
                    self._firing = False
                if not repeat:
                    return
        except asyncio.CancelledError:
            pass


class AsyncioTimerScheduler(TimerScheduler):
    def __init__(self, tick_seconds: float = 1.0) -> None:
        if tick_seconds <= 0:
            raise ValueError(f"tick_seconds must be positive, got {tick_seconds}")
        self._tick_seconds = tick_seconds

    @property
    def tick_seconds(self) -> float:
        return self._tick_seconds

    def call_later(self, ticks: int, callback: TimerCallback) -> TimerHandle:
        return self._start(ticks, callback, repeat=False)

    def call_every(self, ticks: int, callback: TimerCallback) -> TimerHandle:
        return self._start(ticks, callback, repeat=True)

    def _start(self, ticks: int, callback: TimerCallback, *, repeat: bool) -> TimerHandle:
        if ticks < 1:
            raise ValueError(f"ticks must be at least 1, got {ticks}")
        handle = AsyncioTimerHandle()
        handle.start(ticks * self._tick_seconds, callback, repeat=repeat)
        return handle
