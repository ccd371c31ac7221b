"""Tests for the asyncio tick scheduler and the logical test clock."""

import asyncio

import pytest

from arena.session.scheduler import AsyncioTimerScheduler
from arena.tests.mocks import ManualScheduler

TICK = 0.01


class TestAsyncioTimerScheduler:
    def test_rejects_non_positive_tick(self):
        with pytest.raises(ValueError, match="tick_seconds"):
            AsyncioTimerScheduler(0)

    async def test_rejects_zero_ticks(self):
        scheduler = AsyncioTimerScheduler(TICK)

        async def noop():
            pass

        with pytest.raises(ValueError, match="ticks"):
            scheduler.call_later(0, noop)

    async def test_call_later_fires_once(self):
        scheduler = AsyncioTimerScheduler(TICK)
        fired = []

        async def cb():
            fired.append(1)

        scheduler.call_later(1, cb)
        await asyncio.sleep(TICK * 5)
        assert fired == [1]

    async def test_cancel_before_fire(self):
        scheduler = AsyncioTimerScheduler(TICK)
        fired = []

        async def cb():
            fired.append(1)

        handle = scheduler.call_later(2, cb)
        handle.cancel()
        handle.cancel()
        await asyncio.sleep(TICK * 5)
        assert fired == []
        assert handle.cancelled

    async def test_call_every_repeats_until_cancelled(self):
        scheduler = AsyncioTimerScheduler(TICK)
        fired = []

        async def cb():
            fired.append(1)

        handle = scheduler.call_every(1, cb)
        await asyncio.sleep(TICK * 4.5)
        handle.cancel()
        count = len(fired)
        assert count >= 2
        await asyncio.sleep(TICK * 4)
        assert len(fired) == count

    async def test_callback_may_cancel_own_timer(self):
        scheduler = AsyncioTimerScheduler(TICK)
        fired = []
        handle = None

        async def cb():
            fired.append(1)
            await asyncio.sleep(0)
            handle.cancel()
            fired.append(2)

        handle = scheduler.call_every(1, cb)
        await asyncio.sleep(TICK * 5)
        # the running callback completes; no further firings
        assert fired == [1, 2]

    async def test_callback_error_is_logged(self, caplog):
        scheduler = AsyncioTimerScheduler(TICK)

        async def cb():
            raise RuntimeError("boom")

        scheduler.call_later(1, cb)
        await asyncio.sleep(TICK * 5)
        assert "timer callback failed" in caplog.text

    async def test_periodic_timer_survives_callback_error(self, caplog):
        scheduler = AsyncioTimerScheduler(TICK)
        fired = []

        async def cb():
            fired.append(1)
            if len(fired) == 1:
                raise RuntimeError("boom")

        handle = scheduler.call_every(1, cb)
        await asyncio.sleep(TICK * 6)
        handle.cancel()
        assert len(fired) >= 2
        assert "timer callback failed" in caplog.text


class TestManualScheduler:
    async def test_fires_in_schedule_order(self):
        scheduler = ManualScheduler()
        fired = []

        async def make(name):
            fired.append(name)

        scheduler.call_later(2, lambda: make("b"))
        scheduler.call_later(1, lambda: make("a"))
        scheduler.call_later(2, lambda: make("c"))
        await scheduler.advance(2)
        assert fired == ["a", "b", "c"]
        assert scheduler.now == 2

    async def test_cancelled_timer_never_fires(self):
        scheduler = ManualScheduler()
        fired = []

        async def cb():
            fired.append(1)

        handle = scheduler.call_every(1, cb)
        await scheduler.advance(2)
        handle.cancel()
        await scheduler.advance(3)
        assert fired == [1, 1]
        assert scheduler.pending == []
