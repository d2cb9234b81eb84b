"""
Tests for the simulated clock, the asyncio scheduler and the debouncer.
"""

import asyncio

import pytest

from bailey.grid.scheduler import AsyncioScheduler, Debouncer, ManualScheduler


class TestManualScheduler:
    @pytest.mark.asyncio
    async def test_callbacks_run_in_due_order(self):
        scheduler = ManualScheduler()
        seen = []
        scheduler.call_later(300, seen.append, "b")
        scheduler.call_later(100, seen.append, "a")
        scheduler.call_later(300, seen.append, "c")

        await scheduler.advance(299)
        assert seen == ["a"]
        await scheduler.advance(1)
        assert seen == ["a", "b", "c"]
        assert scheduler.now() == 300

    @pytest.mark.asyncio
    async def test_cancelled_call_never_runs(self):
        scheduler = ManualScheduler()
        seen = []
        handle = scheduler.call_later(10, seen.append, "x")
        handle.cancel()
        await scheduler.advance(100)
        assert seen == []
        assert scheduler.pending == 0

    @pytest.mark.asyncio
    async def test_coroutine_callbacks_are_awaited(self):
        scheduler = ManualScheduler()
        seen = []

        async def work():
            seen.append(scheduler.now())

        scheduler.call_later(50, work)
        await scheduler.advance(50)
        assert seen == [50]

    @pytest.mark.asyncio
    async def test_rescheduling_callback_sees_its_due_time(self):
        scheduler = ManualScheduler()
        ticks = []

        def tick():
            ticks.append(scheduler.now())
            if len(ticks) < 3:
                scheduler.call_later(1000, tick)

        scheduler.call_later(1000, tick)
        await scheduler.advance(5000)
        assert ticks == [1000, 2000, 3000]


class TestDebouncer:
    @pytest.mark.asyncio
    async def test_fires_once_after_quiet_period(self):
        scheduler = ManualScheduler()
        fired = []
        debouncer = Debouncer(scheduler, 500, lambda: fired.append(scheduler.now()))

        debouncer.trigger()
        await scheduler.advance(200)
        debouncer.trigger()
        assert debouncer.pending

        await scheduler.advance(499)
        assert fired == []
        await scheduler.advance(1)
        assert fired == [700]
        assert not debouncer.pending

    @pytest.mark.asyncio
    async def test_cancel(self):
        scheduler = ManualScheduler()
        fired = []
        debouncer = Debouncer(scheduler, 500, lambda: fired.append(True))
        debouncer.trigger()
        debouncer.cancel()
        await scheduler.advance(1000)
        assert fired == []


class TestAsyncioScheduler:
    @pytest.mark.asyncio
    async def test_runs_coroutine_callback_on_loop(self):
        scheduler = AsyncioScheduler()
        done = asyncio.Event()

        async def work():
            done.set()

        scheduler.call_later(1, work)
        await asyncio.wait_for(done.wait(), timeout=1)
        await scheduler.drain()
        assert done.is_set()
