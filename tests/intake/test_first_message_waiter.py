import asyncio

import pytest

from intake_fakes import ManualTimers, make_message, settle
from modules.intake.waiters import FirstMessageWaiter


def test_offered_message_resolves_wait_and_cancels_timer():
    async def runner() -> None:
        timers = ManualTimers()
        waiter = FirstMessageWaiter(timers)
        task = asyncio.create_task(waiter.wait(1, 10.0))
        await settle()
        assert waiter.is_waiting(1)

        message = make_message(1, content="hello")
        assert waiter.offer(message) is True
        assert await task is message
        assert not waiter.is_waiting(1)
        assert timers.pending == 0

    asyncio.run(runner())


def test_wait_times_out_with_none():
    async def runner() -> None:
        timers = ManualTimers()
        waiter = FirstMessageWaiter(timers)
        task = asyncio.create_task(waiter.wait(1, 10.0))
        await settle()
        await timers.advance(9.9)
        assert not task.done()
        await timers.advance(0.2)
        assert await task is None
        assert waiter.offer(make_message(1)) is False

    asyncio.run(runner())


def test_cancel_resolves_none_and_late_timer_is_noop():
    async def runner() -> None:
        timers = ManualTimers()
        waiter = FirstMessageWaiter(timers)
        first = asyncio.create_task(waiter.wait(1, 10.0))
        await settle()
        assert waiter.cancel(1) is True
        assert await first is None

        second = asyncio.create_task(waiter.wait(1, 30.0))
        await settle()
        await timers.advance(10.0)
        assert not second.done()
        message = make_message(1)
        waiter.offer(message)
        assert await second is message

    asyncio.run(runner())


def test_second_wait_for_same_channel_is_rejected():
    async def runner() -> None:
        waiter = FirstMessageWaiter(ManualTimers())
        task = asyncio.create_task(waiter.wait(1, 10.0))
        await settle()
        with pytest.raises(RuntimeError):
            await waiter.wait(1, 10.0)
        waiter.cancel_all()
        assert await task is None
        assert len(waiter) == 0

    asyncio.run(runner())


def test_messages_for_other_channels_are_not_consumed():
    async def runner() -> None:
        waiter = FirstMessageWaiter(ManualTimers())
        task = asyncio.create_task(waiter.wait(1, 10.0))
        await settle()
        assert waiter.offer(make_message(2)) is False
        assert not task.done()
        waiter.cancel(1)
        await task

    asyncio.run(runner())


def test_pending_reports_start_times_until_resolved():
    async def runner() -> None:
        timers = ManualTimers()
        waiter = FirstMessageWaiter(timers)
        started = timers.now()
        first = asyncio.create_task(waiter.wait(1, 10.0))
        second = asyncio.create_task(waiter.wait(2, 10.0))
        await settle()
        assert waiter.pending() == {1: started, 2: started}

        waiter.offer(make_message(1))
        await first
        waiter.cancel(2)
        await second
        assert waiter.pending() == {}
        assert waiter._started == {}

    asyncio.run(runner())
