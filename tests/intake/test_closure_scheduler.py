import asyncio
import logging
from datetime import timedelta

from intake_fakes import ManualTimers, settle
from modules.intake.closure import ClosureScheduler


def test_action_fires_once_after_delay():
    async def runner() -> list[int]:
        timers = ManualTimers()
        scheduler = ClosureScheduler(timers)
        fired: list[int] = []

        async def action() -> None:
            fired.append(1)

        assert scheduler.schedule(1, 3600, action) is True
        assert scheduler.due_at(1) == timers.now() + timedelta(seconds=3600)
        await timers.advance(3599)
        assert fired == []
        await timers.advance(1)
        await timers.advance(3600)
        assert not scheduler.is_scheduled(1)
        return fired

    assert asyncio.run(runner()) == [1]


def test_second_schedule_is_rejected():
    async def runner() -> list[str]:
        timers = ManualTimers()
        scheduler = ClosureScheduler(timers)
        fired: list[str] = []

        async def first() -> None:
            fired.append("first")

        async def second() -> None:
            fired.append("second")

        assert scheduler.schedule(1, 10, first)
        assert scheduler.schedule(1, 5, second) is False
        assert len(scheduler) == 1
        await timers.advance(10)
        return fired

    assert asyncio.run(runner()) == ["first"]


def test_cancel_before_firing_prevents_action():
    async def runner() -> list[int]:
        timers = ManualTimers()
        scheduler = ClosureScheduler(timers)
        fired: list[int] = []

        async def action() -> None:
            fired.append(1)

        scheduler.schedule(1, 10, action)
        assert scheduler.cancel(1) is True
        assert scheduler.cancel(1) is False
        await timers.advance(20)
        assert timers.pending == 0
        return fired

    assert asyncio.run(runner()) == []


def test_cancel_after_firing_does_not_stop_inflight_action():
    async def runner() -> list[str]:
        timers = ManualTimers()
        scheduler = ClosureScheduler(timers)
        gate = asyncio.Event()
        events: list[str] = []

        async def action() -> None:
            events.append("start")
            await gate.wait()
            events.append("end")

        scheduler.schedule(1, 1, action)
        await timers.advance(1)
        assert scheduler.cancel(1) is False
        gate.set()
        await settle()
        return events

    assert asyncio.run(runner()) == ["start", "end"]


def test_failing_action_is_logged(caplog):
    async def runner() -> None:
        timers = ManualTimers()
        scheduler = ClosureScheduler(timers)

        async def action() -> None:
            raise RuntimeError("boom")

        scheduler.schedule(7, 1, action)
        await timers.advance(1)

    caplog.set_level(logging.ERROR, logger="intake.closure")
    asyncio.run(runner())
    assert any(record.getMessage() == "closure action failed" for record in caplog.records)


def test_shutdown_cancels_pending_entries():
    async def runner() -> None:
        timers = ManualTimers()
        scheduler = ClosureScheduler(timers)

        async def action() -> None:
            return None

        scheduler.schedule(1, 10, action)
        scheduler.schedule(2, 10, action)
        await scheduler.shutdown()
        assert len(scheduler) == 0
        assert timers.pending == 0

    asyncio.run(runner())
