import asyncio
import logging

from intake_fakes import ADDRESS, CATEGORY_ID, make_message, settle
from modules.common import runtime
from modules.intake import ChannelCreated, StatusReporter


async def _open(controller, channel_id):
    task = asyncio.create_task(controller.handle_channel_created(ChannelCreated(channel_id, CATEGORY_ID)))
    await settle()
    await controller.handle_message(make_message(channel_id, author_id=42, content="hello"))
    return await task


def test_snapshot_counts_lifecycle(controller, timers):
    async def runner() -> None:
        await _open(controller, 1)
        await _open(controller, 2)
        await controller.handle_message(make_message(2, content=ADDRESS, content_types=("image/png",)))

        snapshot = StatusReporter(controller).snapshot()
        assert snapshot.channels_seen == 2
        assert snapshot.tickets_created == 2
        assert snapshot.tickets_completed == 1
        assert snapshot.active_tickets == 2
        assert snapshot.pending_closures == 1
        assert snapshot.awaiting_first_message == 0
        assert snapshot.to_dict()["tickets_closed"] == 0

    asyncio.run(runner())


def test_ticket_rows_are_oldest_first(controller, timers):
    async def runner() -> None:
        await _open(controller, 1)
        await timers.advance(60)
        await _open(controller, 2)
        await controller.handle_message(make_message(2, content=ADDRESS))

        infos = StatusReporter(controller).tickets()
        assert [info.channel_id for info in infos] == [1, 2]
        assert infos[0].age_seconds == 60.0
        assert infos[0].requester_tag == "<@42>"
        assert infos[1].has_address and not infos[1].has_image
        assert infos[1].state == "awaiting_evidence"

    asyncio.run(runner())


def test_report_logs_and_feeds_sink(controller, caplog):
    received = []

    async def sink(snapshot) -> None:
        received.append(snapshot)

    caplog.set_level(logging.INFO, logger="intake.status")
    result = asyncio.run(StatusReporter(controller, sink=sink).report())

    assert result is not None
    assert received == [result]
    assert any("status report" in record.getMessage() for record in caplog.records)


def test_report_failure_is_swallowed(controller, caplog):
    async def sink(_snapshot) -> None:
        raise RuntimeError("log channel down")

    caplog.set_level(logging.ERROR, logger="intake.status")
    result = asyncio.run(StatusReporter(controller, sink=sink).report())

    assert result is None
    assert any(record.getMessage() == "status report failed" for record in caplog.records)


def test_start_registers_recurring_job(controller, monkeypatch):
    async def runner() -> int:
        def fast_next_run(self, reference=None):
            now = reference or runtime.datetime.now(runtime.timezone.utc)
            return now + runtime.timedelta(milliseconds=10)

        monkeypatch.setattr(runtime._RecurringJob, "_compute_next_run", fast_next_run)

        calls = {"count": 0}

        async def sink(_snapshot) -> None:
            calls["count"] += 1

        scheduler = runtime.Scheduler()
        reporter = StatusReporter(controller, interval_sec=5, sink=sink)
        task = reporter.start(scheduler)
        assert reporter.start(scheduler) is task
        await asyncio.sleep(0.05)
        await scheduler.shutdown()
        return calls["count"]

    assert asyncio.run(runner()) >= 1


def test_channels_waiting_for_first_message_are_listed(controller, timers):
    async def runner() -> None:
        task = asyncio.create_task(controller.handle_channel_created(ChannelCreated(5, CATEGORY_ID)))
        await settle()
        await timers.advance(4)

        infos = StatusReporter(controller).tickets()
        assert len(infos) == 1
        assert infos[0].channel_id == 5
        assert infos[0].state == "awaiting_first_message"
        assert infos[0].requester_tag == "-"
        assert infos[0].age_seconds == 4.0
        assert StatusReporter(controller).snapshot().awaiting_first_message == 1

        await controller.handle_message(make_message(5, content="hello"))
        await task
        assert [info.state for info in StatusReporter(controller).tickets()] == ["awaiting_evidence"]

    asyncio.run(runner())
