import asyncio
from datetime import datetime, timezone

import pytest

from modules.intake import Ticket, TicketExists, TicketNotFound, TicketRegistry, TicketState

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _ticket(channel_id: int = 1) -> Ticket:
    return Ticket(channel_id=channel_id, requester_tag="<@42>", created_at=NOW)


def test_create_rejects_duplicate_channel():
    async def runner() -> None:
        registry = TicketRegistry()
        await registry.create(1, _ticket())
        with pytest.raises(TicketExists):
            await registry.create(1, _ticket())
        assert len(registry) == 1

    asyncio.run(runner())


def test_update_missing_ticket_raises():
    async def runner() -> None:
        registry = TicketRegistry()
        with pytest.raises(TicketNotFound):
            await registry.update(5, lambda ticket: ticket.state)

    asyncio.run(runner())


def test_updates_on_one_channel_are_serialized():
    async def runner() -> list[str]:
        registry = TicketRegistry()
        await registry.create(1, _ticket())
        order: list[str] = []
        gate = asyncio.Event()

        async def slow(ticket: Ticket) -> None:
            order.append("slow-start")
            await gate.wait()
            order.append("slow-end")

        def fast(ticket: Ticket) -> None:
            order.append("fast")

        first = asyncio.create_task(registry.update(1, slow))
        await asyncio.sleep(0)
        second = asyncio.create_task(registry.update(1, fast))
        await asyncio.sleep(0)
        gate.set()
        await asyncio.gather(first, second)
        return order

    assert asyncio.run(runner()) == ["slow-start", "slow-end", "fast"]


def test_other_channels_do_not_wait_on_a_busy_channel():
    async def runner() -> list[str]:
        registry = TicketRegistry()
        await registry.create(1, _ticket(1))
        await registry.create(2, _ticket(2))
        order: list[str] = []
        gate = asyncio.Event()

        async def blocked(ticket: Ticket) -> None:
            await gate.wait()
            order.append("one")

        first = asyncio.create_task(registry.update(1, blocked))
        await asyncio.sleep(0)
        await registry.update(2, lambda ticket: order.append("two"))
        gate.set()
        await first
        return order

    assert asyncio.run(runner()) == ["two", "one"]


def test_merge_evidence_is_monotone():
    ticket = _ticket()
    assert ticket.merge_evidence(address=True) == (True, False)
    assert ticket.merge_evidence() == (False, False)
    assert ticket.has_address and not ticket.has_image
    assert ticket.merge_evidence(address=True, image=True) == (False, True)
    assert ticket.evidence_complete


def test_snapshot_returns_copies():
    async def runner() -> None:
        registry = TicketRegistry()
        await registry.create(1, _ticket())
        copy = registry.snapshot()[0]
        copy.state = TicketState.CLOSED
        assert registry.get(1).state is TicketState.AWAITING_EVIDENCE

    asyncio.run(runner())


def test_remove_and_discard_release_channel():
    async def runner() -> None:
        registry = TicketRegistry()
        await registry.create(1, _ticket(1))
        await registry.create(2, _ticket(2))
        assert (await registry.remove(1)).channel_id == 1
        assert await registry.remove(1) is None
        assert registry.discard(2) is not None
        assert 1 not in registry and 2 not in registry
        assert registry._locks == {}

    asyncio.run(runner())


def test_insert_is_visible_without_awaiting():
    registry = TicketRegistry()
    registry.insert(3, _ticket(3))
    assert 3 in registry
    with pytest.raises(TicketExists):
        registry.insert(3, _ticket(3))
