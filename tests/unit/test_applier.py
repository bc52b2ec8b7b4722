"""Tests for the shared apply-and-publish path."""

from unittest.mock import AsyncMock

import pytest
from conftest import CHAIN_ID, bounty_claimed_log, bounty_created_log, tip_log

from vibesync.services.chain_sync import EventApplier
from vibesync.services.event_store.base import ApplyResult
from vibesync.services.notification_bus import InMemoryNotificationBus
from vibesync.utils.exceptions import TransientNetworkError


@pytest.mark.asyncio
async def test_publishes_only_applied_events(applier, decoder, bus):
    event = decoder.decode(tip_log(1, 0))

    first = await applier.apply(event)
    second = await applier.apply(event)

    assert first is ApplyResult.APPLIED
    assert second is ApplyResult.ALREADY_APPLIED
    assert len(bus.published) == 1
    assert applier.applied_count == 1
    assert applier.last_applied_at is not None


@pytest.mark.asyncio
async def test_delivered_notification_leaves_outbox(applier, decoder, store):
    await applier.apply(decoder.decode(tip_log(1, 0)))

    assert store.outbox == {}


@pytest.mark.asyncio
async def test_publish_failure_is_delivered_later(store, decoder, bus):
    event = decoder.decode(tip_log(1, 0))
    bus.publish_message = AsyncMock(
        side_effect=[TransientNetworkError("redis down"), None]
    )
    applier = EventApplier(store, bus, CHAIN_ID)

    result = await applier.apply(event)

    assert result is ApplyResult.APPLIED
    assert len(store.transfers) == 1
    assert list(store.outbox) == [(event.tx_id, 0)]

    delivered = await applier.redeliver()

    assert delivered == 1
    assert store.outbox == {}
    last = bus.publish_message.await_args_list[-1]
    assert last.args == ("TIP_CONFIRMED", event.to_payload())


@pytest.mark.asyncio
async def test_redeliver_stops_at_first_failure(store, decoder):
    failing_bus = InMemoryNotificationBus(CHAIN_ID)
    failing_bus.publish_message = AsyncMock(
        side_effect=TransientNetworkError("redis down")
    )
    applier = EventApplier(store, failing_bus, CHAIN_ID)
    await applier.apply(decoder.decode(tip_log(1, 0)))
    await applier.apply(decoder.decode(tip_log(2, 0)))
    failing_bus.publish_message.reset_mock()

    delivered = await applier.redeliver()

    assert delivered == 0
    failing_bus.publish_message.assert_awaited_once()
    assert [row["attempts"] for row in store.outbox.values()] == [1, 0]


@pytest.mark.asyncio
async def test_redeliver_keeps_chain_order(store, decoder, bus):
    down = AsyncMock(side_effect=TransientNetworkError("redis down"))
    publish_message = bus.publish_message
    bus.publish_message = down
    applier = EventApplier(store, bus, CHAIN_ID)
    await applier.apply(decoder.decode(bounty_created_log(1, 0, bounty_id=9)))
    await applier.apply(decoder.decode(bounty_claimed_log(2, 0, bounty_id=9)))
    bus.publish_message = publish_message

    assert await applier.redeliver() == 2
    assert [p["type"] for p in bus.published] == ["BOUNTY_CREATED", "BOUNTY_CLAIMED"]
    assert store.outbox == {}


@pytest.mark.asyncio
async def test_resolve_pending_counts_attempts(applier, decoder, store):
    claim = decoder.decode(bounty_claimed_log(5, 0, bounty_id=3))
    await applier.defer_claim(claim)

    resolved, still_pending = await applier.resolve_pending()

    assert (resolved, still_pending) == (0, 1)
    assert store.pending[1]["attempts"] == 2


@pytest.mark.asyncio
async def test_open_resolves_only_its_claims(applier, decoder, store):
    await applier.defer_claim(decoder.decode(bounty_claimed_log(5, 0, bounty_id=3)))
    await applier.defer_claim(decoder.decode(bounty_claimed_log(6, 0, bounty_id=4)))

    await applier.apply(decoder.decode(bounty_created_log(7, 0, bounty_id=3)))

    assert store.bounties["3"]["status"] == "claimed"
    assert [claim.bounty_id for claim in store.unresolved()] == ["4"]


@pytest.mark.asyncio
async def test_deferring_same_claim_twice_counts_attempt(applier, decoder, store):
    claim = decoder.decode(bounty_claimed_log(5, 0, bounty_id=3))

    await applier.defer_claim(claim)
    await applier.defer_claim(claim)

    assert len(store.pending) == 1
    assert store.pending[1]["attempts"] == 2
