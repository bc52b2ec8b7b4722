"""Tests for the SQLAlchemy event store with mocked sessions."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from conftest import CHAIN_ID, bounty_claimed_log, bounty_created_log, tip_log
from sqlalchemy.exc import IntegrityError

from vibesync.models import (
    BountyRecord,
    BountyStatus,
    NotificationOutbox,
    PendingBountyClaim,
)
from vibesync.services.event_store import ApplyResult, OutboxEntry, SqlEventStore
from vibesync.utils.exceptions import StoreConsistencyError

STORE_MODULE = "vibesync.services.event_store.sql_store"


def _session_maker(session):
    """async_sessionmaker stand-in yielding the mocked session."""
    begin_cm = MagicMock()
    begin_cm.__aenter__ = AsyncMock(return_value=None)
    begin_cm.__aexit__ = AsyncMock(return_value=False)
    session.begin = MagicMock(return_value=begin_cm)

    session_cm = MagicMock()
    session_cm.__aenter__ = AsyncMock(return_value=session)
    session_cm.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=session_cm)


@pytest.fixture
def sql_store(mock_session):
    return SqlEventStore(_session_maker(mock_session), CHAIN_ID)


def _integrity_error() -> IntegrityError:
    return IntegrityError("INSERT", {}, Exception("duplicate key value"))


class TestUpsertTransfer:
    """Insert-if-absent keyed by (tx_hash, log_index)."""

    @pytest.mark.asyncio
    async def test_new_transfer_is_inserted(self, sql_store, decoder):
        event = decoder.decode(tip_log(1, 0))
        with patch(f"{STORE_MODULE}.TransferRepository") as repo_cls:
            repo = repo_cls.return_value
            repo.log_exists = AsyncMock(return_value=False)
            repo.create = AsyncMock()

            result = await sql_store.upsert_transfer(event)

        assert result is ApplyResult.APPLIED
        kwargs = repo.create.await_args.kwargs
        assert kwargs["chain_id"] == CHAIN_ID
        assert kwargs["tx_hash"] == event.tx_id
        assert kwargs["amount"] == event.amount
        assert kwargs["amount_raw"] == str(event.amount_raw)

    @pytest.mark.asyncio
    async def test_existing_transfer_is_untouched(self, sql_store, decoder):
        with patch(f"{STORE_MODULE}.TransferRepository") as repo_cls:
            repo = repo_cls.return_value
            repo.log_exists = AsyncMock(return_value=True)
            repo.create = AsyncMock()

            result = await sql_store.upsert_transfer(decoder.decode(tip_log(1, 0)))

        assert result is ApplyResult.ALREADY_APPLIED
        repo.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_concurrent_insert_is_already_applied(self, sql_store, decoder):
        with patch(f"{STORE_MODULE}.TransferRepository") as repo_cls:
            repo = repo_cls.return_value
            repo.log_exists = AsyncMock(return_value=False)
            repo.create = AsyncMock(side_effect=_integrity_error())

            result = await sql_store.upsert_transfer(decoder.decode(tip_log(1, 0)))

        assert result is ApplyResult.ALREADY_APPLIED


class TestBounties:
    """Bounty creation and the open -> claimed transition."""

    @pytest.mark.asyncio
    async def test_open_inserts_with_open_status(self, sql_store, decoder):
        with patch(f"{STORE_MODULE}.BountyRepository") as repo_cls:
            repo = repo_cls.return_value
            repo.get_by_bounty_id = AsyncMock(return_value=None)
            repo.create = AsyncMock()

            result = await sql_store.upsert_bounty_opened(
                decoder.decode(bounty_created_log(1, 0, bounty_id=5))
            )

        assert result is ApplyResult.APPLIED
        assert repo.create.await_args.kwargs["status"] == BountyStatus.OPEN.value
        assert repo.create.await_args.kwargs["bounty_id"] == "5"

    @pytest.mark.asyncio
    async def test_second_open_is_already_applied(self, sql_store, decoder):
        event = decoder.decode(bounty_created_log(1, 0, bounty_id=5))
        existing = BountyRecord(bounty_id="5", tx_hash=event.tx_id, log_index=0)
        with patch(f"{STORE_MODULE}.BountyRepository") as repo_cls:
            repo = repo_cls.return_value
            repo.get_by_bounty_id = AsyncMock(return_value=existing)
            repo.create = AsyncMock()

            result = await sql_store.upsert_bounty_opened(event)

        assert result is ApplyResult.ALREADY_APPLIED
        repo.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_claim_for_missing_bounty_is_not_found(self, sql_store, decoder):
        with patch(f"{STORE_MODULE}.BountyRepository") as repo_cls:
            repo = repo_cls.return_value
            repo.get_by_bounty_id = AsyncMock(return_value=None)
            repo.mark_claimed = AsyncMock()

            result = await sql_store.apply_bounty_claim(
                decoder.decode(bounty_claimed_log(2, 0, bounty_id=5))
            )

        assert result is ApplyResult.NOT_FOUND
        repo.mark_claimed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_claim_marks_open_bounty(self, sql_store, decoder):
        bounty = BountyRecord(bounty_id="5", status=BountyStatus.OPEN.value)
        event = decoder.decode(bounty_claimed_log(2, 0, bounty_id=5))
        with patch(f"{STORE_MODULE}.BountyRepository") as repo_cls:
            repo = repo_cls.return_value
            repo.get_by_bounty_id = AsyncMock(return_value=bounty)
            repo.mark_claimed = AsyncMock()

            result = await sql_store.apply_bounty_claim(event)

        assert result is ApplyResult.APPLIED
        repo.get_by_bounty_id.assert_awaited_once_with("5", for_update=True)
        assert repo.mark_claimed.await_args.kwargs["claimer"] == event.claimer

    @pytest.mark.asyncio
    async def test_claimed_bounty_is_never_reassigned(self, sql_store, decoder):
        bounty = BountyRecord(
            bounty_id="5",
            status=BountyStatus.CLAIMED.value,
            claim_tx_hash="0x" + "aa" * 32,
            claim_log_index=0,
        )
        with patch(f"{STORE_MODULE}.BountyRepository") as repo_cls:
            repo = repo_cls.return_value
            repo.get_by_bounty_id = AsyncMock(return_value=bounty)
            repo.mark_claimed = AsyncMock()

            result = await sql_store.apply_bounty_claim(
                decoder.decode(bounty_claimed_log(9, 0, bounty_id=5))
            )

        assert result is ApplyResult.ALREADY_APPLIED
        repo.mark_claimed.assert_not_awaited()


class TestCheckpoint:
    """Checkpoint operations delegate to the repository."""

    @pytest.mark.asyncio
    async def test_set_checkpoint_reports_ignored_value(self, sql_store):
        with patch(f"{STORE_MODULE}.SyncCheckpointRepository") as repo_cls:
            repo_cls.return_value.advance = AsyncMock(return_value=False)

            moved = await sql_store.set_checkpoint(CHAIN_ID, 10)

        assert moved is False

    @pytest.mark.asyncio
    async def test_ensure_checkpoint_returns_last_block(self, sql_store):
        with patch(f"{STORE_MODULE}.SyncCheckpointRepository") as repo_cls:
            repo_cls.return_value.get_or_create = AsyncMock(
                return_value=MagicMock(last_applied_block=99)
            )

            last_block = await sql_store.ensure_checkpoint(CHAIN_ID, 100)

        assert last_block == 99

    @pytest.mark.asyncio
    async def test_ensure_checkpoint_created_concurrently(self, sql_store):
        with patch(f"{STORE_MODULE}.SyncCheckpointRepository") as repo_cls:
            repo = repo_cls.return_value
            repo.get_or_create = AsyncMock(side_effect=_integrity_error())
            repo.get_by_chain = AsyncMock(
                return_value=MagicMock(last_applied_block=120)
            )

            last_block = await sql_store.ensure_checkpoint(CHAIN_ID, 100)

        assert last_block == 120

    @pytest.mark.asyncio
    async def test_ensure_checkpoint_unreadable_after_conflict(self, sql_store):
        with patch(f"{STORE_MODULE}.SyncCheckpointRepository") as repo_cls:
            repo = repo_cls.return_value
            repo.get_or_create = AsyncMock(side_effect=_integrity_error())
            repo.get_by_chain = AsyncMock(return_value=None)

            with pytest.raises(StoreConsistencyError):
                await sql_store.ensure_checkpoint(CHAIN_ID, 100)


class TestPendingClaims:
    """Persisted claims waiting for their bounty."""

    @pytest.mark.asyncio
    async def test_record_new_pending_claim(self, sql_store, decoder):
        event = decoder.decode(bounty_claimed_log(2, 1, bounty_id=8))
        row = PendingBountyClaim(
            id=3,
            chain_id=CHAIN_ID,
            bounty_id="8",
            claimer=event.claimer,
            content_ref=event.content_ref,
            tx_hash=event.tx_id,
            log_index=1,
            block_number=2,
            attempts=1,
        )
        with patch(f"{STORE_MODULE}.PendingClaimRepository") as repo_cls:
            repo = repo_cls.return_value
            repo.get_by_log = AsyncMock(return_value=None)
            repo.create = AsyncMock(return_value=row)

            pending = await sql_store.record_pending_claim(CHAIN_ID, event)

        assert pending.id == 3
        assert pending.attempts == 1
        assert pending.event == event

    @pytest.mark.asyncio
    async def test_concurrent_record_counts_attempt_on_winner(
        self, sql_store, decoder
    ):
        event = decoder.decode(bounty_claimed_log(2, 1, bounty_id=8))
        winner = PendingBountyClaim(
            id=5,
            chain_id=CHAIN_ID,
            bounty_id="8",
            claimer=event.claimer,
            content_ref=event.content_ref,
            tx_hash=event.tx_id,
            log_index=1,
            block_number=2,
            attempts=2,
        )
        with patch(f"{STORE_MODULE}.PendingClaimRepository") as repo_cls:
            repo = repo_cls.return_value
            # Missing on first read, present after the insert lost the race
            repo.get_by_log = AsyncMock(side_effect=[None, winner])
            repo.create = AsyncMock(side_effect=_integrity_error())
            repo.bump_attempts = AsyncMock(return_value=2)

            pending = await sql_store.record_pending_claim(CHAIN_ID, event)

        repo.bump_attempts.assert_awaited_once_with(5)
        assert pending.id == 5
        assert pending.event == event

    @pytest.mark.asyncio
    async def test_existing_pending_claim_counts_attempt(self, sql_store, decoder):
        event = decoder.decode(bounty_claimed_log(2, 1, bounty_id=8))
        row = MagicMock(
            id=4, bounty_id="8", claimer=event.claimer, content_ref=event.content_ref,
            tx_hash=event.tx_id, log_index=1, block_number=2, attempts=3,
        )
        with patch(f"{STORE_MODULE}.PendingClaimRepository") as repo_cls:
            repo = repo_cls.return_value
            repo.get_by_log = AsyncMock(return_value=row)
            repo.create = AsyncMock()
            repo.bump_attempts = AsyncMock(return_value=3)

            pending = await sql_store.record_pending_claim(CHAIN_ID, event)

        repo.create.assert_not_awaited()
        repo.bump_attempts.assert_awaited_once_with(4)
        assert pending.id == 4


class TestCheckpointRepository:
    """Checkpoint never moves backwards."""

    @pytest.mark.asyncio
    async def test_advance_forward(self, mock_session):
        from vibesync.models import SyncCheckpoint
        from vibesync.repositories import SyncCheckpointRepository

        checkpoint = SyncCheckpoint(
            chain_id=CHAIN_ID, last_applied_block=10, events_applied=4,
            last_error="boom",
        )
        repo = SyncCheckpointRepository(mock_session)
        repo.get_by_chain = AsyncMock(return_value=checkpoint)

        assert await repo.advance(CHAIN_ID, 20, events_applied=3) is True
        assert checkpoint.last_applied_block == 20
        assert checkpoint.events_applied == 7
        assert checkpoint.last_error is None
        mock_session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("block", [5, 10])
    async def test_advance_backwards_is_ignored(self, mock_session, block):
        from vibesync.models import SyncCheckpoint
        from vibesync.repositories import SyncCheckpointRepository

        checkpoint = SyncCheckpoint(
            chain_id=CHAIN_ID, last_applied_block=10, events_applied=0
        )
        repo = SyncCheckpointRepository(mock_session)
        repo.get_by_chain = AsyncMock(return_value=checkpoint)

        assert await repo.advance(CHAIN_ID, block) is False
        assert checkpoint.last_applied_block == 10
        mock_session.flush.assert_not_awaited()


class TestOutbox:
    """Notifications are queued in the applying transaction."""

    @pytest.mark.asyncio
    async def test_applied_transfer_queues_notification(
        self, sql_store, mock_session, decoder
    ):
        event = decoder.decode(tip_log(1, 0))
        with patch(f"{STORE_MODULE}.TransferRepository") as repo_cls:
            repo_cls.return_value.log_exists = AsyncMock(return_value=False)
            repo_cls.return_value.create = AsyncMock()

            await sql_store.upsert_transfer(event)

        queued = mock_session.add.call_args.args[0]
        assert isinstance(queued, NotificationOutbox)
        assert queued.chain_id == CHAIN_ID
        assert (queued.tx_hash, queued.log_index) == (event.tx_id, 0)
        assert queued.message_type == "TIP_CONFIRMED"
        assert queued.data == event.to_payload()
        # Queued by the same session that wrote the record
        assert mock_session.begin.call_count == 1

    @pytest.mark.asyncio
    async def test_applied_claim_queues_notification(
        self, sql_store, mock_session, decoder
    ):
        bounty = BountyRecord(bounty_id="5", status=BountyStatus.OPEN.value)
        event = decoder.decode(bounty_claimed_log(2, 0, bounty_id=5))
        with patch(f"{STORE_MODULE}.BountyRepository") as repo_cls:
            repo_cls.return_value.get_by_bounty_id = AsyncMock(return_value=bounty)
            repo_cls.return_value.mark_claimed = AsyncMock()

            await sql_store.apply_bounty_claim(event)

        queued = mock_session.add.call_args.args[0]
        assert queued.message_type == "BOUNTY_CLAIMED"
        assert queued.data["bounty_id"] == "5"

    @pytest.mark.asyncio
    async def test_duplicate_queues_nothing(self, sql_store, mock_session, decoder):
        with patch(f"{STORE_MODULE}.TransferRepository") as repo_cls:
            repo_cls.return_value.log_exists = AsyncMock(return_value=True)

            await sql_store.upsert_transfer(decoder.decode(tip_log(1, 0)))

        mock_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_list_undelivered(self, sql_store):
        row = NotificationOutbox(
            id=4, chain_id=CHAIN_ID, tx_hash="0x" + "ab" * 32, log_index=2,
            message_type="TIP_CONFIRMED", data={"tx_id": "0x" + "ab" * 32},
            attempts=1,
        )
        with patch(f"{STORE_MODULE}.OutboxRepository") as repo_cls:
            repo_cls.return_value.list_undelivered = AsyncMock(return_value=[row])

            entries = await sql_store.list_undelivered(CHAIN_ID, limit=10)

        repo_cls.return_value.list_undelivered.assert_awaited_once_with(CHAIN_ID, 10)
        assert entries == [
            OutboxEntry(4, row.tx_hash, 2, "TIP_CONFIRMED", row.data, 1)
        ]

    @pytest.mark.asyncio
    async def test_mark_delivered_deletes_row(self, sql_store):
        with patch(f"{STORE_MODULE}.OutboxRepository") as repo_cls:
            repo_cls.return_value.delete_by_log = AsyncMock(return_value=1)

            await sql_store.mark_delivered("0xAB", 3)

        repo_cls.return_value.delete_by_log.assert_awaited_once_with("0xAB", 3)

    @pytest.mark.asyncio
    async def test_delivery_failure_is_counted(self, mock_session):
        from vibesync.repositories import OutboxRepository

        row = NotificationOutbox(id=1, attempts=2)
        mock_session.get = AsyncMock(return_value=row)

        attempts = await OutboxRepository(mock_session).record_failure(1, "redis down")

        assert attempts == 3
        assert row.last_error == "redis down"
        assert row.last_attempt_at is not None


class TestReads:
    """Read helpers used by operators and scenario checks."""

    @pytest.mark.asyncio
    async def test_get_bounty(self, sql_store):
        bounty = BountyRecord(bounty_id="5", status=BountyStatus.OPEN.value)
        with patch(f"{STORE_MODULE}.BountyRepository") as repo_cls:
            repo_cls.return_value.get_by_bounty_id = AsyncMock(return_value=bounty)

            assert await sql_store.get_bounty("5") is bounty

    @pytest.mark.asyncio
    async def test_count_transfers_is_scoped_to_chain(self, sql_store):
        with patch(f"{STORE_MODULE}.TransferRepository") as repo_cls:
            repo_cls.return_value.count = AsyncMock(return_value=7)

            assert await sql_store.count_transfers() == 7

        repo_cls.return_value.count.assert_awaited_once_with(chain_id=CHAIN_ID)

    @pytest.mark.asyncio
    async def test_missing_checkpoint(self, sql_store):
        with patch(f"{STORE_MODULE}.SyncCheckpointRepository") as repo_cls:
            repo_cls.return_value.get_by_chain = AsyncMock(return_value=None)

            assert await sql_store.get_checkpoint(CHAIN_ID) is None
