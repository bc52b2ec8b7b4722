"""
SQLAlchemy Idempotency Store.

One transaction per operation. Check-then-insert inside the
transaction; a concurrent insert that wins the race surfaces as
IntegrityError and is reported as ALREADY_APPLIED. Applying writes
queue the event's notification in the same transaction.
"""

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vibesync.models.bounty import BountyRecord
from vibesync.models.enums import BountyStatus
from vibesync.models.notification_outbox import NotificationOutbox
from vibesync.models.pending_claim import PendingBountyClaim
from vibesync.models.transfer import TransferRecord
from vibesync.repositories import (
    BountyRepository,
    OutboxRepository,
    PendingClaimRepository,
    SyncCheckpointRepository,
    TransferRepository,
)
from vibesync.services.event_decoder.events import (
    BountyClaimed,
    BountyOpened,
    DomainEvent,
    TransferSent,
)
from vibesync.utils.datetime_utils import utc_now
from vibesync.utils.exceptions import StoreConsistencyError
from vibesync.utils.security import mask_tx_hash

from .base import ApplyResult, EventStore, OutboxEntry, PendingClaim


async def _queue_notification(
    session: AsyncSession, chain_id: int, event: DomainEvent
) -> None:
    # Same transaction as the record, so an applied event always has a message
    await OutboxRepository(session).create(
        chain_id=chain_id,
        tx_hash=event.tx_id.lower(),
        log_index=event.log_index,
        message_type=event.event_type,
        data=event.to_payload(),
        attempts=0,
    )


def _to_outbox(row: NotificationOutbox) -> OutboxEntry:
    return OutboxEntry(
        id=row.id,
        tx_hash=row.tx_hash,
        log_index=row.log_index,
        message_type=row.message_type,
        data=row.data,
        attempts=row.attempts,
    )


def _to_pending(row: PendingBountyClaim) -> PendingClaim:
    return PendingClaim(
        id=row.id,
        event=BountyClaimed(
            bounty_id=row.bounty_id,
            claimer=row.claimer,
            content_ref=row.content_ref,
            tx_id=row.tx_hash,
            log_index=row.log_index,
            block_number=row.block_number,
        ),
        attempts=row.attempts,
    )


class SqlEventStore(EventStore):
    """
    Event store on PostgreSQL.

    Records are scoped to the chain this process indexes.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        chain_id: int,
    ):
        """
        Initialize store.

        Args:
            session_maker: Async session factory
            chain_id: Chain written into every record
        """
        self.session_maker = session_maker
        self.chain_id = chain_id

    async def upsert_transfer(self, event: TransferSent) -> ApplyResult:
        """
        Insert transfer keyed by (tx_hash, log_index).

        Args:
            event: Decoded transfer

        Returns:
            APPLIED or ALREADY_APPLIED
        """
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    repo = TransferRepository(session)
                    if await repo.log_exists(event.tx_id, event.log_index):
                        return ApplyResult.ALREADY_APPLIED

                    await repo.create(
                        chain_id=self.chain_id,
                        tx_hash=event.tx_id.lower(),
                        log_index=event.log_index,
                        block_number=event.block_number,
                        sender=event.sender.lower(),
                        recipient=event.recipient.lower(),
                        amount=event.amount,
                        amount_raw=str(event.amount_raw),
                        message=event.message,
                        occurred_at=event.occurred_at,
                    )
                    await _queue_notification(session, self.chain_id, event)
        except IntegrityError:
            logger.debug(
                f"[Store] Transfer {mask_tx_hash(event.tx_id)}:{event.log_index} "
                f"inserted concurrently"
            )
            return ApplyResult.ALREADY_APPLIED

        return ApplyResult.APPLIED

    async def upsert_bounty_opened(self, event: BountyOpened) -> ApplyResult:
        """
        Insert bounty keyed by bounty_id.

        Args:
            event: Decoded bounty creation

        Returns:
            APPLIED or ALREADY_APPLIED
        """
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    repo = BountyRepository(session)
                    existing = await repo.get_by_bounty_id(event.bounty_id)
                    if existing is not None:
                        if not existing.is_same_opening(event.tx_id, event.log_index):
                            logger.warning(
                                f"[Store] Bounty {event.bounty_id} already opened by "
                                f"{mask_tx_hash(existing.tx_hash)}, ignoring "
                                f"{mask_tx_hash(event.tx_id)}:{event.log_index}"
                            )
                        return ApplyResult.ALREADY_APPLIED

                    await repo.create(
                        bounty_id=event.bounty_id,
                        chain_id=self.chain_id,
                        tx_hash=event.tx_id.lower(),
                        log_index=event.log_index,
                        block_number=event.block_number,
                        creator=event.creator.lower(),
                        title=event.title,
                        description=event.description,
                        amount=event.amount,
                        amount_raw=str(event.amount_raw),
                        deadline=event.deadline,
                        status=BountyStatus.OPEN.value,
                    )
                    await _queue_notification(session, self.chain_id, event)
        except IntegrityError:
            logger.debug(f"[Store] Bounty {event.bounty_id} inserted concurrently")
            return ApplyResult.ALREADY_APPLIED

        return ApplyResult.APPLIED

    async def apply_bounty_claim(self, event: BountyClaimed) -> ApplyResult:
        """
        Transition bounty open -> claimed.

        A claimed bounty is never reassigned: a different claim for it
        is logged and reported as ALREADY_APPLIED.

        Args:
            event: Decoded claim

        Returns:
            APPLIED, ALREADY_APPLIED or NOT_FOUND
        """
        async with self.session_maker() as session:
            async with session.begin():
                repo = BountyRepository(session)
                bounty = await repo.get_by_bounty_id(event.bounty_id, for_update=True)
                if bounty is None:
                    return ApplyResult.NOT_FOUND

                if bounty.is_claimed:
                    if not bounty.is_same_claim(event.tx_id, event.log_index):
                        logger.warning(
                            f"[Store] Bounty {event.bounty_id} already claimed by "
                            f"{mask_tx_hash(bounty.claim_tx_hash)}, ignoring "
                            f"{mask_tx_hash(event.tx_id)}:{event.log_index}"
                        )
                    return ApplyResult.ALREADY_APPLIED

                await repo.mark_claimed(
                    bounty,
                    claimer=event.claimer,
                    content_ref=event.content_ref,
                    tx_hash=event.tx_id.lower(),
                    log_index=event.log_index,
                    block_number=event.block_number,
                    claimed_at=utc_now(),
                )
                await _queue_notification(session, self.chain_id, event)

        return ApplyResult.APPLIED

    async def get_checkpoint(self, chain_id: int) -> int | None:
        """Last applied block, or None if no checkpoint exists."""
        async with self.session_maker() as session:
            checkpoint = await SyncCheckpointRepository(session).get_by_chain(chain_id)
            return checkpoint.last_applied_block if checkpoint else None

    async def ensure_checkpoint(self, chain_id: int, start_block: int) -> int:
        """
        Create checkpoint on first run.

        Args:
            chain_id: Chain id
            start_block: First block to index

        Returns:
            Current last applied block
        """
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    checkpoint = await SyncCheckpointRepository(session).get_or_create(
                        chain_id, start_block
                    )
                    return checkpoint.last_applied_block
        except IntegrityError as e:
            # Another process created it first
            last_block = await self.get_checkpoint(chain_id)
            if last_block is None:
                raise StoreConsistencyError(
                    f"Checkpoint for chain {chain_id} rejected on insert "
                    f"but not readable"
                ) from e
            return last_block

    async def set_checkpoint(
        self, chain_id: int, block: int, events_applied: int = 0
    ) -> bool:
        """
        Advance checkpoint monotonically.

        Args:
            chain_id: Chain id
            block: New last applied block
            events_applied: Events applied since the last advance

        Returns:
            True if moved, False if ignored
        """
        async with self.session_maker() as session:
            async with session.begin():
                moved = await SyncCheckpointRepository(session).advance(
                    chain_id, block, events_applied
                )

        if not moved:
            logger.warning(
                f"[Store] Checkpoint for chain {chain_id} not advanced to {block}: "
                f"not ahead of stored value"
            )
        return moved

    async def record_checkpoint_error(self, chain_id: int, error: str) -> None:
        """Store last sync error for operators."""
        async with self.session_maker() as session:
            async with session.begin():
                await SyncCheckpointRepository(session).record_error(chain_id, error)

    async def record_pending_claim(
        self, chain_id: int, event: BountyClaimed
    ) -> PendingClaim:
        """
        Persist an unresolved claim keyed by its log entry.

        Recording the same claim again counts another attempt.

        Args:
            chain_id: Chain id
            event: Claim that returned NOT_FOUND

        Returns:
            Pending claim
        """
        tx_hash = event.tx_id.lower()
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    repo = PendingClaimRepository(session)
                    row = await repo.get_by_log(tx_hash, event.log_index)
                    if row is not None:
                        await repo.bump_attempts(row.id)
                    else:
                        row = await repo.create(
                            chain_id=chain_id,
                            bounty_id=event.bounty_id,
                            claimer=event.claimer.lower(),
                            content_ref=event.content_ref,
                            tx_hash=tx_hash,
                            log_index=event.log_index,
                            block_number=event.block_number,
                        )
                    return _to_pending(row)
        except IntegrityError as e:
            logger.debug(
                f"[Store] Pending claim {mask_tx_hash(tx_hash)}:{event.log_index} "
                f"recorded concurrently"
            )
            # The other writer's row is committed; count this attempt on it
            async with self.session_maker() as session:
                async with session.begin():
                    repo = PendingClaimRepository(session)
                    row = await repo.get_by_log(tx_hash, event.log_index)
                    if row is None:
                        raise StoreConsistencyError(
                            f"Pending claim {tx_hash}:{event.log_index} rejected "
                            f"on insert but not readable"
                        ) from e
                    await repo.bump_attempts(row.id)
                    return _to_pending(row)

    async def list_pending_claims(
        self, chain_id: int, bounty_id: str | None = None
    ) -> list[PendingClaim]:
        """Unresolved claims ordered by chain position."""
        async with self.session_maker() as session:
            rows = await PendingClaimRepository(session).list_unresolved(
                chain_id, bounty_id=bounty_id
            )
            return [_to_pending(row) for row in rows]

    async def resolve_pending_claim(self, pending_id: int) -> None:
        """Mark buffered claim as applied."""
        async with self.session_maker() as session:
            async with session.begin():
                await PendingClaimRepository(session).mark_resolved(pending_id)

    async def touch_pending_claim(self, pending_id: int) -> int:
        """Count a failed retry of a buffered claim."""
        async with self.session_maker() as session:
            async with session.begin():
                return await PendingClaimRepository(session).bump_attempts(pending_id)

    async def list_undelivered(
        self, chain_id: int, limit: int = 500
    ) -> list[OutboxEntry]:
        """Queued notifications, oldest first."""
        async with self.session_maker() as session:
            rows = await OutboxRepository(session).list_undelivered(chain_id, limit)
            return [_to_outbox(row) for row in rows]

    async def mark_delivered(self, tx_hash: str, log_index: int) -> None:
        """Drop the queued notification once the bus accepted it."""
        async with self.session_maker() as session:
            async with session.begin():
                await OutboxRepository(session).delete_by_log(tx_hash, log_index)

    async def record_delivery_failure(self, outbox_id: int, error: str) -> int:
        """Count a failed delivery attempt."""
        async with self.session_maker() as session:
            async with session.begin():
                return await OutboxRepository(session).record_failure(outbox_id, error)

    async def get_transfer(
        self, tx_hash: str, log_index: int
    ) -> TransferRecord | None:
        """Read a projected transfer."""
        async with self.session_maker() as session:
            return await TransferRepository(session).get_by_log(tx_hash, log_index)

    async def get_bounty(self, bounty_id: str) -> BountyRecord | None:
        """Read a projected bounty."""
        async with self.session_maker() as session:
            return await BountyRepository(session).get_by_bounty_id(bounty_id)

    async def count_transfers(self) -> int:
        """Number of transfers projected for this chain."""
        async with self.session_maker() as session:
            return await TransferRepository(session).count(chain_id=self.chain_id)
