"""
Sync checkpoint repository.

Data access layer for per-chain backfill progress.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from vibesync.models.sync_checkpoint import SyncCheckpoint
from vibesync.repositories.base import BaseRepository


class SyncCheckpointRepository(BaseRepository[SyncCheckpoint]):
    """Repository for sync checkpoints."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(SyncCheckpoint, session)

    async def get_by_chain(
        self, chain_id: int, for_update: bool = False
    ) -> SyncCheckpoint | None:
        """Get checkpoint row for a chain."""
        return await self.get_by(for_update=for_update, chain_id=chain_id)

    async def get_or_create(
        self, chain_id: int, start_block: int
    ) -> SyncCheckpoint:
        """
        Get checkpoint, creating it just before start_block on first run.

        Args:
            chain_id: Chain id
            start_block: First block that must be indexed

        Returns:
            Checkpoint row
        """
        checkpoint = await self.get_by_chain(chain_id)
        if checkpoint:
            return checkpoint

        return await self.create(
            chain_id=chain_id,
            first_block=start_block,
            last_applied_block=start_block - 1,
        )

    async def advance(
        self, chain_id: int, block: int, events_applied: int = 0
    ) -> bool:
        """
        Move last_applied_block forward.

        Args:
            chain_id: Chain id
            block: New last applied block
            events_applied: Events applied since the previous advance

        Returns:
            True if checkpoint moved, False if block was not ahead
        """
        checkpoint = await self.get_by_chain(chain_id, for_update=True)
        if checkpoint is None or block <= checkpoint.last_applied_block:
            return False

        checkpoint.last_applied_block = block
        checkpoint.events_applied += events_applied
        checkpoint.last_error = None
        await self.session.flush()
        return True

    async def record_error(self, chain_id: int, error: str) -> None:
        """Store last backfill error for operators."""
        checkpoint = await self.get_by_chain(chain_id, for_update=True)
        if checkpoint is None:
            return
        checkpoint.last_error = error[:2000]
        checkpoint.error_count += 1
        await self.session.flush()
