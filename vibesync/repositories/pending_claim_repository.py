"""
Pending claim repository.

Data access layer for claims waiting on their bounty.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vibesync.models.pending_claim import PendingBountyClaim
from vibesync.repositories.base import BaseRepository
from vibesync.utils.datetime_utils import utc_now


class PendingClaimRepository(BaseRepository[PendingBountyClaim]):
    """Repository for pending bounty claims."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(PendingBountyClaim, session)

    async def get_by_log(
        self, tx_hash: str, log_index: int
    ) -> PendingBountyClaim | None:
        """Get pending claim by its log entry."""
        return await self.get_by(tx_hash=tx_hash, log_index=log_index)

    async def list_unresolved(
        self,
        chain_id: int,
        bounty_id: str | None = None,
        limit: int = 500,
    ) -> list[PendingBountyClaim]:
        """
        List claims still waiting, oldest log first.

        Args:
            chain_id: Chain id
            bounty_id: Restrict to a single bounty
            limit: Max results

        Returns:
            Unresolved pending claims
        """
        conditions = [
            PendingBountyClaim.chain_id == chain_id,
            PendingBountyClaim.resolved_at.is_(None),
        ]
        if bounty_id is not None:
            conditions.append(PendingBountyClaim.bounty_id == bounty_id)

        query = (
            select(PendingBountyClaim)
            .where(*conditions)
            .order_by(
                PendingBountyClaim.block_number.asc(),
                PendingBountyClaim.log_index.asc(),
            )
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def mark_resolved(self, pending_id: int) -> None:
        """Flag pending claim as applied."""
        pending = await self.get_by_id(pending_id)
        if pending and pending.resolved_at is None:
            pending.resolved_at = utc_now()
            await self.session.flush()

    async def bump_attempts(self, pending_id: int) -> int:
        """
        Count one more failed attempt.

        Returns:
            Attempts so far (0 if row is gone)
        """
        pending = await self.get_by_id(pending_id)
        if pending is None:
            return 0
        pending.attempts += 1
        pending.last_attempt_at = utc_now()
        await self.session.flush()
        return pending.attempts
