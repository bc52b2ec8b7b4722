"""
Bounty repository.

Data access layer for projected bounties.
"""

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from vibesync.models.bounty import BountyRecord
from vibesync.models.enums import BountyStatus
from vibesync.repositories.base import BaseRepository


class BountyRepository(BaseRepository[BountyRecord]):
    """Repository for bounty records."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(BountyRecord, session)

    async def get_by_bounty_id(
        self, bounty_id: str, for_update: bool = False
    ) -> BountyRecord | None:
        """
        Get bounty by on-chain id.

        Args:
            bounty_id: Contract bounty id
            for_update: Lock the row for a status transition

        Returns:
            Bounty or None
        """
        return await self.get_by(for_update=for_update, bounty_id=bounty_id)

    async def mark_claimed(
        self,
        bounty: BountyRecord,
        claimer: str,
        content_ref: str,
        tx_hash: str,
        log_index: int,
        block_number: int,
        claimed_at: datetime,
    ) -> BountyRecord:
        """
        Move bounty from open to claimed.

        Args:
            bounty: Locked open bounty
            claimer: Claimer address
            content_ref: Submitted content reference
            tx_hash: Claim transaction hash
            log_index: Claim log index
            block_number: Claim block
            claimed_at: When the claim was applied

        Returns:
            Updated bounty
        """
        bounty.status = BountyStatus.CLAIMED.value
        bounty.claimer = claimer.lower()
        bounty.content_ref = content_ref
        bounty.claim_tx_hash = tx_hash
        bounty.claim_log_index = log_index
        bounty.claim_block_number = block_number
        bounty.claimed_at = claimed_at
        await self.session.flush()
        return bounty
