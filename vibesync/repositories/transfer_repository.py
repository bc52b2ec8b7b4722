"""
Transfer repository.

Data access layer for projected tip transfers.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from vibesync.models.transfer import TransferRecord
from vibesync.repositories.base import BaseRepository


def normalize_tx_hash(tx_hash: str) -> str:
    """Lowercase hash with 0x prefix."""
    normalized = tx_hash.lower()
    if not normalized.startswith("0x"):
        normalized = f"0x{normalized}"
    return normalized


class TransferRepository(BaseRepository[TransferRecord]):
    """Repository for transfer records."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(TransferRecord, session)

    async def get_by_log(
        self, tx_hash: str, log_index: int
    ) -> TransferRecord | None:
        """
        Get transfer by the log entry it was projected from.

        Args:
            tx_hash: Transaction hash (with or without 0x prefix)
            log_index: Log index inside the block

        Returns:
            Transfer or None
        """
        return await self.get_by(
            tx_hash=normalize_tx_hash(tx_hash), log_index=log_index
        )

    async def log_exists(self, tx_hash: str, log_index: int) -> bool:
        """Check if the log entry has already been projected."""
        return await self.get_by_log(tx_hash, log_index) is not None
