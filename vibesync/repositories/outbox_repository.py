"""
Notification outbox repository.

Data access layer for notifications awaiting delivery.
"""

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from vibesync.models.notification_outbox import NotificationOutbox
from vibesync.repositories.base import BaseRepository
from vibesync.utils.datetime_utils import utc_now


class OutboxRepository(BaseRepository[NotificationOutbox]):
    """Repository for undelivered notifications."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(NotificationOutbox, session)

    async def list_undelivered(
        self, chain_id: int, limit: int = 500
    ) -> list[NotificationOutbox]:
        """
        List undelivered notifications, oldest first.

        Args:
            chain_id: Chain id
            limit: Max results

        Returns:
            Outbox rows
        """
        query = (
            select(NotificationOutbox)
            .where(NotificationOutbox.chain_id == chain_id)
            .order_by(NotificationOutbox.created_at.asc(), NotificationOutbox.id.asc())
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def delete_by_log(self, tx_hash: str, log_index: int) -> int:
        """
        Drop a delivered notification.

        Returns:
            Rows deleted (0 if already gone)
        """
        result = await self.session.execute(
            delete(NotificationOutbox).where(
                NotificationOutbox.tx_hash == tx_hash.lower(),
                NotificationOutbox.log_index == log_index,
            )
        )
        return result.rowcount or 0

    async def record_failure(self, outbox_id: int, error: str) -> int:
        """
        Count a failed delivery.

        Returns:
            Attempts so far (0 if row is gone)
        """
        entry = await self.get_by_id(outbox_id)
        if entry is None:
            return 0
        entry.attempts += 1
        entry.last_attempt_at = utc_now()
        entry.last_error = error[:1000]
        await self.session.flush()
        return entry.attempts
