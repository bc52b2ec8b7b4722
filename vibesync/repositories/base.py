"""
Base repository.

Shared lookups for the projection and sync-state tables. Repositories
flush but never commit: the event store owns one transaction per
operation and decides whether it commits.
"""

from typing import Any, Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vibesync.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Row access for one model inside a caller-owned session."""

    def __init__(self, model: type[ModelType], session: AsyncSession) -> None:
        self.model = model
        self.session = session

    async def get_by_id(self, id: int) -> ModelType | None:
        """Row by surrogate primary key."""
        return await self.session.get(self.model, id)

    async def get_by(self, for_update: bool = False, **filters: Any) -> ModelType | None:
        """
        Single row matching column filters.

        Args:
            for_update: Lock the row until the transaction ends, so
                concurrent appliers serialize on it
            **filters: Column equality filters (must identify one row)

        Returns:
            Row or None
        """
        stmt = select(self.model).filter_by(**filters)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, **values: Any) -> ModelType:
        """
        Insert a row and flush.

        A unique constraint violation surfaces here as IntegrityError,
        which the store reports as ALREADY_APPLIED.
        """
        row = self.model(**values)
        self.session.add(row)
        await self.session.flush()
        return row

    async def count(self, **filters: Any) -> int:
        """Number of rows matching column filters."""
        stmt = select(func.count()).select_from(self.model).filter_by(**filters)
        result = await self.session.execute(stmt)
        return result.scalar() or 0
