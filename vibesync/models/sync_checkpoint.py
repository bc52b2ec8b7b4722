"""
Sync Checkpoint model.

Tracks how far the backfill has durably applied each chain.
"""

from datetime import UTC, datetime

from sqlalchemy import BigInteger, DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from vibesync.models.base import Base


class SyncCheckpoint(Base):
    """
    Tracks blockchain synchronization progress.

    Used to:
    - Resume backfill after restart
    - Report lag behind the chain head
    - Record the last backfill error

    last_applied_block only moves forward.
    """

    __tablename__ = "sync_checkpoints"

    # Primary key
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    chain_id: Mapped[int] = mapped_column(
        Integer, nullable=False, unique=True, index=True
    )

    # Sync range
    first_block: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )
    last_applied_block: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )

    # Statistics
    events_applied: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )

    # Error tracking
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )
