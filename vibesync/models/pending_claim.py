"""
Pending bounty claim model.

Holds BountyClaimed logs whose bounty was not yet known when they were
applied, so the claim is retried on later runs instead of being lost.
"""

from datetime import UTC, datetime

from sqlalchemy import BigInteger, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from vibesync.models.base import Base
from vibesync.models.types import AddressType, TxHashType


class PendingBountyClaim(Base):
    """Claim waiting for its BountyCreated to be applied."""

    __tablename__ = "pending_bounty_claims"
    __table_args__ = (
        UniqueConstraint("tx_hash", "log_index", name="uq_pending_claims_tx_log"),
    )

    # Primary key
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    chain_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    bounty_id: Mapped[str] = mapped_column(String(80), nullable=False, index=True)

    # Claim log
    claimer: Mapped[str] = mapped_column(AddressType, nullable=False)
    content_ref: Mapped[str] = mapped_column(Text, nullable=False)
    tx_hash: Mapped[str] = mapped_column(TxHashType, nullable=False)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Retry tracking
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    last_attempt_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    @property
    def is_resolved(self) -> bool:
        """Check if the claim has been applied."""
        return self.resolved_at is not None
