"""
Bounty record model.

Created by BountyCreated, mutated in place by BountyClaimed.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import BigInteger, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from vibesync.models.base import Base
from vibesync.models.enums import BountyStatus
from vibesync.models.types import AddressType, ChainAmountType, TxHashType


class BountyRecord(Base):
    """
    Persisted bounty.

    Lifecycle:
    - open: created from the BountyCreated log
    - claimed: claim fields filled from the first BountyClaimed log
    """

    __tablename__ = "bounties"

    # Primary key
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # On-chain identity
    bounty_id: Mapped[str] = mapped_column(
        String(80), nullable=False, unique=True, index=True
    )
    chain_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    # Opening log
    tx_hash: Mapped[str] = mapped_column(TxHashType, nullable=False)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)
    block_number: Mapped[int] = mapped_column(
        BigInteger, nullable=False, index=True
    )

    # Bounty details
    creator: Mapped[str] = mapped_column(AddressType, nullable=False, index=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    amount: Mapped[Decimal] = mapped_column(ChainAmountType, nullable=False)
    amount_raw: Mapped[str] = mapped_column(String(80), nullable=False)
    deadline: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    # Status
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BountyStatus.OPEN.value, index=True
    )

    # Claim (filled once)
    claimer: Mapped[str | None] = mapped_column(AddressType, nullable=True)
    content_ref: Mapped[str | None] = mapped_column(Text, nullable=True)
    claim_tx_hash: Mapped[str | None] = mapped_column(TxHashType, nullable=True)
    claim_log_index: Mapped[int | None] = mapped_column(Integer, nullable=True)
    claim_block_number: Mapped[int | None] = mapped_column(
        BigInteger, nullable=True
    )
    claimed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

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

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<BountyRecord(bounty_id={self.bounty_id}, "
            f"status={self.status}, amount={self.amount})>"
        )

    @property
    def is_claimed(self) -> bool:
        """Check if bounty has been claimed."""
        return self.status == BountyStatus.CLAIMED.value

    def is_same_claim(self, tx_hash: str, log_index: int) -> bool:
        """Check if the stored claim came from this log entry."""
        return (
            self.claim_tx_hash == tx_hash.lower()
            and self.claim_log_index == log_index
        )

    def is_same_opening(self, tx_hash: str, log_index: int) -> bool:
        """Check if the bounty was opened by this log entry."""
        return self.tx_hash == tx_hash.lower() and self.log_index == log_index
