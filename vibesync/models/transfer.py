"""
Transfer record model.

Append-only projection of TipSent events, one row per log entry.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import BigInteger, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from vibesync.models.base import Base
from vibesync.models.types import AddressType, ChainAmountType, TxHashType


class TransferRecord(Base):
    """
    Persisted tip transfer.

    Rows are never updated. (tx_hash, log_index) identifies the log entry
    the row was projected from.
    """

    __tablename__ = "transfers"
    __table_args__ = (
        UniqueConstraint("tx_hash", "log_index", name="uq_transfers_tx_log"),
    )

    # Primary key
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # Log identification
    chain_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    tx_hash: Mapped[str] = mapped_column(TxHashType, nullable=False, index=True)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)
    block_number: Mapped[int] = mapped_column(
        BigInteger, nullable=False, index=True
    )

    # Addresses (normalized to lowercase)
    sender: Mapped[str] = mapped_column(AddressType, nullable=False, index=True)
    recipient: Mapped[str] = mapped_column(
        AddressType, nullable=False, index=True
    )

    # Amount
    amount: Mapped[Decimal] = mapped_column(ChainAmountType, nullable=False)
    amount_raw: Mapped[str] = mapped_column(
        String(80), nullable=False
    )  # raw wei value for precision

    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<TransferRecord(tx_hash={self.tx_hash[:16]}..., "
            f"log_index={self.log_index}, amount={self.amount})>"
        )
