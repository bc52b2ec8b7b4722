"""
Notification outbox model.

A row is written in the same transaction as the record it announces and
deleted once the notification bus accepted the message. Rows left behind
by a failed publish are redelivered on later runs.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from vibesync.models.base import Base
from vibesync.models.types import TxHashType


class NotificationOutbox(Base):
    """Notification not yet accepted by the bus."""

    __tablename__ = "notification_outbox"
    __table_args__ = (
        UniqueConstraint("tx_hash", "log_index", name="uq_notification_outbox_tx_log"),
    )

    # Primary key
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    chain_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    # Log the message announces
    tx_hash: Mapped[str] = mapped_column(TxHashType, nullable=False)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)

    # Message body, without the delivery timestamp
    message_type: Mapped[str] = mapped_column(String(32), nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    # Delivery tracking
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_attempt_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )
