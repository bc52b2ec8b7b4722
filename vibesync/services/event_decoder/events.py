"""
Domain events.

Immutable, closed set of events projected into the store. Every variant
carries its chain position so ordering by (block_number, log_index)
can be enforced.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from vibesync.config.constants import (
    MESSAGE_TYPE_BOUNTY_CLAIMED,
    MESSAGE_TYPE_BOUNTY_CREATED,
    MESSAGE_TYPE_TIP_CONFIRMED,
)


def format_amount(amount: Decimal) -> str:
    """
    Plain decimal text for clients, as ethers formatEther renders it:
    no exponent, trailing zeros dropped, at least one fractional digit.

    Examples:
        >>> format_amount(Decimal("1.500000000000000000"))
        '1.5'
        >>> format_amount(Decimal("2E+1"))
        '20.0'
    """
    whole, _, fraction = format(amount, "f").partition(".")
    return f"{whole}.{fraction.rstrip('0') or '0'}"


@dataclass(frozen=True)
class TransferSent:
    """A value transfer (tip) between two accounts."""

    sender: str
    recipient: str
    amount: Decimal
    amount_raw: int
    message: str | None
    occurred_at: datetime
    tx_id: str
    log_index: int
    block_number: int

    event_type = MESSAGE_TYPE_TIP_CONFIRMED

    @property
    def idempotency_key(self) -> tuple[str, int]:
        return (self.tx_id, self.log_index)

    @property
    def position(self) -> tuple[int, int]:
        return (self.block_number, self.log_index)

    def to_payload(self) -> dict[str, Any]:
        return {
            "tx_id": self.tx_id,
            "log_index": self.log_index,
            "block_number": self.block_number,
            "sender": self.sender,
            "recipient": self.recipient,
            "amount": format_amount(self.amount),
            "message": self.message,
            "occurred_at": self.occurred_at.isoformat(),
        }


@dataclass(frozen=True)
class BountyOpened:
    """A bounty was created and funded."""

    bounty_id: str
    creator: str
    title: str
    description: str
    amount: Decimal
    amount_raw: int
    deadline: datetime
    tx_id: str
    log_index: int
    block_number: int

    event_type = MESSAGE_TYPE_BOUNTY_CREATED

    @property
    def idempotency_key(self) -> tuple[str, int]:
        return (self.tx_id, self.log_index)

    @property
    def position(self) -> tuple[int, int]:
        return (self.block_number, self.log_index)

    def to_payload(self) -> dict[str, Any]:
        return {
            "tx_id": self.tx_id,
            "log_index": self.log_index,
            "block_number": self.block_number,
            "bounty_id": self.bounty_id,
            "creator": self.creator,
            "title": self.title,
            "description": self.description,
            "amount": format_amount(self.amount),
            "deadline": self.deadline.isoformat(),
        }


@dataclass(frozen=True)
class BountyClaimed:
    """A bounty was claimed with a content reference."""

    bounty_id: str
    claimer: str
    content_ref: str
    tx_id: str
    log_index: int
    block_number: int

    event_type = MESSAGE_TYPE_BOUNTY_CLAIMED

    @property
    def idempotency_key(self) -> tuple[str, int]:
        return (self.tx_id, self.log_index)

    @property
    def position(self) -> tuple[int, int]:
        return (self.block_number, self.log_index)

    def to_payload(self) -> dict[str, Any]:
        return {
            "tx_id": self.tx_id,
            "log_index": self.log_index,
            "block_number": self.block_number,
            "bounty_id": self.bounty_id,
            "claimer": self.claimer,
            "content_ref": self.content_ref,
        }


DomainEvent = TransferSent | BountyOpened | BountyClaimed
