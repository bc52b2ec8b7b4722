"""
Idempotency Store interface.

The store exclusively owns persisted records. Every write is safe to
repeat with identical input.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any

from vibesync.services.event_decoder.events import (
    BountyClaimed,
    BountyOpened,
    TransferSent,
)


class ApplyResult(str, Enum):
    """Outcome of an idempotent write."""

    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class PendingClaim:
    """A buffered claim waiting for its bounty to be opened."""

    id: int
    event: BountyClaimed
    attempts: int


@dataclass(frozen=True)
class OutboxEntry:
    """A notification written with its record and not yet delivered."""

    id: int
    tx_hash: str
    log_index: int
    message_type: str
    data: dict[str, Any]
    attempts: int


class EventStore(ABC):
    """
    Persistence operations used by the sync services.

    Each operation runs in its own transaction. Unique constraints on
    (tx_hash, log_index) and bounty_id are the concurrency control.
    """

    @abstractmethod
    async def upsert_transfer(self, event: TransferSent) -> ApplyResult:
        """Insert transfer if its log has not been projected yet. Queues its notification."""

    @abstractmethod
    async def upsert_bounty_opened(self, event: BountyOpened) -> ApplyResult:
        """Insert bounty if its id is unknown. Queues its notification."""

    @abstractmethod
    async def apply_bounty_claim(self, event: BountyClaimed) -> ApplyResult:
        """Move bounty open -> claimed. NOT_FOUND when bounty is unknown.

        An APPLIED claim queues its notification.
        """

    @abstractmethod
    async def get_checkpoint(self, chain_id: int) -> int | None:
        """Last applied block, or None before the first run."""

    @abstractmethod
    async def ensure_checkpoint(self, chain_id: int, start_block: int) -> int:
        """Create checkpoint just before start_block if missing."""

    @abstractmethod
    async def set_checkpoint(
        self, chain_id: int, block: int, events_applied: int = 0
    ) -> bool:
        """Advance checkpoint. A block not ahead of it is ignored."""

    @abstractmethod
    async def record_checkpoint_error(self, chain_id: int, error: str) -> None:
        """Store last sync error for operators."""

    @abstractmethod
    async def record_pending_claim(
        self, chain_id: int, event: BountyClaimed
    ) -> PendingClaim:
        """Persist an unresolved claim (or count another attempt)."""

    @abstractmethod
    async def list_pending_claims(
        self, chain_id: int, bounty_id: str | None = None
    ) -> list[PendingClaim]:
        """Unresolved claims in chain order."""

    @abstractmethod
    async def resolve_pending_claim(self, pending_id: int) -> None:
        """Mark buffered claim as applied."""

    @abstractmethod
    async def touch_pending_claim(self, pending_id: int) -> int:
        """Count a failed retry. Returns attempts so far."""

    @abstractmethod
    async def list_undelivered(
        self, chain_id: int, limit: int = 500
    ) -> list[OutboxEntry]:
        """Queued notifications, oldest first."""

    @abstractmethod
    async def mark_delivered(self, tx_hash: str, log_index: int) -> None:
        """Drop the queued notification of a log entry."""

    @abstractmethod
    async def record_delivery_failure(self, outbox_id: int, error: str) -> int:
        """Count a failed delivery. Returns attempts so far."""
