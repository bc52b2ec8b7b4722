"""Data access layer."""

from vibesync.repositories.base import BaseRepository
from vibesync.repositories.bounty_repository import BountyRepository
from vibesync.repositories.outbox_repository import OutboxRepository
from vibesync.repositories.pending_claim_repository import PendingClaimRepository
from vibesync.repositories.sync_checkpoint_repository import (
    SyncCheckpointRepository,
)
from vibesync.repositories.transfer_repository import TransferRepository

__all__ = [
    "BaseRepository",
    "BountyRepository",
    "OutboxRepository",
    "PendingClaimRepository",
    "SyncCheckpointRepository",
    "TransferRepository",
]
