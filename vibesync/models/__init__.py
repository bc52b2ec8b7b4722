"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from vibesync.models.base import Base
from vibesync.models.bounty import BountyRecord
from vibesync.models.enums import BountyStatus
from vibesync.models.notification_outbox import NotificationOutbox
from vibesync.models.pending_claim import PendingBountyClaim
from vibesync.models.sync_checkpoint import SyncCheckpoint
from vibesync.models.transfer import TransferRecord

__all__ = [
    # Base
    "Base",
    # Enums
    "BountyStatus",
    # Projections
    "TransferRecord",
    "BountyRecord",
    # Sync state
    "SyncCheckpoint",
    "PendingBountyClaim",
    "NotificationOutbox",
]
