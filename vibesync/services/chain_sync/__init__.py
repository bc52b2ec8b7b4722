"""
Chain Sync.

Backfill reconciliation, live subscription and their supervision.
"""

from .applier import EventApplier
from .orchestrator import SyncOrchestrator
from .reconciler import BackfillReconciler, ReconcileReport, ReconcilerState
from .subscriber import LiveSubscriber

__all__ = [
    "BackfillReconciler",
    "EventApplier",
    "LiveSubscriber",
    "ReconcileReport",
    "ReconcilerState",
    "SyncOrchestrator",
]
