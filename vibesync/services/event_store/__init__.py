"""
Idempotency Store.

Exactly-once projection of domain events into PostgreSQL.
"""

from .base import ApplyResult, EventStore, OutboxEntry, PendingClaim
from .sql_store import SqlEventStore

__all__ = [
    "ApplyResult",
    "EventStore",
    "OutboxEntry",
    "PendingClaim",
    "SqlEventStore",
]
