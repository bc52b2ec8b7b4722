"""
vibesync - on-chain tip and bounty indexer.

Projects tipping and bounty contract events into PostgreSQL exactly once
and fans freshly persisted events out to connected clients.
"""

__version__ = "0.1.0"
