"""
Chain data source interface.

The reconciler and the live subscriber depend only on this interface,
so tests can drive them with an in-memory chain.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from .log_types import LogFilter, RawLogEntry


class ChainDataSource(ABC):
    """
    Read-only access to a single chain.

    Implementations must:
    - return logs of a range ordered by (block_number, log_index)
    - raise TransientNetworkError for node/link failures
    - raise InvalidRangeError for an impossible range
    """

    chain_id: int

    @abstractmethod
    async def current_height(self) -> int:
        """Latest block number known to the node."""

    @abstractmethod
    async def query_range(
        self,
        from_block: int,
        to_block: int,
        log_filter: LogFilter,
    ) -> list[RawLogEntry]:
        """
        Fetch matching logs of an inclusive block range.

        Args:
            from_block: First block (inclusive)
            to_block: Last block (inclusive)
            log_filter: Contracts and event signatures

        Returns:
            Log entries ordered by (block_number, log_index)
        """

    @abstractmethod
    def subscribe(self, log_filter: LogFilter) -> AsyncIterator[RawLogEntry]:
        """
        Stream newly emitted logs.

        The iterator runs until cancelled, or ends / raises
        TransientNetworkError when the connection is lost.
        """

    async def close(self) -> None:
        """Release connections."""
        return None
