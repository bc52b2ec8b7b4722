"""
Raw log types exchanged with the chain node.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from eth_utils import to_checksum_address
from hexbytes import HexBytes

from .constants import INDEXED_TOPICS


def _to_hex(value: Any) -> str:
    """Normalize bytes / HexBytes / str to lowercase 0x hex."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    text = str(value).lower()
    return text if text.startswith("0x") else f"0x{text}"


def _to_int(value: Any) -> int:
    """Accept ints and 0x-prefixed quantities from JSON-RPC."""
    if isinstance(value, int):
        return value
    text = str(value)
    return int(text, 16) if text.startswith("0x") else int(text)


@dataclass(frozen=True)
class RawLogEntry:
    """
    One emitted log as returned by eth_getLogs / eth_subscribe.

    Hex fields are lowercase and 0x-prefixed.
    """

    address: str
    topics: tuple[str, ...]
    data: str
    block_number: int
    tx_hash: str
    log_index: int
    removed: bool = False

    @property
    def position(self) -> tuple[int, int]:
        """Ordering key inside the chain."""
        return (self.block_number, self.log_index)

    @property
    def idempotency_key(self) -> tuple[str, int]:
        """Unique identity of the log entry."""
        return (self.tx_hash, self.log_index)

    @property
    def data_bytes(self) -> bytes:
        """Non-indexed payload as bytes."""
        return bytes(HexBytes(self.data))

    @classmethod
    def from_rpc(cls, log: Mapping[str, Any]) -> "RawLogEntry":
        """
        Build from a web3 log receipt or raw JSON-RPC log.

        Args:
            log: Mapping with address, topics, data, blockNumber,
                transactionHash and logIndex

        Returns:
            RawLogEntry
        """
        return cls(
            address=str(log["address"]).lower(),
            topics=tuple(_to_hex(topic) for topic in log.get("topics") or ()),
            data=_to_hex(log.get("data") or b""),
            block_number=_to_int(log["blockNumber"]),
            tx_hash=_to_hex(log["transactionHash"]),
            log_index=_to_int(log["logIndex"]),
            removed=bool(log.get("removed", False)),
        )


@dataclass(frozen=True)
class LogFilter:
    """Selects contract logs relevant to the indexer."""

    addresses: tuple[str, ...]
    topics: tuple[str, ...] = field(default=INDEXED_TOPICS)

    @classmethod
    def for_contracts(cls, addresses: Iterable[str]) -> "LogFilter":
        """Filter on the indexed event signatures of the given contracts."""
        return cls(addresses=tuple(address.lower() for address in addresses))

    def to_rpc_params(self) -> dict[str, Any]:
        """eth_getLogs / eth_subscribe filter object (without block range)."""
        return {
            "address": [to_checksum_address(address) for address in self.addresses],
            "topics": [list(self.topics)],
        }

    def matches(self, entry: RawLogEntry) -> bool:
        """Check entry against address and topic0."""
        return (
            entry.address in self.addresses
            and bool(entry.topics)
            and entry.topics[0] in self.topics
        )
