"""
Event Decoder.

Maps raw contract logs to domain events. Pure: no I/O, no state besides
the configured contract addresses and token decimals.
"""

from decimal import Decimal, Inexact, localcontext

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import to_normalized_address
from hexbytes import HexBytes

from vibesync.services.chain_gateway.constants import (
    BOUNTY_CLAIMED_TOPIC,
    BOUNTY_CREATED_TOPIC,
    TIP_SENT_TOPIC,
)
from vibesync.services.chain_gateway.log_types import RawLogEntry
from vibesync.utils.datetime_utils import from_unix
from vibesync.utils.exceptions import (
    AmountPrecisionError,
    DecodeError,
    DecodeFailure,
)

from .events import BountyClaimed, BountyOpened, DomainEvent, TransferSent

# uint256 max has 78 decimal digits
AMOUNT_PRECISION = 78

# Non-indexed parameter types per event
TIP_SENT_DATA_TYPES = ["uint256", "string", "uint256"]
BOUNTY_CREATED_DATA_TYPES = ["string", "string", "uint256", "uint256"]
BOUNTY_CLAIMED_DATA_TYPES = ["string"]


def to_decimal_amount(raw: int, decimals: int) -> Decimal:
    """
    Convert a native fixed-point integer into an exact Decimal.

    Args:
        raw: Amount in the smallest unit (wei)
        decimals: Token decimals

    Returns:
        Decimal amount in whole units

    Raises:
        AmountPrecisionError: If the conversion would round
    """
    if raw < 0:
        raise AmountPrecisionError(f"Negative raw amount {raw}")
    with localcontext() as ctx:
        ctx.prec = AMOUNT_PRECISION
        ctx.traps[Inexact] = True
        try:
            return Decimal(raw).scaleb(-decimals)
        except Inexact as e:
            raise AmountPrecisionError(
                f"Amount {raw} with {decimals} decimals is not exact"
            ) from e


def _topic_bytes(topic: str) -> bytes:
    value = bytes(HexBytes(topic))
    if len(value) != 32:
        raise DecodeError(DecodeFailure.MALFORMED, f"topic of {len(value)} bytes")
    return value


def _topic_address(topic: str) -> str:
    value = _topic_bytes(topic)
    if any(value[:12]):
        raise DecodeError(DecodeFailure.MALFORMED, "address topic has dirty padding")
    return to_normalized_address(value[12:])


def _topic_uint(topic: str) -> int:
    return int.from_bytes(_topic_bytes(topic), "big")


class EventDecoder:
    """
    Decoder for the tipping and bounty contracts.

    A log is recognized only when both its topic0 and its emitting
    contract match. Anything else is UNRECOGNIZED. A recognized log
    whose topics or data cannot be decoded is MALFORMED.
    """

    def __init__(
        self,
        tipping_contract: str,
        bounty_contract: str,
        decimals: int = 18,
    ):
        self.tipping_contract = tipping_contract.lower()
        self.bounty_contract = bounty_contract.lower()
        self.decimals = decimals
        self._routes = {
            TIP_SENT_TOPIC: (self.tipping_contract, self._decode_tip_sent),
            BOUNTY_CREATED_TOPIC: (self.bounty_contract, self._decode_bounty_created),
            BOUNTY_CLAIMED_TOPIC: (self.bounty_contract, self._decode_bounty_claimed),
        }

    def decode(self, entry: RawLogEntry) -> DomainEvent:
        """
        Decode one raw log.

        Args:
            entry: Raw log entry from the gateway

        Returns:
            TransferSent, BountyOpened or BountyClaimed

        Raises:
            DecodeError: UNRECOGNIZED or MALFORMED entry
            AmountPrecisionError: Amount cannot be represented exactly
        """
        if not entry.topics:
            raise DecodeError(DecodeFailure.UNRECOGNIZED, "anonymous log")

        route = self._routes.get(entry.topics[0].lower())
        if route is None:
            raise DecodeError(DecodeFailure.UNRECOGNIZED, f"topic {entry.topics[0]}")

        contract, handler = route
        if entry.address.lower() != contract:
            raise DecodeError(
                DecodeFailure.UNRECOGNIZED,
                f"event {entry.topics[0][:10]} from unexpected contract {entry.address}",
            )

        try:
            return handler(entry)
        except (DecodingError, ValueError, OverflowError, OSError, IndexError) as e:
            raise DecodeError(DecodeFailure.MALFORMED, str(e)) from e

    def _decode_data(self, entry: RawLogEntry, types: list[str]) -> tuple:
        return abi_decode(types, entry.data_bytes)

    def _expect_topics(self, entry: RawLogEntry, count: int) -> None:
        if len(entry.topics) != count:
            raise DecodeError(
                DecodeFailure.MALFORMED,
                f"expected {count} topics, got {len(entry.topics)}",
            )

    def _decode_tip_sent(self, entry: RawLogEntry) -> TransferSent:
        self._expect_topics(entry, 3)
        amount_raw, message, timestamp = self._decode_data(entry, TIP_SENT_DATA_TYPES)
        return TransferSent(
            sender=_topic_address(entry.topics[1]),
            recipient=_topic_address(entry.topics[2]),
            amount=to_decimal_amount(amount_raw, self.decimals),
            amount_raw=amount_raw,
            message=message or None,
            occurred_at=from_unix(timestamp),
            tx_id=entry.tx_hash,
            log_index=entry.log_index,
            block_number=entry.block_number,
        )

    def _decode_bounty_created(self, entry: RawLogEntry) -> BountyOpened:
        self._expect_topics(entry, 3)
        title, description, amount_raw, deadline = self._decode_data(
            entry, BOUNTY_CREATED_DATA_TYPES
        )
        return BountyOpened(
            bounty_id=str(_topic_uint(entry.topics[1])),
            creator=_topic_address(entry.topics[2]),
            title=title,
            description=description,
            amount=to_decimal_amount(amount_raw, self.decimals),
            amount_raw=amount_raw,
            deadline=from_unix(deadline),
            tx_id=entry.tx_hash,
            log_index=entry.log_index,
            block_number=entry.block_number,
        )

    def _decode_bounty_claimed(self, entry: RawLogEntry) -> BountyClaimed:
        self._expect_topics(entry, 3)
        (content_ref,) = self._decode_data(entry, BOUNTY_CLAIMED_DATA_TYPES)
        return BountyClaimed(
            bounty_id=str(_topic_uint(entry.topics[1])),
            claimer=_topic_address(entry.topics[2]),
            content_ref=content_ref,
            tx_id=entry.tx_hash,
            log_index=entry.log_index,
            block_number=entry.block_number,
        )
