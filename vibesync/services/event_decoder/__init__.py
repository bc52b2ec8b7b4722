"""
Event Decoder.

Raw contract logs to typed domain events.
"""

from .decoder import EventDecoder, to_decimal_amount
from .events import BountyClaimed, BountyOpened, DomainEvent, TransferSent

__all__ = [
    "BountyClaimed",
    "BountyOpened",
    "DomainEvent",
    "EventDecoder",
    "TransferSent",
    "to_decimal_amount",
]
