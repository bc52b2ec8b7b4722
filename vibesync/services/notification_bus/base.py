"""
Notification Bus interface and payload format.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

from vibesync.config.constants import (
    CHANNEL_ALL,
    CHANNEL_BOUNTIES,
    CHANNEL_TRANSFERS,
    MESSAGE_TYPE_TIP_CONFIRMED,
)
from vibesync.services.event_decoder.events import DomainEvent
from vibesync.utils.datetime_utils import utc_now


def build_message(
    message_type: str, data: dict[str, Any], chain_id: int
) -> dict[str, Any]:
    """
    JSON-serializable message stamped with the delivery time.

    Consumers deduplicate by data.tx_id and data.log_index.

    Args:
        message_type: TIP_CONFIRMED, BOUNTY_CREATED or BOUNTY_CLAIMED
        data: Event fields as plain strings and ints
        chain_id: Chain the event was observed on

    Returns:
        {"type", "chain_id", "data", "timestamp"}
    """
    return {
        "type": message_type,
        "chain_id": chain_id,
        "data": data,
        "timestamp": utc_now().isoformat(),
    }


def build_payload(event: DomainEvent, chain_id: int) -> dict[str, Any]:
    """Message for a persisted event."""
    return build_message(event.event_type, event.to_payload(), chain_id)


class NotificationBus(ABC):
    """
    Fan-out of already persisted events to connected clients.

    Delivery is at-least-once. Every event goes to the "events" channel
    and to its topic channel ("transfers" or "bounties").
    """

    def __init__(self, chain_id: int, channel_prefix: str = "megavibe"):
        self.chain_id = chain_id
        self.channel_prefix = channel_prefix

    def channel(self, name: str) -> str:
        """Full channel name, e.g. megavibe:transfers."""
        return f"{self.channel_prefix}:{name}"

    def channels_for(self, event: DomainEvent) -> list[str]:
        """Channels an event is delivered to."""
        return self.channels_for_type(event.event_type)

    def channels_for_type(self, message_type: str) -> list[str]:
        topic = (
            CHANNEL_TRANSFERS
            if message_type == MESSAGE_TYPE_TIP_CONFIRMED
            else CHANNEL_BOUNTIES
        )
        return [self.channel(CHANNEL_ALL), self.channel(topic)]

    async def publish(self, event: DomainEvent) -> None:
        """Deliver event to all its channels."""
        await self.publish_message(event.event_type, event.to_payload())

    @abstractmethod
    async def publish_message(self, message_type: str, data: dict[str, Any]) -> None:
        """
        Deliver a stored message body to its channels.

        Raises:
            TransientNetworkError: Message was not accepted
        """

    @abstractmethod
    def subscribe(self, channel: str) -> AsyncIterator[dict[str, Any]]:
        """Iterate payloads published on a full channel name."""

    async def close(self) -> None:
        """Release connections."""
        return None
