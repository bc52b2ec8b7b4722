"""
Redis Notification Bus.

Publishes JSON payloads over Redis pub/sub so websocket gateways in
other processes can push them to clients.
"""

import json
from collections.abc import AsyncIterator
from typing import Any

import redis.asyncio as redis
from loguru import logger
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from vibesync.utils.exceptions import TransientNetworkError

from .base import NotificationBus, build_message


class RedisNotificationBus(NotificationBus):
    """Notification bus backed by Redis pub/sub."""

    def __init__(
        self,
        client: redis.Redis,
        chain_id: int,
        channel_prefix: str = "megavibe",
    ):
        """
        Initialize bus.

        Args:
            client: Redis client (decode_responses=True)
            chain_id: Chain id put into every payload
            channel_prefix: Channel namespace
        """
        super().__init__(chain_id, channel_prefix)
        self.client = client

    async def publish_message(self, message_type: str, data: dict[str, Any]) -> None:
        """
        Publish message to its channels.

        Raises:
            TransientNetworkError: Redis unreachable
        """
        message = json.dumps(build_message(message_type, data, self.chain_id))
        try:
            for channel in self.channels_for_type(message_type):
                receivers = await self.client.publish(channel, message)
                logger.debug(f"[Bus] {message_type} -> {channel} ({receivers} receivers)")
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise TransientNetworkError(f"Redis publish failed: {e}") from e

    async def subscribe(self, channel: str) -> AsyncIterator[dict[str, Any]]:
        """Iterate decoded payloads of a channel."""
        pubsub = self.client.pubsub(ignore_subscribe_messages=True)
        await pubsub.subscribe(channel)
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    yield json.loads(message["data"])
                except json.JSONDecodeError:
                    logger.warning(f"[Bus] Skipping non-JSON message on {channel}")
        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()

    async def close(self) -> None:
        await self.client.aclose()
