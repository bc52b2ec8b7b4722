"""
In-process Notification Bus.

Each subscriber owns a bounded asyncio queue. A full queue drops its
oldest message so one slow consumer never blocks publishing.
"""

import asyncio
from collections import defaultdict
from collections.abc import AsyncIterator
from typing import Any

from loguru import logger

from vibesync.config.constants import MEMORY_BUS_QUEUE_SIZE
from .base import NotificationBus, build_message


class InMemoryNotificationBus(NotificationBus):
    """Notification bus for a single process (tests, local runs)."""

    def __init__(
        self,
        chain_id: int,
        channel_prefix: str = "megavibe",
        queue_size: int = MEMORY_BUS_QUEUE_SIZE,
    ):
        super().__init__(chain_id, channel_prefix)
        self.queue_size = queue_size
        self._queues: dict[str, set[asyncio.Queue]] = defaultdict(set)
        self.published: list[dict[str, Any]] = []

    def subscriber_count(self, channel: str) -> int:
        return len(self._queues.get(channel, ()))

    async def publish_message(self, message_type: str, data: dict[str, Any]) -> None:
        payload = build_message(message_type, data, self.chain_id)
        self.published.append(payload)

        for channel in self.channels_for_type(message_type):
            for queue in self._queues.get(channel, ()):
                if queue.full():
                    queue.get_nowait()
                    logger.warning(f"[Bus] Subscriber queue full on {channel}, dropped oldest")
                queue.put_nowait(payload)

    async def subscribe(self, channel: str) -> AsyncIterator[dict[str, Any]]:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._queues[channel].add(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._queues[channel].discard(queue)
