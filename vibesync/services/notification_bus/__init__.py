"""
Notification Bus.

Publish/subscribe fan-out of persisted domain events.
"""

from .base import NotificationBus, build_message, build_payload
from .memory_bus import InMemoryNotificationBus
from .redis_bus import RedisNotificationBus

__all__ = [
    "InMemoryNotificationBus",
    "NotificationBus",
    "RedisNotificationBus",
    "build_message",
    "build_payload",
]
