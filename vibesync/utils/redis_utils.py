"""
Redis connection helpers.

The notification bus and the Dramatiq broker connect to the same
instance, both built from REDIS_* settings.
"""

import redis.asyncio as redis

from vibesync.config.settings import Settings


def get_redis_url(settings: Settings, masked: bool = False) -> str:
    """
    redis:// URL for the configured instance.

    Args:
        settings: Application settings
        masked: Replace the password with **** (for logs)

    Returns:
        redis://[:password@]host:port/db
    """
    auth = ""
    if settings.redis_password:
        auth = f":{'****' if masked else settings.redis_password}@"
    return f"redis://{auth}{settings.redis_host}:{settings.redis_port}/{settings.redis_db}"


def get_redis_url_masked(settings: Settings) -> str:
    """URL safe to log."""
    return get_redis_url(settings, masked=True)


def get_redis_client(settings: Settings) -> redis.Redis:
    """Async client returning str, as the bus exchanges JSON text."""
    return redis.Redis.from_url(get_redis_url(settings), decode_responses=True)
