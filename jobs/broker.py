"""
Dramatiq broker for operator-triggered sync jobs.

Shares the Redis instance of the notification bus. Importing this
module installs the broker globally, so actors must import it first.
"""

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.middleware import CurrentMessage, Retries, default_middleware
from loguru import logger

from jobs.async_runner import WorkerLoopMiddleware
from vibesync.config.settings import get_settings
from vibesync.utils.redis_utils import get_redis_url, get_redis_url_masked

settings = get_settings()

# Defaults include ShutdownNotifications: a stopping worker interrupts a
# backfill between windows, the checkpoint keeps what was committed
middleware = [m() for m in default_middleware if m is not Retries]
middleware += [
    Retries(
        max_retries=3,
        min_backoff=5_000,  # 5 seconds
        max_backoff=300_000,  # 5 minutes
    ),
    CurrentMessage(),
    WorkerLoopMiddleware(),
]

broker = RedisBroker(url=get_redis_url(settings), middleware=middleware)

dramatiq.set_broker(broker)

logger.info(f"[Jobs] Dramatiq broker ready on {get_redis_url_masked(settings)}")
