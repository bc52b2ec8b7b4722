"""
Event loop handling for Dramatiq workers.

Actors are synchronous, the sync services are not. Every worker thread
owns one event loop for its whole life, so engines, HTTP sessions and
Redis pools created inside a task are never awaited from another loop.
"""

import asyncio
import threading
from collections.abc import Coroutine
from typing import Any, TypeVar

import dramatiq
from loguru import logger

T = TypeVar("T")

_worker_state = threading.local()


def _thread_loop() -> asyncio.AbstractEventLoop:
    """Loop bound to the calling worker thread (created on first use)."""
    loop: asyncio.AbstractEventLoop | None = getattr(_worker_state, "loop", None)
    if loop is not None and not loop.is_closed():
        return loop

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    _worker_state.loop = loop
    logger.debug(f"[Worker] Event loop created for {threading.current_thread().name}")
    return loop


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """
    Drive a coroutine to completion on the worker's loop.

    Args:
        coro: Coroutine to run

    Returns:
        Coroutine result
    """
    try:
        return _thread_loop().run_until_complete(coro)
    except Exception:
        logger.exception("[Worker] Async task failed")
        raise


def close_thread_loop() -> None:
    """Close the calling thread's loop, if one was created."""
    loop: asyncio.AbstractEventLoop | None = getattr(_worker_state, "loop", None)
    if loop is None or loop.is_closed():
        return
    loop.run_until_complete(loop.shutdown_asyncgens())
    loop.close()
    _worker_state.loop = None


class WorkerLoopMiddleware(dramatiq.Middleware):
    """Closes per-thread loops when Dramatiq stops a worker thread."""

    def before_worker_thread_shutdown(self, broker, thread) -> None:
        close_thread_loop()
