"""
RPC Wrapper with Timeout and Retry Logic.

Provides centralized timeout, retry and error classification for all
chain node calls.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import aiohttp
from loguru import logger
from web3.exceptions import Web3Exception
from websockets.exceptions import WebSocketException

from vibesync.config.constants import BLOCKCHAIN_TIMEOUT
from vibesync.utils.exceptions import (
    ConfigurationError,
    RangeTooLargeError,
    TransientNetworkError,
)

T = TypeVar("T")

# Errors that mean "the node or the link is unhealthy, try again later"
NETWORK_ERRORS = (
    TimeoutError,
    ConnectionError,
    OSError,
    aiohttp.ClientError,
    WebSocketException,
    Web3Exception,
)

# Provider messages for an oversized eth_getLogs request
RANGE_TOO_LARGE_MARKERS = (
    "query returned more than",
    "too many",
    "block range",
    "limit exceeded",
    "response size exceeded",
)


def classify_network_error(exc: BaseException, operation_name: str) -> TransientNetworkError:
    """
    Wrap a low-level failure into the sync error hierarchy.

    Args:
        exc: Original exception
        operation_name: Operation name for the message

    Returns:
        TransientNetworkError (or RangeTooLargeError) to raise
    """
    message = str(exc).lower()
    if any(marker in message for marker in RANGE_TOO_LARGE_MARKERS):
        return RangeTooLargeError(f"{operation_name}: {exc}")
    return TransientNetworkError(f"{operation_name}: {type(exc).__name__}: {exc}")


async def with_timeout(
    coro: Awaitable[T],
    timeout: float = BLOCKCHAIN_TIMEOUT,
    operation_name: str = "RPC call",
) -> T:
    """
    Execute async coroutine with timeout.

    Args:
        coro: Coroutine to execute
        timeout: Timeout in seconds (default: BLOCKCHAIN_TIMEOUT)
        operation_name: Operation name for logging

    Returns:
        Result of the coroutine

    Raises:
        TransientNetworkError: If operation times out or the node fails
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except TimeoutError as e:
        error_msg = f"{operation_name} timed out after {timeout}s"
        logger.warning(f"[Gateway] {error_msg}")
        raise TransientNetworkError(error_msg) from e
    except NETWORK_ERRORS as e:
        raise classify_network_error(e, operation_name) from e


async def rpc_call_with_retry(
    coro_factory: Callable[[], Awaitable[Any]],
    max_retries: int = 3,
    timeout: float = BLOCKCHAIN_TIMEOUT,
    operation_name: str = "RPC call",
) -> Any:
    """
    Execute RPC call with retry logic and timeout.

    Oversized range errors are not retried here, the caller has to
    shrink the request.

    Args:
        coro_factory: Factory function that returns a coroutine
        max_retries: Maximum number of attempts
        timeout: Timeout per attempt in seconds
        operation_name: Operation name for logging

    Returns:
        Result of the RPC call

    Raises:
        TransientNetworkError: If all attempts fail
        ConfigurationError: If max_retries is below 1
    """
    if max_retries < 1:
        raise ConfigurationError(f"max_retries must be at least 1, got {max_retries}")

    last_error: TransientNetworkError | None = None

    for attempt in range(max_retries):
        try:
            result = await with_timeout(
                coro_factory(),
                timeout=timeout,
                operation_name=operation_name,
            )
            if attempt > 0:
                logger.info(
                    f"[Gateway] {operation_name} succeeded on attempt {attempt + 1}"
                )
            return result

        except RangeTooLargeError:
            raise
        except TransientNetworkError as e:
            last_error = e
            if attempt < max_retries - 1:
                delay = 2 ** attempt  # 1s, 2s, 4s...
                logger.warning(
                    f"[Gateway] {operation_name} failed on attempt "
                    f"{attempt + 1}/{max_retries}: {e}. Retrying in {delay}s..."
                )
                await asyncio.sleep(delay)

    logger.error(
        f"[Gateway] {operation_name} failed after {max_retries} attempts: {last_error}"
    )
    raise last_error
