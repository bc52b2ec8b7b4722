"""
Live Subscriber.

Keeps a log subscription open, applies every received entry through the
shared applier and reconnects with exponential backoff. Gaps opened
while disconnected are closed by the reconciler.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable

from loguru import logger

from vibesync.config.constants import (
    DEFAULT_RECONNECT_MAX_DELAY,
    DEFAULT_RECONNECT_MIN_DELAY,
)
from vibesync.services.chain_gateway.base import ChainDataSource
from vibesync.services.chain_gateway.log_types import LogFilter, RawLogEntry
from vibesync.services.event_decoder.decoder import EventDecoder
from vibesync.services.event_decoder.events import BountyClaimed
from vibesync.services.event_store.base import ApplyResult
from vibesync.utils.exceptions import DecodeError, DecodeFailure, is_retryable

from .applier import EventApplier
from .backoff import exponential_delay


class LiveSubscriber:
    """
    Real-time ingestion of new logs.

    Duplicates (gateway redelivery, overlap with backfill) are harmless:
    only APPLIED events reach the bus.
    """

    def __init__(
        self,
        gateway: ChainDataSource,
        decoder: EventDecoder,
        applier: EventApplier,
        log_filter: LogFilter,
        reconnect_min_delay: float = DEFAULT_RECONNECT_MIN_DELAY,
        reconnect_max_delay: float = DEFAULT_RECONNECT_MAX_DELAY,
        on_gap: Callable[[], None] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize subscriber.

        Args:
            gateway: Chain data source
            decoder: Raw log decoder
            applier: Shared apply-and-publish path
            log_filter: Contracts and event signatures
            reconnect_min_delay: First reconnect delay in seconds
            reconnect_max_delay: Reconnect delay cap in seconds
            on_gap: Called after the stream was lost
            sleep: Awaitable sleep (injectable for tests)
        """
        self.gateway = gateway
        self.decoder = decoder
        self.applier = applier
        self.log_filter = log_filter
        self.reconnect_min_delay = reconnect_min_delay
        self.reconnect_max_delay = reconnect_max_delay
        self.on_gap = on_gap
        self._sleep = sleep

        self.connected = False
        self.reconnects = 0
        self.received = 0

    async def run(self) -> None:
        """
        Consume the subscription forever.

        Retryable failures reconnect. Anything else propagates to the
        supervisor.
        """
        attempt = 0

        while True:
            started = time.monotonic()
            try:
                self.connected = True
                async for entry in self.gateway.subscribe(self.log_filter):
                    await self.handle_entry(entry)
                logger.warning("[Subscriber] Log stream ended")

            except asyncio.CancelledError:
                self.connected = False
                raise

            except Exception as e:
                self.connected = False
                if not is_retryable(e):
                    raise
                logger.warning(f"[Subscriber] Subscription lost: {e}")

            self.connected = False
            self.reconnects += 1

            # A stream that stayed up longer than the cap resets backoff
            if time.monotonic() - started > self.reconnect_max_delay:
                attempt = 0

            if self.on_gap is not None:
                self.on_gap()

            delay = exponential_delay(
                attempt, self.reconnect_min_delay, self.reconnect_max_delay
            )
            attempt += 1
            logger.info(f"[Subscriber] Reconnecting in {delay:.1f}s (attempt {attempt})")
            await self._sleep(delay)

    async def handle_entry(self, entry: RawLogEntry) -> ApplyResult | None:
        """
        Decode and apply one received log.

        Args:
            entry: Raw log from the subscription

        Returns:
            Store result, or None if the entry was skipped
        """
        self.received += 1
        try:
            event = self.decoder.decode(entry)
        except DecodeError as e:
            if e.reason is DecodeFailure.MALFORMED:
                logger.warning(
                    f"[Subscriber] Malformed log at block {entry.block_number} "
                    f"index {entry.log_index}: {e.detail}"
                )
            else:
                logger.debug(f"[Subscriber] Skipping unrecognized log: {e.detail}")
            return None

        result = await self.applier.apply(event)
        if result is ApplyResult.NOT_FOUND and isinstance(event, BountyClaimed):
            await self.applier.defer_claim(event)
        return result
