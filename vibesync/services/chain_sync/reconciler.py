"""
Backfill Reconciler.

Walks block windows from the durable checkpoint up to the confirmed
head, applying every event in chain order and advancing the checkpoint
only after a whole window has been applied.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger

from vibesync.config.constants import (
    DEFAULT_BLOCK_WINDOW_SIZE,
    DEFAULT_CONFIRMATION_LAG,
    DEFAULT_WINDOW_MAX_ATTEMPTS,
    WINDOW_RETRY_DELAY_BASE,
)
from vibesync.services.chain_gateway.base import ChainDataSource
from vibesync.services.chain_gateway.log_types import LogFilter
from vibesync.services.event_decoder.decoder import EventDecoder
from vibesync.services.event_decoder.events import BountyClaimed, DomainEvent
from vibesync.services.event_store.base import ApplyResult, EventStore
from vibesync.utils.exceptions import (
    DecodeError,
    DecodeFailure,
    RangeTooLargeError,
    WindowRetryExhaustedError,
    is_retryable,
)

from .applier import EventApplier
from .backoff import exponential_delay


class ReconcilerState(str, Enum):
    """Backfill run states."""

    IDLE = "idle"
    FETCHING = "fetching"
    DECODING = "decoding"
    APPLYING = "applying"
    CHECKPOINT_ADVANCE = "checkpoint_advance"
    CAUGHT_UP = "caught_up"


@dataclass
class WindowStats:
    """Counters of one window, merged into the report once it commits."""

    applied: int = 0
    duplicates: int = 0
    skipped: int = 0
    pending: int = 0


@dataclass
class ReconcileReport:
    """Outcome of one reconciliation run."""

    from_block: int
    to_block: int
    windows: int = 0
    applied: int = 0
    duplicates: int = 0
    skipped: int = 0
    pending: int = 0
    resolved: int = 0
    redelivered: int = 0
    last_applied_block: int = -1
    caught_up: bool = False
    window_sizes: list[int] = field(default_factory=list)

    def add(self, stats: WindowStats) -> None:
        self.applied += stats.applied
        self.duplicates += stats.duplicates
        self.skipped += stats.skipped
        self.pending += stats.pending


class BackfillReconciler:
    """
    Checkpointed backfill over a chain data source.

    Invariants:
    - events of a window are applied in (block_number, log_index) order
    - checkpoint moves only forward, and only after the window applied
    - a failed window is retried from its first block
    """

    def __init__(
        self,
        gateway: ChainDataSource,
        decoder: EventDecoder,
        store: EventStore,
        applier: EventApplier,
        log_filter: LogFilter,
        chain_id: int,
        start_block: int = 0,
        confirmation_lag: int = DEFAULT_CONFIRMATION_LAG,
        window_size: int = DEFAULT_BLOCK_WINDOW_SIZE,
        max_attempts: int = DEFAULT_WINDOW_MAX_ATTEMPTS,
        retry_delay_base: float = WINDOW_RETRY_DELAY_BASE,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize reconciler.

        Args:
            gateway: Chain data source
            decoder: Raw log decoder
            store: Idempotency store (checkpoint owner)
            applier: Shared apply-and-publish path
            log_filter: Contracts and event signatures
            chain_id: Chain id of the checkpoint
            start_block: First block of a fresh checkpoint
            confirmation_lag: Trailing blocks left for the next run
            window_size: Blocks per window
            max_attempts: Attempts per window before escalating
            retry_delay_base: First retry delay in seconds
            sleep: Awaitable sleep (injectable for tests)
        """
        self.gateway = gateway
        self.decoder = decoder
        self.store = store
        self.applier = applier
        self.log_filter = log_filter
        self.chain_id = chain_id
        self.start_block = start_block
        self.confirmation_lag = confirmation_lag
        self.window_size = window_size
        self.current_window = window_size
        self.max_attempts = max_attempts
        self.retry_delay_base = retry_delay_base
        self._sleep = sleep

        self.state = ReconcilerState.IDLE
        self.last_applied_block: int | None = None

    async def run(self, max_windows: int | None = None) -> ReconcileReport:
        """
        Backfill from the checkpoint to the confirmed head.

        Args:
            max_windows: Stop after this many windows (None = until caught up)

        Returns:
            ReconcileReport of the run

        Raises:
            WindowRetryExhaustedError: A window kept failing
            TransientNetworkError: Head height could not be read
        """
        self.state = ReconcilerState.IDLE
        last_block = await self.store.ensure_checkpoint(self.chain_id, self.start_block)
        self.last_applied_block = last_block

        # Claims and notifications left over from earlier runs
        resolved, _ = await self.applier.resolve_pending()
        redelivered = await self.applier.redeliver()

        height = await self.gateway.current_height()
        target = height - self.confirmation_lag
        from_block = last_block + 1

        report = ReconcileReport(
            from_block=from_block,
            to_block=target,
            resolved=resolved,
            redelivered=redelivered,
            last_applied_block=last_block,
        )

        if from_block <= target:
            logger.info(
                f"[Reconciler] Chain {self.chain_id}: backfilling blocks "
                f"{from_block}-{target} (head {height}, lag {self.confirmation_lag})"
            )

        while from_block <= target:
            if max_windows is not None and report.windows >= max_windows:
                break

            to_block = min(from_block + self.current_window - 1, target)
            stats, to_block = await self._run_window_with_retry(from_block, to_block)

            report.add(stats)
            report.windows += 1
            report.window_sizes.append(to_block - from_block + 1)
            report.last_applied_block = to_block
            self.last_applied_block = to_block
            from_block = to_block + 1

        if from_block > target:
            self.state = ReconcilerState.CAUGHT_UP
            report.caught_up = True
        else:
            self.state = ReconcilerState.IDLE

        if report.windows:
            logger.info(
                f"[Reconciler] Run finished: {report.windows} windows, "
                f"{report.applied} applied, {report.duplicates} duplicates, "
                f"{report.skipped} skipped, {report.pending} pending"
            )
        return report

    async def _run_window_with_retry(
        self, from_block: int, to_block: int
    ) -> tuple[WindowStats, int]:
        """
        Process one window, retrying it from its start on retryable errors.

        An oversized range is split instead of counted as a failure.

        Returns:
            (stats, last block of the processed window)
        """
        attempt = 0
        last_error: BaseException | None = None

        while attempt < self.max_attempts:
            try:
                stats = await self._run_window(from_block, to_block)
                # Grow back towards the configured size after a success
                self.current_window = min(self.window_size, self.current_window * 2)
                return stats, to_block

            except RangeTooLargeError as e:
                span = to_block - from_block + 1
                if span > 1:
                    self.current_window = max(1, span // 2)
                    to_block = from_block + self.current_window - 1
                    logger.warning(
                        f"[Reconciler] Range too large, shrinking window to "
                        f"{self.current_window} blocks"
                    )
                    continue
                last_error = e

            except Exception as e:
                if not is_retryable(e):
                    raise
                last_error = e

            attempt += 1
            self.state = ReconcilerState.IDLE
            if attempt >= self.max_attempts:
                break

            delay = exponential_delay(
                attempt - 1, self.retry_delay_base, self.retry_delay_base * 2 ** 10
            )
            logger.warning(
                f"[Reconciler] Window {from_block}-{to_block} failed "
                f"(attempt {attempt}/{self.max_attempts}): {last_error}. "
                f"Retrying in {delay:.1f}s"
            )
            await self._sleep(delay)

        logger.error(
            f"[Reconciler] Window {from_block}-{to_block} failed after "
            f"{self.max_attempts} attempts: {last_error}"
        )
        raise WindowRetryExhaustedError(
            from_block, to_block, self.max_attempts
        ) from last_error

    async def _run_window(self, from_block: int, to_block: int) -> WindowStats:
        """Fetch, decode, apply and checkpoint a single window."""
        stats = WindowStats()

        self.state = ReconcilerState.FETCHING
        entries = await self.gateway.query_range(from_block, to_block, self.log_filter)

        self.state = ReconcilerState.DECODING
        events: list[DomainEvent] = []
        for entry in entries:
            try:
                events.append(self.decoder.decode(entry))
            except DecodeError as e:
                stats.skipped += 1
                if e.reason is DecodeFailure.MALFORMED:
                    logger.warning(
                        f"[Reconciler] Malformed log at block {entry.block_number} "
                        f"index {entry.log_index}: {e.detail}"
                    )
                else:
                    logger.debug(f"[Reconciler] Skipping unrecognized log: {e.detail}")
        events.sort(key=lambda event: event.position)

        self.state = ReconcilerState.APPLYING
        buffered: list[BountyClaimed] = []
        for event in events:
            result = await self.applier.apply(event)
            if result is ApplyResult.NOT_FOUND and isinstance(event, BountyClaimed):
                buffered.append(event)
            else:
                self._count(stats, result)

        for claim in buffered:
            result = await self.applier.apply(claim)
            if result is ApplyResult.NOT_FOUND:
                await self.applier.defer_claim(claim)
                stats.pending += 1
            else:
                self._count(stats, result)

        self.state = ReconcilerState.CHECKPOINT_ADVANCE
        await self.store.set_checkpoint(self.chain_id, to_block, events_applied=stats.applied)

        self.state = ReconcilerState.IDLE
        return stats

    @staticmethod
    def _count(stats: WindowStats, result: ApplyResult) -> None:
        if result is ApplyResult.APPLIED:
            stats.applied += 1
        elif result is ApplyResult.ALREADY_APPLIED:
            stats.duplicates += 1
