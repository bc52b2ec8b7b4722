"""
Sync Orchestrator.

Catches up with the chain through the reconciler, then runs the live
subscriber next to a periodic gap-closing reconcile loop, restarting
either child after a failure.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger

from vibesync.config.constants import (
    DEFAULT_RECONCILE_INTERVAL,
    SUPERVISOR_MAX_DELAY,
    SUPERVISOR_MIN_DELAY,
)
from vibesync.services.event_store.base import EventStore
from vibesync.utils.datetime_utils import utc_now

from .backoff import exponential_delay
from .reconciler import BackfillReconciler, ReconcileReport
from .subscriber import LiveSubscriber


class SyncOrchestrator:
    """
    Top-level coordinator of one chain.

    Owns the subscriber task and the periodic reconcile task.
    Reconciliation runs are serialized with a lock. Stopping cancels
    the children; the durable checkpoint is left as is.
    """

    def __init__(
        self,
        reconciler: BackfillReconciler,
        subscriber: LiveSubscriber | None,
        store: EventStore,
        chain_id: int,
        reconcile_interval: float = DEFAULT_RECONCILE_INTERVAL,
        liveness_max_idle: float = 900.0,
        supervisor_min_delay: float = SUPERVISOR_MIN_DELAY,
        supervisor_max_delay: float = SUPERVISOR_MAX_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize orchestrator.

        Args:
            reconciler: Backfill reconciler
            subscriber: Live subscriber (None when no websocket is configured)
            store: Store used to record child failures
            chain_id: Indexed chain
            reconcile_interval: Seconds between periodic reconciles
            liveness_max_idle: Seconds without progress before unhealthy
            supervisor_min_delay: First restart delay in seconds
            supervisor_max_delay: Restart delay cap in seconds
            sleep: Awaitable sleep (injectable for tests)
        """
        self.reconciler = reconciler
        self.subscriber = subscriber
        self.store = store
        self.chain_id = chain_id
        self.reconcile_interval = reconcile_interval
        self.liveness_max_idle = liveness_max_idle
        self.supervisor_min_delay = supervisor_min_delay
        self.supervisor_max_delay = supervisor_max_delay
        self._sleep = sleep

        if subscriber is not None and subscriber.on_gap is None:
            subscriber.on_gap = self.request_reconcile

        self._reconcile_lock = asyncio.Lock()
        self._gap_detected = asyncio.Event()
        self._tasks: list[asyncio.Task] = []
        self._main_task: asyncio.Task | None = None

        self.caught_up = False
        self.restarts = 0
        self.started_at = time.monotonic()
        self._last_progress = time.monotonic()
        self.last_report: ReconcileReport | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> asyncio.Task:
        """Start orchestration in the background."""
        if self._main_task is None or self._main_task.done():
            self._main_task = asyncio.create_task(self.run(), name="sync-orchestrator")
        return self._main_task

    async def run(self) -> None:
        """Catch up, then run subscriber and periodic reconcile until cancelled."""
        logger.info(f"[Orchestrator] Starting sync for chain {self.chain_id}")

        await self._supervise("catch-up", self._catch_up)

        self._tasks.append(
            asyncio.create_task(
                self._supervise("reconcile-loop", self._reconcile_loop),
                name="reconcile-loop",
            )
        )
        if self.subscriber is not None:
            self._tasks.append(
                asyncio.create_task(
                    self._supervise("subscriber", self.subscriber.run),
                    name="live-subscriber",
                )
            )
        else:
            logger.warning("[Orchestrator] Live subscription disabled, backfill only")

        try:
            await asyncio.gather(*self._tasks)
        finally:
            await self._cancel_children()

    async def stop(self) -> None:
        """Cancel children and wait for them to finish."""
        logger.info("[Orchestrator] Stopping")
        await self._cancel_children()
        if self._main_task is not None and not self._main_task.done():
            self._main_task.cancel()
            try:
                await self._main_task
            except asyncio.CancelledError:
                pass
        logger.info("[Orchestrator] Stopped")

    async def _cancel_children(self) -> None:
        tasks = [task for task in self._tasks if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    # ------------------------------------------------------------------
    # Children
    # ------------------------------------------------------------------

    async def _supervise(self, name: str, factory: Callable[[], Awaitable[None]]) -> None:
        """
        Run a child, restarting it after backoff when it fails.

        Returns when the child returns normally.
        """
        attempt = 0
        while True:
            try:
                await factory()
                return
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.restarts += 1
                delay = exponential_delay(
                    attempt, self.supervisor_min_delay, self.supervisor_max_delay
                )
                attempt += 1
                logger.opt(exception=e).error(
                    f"[Orchestrator] {name} failed: {e}. Restarting in {delay:.1f}s"
                )
                await self._record_failure(name, e)
                await self._sleep(delay)

    async def _record_failure(self, name: str, error: Exception) -> None:
        try:
            await self.store.record_checkpoint_error(
                self.chain_id, f"{name}: {type(error).__name__}: {error}"
            )
        except Exception as e:
            logger.warning(f"[Orchestrator] Could not record failure: {e}")

    async def _catch_up(self) -> None:
        while True:
            report = await self.reconcile_once()
            if report.caught_up:
                self.caught_up = True
                logger.success(
                    f"[Orchestrator] Chain {self.chain_id} caught up at block "
                    f"{report.last_applied_block}"
                )
                return

    async def _reconcile_loop(self) -> None:
        while True:
            try:
                await asyncio.wait_for(
                    self._gap_detected.wait(), timeout=self.reconcile_interval
                )
                logger.info("[Orchestrator] Gap signalled, reconciling")
            except TimeoutError:
                pass
            self._gap_detected.clear()
            await self.reconcile_once()

    def request_reconcile(self) -> None:
        """Ask the reconcile loop to run now (subscriber reconnected)."""
        self._gap_detected.set()

    async def reconcile_once(self) -> ReconcileReport:
        """Run one serialized reconciliation."""
        async with self._reconcile_lock:
            report = await self.reconciler.run()
        self.last_report = report
        self._last_progress = time.monotonic()
        return report

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    @property
    def last_applied_block(self) -> int | None:
        return self.reconciler.last_applied_block

    def seconds_since_last_event(self) -> float | None:
        last_applied_at = self.reconciler.applier.last_applied_at
        if last_applied_at is None:
            return None
        return (utc_now() - last_applied_at).total_seconds()

    def seconds_since_progress(self) -> float:
        """Seconds since a reconcile finished or an event was applied."""
        idle = time.monotonic() - self._last_progress
        since_event = self.seconds_since_last_event()
        if since_event is not None:
            idle = min(idle, since_event)
        return idle

    def is_healthy(self) -> bool:
        """Caught up at least once and made progress recently."""
        return self.caught_up and self.seconds_since_progress() <= self.liveness_max_idle

    def health(self) -> dict[str, Any]:
        """Liveness snapshot for operators."""
        return {
            "chain_id": self.chain_id,
            "last_applied_block": self.last_applied_block,
            "seconds_since_last_event": self.seconds_since_last_event(),
            "subscriber_connected": bool(self.subscriber and self.subscriber.connected),
            "caught_up": self.caught_up,
            "restarts": self.restarts,
            "healthy": self.is_healthy(),
        }
