"""
Chain Reconcile Task.

Operator-triggered, bounded backfill of the configured chain. Runs the
same reconciler as the sync process, so it is safe to enqueue while the
process is running: every write is idempotent and the checkpoint only
moves forward.

Usage:
    from jobs.tasks.chain_reconcile import reconcile_chain
    reconcile_chain.send(max_windows=50)
"""

import dramatiq
from loguru import logger

from jobs.async_runner import run_async
from jobs.broker import settings
from vibesync.config.database import create_engine, create_session_maker
from vibesync.initialization.services import (
    build_reconciler,
    create_notification_bus,
)
from vibesync.services.chain_gateway import Web3ChainGateway
from vibesync.services.event_store import SqlEventStore


@dramatiq.actor(max_retries=3, time_limit=3_600_000)  # 1 hour timeout
def reconcile_chain(max_windows: int | None = None) -> dict:
    """
    Run one reconciliation of the configured chain.

    Args:
        max_windows: Stop after this many windows (None = until caught up)

    Returns:
        Report as dict
    """
    logger.info(f"[Reconcile Task] Starting (max_windows={max_windows})")
    report = run_async(_reconcile_async(max_windows))
    logger.info(f"[Reconcile Task] Finished: {report}")
    return report


async def _reconcile_async(max_windows: int | None) -> dict:
    """Async implementation using a NullPool engine owned by this run."""
    engine = create_engine(settings, use_null_pool=True)
    store = SqlEventStore(create_session_maker(engine), settings.chain_id)
    gateway = Web3ChainGateway(settings.chain_id, settings.rpc_http_url)
    bus = create_notification_bus(settings)

    try:
        reconciler = build_reconciler(settings, gateway, store, bus)
        report = await reconciler.run(max_windows=max_windows)
        return {
            "chain_id": settings.chain_id,
            "from_block": report.from_block,
            "to_block": report.to_block,
            "windows": report.windows,
            "applied": report.applied,
            "duplicates": report.duplicates,
            "skipped": report.skipped,
            "pending": report.pending,
            "resolved": report.resolved,
            "redelivered": report.redelivered,
            "caught_up": report.caught_up,
        }
    finally:
        await bus.close()
        await gateway.close()
        await engine.dispose()
