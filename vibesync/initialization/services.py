"""
Initialization - Services Module.

Wires gateway, store, bus and sync services from settings.
"""

from dataclasses import dataclass

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncEngine

from vibesync.config.database import create_engine, create_session_maker
from vibesync.config.settings import Settings
from vibesync.services.chain_gateway import LogFilter, Web3ChainGateway
from vibesync.services.chain_sync import (
    BackfillReconciler,
    EventApplier,
    LiveSubscriber,
    SyncOrchestrator,
)
from vibesync.services.event_decoder import EventDecoder
from vibesync.services.event_store import SqlEventStore
from vibesync.services.notification_bus import (
    InMemoryNotificationBus,
    NotificationBus,
    RedisNotificationBus,
)
from vibesync.utils.redis_utils import get_redis_client, get_redis_url_masked


@dataclass
class SyncComponents:
    """Everything a sync process owns and must close on shutdown."""

    engine: AsyncEngine
    gateway: Web3ChainGateway
    store: SqlEventStore
    bus: NotificationBus
    reconciler: BackfillReconciler
    subscriber: LiveSubscriber | None
    orchestrator: SyncOrchestrator


def create_notification_bus(settings: Settings) -> NotificationBus:
    """Build the configured notification bus."""
    if settings.notification_backend == "memory":
        logger.info("[Init] Using in-process notification bus")
        return InMemoryNotificationBus(
            settings.chain_id, settings.notification_channel_prefix
        )

    logger.info(f"[Init] Using Redis notification bus at {get_redis_url_masked(settings)}")
    return RedisNotificationBus(
        get_redis_client(settings),
        settings.chain_id,
        settings.notification_channel_prefix,
    )


def build_reconciler(
    settings: Settings,
    gateway: Web3ChainGateway,
    store: SqlEventStore,
    bus: NotificationBus,
) -> BackfillReconciler:
    """Backfill reconciler with its own applier (also used by the job)."""
    decoder = EventDecoder(
        settings.tipping_contract_address,
        settings.bounty_contract_address,
        settings.token_decimals,
    )
    applier = EventApplier(
        store, bus, settings.chain_id, settings.pending_claim_max_attempts
    )
    return BackfillReconciler(
        gateway=gateway,
        decoder=decoder,
        store=store,
        applier=applier,
        log_filter=LogFilter.for_contracts(settings.contract_addresses),
        chain_id=settings.chain_id,
        start_block=settings.start_block,
        confirmation_lag=settings.confirmation_lag,
        window_size=settings.block_window_size,
        max_attempts=settings.window_max_attempts,
    )


def build_components(settings: Settings) -> SyncComponents:
    """
    Build all sync components for one chain.

    Args:
        settings: Validated settings

    Returns:
        SyncComponents
    """
    engine = create_engine(settings)
    store = SqlEventStore(create_session_maker(engine), settings.chain_id)
    gateway = Web3ChainGateway(
        settings.chain_id, settings.rpc_http_url, settings.rpc_ws_url
    )
    bus = create_notification_bus(settings)
    reconciler = build_reconciler(settings, gateway, store, bus)

    subscriber = None
    if settings.rpc_ws_url:
        subscriber = LiveSubscriber(
            gateway=gateway,
            decoder=reconciler.decoder,
            applier=reconciler.applier,
            log_filter=reconciler.log_filter,
            reconnect_min_delay=settings.reconnect_min_delay,
            reconnect_max_delay=settings.reconnect_max_delay,
        )

    orchestrator = SyncOrchestrator(
        reconciler=reconciler,
        subscriber=subscriber,
        store=store,
        chain_id=settings.chain_id,
        reconcile_interval=settings.reconcile_interval,
        liveness_max_idle=settings.liveness_max_idle,
    )

    return SyncComponents(
        engine=engine,
        gateway=gateway,
        store=store,
        bus=bus,
        reconciler=reconciler,
        subscriber=subscriber,
        orchestrator=orchestrator,
    )
