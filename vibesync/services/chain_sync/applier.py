"""
Event Applier.

The single decode-and-apply path shared by the backfill reconciler and
the live subscriber.
"""

from datetime import datetime

from loguru import logger

from vibesync.config.constants import PENDING_CLAIM_ALERT_ATTEMPTS
from vibesync.services.event_decoder.events import (
    BountyClaimed,
    BountyOpened,
    DomainEvent,
    TransferSent,
)
from vibesync.services.event_store.base import ApplyResult, EventStore
from vibesync.services.notification_bus.base import NotificationBus
from vibesync.utils.datetime_utils import utc_now
from vibesync.utils.exceptions import TransientNetworkError
from vibesync.utils.security import mask_address, mask_tx_hash


class EventApplier:
    """
    Applies domain events to the store and publishes the applied ones.

    Publishing happens only after the store transaction committed, and
    only for APPLIED results, so each persisted event is announced by
    whichever path applied it first. The store queues every applied
    event's notification with the record; a queued notification is
    dropped once the bus accepts it and otherwise retried by
    redeliver(), so delivery is at-least-once.
    """

    def __init__(
        self,
        store: EventStore,
        bus: NotificationBus,
        chain_id: int,
        pending_alert_attempts: int = PENDING_CLAIM_ALERT_ATTEMPTS,
    ):
        self.store = store
        self.bus = bus
        self.chain_id = chain_id
        self.pending_alert_attempts = pending_alert_attempts
        self.last_applied_at: datetime | None = None
        self.applied_count = 0

    async def apply(self, event: DomainEvent) -> ApplyResult:
        """
        Persist one event and publish it if it was new.

        Args:
            event: Decoded domain event

        Returns:
            Store result
        """
        if isinstance(event, TransferSent):
            result = await self.store.upsert_transfer(event)
        elif isinstance(event, BountyOpened):
            result = await self.store.upsert_bounty_opened(event)
        elif isinstance(event, BountyClaimed):
            result = await self.store.apply_bounty_claim(event)
        else:
            raise TypeError(f"Unsupported event {type(event).__name__}")

        if result is not ApplyResult.APPLIED:
            return result

        self.last_applied_at = utc_now()
        self.applied_count += 1
        logger.info(
            f"[Applier] {event.event_type} applied "
            f"(block {event.block_number}, tx {mask_tx_hash(event.tx_id)}:{event.log_index})"
        )
        await self._publish(event)

        if isinstance(event, BountyOpened):
            await self.resolve_pending(event.bounty_id)

        return result

    async def _publish(self, event: DomainEvent) -> None:
        try:
            await self.bus.publish(event)
        except TransientNetworkError as e:
            # The queued notification stays in the outbox for redeliver()
            logger.warning(
                f"[Applier] Failed to publish {event.event_type} "
                f"{mask_tx_hash(event.tx_id)}:{event.log_index}, queued for retry: {e}"
            )
            return
        await self.store.mark_delivered(event.tx_id, event.log_index)

    async def redeliver(self, limit: int = 500) -> int:
        """
        Publish notifications left queued by earlier publish failures.

        Stops at the first failure so messages keep their order; the
        rest are retried on the next call.

        Args:
            limit: Max notifications per call

        Returns:
            Number delivered
        """
        delivered = 0

        for entry in await self.store.list_undelivered(self.chain_id, limit):
            try:
                await self.bus.publish_message(entry.message_type, entry.data)
            except TransientNetworkError as e:
                attempts = await self.store.record_delivery_failure(entry.id, str(e))
                logger.warning(
                    f"[Applier] Redelivery of {entry.message_type} "
                    f"{mask_tx_hash(entry.tx_hash)}:{entry.log_index} failed "
                    f"(attempts {attempts}): {e}"
                )
                break
            await self.store.mark_delivered(entry.tx_hash, entry.log_index)
            delivered += 1

        if delivered:
            logger.info(f"[Applier] Redelivered {delivered} queued notifications")
        return delivered

    async def defer_claim(self, event: BountyClaimed) -> None:
        """
        Persist a claim whose bounty is not known yet.

        Args:
            event: Claim that returned NOT_FOUND
        """
        pending = await self.store.record_pending_claim(self.chain_id, event)
        logger.warning(
            f"[Applier] Claim by {mask_address(event.claimer)} for unknown bounty "
            f"{event.bounty_id} buffered "
            f"(tx {mask_tx_hash(event.tx_id)}:{event.log_index}, "
            f"attempts {pending.attempts})"
        )
        self._alert_if_stuck(event, pending.attempts)

    async def resolve_pending(self, bounty_id: str | None = None) -> tuple[int, int]:
        """
        Retry buffered claims.

        Args:
            bounty_id: Only claims of this bounty (all if None)

        Returns:
            (resolved, still_pending)
        """
        resolved = 0
        still_pending = 0

        for pending in await self.store.list_pending_claims(self.chain_id, bounty_id):
            result = await self.apply(pending.event)
            if result is ApplyResult.NOT_FOUND:
                attempts = await self.store.touch_pending_claim(pending.id)
                self._alert_if_stuck(pending.event, attempts)
                still_pending += 1
                continue

            await self.store.resolve_pending_claim(pending.id)
            resolved += 1
            logger.info(
                f"[Applier] Buffered claim for bounty {pending.event.bounty_id} resolved"
            )

        return resolved, still_pending

    def _alert_if_stuck(self, event: BountyClaimed, attempts: int) -> None:
        if attempts >= self.pending_alert_attempts:
            logger.error(
                f"[Applier] ANOMALY: claim {mask_tx_hash(event.tx_id)}:{event.log_index} "
                f"for bounty {event.bounty_id} still unresolved after {attempts} attempts"
            )
