"""
Kitchen Timer — Kitchen service

Wraps KitchenStore for concurrent use:
  - every store read-modify-write runs under one asyncio.Lock
    (tick loop and request handlers share the same tables)
  - backend calls happen outside the lock
  - optimistic transitions: mutate locally, call the backend, and on failure
    re-fetch the order and overwrite the local guess with the server's view
  - confirmed status updates: backend first, then a version-checked commit
    retried on StaleVersionError
"""
import asyncio
import logging

from kitchen_timer.clients.backend import BackendError, KitchenBackendClient
from kitchen_timer.core.notifier import AlertPublisher
from kitchen_timer.core.optimistic_lock import StaleVersionError, with_optimistic_retry
from kitchen_timer.models.order import KitchenOrder, KitchenOrderStatus
from kitchen_timer.models.timer import CookingTimer
from kitchen_timer.models.workstation import Workstation, WorkstationType
from kitchen_timer.store.kitchen_store import KitchenStore, TickResult

logger = logging.getLogger(__name__)

ORDER_CREATED = "ORDER_CREATED"
ORDER_UPDATED = "ORDER_UPDATED"
ORDER_DELETED = "ORDER_DELETED"


class KitchenService:
    def __init__(
        self,
        store: KitchenStore,
        backend: KitchenBackendClient,
        publisher: AlertPublisher | None = None,
    ):
        self.store = store
        self.backend = backend
        self.publisher = publisher
        self._lock = asyncio.Lock()

    # ── Reads ─────────────────────────────────────────────────────────────────
    async def list_orders(self, status: KitchenOrderStatus | None = None) -> list[KitchenOrder]:
        async with self._lock:
            return self.store.list_orders(status)

    async def get_order(self, order_id: str) -> KitchenOrder:
        async with self._lock:
            return self.store.get_order(order_id)

    async def list_timers(self) -> list[CookingTimer]:
        async with self._lock:
            return list(self.store.timers.values())

    async def list_workstations(self) -> list[Workstation]:
        async with self._lock:
            return list(self.store.workstations.values())

    async def stats(self) -> dict:
        async with self._lock:
            return self.store.stats()

    # ── Tick ──────────────────────────────────────────────────────────────────
    async def tick(self) -> TickResult:
        async with self._lock:
            result = self.store.tick()
            overdue = [self.store.orders[oid] for oid in result.overdue_order_ids]

        for order in overdue:
            logger.info("Order %s: overdue", order.id)
            await self._publish_status(order)
        if self.publisher is not None:
            for alert in result.alerts:
                await self.publisher.publish_alert(alert)
        return result

    # ── Optimistic transitions ────────────────────────────────────────────────
    async def start_order(self, order_id: str) -> KitchenOrder:
        async with self._lock:
            before = self.store.get_order(order_id).version
            order = self.store.start_order(order_id)
            changed = order.version != before
        if not changed:
            return order
        try:
            await self.backend.start_order(order_id)
        except BackendError as exc:
            logger.warning("Order %s: backend start failed (%s), reconciling", order_id, exc)
            return await self._reconcile(order_id)
        await self._publish_status(order)
        return order

    async def complete_order(self, order_id: str) -> KitchenOrder:
        async with self._lock:
            before = self.store.get_order(order_id).version
            order = self.store.complete_order(order_id)
            changed = order.version != before
        if not changed:
            return order
        try:
            await self.backend.complete_order(order_id)
        except BackendError as exc:
            logger.warning("Order %s: backend complete failed (%s), reconciling", order_id, exc)
            return await self._reconcile(order_id)
        await self._publish_status(order)
        return order

    async def reset(self, order_id: str) -> KitchenOrder:
        async with self._lock:
            before = self.store.get_order(order_id).version
            order = self.store.reset(order_id)
            changed = order.version != before
        if not changed:
            return order
        try:
            await self.backend.update_status(order_id, KitchenOrderStatus.QUEUED)
        except BackendError as exc:
            logger.warning("Order %s: backend reset failed (%s), reconciling", order_id, exc)
            return await self._reconcile(order_id)
        await self._publish_status(order)
        return order

    async def update_status(
        self,
        order_id: str,
        status: KitchenOrderStatus,
        expected_version: int | None = None,
    ) -> KitchenOrder:
        async with self._lock:
            before = self.store.get_order(order_id).version
            order = self.store.update_status(order_id, status, expected_version)
            changed = order.version != before
        if not changed:
            return order
        try:
            await self.backend.update_status(order_id, status)
        except BackendError as exc:
            logger.warning("Order %s: backend status update failed (%s), reconciling", order_id, exc)
            return await self._reconcile(order_id)
        await self._publish_status(order)
        return order

    async def sync_status(
        self,
        order_id: str,
        status: KitchenOrderStatus,
        expected_version: int | None = None,
    ) -> KitchenOrder:
        """
        Server-confirmed status update. The backend is written first; the
        local commit only succeeds if nothing touched the order meanwhile.
        BackendError propagates and leaves local state untouched.

        ``expected_version`` is the caller's precondition: it is checked once,
        before the backend write, and a mismatch is not retried.
        """
        if expected_version is not None:
            async with self._lock:
                current = self.store.get_order(order_id).version
            if current != expected_version:
                raise StaleVersionError(order_id, expected_version, current)
        return await self._sync_status(order_id, status)

    @with_optimistic_retry()
    async def _sync_status(self, order_id: str, status: KitchenOrderStatus) -> KitchenOrder:
        async with self._lock:
            version = self.store.get_order(order_id).version
        await self.backend.update_status(order_id, status)
        async with self._lock:
            order = self.store.update_status(order_id, status, expected_version=version)
        await self._publish_status(order)
        return order

    # ── Local-only controls ───────────────────────────────────────────────────
    async def pause(self, order_id: str) -> list[CookingTimer]:
        async with self._lock:
            return self.store.pause(order_id)

    async def resume(self, order_id: str) -> list[CookingTimer]:
        async with self._lock:
            return self.store.resume(order_id)

    async def start_item(self, order_id: str, item_id: str, seconds: int | None = None) -> CookingTimer:
        async with self._lock:
            return self.store.start_item_timer(order_id, item_id, seconds)

    async def complete_item(self, order_id: str, item_id: str) -> KitchenOrder:
        async with self._lock:
            return self.store.complete_order_item(order_id, item_id)

    async def assign_workstation(
        self,
        order_id: str,
        workstation: WorkstationType,
        staff_id: str | None = None,
        staff_name: str | None = None,
    ) -> KitchenOrder:
        async with self._lock:
            return self.store.assign_workstation(order_id, workstation, staff_id, staff_name)

    # ── Backend sync ──────────────────────────────────────────────────────────
    async def refresh(self) -> list[KitchenOrder]:
        snapshots = await self.backend.fetch_orders()
        async with self._lock:
            orders = self.store.replace_orders(snapshots)
        logger.info("Kitchen queue refreshed: %d orders", len(orders))
        return orders

    async def apply_event(self, event_type: str, data: dict) -> KitchenOrder | None:
        """Apply an order-lifecycle event pushed by the backend."""
        if event_type in (ORDER_CREATED, ORDER_UPDATED):
            snapshot = self.backend.parse_order(data)
            async with self._lock:
                order = self.store.apply_snapshot(snapshot)
            await self._publish_status(order)
            return order
        if event_type == ORDER_DELETED:
            order_id = str(data.get("id") or data.get("orderId") or "")
            if not order_id:
                raise BackendError("ORDER_DELETED event without an order id")
            async with self._lock:
                self.store.remove_order(order_id)
            return None
        logger.info("Ignoring unknown backend event type %r", event_type)
        return None

    async def _reconcile(self, order_id: str) -> KitchenOrder:
        try:
            snapshot = await self.backend.fetch_order(order_id)
        except BackendError as exc:
            logger.warning("Order %s: re-fetch failed (%s), keeping local state", order_id, exc)
            async with self._lock:
                return self.store.get_order(order_id)
        async with self._lock:
            order = self.store.apply_snapshot(snapshot)
        await self._publish_status(order)
        return order

    async def _publish_status(self, order: KitchenOrder) -> None:
        if self.publisher is not None:
            await self.publisher.publish_status(order)
