"""
Kitchen Timer — Order/timer state store (order state machine)

State transitions: QUEUED → ACTIVE → OVERDUE → COMPLETED, reset → QUEUED.
Timers are created and destroyed by the same calls that move the order, so a
timer only ever exists for an ACTIVE or OVERDUE order.

The store is synchronous and holds no lock of its own: KitchenService
serializes every call behind an asyncio.Lock.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime

from kitchen_timer.core.clock import Clock, utc_now
from kitchen_timer.core.optimistic_lock import StaleVersionError
from kitchen_timer.models.order import (
    ItemStatus,
    KitchenOrder,
    KitchenOrderItem,
    KitchenOrderStatus,
)
from kitchen_timer.models.timer import DEFAULT_ALERT_THRESHOLD_CAP, CookingTimer, TimerKey
from kitchen_timer.models.workstation import Workstation, WorkstationType, default_workstations
from kitchen_timer.store.alerts import AlertMonitor, TimerAlert

logger = logging.getLogger(__name__)


class OrderNotFoundError(LookupError):
    def __init__(self, order_id: str):
        super().__init__(f"Order '{order_id}' not found.")
        self.order_id = order_id


class ItemNotFoundError(LookupError):
    def __init__(self, order_id: str, item_id: str):
        super().__init__(f"Item '{item_id}' not found on order '{order_id}'.")
        self.order_id = order_id
        self.item_id = item_id


class TimerNotFoundError(LookupError):
    def __init__(self, order_id: str):
        super().__init__(f"No timer running for order '{order_id}'.")
        self.order_id = order_id


class InvalidTransitionError(Exception):
    def __init__(self, order_id: str, current: KitchenOrderStatus, event: str):
        super().__init__(f"Cannot {event} order '{order_id}' from status '{current.value}'.")
        self.order_id = order_id
        self.current = current
        self.event = event


class WorkstationUnavailableError(Exception):
    pass


class WorkstationFullError(Exception):
    pass


@dataclass
class TickResult:
    overdue_order_ids: list[str] = field(default_factory=list)
    alerts: list[TimerAlert] = field(default_factory=list)


class KitchenStore:
    def __init__(
        self,
        clock: Clock = utc_now,
        legacy_pause: bool = False,
        alert_threshold_cap: int = DEFAULT_ALERT_THRESHOLD_CAP,
        alert_monitor: AlertMonitor | None = None,
        workstations: dict[WorkstationType, Workstation] | None = None,
    ):
        self.clock = clock
        self.legacy_pause = legacy_pause
        self.alert_threshold_cap = alert_threshold_cap
        self.alert_monitor = alert_monitor or AlertMonitor()
        self.orders: dict[str, KitchenOrder] = {}
        self.timers: dict[TimerKey, CookingTimer] = {}
        self.workstations = workstations if workstations is not None else default_workstations()

    # ── Lookups ───────────────────────────────────────────────────────────────
    def get_order(self, order_id: str) -> KitchenOrder:
        order = self.orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def list_orders(self, status: KitchenOrderStatus | None = None) -> list[KitchenOrder]:
        orders = list(self.orders.values())
        if status is not None:
            orders = [o for o in orders if o.status == status]
        return orders

    def get_timer(self, order_id: str, item_id: str | None = None) -> CookingTimer | None:
        return self.timers.get((order_id, item_id))

    def timers_for(self, order_id: str) -> list[CookingTimer]:
        return [t for t in self.timers.values() if t.order_id == order_id]

    def add_order(self, order: KitchenOrder) -> KitchenOrder:
        self.orders[order.id] = order
        return order

    # ── Order lifecycle ───────────────────────────────────────────────────────
    def start_order(self, order_id: str) -> KitchenOrder:
        order = self.get_order(order_id)
        if order.is_in_progress:
            return order
        if order.status != KitchenOrderStatus.QUEUED:
            raise InvalidTransitionError(order_id, order.status, "start")

        now = self.clock()
        self._enter_active(order, now)
        self._create_timer(order_id, order.estimated_time * 60, now)
        order.touch(now)
        logger.info("Order %s: started (%d min budget)", order_id, order.estimated_time)
        return order

    def complete_order(self, order_id: str) -> KitchenOrder:
        order = self.get_order(order_id)
        if order.is_terminal:
            return order
        if not order.is_in_progress:
            raise InvalidTransitionError(order_id, order.status, "complete")

        now = self.clock()
        self._enter_completed(order, now)
        order.touch(now)
        logger.info("Order %s: completed", order_id)
        return order

    def reset(self, order_id: str) -> KitchenOrder:
        order = self.get_order(order_id)
        had_timers = self._drop_timers(order_id)
        if order.status != KitchenOrderStatus.QUEUED or had_timers:
            order.status = KitchenOrderStatus.QUEUED
            order.actual_end_time = None
            order.touch(self.clock())
            logger.info("Order %s: reset to queue", order_id)
        return order

    def update_status(
        self,
        order_id: str,
        status: KitchenOrderStatus,
        expected_version: int | None = None,
    ) -> KitchenOrder:
        """Manual status set, optionally guarded by the version the caller read."""
        order = self.get_order(order_id)
        if expected_version is not None and expected_version != order.version:
            raise StaleVersionError(order_id, expected_version, order.version)
        if order.status == status:
            return order

        now = self.clock()
        previous = order.status
        if previous == KitchenOrderStatus.COMPLETED:
            order.actual_end_time = None
        if status in (KitchenOrderStatus.ACTIVE, KitchenOrderStatus.OVERDUE):
            self._enter_active(order, now)
            self._ensure_timer(order, now, started=now)
            order.status = status
        elif status == KitchenOrderStatus.COMPLETED:
            self._enter_completed(order, now)
        else:
            self._drop_timers(order_id)
            order.status = status
        order.touch(now)
        logger.info("Order %s: %s -> %s", order_id, previous.value, status.value)
        return order

    def remove_order(self, order_id: str) -> None:
        self._drop_timers(order_id)
        self._release_workstation(order_id)
        self.orders.pop(order_id, None)

    # ── Timer controls ────────────────────────────────────────────────────────
    def pause(self, order_id: str) -> list[CookingTimer]:
        order = self.get_order(order_id)
        if order.status != KitchenOrderStatus.ACTIVE:
            raise InvalidTransitionError(order_id, order.status, "pause")
        timers = self.timers_for(order_id)
        if not timers:
            raise TimerNotFoundError(order_id)
        now = self.clock()
        for timer in timers:
            timer.pause(now)
        logger.info("Order %s: timers paused", order_id)
        return timers

    def resume(self, order_id: str) -> list[CookingTimer]:
        order = self.get_order(order_id)
        if order.status != KitchenOrderStatus.ACTIVE:
            raise InvalidTransitionError(order_id, order.status, "resume")
        timers = self.timers_for(order_id)
        if not timers:
            raise TimerNotFoundError(order_id)
        now = self.clock()
        for timer in timers:
            timer.resume(now, legacy_pause=self.legacy_pause)
        logger.info("Order %s: timers resumed", order_id)
        return timers

    def start_item_timer(
        self, order_id: str, item_id: str, seconds: int | None = None
    ) -> CookingTimer:
        order = self.get_order(order_id)
        if not order.is_in_progress:
            raise InvalidTransitionError(order_id, order.status, "start an item on")
        item = self._get_item(order, item_id)
        now = self.clock()
        duration = seconds if seconds is not None else item.estimated_time * 60
        timer = self._create_timer(order_id, duration, now, item_id=item_id)
        item.status = ItemStatus.PREPARING
        order.touch(now)
        return timer

    def complete_order_item(self, order_id: str, item_id: str) -> KitchenOrder:
        order = self.get_order(order_id)
        item = self._get_item(order, item_id)
        self.timers.pop((order_id, item_id), None)
        if item.status != ItemStatus.READY:
            item.status = ItemStatus.READY
            order.touch(self.clock())
        return order

    # ── Tick ──────────────────────────────────────────────────────────────────
    def tick(self) -> TickResult:
        """
        Advance every counting timer, then sweep orders whose timer is overdue.
        All timers are advanced before the sweep so a timer expiring in this
        tick is picked up by this tick's sweep.
        """
        now = self.clock()
        result = TickResult()

        for timer in list(self.timers.values()):
            if timer.recompute(now, legacy_pause=self.legacy_pause):
                logger.info("Order %s: timer expired (item=%s)", timer.order_id, timer.item_id)

        for timer in list(self.timers.values()):
            if not timer.is_overdue:
                continue
            order = self.orders.get(timer.order_id)
            if order is None:
                continue
            if order.is_terminal or order.status == KitchenOrderStatus.OVERDUE:
                continue
            order.status = KitchenOrderStatus.OVERDUE
            order.touch(now)
            result.overdue_order_ids.append(order.id)

        for timer in list(self.timers.values()):
            result.alerts.extend(self.alert_monitor.evaluate(timer, now))
        return result

    # ── Reconciliation ────────────────────────────────────────────────────────
    def apply_snapshot(self, snapshot: KitchenOrder) -> KitchenOrder:
        """
        Overwrite the local order with the server's view. Replaying the same
        snapshot twice leaves the same order/timer state.
        """
        now = self.clock()
        existing = self.orders.get(snapshot.id)
        snapshot.version = existing.version + 1 if existing else snapshot.version
        self.orders[snapshot.id] = snapshot

        if snapshot.status in (KitchenOrderStatus.QUEUED, KitchenOrderStatus.COMPLETED):
            self._drop_timers(snapshot.id)
        if snapshot.is_terminal:
            self._release_workstation(snapshot.id)
        elif snapshot.is_in_progress:
            self._ensure_timer(snapshot, now, started=snapshot.actual_start_time or now)
        return snapshot

    def replace_orders(self, snapshots: list[KitchenOrder]) -> list[KitchenOrder]:
        """
        Rebuild the order table from a full fetch. Timers of orders that are
        still in progress survive; every local order the fetch no longer
        returns is dropped, completed ones included.
        """
        fetched = {s.id for s in snapshots}
        for order_id in list(self.orders):
            if order_id not in fetched:
                self.remove_order(order_id)
        return [self.apply_snapshot(s) for s in snapshots]

    # ── Workstations ──────────────────────────────────────────────────────────
    def assign_workstation(
        self,
        order_id: str,
        workstation: WorkstationType,
        staff_id: str | None = None,
        staff_name: str | None = None,
    ) -> KitchenOrder:
        order = self.get_order(order_id)
        station = self.workstations.get(workstation)
        if station is None or not station.is_active:
            raise WorkstationUnavailableError(f"Workstation '{workstation.value}' is not available.")
        if order_id not in station.current_orders:
            if station.is_full:
                raise WorkstationFullError(
                    f"Workstation '{workstation.value}' is at capacity ({station.capacity})."
                )
            self._release_workstation(order_id)
            station.current_orders.append(order_id)

        order.assigned_workstation = workstation.value
        if staff_id is not None:
            order.assigned_staff_id = staff_id
            order.assigned_staff_name = staff_name or f"Staff {staff_id}"
        order.touch(self.clock())
        return order

    # ── Statistics ────────────────────────────────────────────────────────────
    def stats(self) -> dict:
        counts = {s: 0 for s in KitchenOrderStatus}
        durations: list[float] = []
        for order in self.orders.values():
            counts[order.status] += 1
            if order.actual_start_time and order.actual_end_time:
                durations.append((order.actual_end_time - order.actual_start_time).total_seconds() / 60)

        return {
            "total_orders": len(self.orders),
            "queued_orders": counts[KitchenOrderStatus.QUEUED],
            "active_orders": counts[KitchenOrderStatus.ACTIVE],
            "overdue_orders": counts[KitchenOrderStatus.OVERDUE],
            "completed_orders": counts[KitchenOrderStatus.COMPLETED],
            "average_completion_minutes": round(sum(durations) / len(durations), 1) if durations else 0.0,
            "active_timers": len(self.timers),
            "workstation_utilization": {
                ws.type.value: ws.load_percent for ws in self.workstations.values()
            },
        }

    # ── Internals ─────────────────────────────────────────────────────────────
    def _create_timer(
        self, order_id: str, seconds: int, now: datetime, item_id: str | None = None
    ) -> CookingTimer:
        timer = CookingTimer.start(
            order_id, seconds, now, item_id=item_id, threshold_cap=self.alert_threshold_cap
        )
        self.timers[timer.key] = timer
        return timer

    def _ensure_timer(self, order: KitchenOrder, now: datetime, started: datetime) -> None:
        if self.get_timer(order.id) is not None:
            return
        if order.actual_start_time is None:
            order.actual_start_time = started
        timer = self._create_timer(order.id, order.estimated_time * 60, started)
        timer.recompute(now, legacy_pause=self.legacy_pause)

    def _drop_timers(self, order_id: str) -> bool:
        keys = [k for k in self.timers if k[0] == order_id]
        for key in keys:
            del self.timers[key]
        return bool(keys)

    def _release_workstation(self, order_id: str) -> None:
        for station in self.workstations.values():
            if order_id in station.current_orders:
                station.current_orders.remove(order_id)

    def _enter_active(self, order: KitchenOrder, now: datetime) -> None:
        order.status = KitchenOrderStatus.ACTIVE
        if order.actual_start_time is None:
            order.actual_start_time = now

    def _enter_completed(self, order: KitchenOrder, now: datetime) -> None:
        order.status = KitchenOrderStatus.COMPLETED
        if order.actual_end_time is None:
            order.actual_end_time = now
        self._drop_timers(order.id)
        self._release_workstation(order.id)

    @staticmethod
    def _get_item(order: KitchenOrder, item_id: str) -> KitchenOrderItem:
        item = order.find_item(item_id)
        if item is None:
            raise ItemNotFoundError(order.id, item_id)
        return item
