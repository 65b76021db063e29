"""
Kitchen Timer — Order records

[IN-MEMORY STATE] — rebuilt from the order backend on refresh.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class KitchenOrderStatus(str, Enum):
    QUEUED = "queued"
    ACTIVE = "active"
    OVERDUE = "overdue"
    COMPLETED = "completed"


class ManagementStatus(str, Enum):
    """Order-management lifecycle used by the backend and the front of house."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OrderPriority(str, Enum):
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class ItemStatus(str, Enum):
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"


# ── Status mappings (total in both directions) ─────────────────────────────────
MANAGEMENT_TO_KITCHEN: dict[ManagementStatus, KitchenOrderStatus] = {
    ManagementStatus.PENDING:   KitchenOrderStatus.QUEUED,
    ManagementStatus.CONFIRMED: KitchenOrderStatus.QUEUED,
    ManagementStatus.PREPARING: KitchenOrderStatus.ACTIVE,
    ManagementStatus.READY:     KitchenOrderStatus.COMPLETED,
    ManagementStatus.COMPLETED: KitchenOrderStatus.COMPLETED,
    ManagementStatus.CANCELLED: KitchenOrderStatus.COMPLETED,
}
KITCHEN_TO_MANAGEMENT: dict[KitchenOrderStatus, ManagementStatus] = {
    KitchenOrderStatus.QUEUED:    ManagementStatus.CONFIRMED,
    KitchenOrderStatus.ACTIVE:    ManagementStatus.PREPARING,
    KitchenOrderStatus.OVERDUE:   ManagementStatus.PREPARING,
    KitchenOrderStatus.COMPLETED: ManagementStatus.READY,
}

# Backend spellings that are not enum values
_MANAGEMENT_ALIASES = {
    "delivered": ManagementStatus.COMPLETED,
    "pending_payment": ManagementStatus.PENDING,
    "processing": ManagementStatus.PREPARING,
}

IN_PROGRESS_STATUSES = frozenset({KitchenOrderStatus.ACTIVE, KitchenOrderStatus.OVERDUE})
TERMINAL_STATUSES = frozenset({KitchenOrderStatus.COMPLETED})


def parse_status(raw: str) -> KitchenOrderStatus:
    """
    Resolve a status string from either lifecycle to the kitchen status.
    Kitchen values win when a word exists in both (``completed``).
    Raises ValueError for unknown strings.
    """
    value = raw.strip().lower()
    try:
        return KitchenOrderStatus(value)
    except ValueError:
        pass
    if value in _MANAGEMENT_ALIASES:
        return MANAGEMENT_TO_KITCHEN[_MANAGEMENT_ALIASES[value]]
    return MANAGEMENT_TO_KITCHEN[ManagementStatus(value)]


def to_management(status: KitchenOrderStatus) -> ManagementStatus:
    return KITCHEN_TO_MANAGEMENT[status]


@dataclass
class PreparationStep:
    id: str
    description: str
    estimated_time: int  # seconds
    completed: bool = False
    actual_time: int | None = None


@dataclass
class KitchenOrderItem:
    id: str
    name: str
    quantity: int = 1
    menu_item_id: str | None = None
    workstation: str = "hot"
    estimated_time: int = 0  # minutes
    status: ItemStatus = ItemStatus.PENDING
    special_requests: str | None = None
    preparation_steps: list[PreparationStep] = field(default_factory=list)


@dataclass
class KitchenOrder:
    """
    One order as seen by the kitchen.
    ``version`` is bumped on every local mutation and is the compare-and-swap
    token for conditional status updates.
    """
    id: str
    created_at: datetime
    updated_at: datetime
    order_number: str = ""
    customer_name: str | None = None
    status: KitchenOrderStatus = KitchenOrderStatus.QUEUED
    priority: OrderPriority = OrderPriority.NORMAL
    estimated_time: int = 15  # minutes
    actual_start_time: datetime | None = None
    actual_end_time: datetime | None = None
    assigned_workstation: str | None = None
    assigned_staff_id: str | None = None
    assigned_staff_name: str | None = None
    special_instructions: str | None = None
    allergen_alerts: list[str] = field(default_factory=list)
    items: list[KitchenOrderItem] = field(default_factory=list)
    version: int = 1

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_in_progress(self) -> bool:
        return self.status in IN_PROGRESS_STATUSES

    def find_item(self, item_id: str) -> KitchenOrderItem | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def touch(self, now: datetime) -> None:
        self.updated_at = now
        self.version += 1
