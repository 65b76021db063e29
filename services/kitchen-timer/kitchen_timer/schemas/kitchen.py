"""
Kitchen Timer — Pydantic Schemas
"""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from kitchen_timer.models.order import KitchenOrder, KitchenOrderItem, to_management
from kitchen_timer.models.timer import CookingTimer
from kitchen_timer.models.workstation import Workstation, WorkstationType


# ── Requests ───────────────────────────────────────────────────────────────────
class StatusUpdateRequest(BaseModel):
    status: str = Field(..., examples=["active", "preparing"])


class ItemTimerRequest(BaseModel):
    seconds: int | None = Field(None, ge=0, le=24 * 3600)


class WorkstationAssignRequest(BaseModel):
    workstation: WorkstationType
    staff_id: str | None = None
    staff_name: str | None = Field(None, max_length=100)


class BackendEventRequest(BaseModel):
    type: str = Field(..., examples=["ORDER_UPDATED"])
    data: dict[str, Any] = Field(default_factory=dict)


# ── Responses ──────────────────────────────────────────────────────────────────
class TimerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_id: str
    item_id: str | None
    start_time: datetime
    estimated_duration: int
    remaining_time: int
    is_running: bool
    is_paused: bool
    is_overdue: bool
    alert_threshold: float
    progress: float


class PreparationStepOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    description: str
    estimated_time: int
    completed: bool
    actual_time: int | None


class OrderItemOut(BaseModel):
    id: str
    name: str
    quantity: int
    menu_item_id: str | None
    workstation: str
    estimated_time: int
    status: str
    special_requests: str | None
    preparation_steps: list[PreparationStepOut]

    @classmethod
    def from_item(cls, item: KitchenOrderItem) -> "OrderItemOut":
        return cls(
            id=item.id,
            name=item.name,
            quantity=item.quantity,
            menu_item_id=item.menu_item_id,
            workstation=item.workstation,
            estimated_time=item.estimated_time,
            status=item.status.value,
            special_requests=item.special_requests,
            preparation_steps=[PreparationStepOut.model_validate(s) for s in item.preparation_steps],
        )


class OrderOut(BaseModel):
    id: str
    order_number: str
    customer_name: str | None
    status: str
    management_status: str
    priority: str
    estimated_time: int
    actual_start_time: datetime | None
    actual_end_time: datetime | None
    assigned_workstation: str | None
    assigned_staff_id: str | None
    assigned_staff_name: str | None
    special_instructions: str | None
    allergen_alerts: list[str]
    items: list[OrderItemOut]
    version: int
    created_at: datetime
    updated_at: datetime
    timers: list[TimerOut] = Field(default_factory=list)

    @classmethod
    def from_order(cls, order: KitchenOrder, timers: list[CookingTimer] | None = None) -> "OrderOut":
        data = {
            name: getattr(order, name)
            for name in cls.model_fields
            if name not in ("management_status", "timers", "items")
        }
        data["status"] = order.status.value
        data["priority"] = order.priority.value
        data["management_status"] = to_management(order.status).value
        data["items"] = [OrderItemOut.from_item(item) for item in order.items]
        data["timers"] = [TimerOut.model_validate(t) for t in timers or []]
        return cls(**data)


class WorkstationOut(BaseModel):
    type: str
    name: str
    capacity: int
    is_active: bool
    assigned_staff_id: str | None
    assigned_staff_name: str | None
    current_orders: list[str]
    load_percent: float
    load_level: str

    @classmethod
    def from_workstation(cls, ws: Workstation) -> "WorkstationOut":
        return cls(
            type=ws.type.value,
            name=ws.name,
            capacity=ws.capacity,
            is_active=ws.is_active,
            assigned_staff_id=ws.assigned_staff_id,
            assigned_staff_name=ws.assigned_staff_name,
            current_orders=list(ws.current_orders),
            load_percent=ws.load_percent,
            load_level=ws.load_level,
        )
