"""
Kitchen Timer — Order backend client

The order backend owns persistence; this service only reads its queue and
forwards kitchen transitions. Every failure surfaces as BackendError so the
caller can reconcile.
"""
import logging

import httpx
from pydantic import ValidationError

from kitchen_timer.core.clock import Clock, utc_now
from kitchen_timer.core.config import get_settings
from kitchen_timer.models.order import (
    ItemStatus,
    KitchenOrder,
    KitchenOrderItem,
    KitchenOrderStatus,
    OrderPriority,
    PreparationStep,
    parse_status,
    to_management,
)
from kitchen_timer.schemas.backend import GUEST_NAME, BackendOrder

settings = get_settings()
logger = logging.getLogger(__name__)


class BackendError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class KitchenBackendClient:
    QUEUE_PATH = "/api/staff/kitchen/queue"
    ORDER_PATH = "/api/staff/kitchen/orders/{order_id}"
    STATUS_PATH = "/api/staff/orders/{order_id}/status"
    HEALTH_PATH = "/api/health"

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        strict: bool | None = None,
        default_estimated_minutes: int | None = None,
        clock: Clock = utc_now,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.strict = settings.BACKEND_STRICT_PAYLOADS if strict is None else strict
        self.default_estimated_minutes = (
            default_estimated_minutes or settings.KITCHEN_DEFAULT_ESTIMATED_MINUTES
        )
        self.clock = clock
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.BACKEND_BASE_URL,
            timeout=timeout or settings.HTTP_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Operations ────────────────────────────────────────────────────────────
    async def fetch_orders(self) -> list[KitchenOrder]:
        """Fetch the kitchen queue. Unparseable entries are logged and skipped."""
        data = await self._request("GET", self.QUEUE_PATH)
        buckets: list[tuple[list, KitchenOrderStatus | None]]
        if isinstance(data, list):
            buckets = [(data, None)]
        else:
            buckets = [
                (data.get("queued") or [], KitchenOrderStatus.QUEUED),
                (data.get("active") or [], KitchenOrderStatus.ACTIVE),
                (data.get("overdue") or [], KitchenOrderStatus.OVERDUE),
            ]

        orders: list[KitchenOrder] = []
        for raw_orders, bucket_status in buckets:
            for raw in raw_orders:
                try:
                    orders.append(self.parse_order(raw, default_status=bucket_status))
                except BackendError as exc:
                    logger.warning("Skipping malformed order payload: %s", exc)
        return orders

    async def fetch_order(self, order_id: str) -> KitchenOrder:
        data = await self._request("GET", self.ORDER_PATH.format(order_id=order_id))
        return self.parse_order(data)

    async def start_order(self, order_id: str) -> None:
        await self._request("POST", self.ORDER_PATH.format(order_id=order_id) + "/start")

    async def complete_order(self, order_id: str) -> None:
        await self._request("POST", self.ORDER_PATH.format(order_id=order_id) + "/complete")

    async def update_status(self, order_id: str, status: KitchenOrderStatus) -> None:
        await self._request(
            "PUT",
            self.STATUS_PATH.format(order_id=order_id),
            json={"status": to_management(status).value.upper(), "kitchenStatus": status.value},
        )

    async def ping(self) -> bool:
        response = await self._client.get(self.HEALTH_PATH)
        return response.status_code == 200

    # ── Payload mapping ───────────────────────────────────────────────────────
    def parse_order(
        self, raw: dict, default_status: KitchenOrderStatus | None = None
    ) -> KitchenOrder:
        try:
            payload = BackendOrder.model_validate(raw)
        except ValidationError as exc:
            raise BackendError(f"Invalid order payload: {exc.errors()[0]['msg']}") from exc

        missing = payload.missing_fields()
        if default_status is not None and "status" in missing:
            missing.remove("status")
        if missing:
            if self.strict:
                raise BackendError(f"Order '{payload.id}' is missing fields: {', '.join(missing)}")
            logger.debug("Order %s: defaulted missing fields %s", payload.id, missing)

        try:
            if payload.status:
                status = parse_status(payload.status)
            else:
                status = default_status or KitchenOrderStatus.QUEUED
            priority = OrderPriority((payload.priority or "normal").lower())
            items = [
                KitchenOrderItem(
                    id=i.id,
                    name=i.name,
                    quantity=i.quantity,
                    menu_item_id=i.menu_item_id,
                    workstation=i.workstation.lower(),
                    estimated_time=i.estimated_time,
                    status=ItemStatus(i.status.lower()),
                    special_requests=i.special_requests,
                    preparation_steps=[
                        PreparationStep(
                            id=s.id,
                            description=s.description,
                            estimated_time=s.estimated_time,
                            completed=s.completed,
                            actual_time=s.actual_time,
                        )
                        for s in i.preparation_steps
                    ],
                )
                for i in payload.items
            ]
        except (KeyError, ValueError) as exc:
            raise BackendError(f"Order '{payload.id}' has an unknown enum value: {exc}") from exc

        now = self.clock()
        return KitchenOrder(
            id=payload.id,
            order_number=payload.order_number or payload.id,
            customer_name=payload.customer_name or GUEST_NAME,
            status=status,
            priority=priority,
            estimated_time=(
                payload.estimated_time
                if payload.estimated_time is not None
                else self.default_estimated_minutes
            ),
            actual_start_time=payload.actual_start_time,
            actual_end_time=payload.actual_end_time,
            assigned_workstation=payload.assigned_workstation,
            assigned_staff_id=payload.assigned_staff_id,
            assigned_staff_name=payload.assigned_staff_name,
            special_instructions=payload.special_instructions,
            allergen_alerts=payload.allergen_alerts,
            items=items,
            created_at=payload.created_at or now,
            updated_at=payload.updated_at or now,
        )

    # ── Transport ─────────────────────────────────────────────────────────────
    async def _request(self, method: str, path: str, **kwargs):
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise BackendError(f"Order backend timed out on {method} {path}") from exc
        except httpx.RequestError as exc:
            raise BackendError(f"Order backend unreachable: {exc}") from exc

        if not response.is_success:
            detail = response.text
            try:
                body = response.json()
                if isinstance(body, dict):
                    detail = body.get("detail", detail)
            except ValueError:
                pass
            raise BackendError(
                f"Order backend returned {response.status_code} on {method} {path}: {detail}",
                status_code=response.status_code,
            )
        if not response.content:
            return None
        return response.json()
