"""
Kitchen Timer — FastAPI routes
"""
from contextlib import contextmanager

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response

from kitchen_timer.api.deps import get_kitchen_service
from kitchen_timer.clients.backend import BackendError
from kitchen_timer.core.optimistic_lock import StaleVersionError
from kitchen_timer.models.order import KitchenOrder, parse_status
from kitchen_timer.schemas.kitchen import (
    BackendEventRequest,
    ItemTimerRequest,
    OrderOut,
    StatusUpdateRequest,
    TimerOut,
    WorkstationAssignRequest,
    WorkstationOut,
)
from kitchen_timer.services.kitchen_service import KitchenService
from kitchen_timer.store.kitchen_store import (
    InvalidTransitionError,
    ItemNotFoundError,
    OrderNotFoundError,
    TimerNotFoundError,
    WorkstationFullError,
    WorkstationUnavailableError,
)

router = APIRouter(prefix="/kitchen", tags=["kitchen"])


@contextmanager
def _domain_errors():
    try:
        yield
    except (OrderNotFoundError, ItemNotFoundError, TimerNotFoundError) as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except (InvalidTransitionError, WorkstationFullError, WorkstationUnavailableError) as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except StaleVersionError as exc:
        raise HTTPException(
            status_code=412,
            detail=f"Order '{exc.order_id}' is at version {exc.actual}, not {exc.expected}.",
        )
    except BackendError as exc:
        raise HTTPException(status_code=502, detail=str(exc))


def _parse_status_or_422(raw: str):
    try:
        return parse_status(raw)
    except (KeyError, ValueError):
        raise HTTPException(status_code=422, detail=f"Unknown order status '{raw}'.")


def _parse_if_match(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw.strip().strip('"'))
    except ValueError:
        raise HTTPException(status_code=400, detail="If-Match must carry the order version.")


def _out(service: KitchenService, order: KitchenOrder) -> OrderOut:
    return OrderOut.from_order(order, service.store.timers_for(order.id))


# ── Orders ────────────────────────────────────────────────────────────────────
@router.get("/orders")
async def list_orders(
    status: str | None = Query(None, description="Filter by kitchen or management status"),
    service: KitchenService = Depends(get_kitchen_service),
):
    """Kitchen display board: every order the service knows about."""
    wanted = _parse_status_or_422(status) if status else None
    orders = await service.list_orders(wanted)
    return [_out(service, o) for o in orders]


@router.get("/orders/{order_id}")
async def get_order(
    order_id: str,
    response: Response,
    service: KitchenService = Depends(get_kitchen_service),
):
    with _domain_errors():
        order = await service.get_order(order_id)
    response.headers["ETag"] = f'"{order.version}"'
    return _out(service, order)


@router.post("/orders/{order_id}/start")
async def start_order(order_id: str, service: KitchenService = Depends(get_kitchen_service)):
    """Move a queued order to active and start its cooking timer."""
    with _domain_errors():
        order = await service.start_order(order_id)
    return _out(service, order)


@router.post("/orders/{order_id}/complete")
async def complete_order(order_id: str, service: KitchenService = Depends(get_kitchen_service)):
    with _domain_errors():
        order = await service.complete_order(order_id)
    return _out(service, order)


@router.post("/orders/{order_id}/reset")
async def reset_order(order_id: str, service: KitchenService = Depends(get_kitchen_service)):
    """Drop the order's timers and put it back in the queue."""
    with _domain_errors():
        order = await service.reset(order_id)
    return _out(service, order)


@router.put("/orders/{order_id}/status")
async def update_status(
    order_id: str,
    payload: StatusUpdateRequest,
    confirm: bool = Query(False, description="Write to the backend before committing locally"),
    if_match: str | None = Header(None),
    service: KitchenService = Depends(get_kitchen_service),
):
    """
    Manual status change. Accepts kitchen or management status names.
    With If-Match the change only applies to the given version (412 otherwise).
    With ?confirm=true the backend must accept the change first.
    """
    status = _parse_status_or_422(payload.status)
    expected = _parse_if_match(if_match)
    with _domain_errors():
        if confirm:
            order = await service.sync_status(order_id, status, expected_version=expected)
        else:
            order = await service.update_status(order_id, status, expected_version=expected)
    return _out(service, order)


# ── Timers ────────────────────────────────────────────────────────────────────
@router.post("/orders/{order_id}/pause")
async def pause_order(order_id: str, service: KitchenService = Depends(get_kitchen_service)):
    with _domain_errors():
        timers = await service.pause(order_id)
    return [TimerOut.model_validate(t) for t in timers]


@router.post("/orders/{order_id}/resume")
async def resume_order(order_id: str, service: KitchenService = Depends(get_kitchen_service)):
    with _domain_errors():
        timers = await service.resume(order_id)
    return [TimerOut.model_validate(t) for t in timers]


@router.post("/orders/{order_id}/items/{item_id}/start")
async def start_item(
    order_id: str,
    item_id: str,
    payload: ItemTimerRequest | None = None,
    service: KitchenService = Depends(get_kitchen_service),
):
    """Start a per-item timer; defaults to the item's own estimate."""
    seconds = payload.seconds if payload else None
    with _domain_errors():
        timer = await service.start_item(order_id, item_id, seconds)
    return TimerOut.model_validate(timer)


@router.post("/orders/{order_id}/items/{item_id}/complete")
async def complete_item(
    order_id: str,
    item_id: str,
    service: KitchenService = Depends(get_kitchen_service),
):
    with _domain_errors():
        order = await service.complete_item(order_id, item_id)
    return _out(service, order)


@router.get("/timers")
async def list_timers(service: KitchenService = Depends(get_kitchen_service)):
    return [TimerOut.model_validate(t) for t in await service.list_timers()]


# ── Workstations ──────────────────────────────────────────────────────────────
@router.post("/orders/{order_id}/workstation")
async def assign_workstation(
    order_id: str,
    payload: WorkstationAssignRequest,
    service: KitchenService = Depends(get_kitchen_service),
):
    with _domain_errors():
        order = await service.assign_workstation(
            order_id, payload.workstation, payload.staff_id, payload.staff_name
        )
    return _out(service, order)


@router.get("/workstations")
async def list_workstations(service: KitchenService = Depends(get_kitchen_service)):
    return [WorkstationOut.from_workstation(ws) for ws in await service.list_workstations()]


@router.get("/stats")
async def kitchen_stats(service: KitchenService = Depends(get_kitchen_service)):
    return await service.stats()


# ── Backend sync ──────────────────────────────────────────────────────────────
@router.post("/refresh")
async def refresh(service: KitchenService = Depends(get_kitchen_service)):
    """Re-fetch the kitchen queue from the order backend."""
    with _domain_errors():
        orders = await service.refresh()
    return {"count": len(orders), "orders": [_out(service, o) for o in orders]}


@router.post("/events", status_code=202)
async def backend_event(
    payload: BackendEventRequest,
    service: KitchenService = Depends(get_kitchen_service),
):
    """
    Order-lifecycle push from the backend (ORDER_CREATED / ORDER_UPDATED /
    ORDER_DELETED). Malformed payloads are rejected with 422.
    """
    try:
        order = await service.apply_event(payload.type, payload.data)
    except BackendError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return {"type": payload.type, "order": _out(service, order) if order else None}
