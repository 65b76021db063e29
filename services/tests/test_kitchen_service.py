"""
KitchenService: optimistic transitions, reconciliation, CAS retry, events.
"""
import pytest

from kitchen_timer.clients.backend import BackendError
from kitchen_timer.core.optimistic_lock import StaleVersionError
from kitchen_timer.models.order import KitchenOrderStatus
from kitchen_timer.services.kitchen_service import ORDER_CREATED, ORDER_DELETED, ORDER_UPDATED

from conftest import make_order, raw_order


@pytest.fixture
def seeded(store, fake_backend):
    """Order o1 known both locally and to the backend, queued."""
    fake_backend.add(raw_order("o1"))
    return store.add_order(make_order("o1"))


# ─── Optimistic transitions ────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_start_order_calls_backend_and_publishes(service, seeded, fake_backend, fake_redis):
    order = await service.start_order("o1")

    assert order.status == KitchenOrderStatus.ACTIVE
    assert fake_backend.count("POST", "/o1/start") == 1
    [event] = fake_redis.of_type("status_changed")
    assert event["status"] == "active"
    assert event["management_status"] == "preparing"


@pytest.mark.asyncio
async def test_replayed_start_does_not_call_backend_again(service, seeded, fake_backend):
    await service.start_order("o1")
    await service.start_order("o1")
    assert fake_backend.count("POST", "/o1/start") == 1


@pytest.mark.asyncio
async def test_backend_failure_reverts_to_server_state(service, store, seeded, fake_backend):
    fake_backend.fail_on.add("start")

    order = await service.start_order("o1")

    assert order.status == KitchenOrderStatus.QUEUED
    assert store.get_order("o1") is order
    assert store.timers_for("o1") == []
    assert fake_backend.count("GET", "/kitchen/orders/o1") == 1


@pytest.mark.asyncio
async def test_failed_refetch_keeps_local_state(service, store, seeded, fake_backend):
    fake_backend.fail_on.update({"complete", "fetch"})
    await service.start_order("o1")

    order = await service.complete_order("o1")

    assert order.status == KitchenOrderStatus.COMPLETED
    assert store.timers_for("o1") == []


@pytest.mark.asyncio
async def test_reset_pushes_queued_status(service, seeded, fake_backend):
    await service.start_order("o1")
    order = await service.reset("o1")

    assert order.status == KitchenOrderStatus.QUEUED
    assert fake_backend.bodies[-1] == {"status": "CONFIRMED", "kitchenStatus": "queued"}
    assert fake_backend.orders["o1"]["status"] == "confirmed"


@pytest.mark.asyncio
async def test_publish_failure_does_not_affect_state(service, seeded, fake_redis):
    fake_redis.fail = True
    order = await service.start_order("o1")
    assert order.status == KitchenOrderStatus.ACTIVE


# ─── Compare-and-swap ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_sync_status_retries_after_concurrent_change(service, store, seeded, fake_backend, clock):
    bumped = []

    def concurrent_touch(request):
        if request.method == "PUT" and not bumped:
            bumped.append(True)
            store.get_order("o1").touch(clock())

    fake_backend.on_request = concurrent_touch

    order = await service.sync_status("o1", KitchenOrderStatus.ACTIVE)

    assert order.status == KitchenOrderStatus.ACTIVE
    assert fake_backend.count("PUT", "/o1/status") == 2
    assert store.get_timer("o1") is not None


@pytest.mark.asyncio
async def test_sync_status_gives_up_when_always_stale(service, store, seeded, fake_backend, clock):
    def always_touch(request):
        if request.method == "PUT":
            store.get_order("o1").touch(clock())

    fake_backend.on_request = always_touch

    with pytest.raises(StaleVersionError):
        await service.sync_status("o1", KitchenOrderStatus.ACTIVE)
    assert fake_backend.count("PUT", "/o1/status") == 3
    assert seeded.status == KitchenOrderStatus.QUEUED


@pytest.mark.asyncio
async def test_sync_status_backend_failure_leaves_order_untouched(service, seeded, fake_backend):
    fake_backend.fail_on.add("status")
    with pytest.raises(BackendError):
        await service.sync_status("o1", KitchenOrderStatus.ACTIVE)
    assert seeded.status == KitchenOrderStatus.QUEUED
    assert seeded.version == 1


@pytest.mark.asyncio
async def test_sync_status_checks_expected_version_before_backend_write(service, seeded, fake_backend):
    with pytest.raises(StaleVersionError):
        await service.sync_status("o1", KitchenOrderStatus.ACTIVE, expected_version=99)
    assert fake_backend.count("PUT", "/o1/status") == 0
    assert fake_backend.orders["o1"]["status"] == "confirmed"
    assert seeded.status == KitchenOrderStatus.QUEUED

    order = await service.sync_status("o1", KitchenOrderStatus.ACTIVE, expected_version=1)
    assert order.status == KitchenOrderStatus.ACTIVE
    assert fake_backend.count("PUT", "/o1/status") == 1


# ─── Tick ──────────────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_tick_publishes_overdue_and_alerts(service, store, fake_redis, clock):
    store.add_order(make_order("o2", estimated_time=1))
    store.start_order("o2")
    clock.advance(60)

    result = await service.tick()

    assert result.overdue_order_ids == ["o2"]
    assert fake_redis.of_type("status_changed")[-1]["status"] == "overdue"
    assert fake_redis.of_type("timer_overdue")[0]["order_id"] == "o2"


# ─── Backend sync ──────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_refresh_loads_backend_queue(service, store, fake_backend):
    fake_backend.add(raw_order("q1"))
    fake_backend.add(raw_order("a1", status="preparing"))

    orders = await service.refresh()

    assert {o.id for o in orders} == {"q1", "a1"}
    assert store.get_order("a1").status == KitchenOrderStatus.ACTIVE
    assert store.get_timer("a1") is not None


@pytest.mark.asyncio
async def test_refresh_evicts_orders_the_backend_no_longer_lists(service, store, fake_backend):
    for i in range(5):
        fake_backend.add(raw_order(f"c{i}"))
    await service.refresh()
    for i in range(5):
        await service.start_order(f"c{i}")
        await service.complete_order(f"c{i}")
        del fake_backend.orders[f"c{i}"]
    assert len(store.orders) == 5

    orders = await service.refresh()

    assert orders == []
    assert store.orders == {}
    assert store.stats()["completed_orders"] == 0


@pytest.mark.asyncio
async def test_refresh_propagates_backend_failure(service, fake_backend):
    fake_backend.fail_on.add("queue")
    with pytest.raises(BackendError):
        await service.refresh()


@pytest.mark.asyncio
async def test_backend_events(service, store):
    created = await service.apply_event(ORDER_CREATED, raw_order("e1"))
    assert created.status == KitchenOrderStatus.QUEUED

    updated = await service.apply_event(ORDER_UPDATED, raw_order("e1", status="preparing"))
    assert updated.status == KitchenOrderStatus.ACTIVE
    assert updated.version == 2
    assert store.get_timer("e1") is not None

    assert await service.apply_event(ORDER_DELETED, {"orderId": "e1"}) is None
    assert "e1" not in store.orders
    assert store.timers_for("e1") == []

    assert await service.apply_event("ORDER_TELEPORTED", {}) is None


@pytest.mark.asyncio
async def test_delete_event_without_id(service):
    with pytest.raises(BackendError):
        await service.apply_event(ORDER_DELETED, {})
