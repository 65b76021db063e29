"""
Shared fixtures for the kitchen-timer tests.

Nothing here talks to a real network: the order backend is an
httpx.MockTransport, Redis is an in-memory recorder behind the real
AlertPublisher, and time only moves when a test advances the FakeClock.
"""
import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError

from kitchen_timer.clients.backend import KitchenBackendClient
from kitchen_timer.core.notifier import AlertPublisher
from kitchen_timer.models.order import KitchenOrder, KitchenOrderItem
from kitchen_timer.services.kitchen_service import KitchenService
from kitchen_timer.store.kitchen_store import KitchenStore
from kitchen_timer.tasks.ticker import TimerTicker

BACKEND_URL = "http://order-backend.test"
T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


# ─── Test doubles ──────────────────────────────────────────────────────────────
class FakeClock:
    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeRedis:
    """Just enough of redis.asyncio.Redis for AlertPublisher."""

    def __init__(self):
        self.messages: list[tuple[str, dict]] = []
        self.fail = False

    async def publish(self, channel, message):
        if self.fail:
            raise RedisConnectionError("redis is down")
        self.messages.append((channel, json.loads(message)))
        return 1

    async def ping(self):
        if self.fail:
            raise RedisConnectionError("redis is down")
        return True

    async def aclose(self):
        pass

    def pubsub(self):
        return FakePubSub(self)

    def of_type(self, kind: str) -> list[dict]:
        return [m for _, m in self.messages if m.get("type") == kind]


class FakePubSub:
    """Replays whatever was published before the subscription, then idles."""

    def __init__(self, redis: FakeRedis):
        self.pending = [json.dumps(m) for _, m in redis.messages]
        self.channels: set[str] = set()
        self.closed = False

    async def subscribe(self, channel):
        self.channels.add(channel)

    async def unsubscribe(self, channel):
        self.channels.discard(channel)

    async def get_message(self, ignore_subscribe_messages=False, timeout=0.0):
        if self.pending:
            return {"type": "message", "data": self.pending.pop(0)}
        return None

    async def aclose(self):
        self.closed = True


class FakeOrderBackend:
    """
    In-memory order backend speaking the camelCase wire format.
    ``fail_on`` holds operation names (queue, fetch, start, complete, status,
    health) that answer 500; ``on_request`` runs before every request.
    """

    def __init__(self):
        self.orders: dict[str, dict] = {}
        self.calls: list[tuple[str, str]] = []
        self.bodies: list[dict] = []
        self.fail_on: set[str] = set()
        self.on_request = None

    def add(self, raw: dict) -> dict:
        self.orders[str(raw["id"])] = raw
        return raw

    def handler(self, request: httpx.Request) -> httpx.Response:
        method, path = request.method, request.url.path
        self.calls.append((method, path))
        if request.content:
            self.bodies.append(json.loads(request.content))
        if self.on_request is not None:
            self.on_request(request)

        parts = path.strip("/").split("/")
        if path == "/api/health":
            return self._answer("health", {"status": "UP"})
        if path == "/api/staff/kitchen/queue":
            return self._answer("queue", {
                "queued": [o for o in self.orders.values() if o.get("status") in (None, "confirmed", "pending")],
                "active": [o for o in self.orders.values() if o.get("status") == "preparing"],
            })
        if parts[:4] == ["api", "staff", "kitchen", "orders"]:
            order = self.orders.get(parts[4])
            op = parts[5] if len(parts) > 5 else "fetch"
            if op in self.fail_on:
                return httpx.Response(500, json={"detail": f"{op} exploded"})
            if order is None:
                return httpx.Response(404, json={"detail": "Order not found"})
            if op == "start":
                order["status"] = "preparing"
            elif op == "complete":
                order["status"] = "ready"
            return httpx.Response(200, json=order)
        if parts[:3] == ["api", "staff", "orders"] and parts[-1] == "status":
            if "status" in self.fail_on:
                return httpx.Response(500, json={"detail": "status exploded"})
            order = self.orders.get(parts[3])
            if order is None:
                return httpx.Response(404, json={"detail": "Order not found"})
            order["status"] = json.loads(request.content)["status"].lower()
            return httpx.Response(204)
        return httpx.Response(404, json={"detail": "no route"})

    def _answer(self, op: str, body) -> httpx.Response:
        if op in self.fail_on:
            return httpx.Response(500, json={"detail": f"{op} exploded"})
        return httpx.Response(200, json=body)

    def count(self, method: str, suffix: str) -> int:
        return sum(1 for m, p in self.calls if m == method and p.endswith(suffix))


def raw_order(order_id: str, status: str | None = "confirmed", **extra) -> dict:
    raw = {
        "id": order_id,
        "orderNumber": f"#{order_id}",
        "customerName": "Ada",
        "priority": "normal",
        "estimatedTime": 10,
        "items": [{"id": f"{order_id}-i1", "name": "Soup", "estimatedTime": 4}],
    }
    if status is not None:
        raw["status"] = status
    raw.update(extra)
    return raw


def make_order(order_id: str, now: datetime = T0, estimated_time: int = 10, **extra) -> KitchenOrder:
    items = extra.pop("items", None)
    if items is None:
        items = [
            KitchenOrderItem(id=f"{order_id}-i1", name="Soup", estimated_time=4),
            KitchenOrderItem(id=f"{order_id}-i2", name="Bread", estimated_time=2, workstation="prep"),
        ]
    return KitchenOrder(
        id=order_id,
        order_number=f"#{order_id}",
        customer_name="Ada",
        estimated_time=estimated_time,
        created_at=now,
        updated_at=now,
        items=items,
        **extra,
    )


# ─── Fixtures ──────────────────────────────────────────────────────────────────
@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return KitchenStore(clock=clock)


@pytest.fixture
def fake_backend():
    return FakeOrderBackend()


@pytest_asyncio.fixture
async def backend_client(fake_backend, clock):
    client = KitchenBackendClient(
        base_url=BACKEND_URL,
        strict=False,
        clock=clock,
        transport=httpx.MockTransport(fake_backend.handler),
    )
    yield client
    await client.aclose()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def publisher(fake_redis):
    return AlertPublisher(fake_redis, channel="kitchen:alerts")


@pytest.fixture
def service(store, backend_client, publisher):
    return KitchenService(store, backend_client, publisher)


@pytest_asyncio.fixture
async def api_client(service, publisher):
    """HTTP client against the real app with test collaborators on app.state (no lifespan)."""
    from kitchen_timer.main import app

    ticker = TimerTicker(service.tick, interval=0.01)
    app.state.kitchen_service = service
    app.state.publisher = publisher
    app.state.ticker = ticker
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client
    await ticker.stop()
