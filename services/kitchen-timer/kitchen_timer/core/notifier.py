"""
Kitchen Timer — Alert publisher (Redis pub/sub)

Timer alerts and order status changes are fanned out on one Redis channel;
the SSE endpoint subscribes to it. Publish failures MUST NOT affect order
processing, so they are logged and reported as False.
"""
import json
import logging

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from kitchen_timer.core.config import get_settings
from kitchen_timer.models.order import KitchenOrder, to_management
from kitchen_timer.store.alerts import TimerAlert

settings = get_settings()
logger = logging.getLogger(__name__)


class AlertPublisher:
    def __init__(self, redis: aioredis.Redis, channel: str | None = None):
        self.redis = redis
        self.channel = channel or settings.ALERT_CHANNEL

    @classmethod
    def from_settings(cls) -> "AlertPublisher":
        client = aioredis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=settings.HEALTH_CHECK_TIMEOUT,
        )
        return cls(client, settings.ALERT_CHANNEL)

    async def publish(self, payload: dict) -> bool:
        try:
            await self.redis.publish(self.channel, json.dumps(payload))
            return True
        except (RedisError, OSError) as exc:
            logger.warning("Alert channel unreachable: %s", exc)
            return False

    async def publish_alert(self, alert: TimerAlert) -> bool:
        return await self.publish(alert.to_payload())

    async def publish_status(self, order: KitchenOrder) -> bool:
        return await self.publish({
            "type": "status_changed",
            "order_id": order.id,
            "status": order.status.value,
            "management_status": to_management(order.status).value,
            "version": order.version,
        })

    def pubsub(self):
        return self.redis.pubsub()

    async def ping(self) -> bool:
        return bool(await self.redis.ping())

    async def aclose(self) -> None:
        await self.redis.aclose()
