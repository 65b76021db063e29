"""
Kitchen Timer — SSE alert stream

Architecture:
  - the tick loop publishes timer alerts and status changes to the Redis
    channel ALERT_CHANNEL (kitchen:alerts)
  - this endpoint subscribes and streams them to the browser EventSource
  - every open stream holds a tick-loop reference, so timers keep counting
    while somebody is watching
"""
import asyncio
import json
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from kitchen_timer.api.deps import get_publisher, get_ticker
from kitchen_timer.core.config import get_settings
from kitchen_timer.core.notifier import AlertPublisher
from kitchen_timer.tasks.ticker import TimerTicker

settings = get_settings()
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/notifications", tags=["notifications"])


async def _sse_generator(
    request: Request,
    publisher: AlertPublisher,
    ticker: TimerTicker,
    order_id: str | None = None,
) -> AsyncGenerator[str, None]:
    """Subscribe to the alert channel and yield SSE events."""
    pubsub = publisher.pubsub()
    await pubsub.subscribe(publisher.channel)
    ticker.acquire()
    loop = asyncio.get_running_loop()
    last_sent = loop.time()

    try:
        yield f": connected to {publisher.channel}\n\n"
        yield f"retry: {settings.SSE_RETRY_MILLISECONDS}\n\n"

        while True:
            if await request.is_disconnected():
                break

            message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            if message and message["type"] == "message":
                try:
                    payload = json.loads(message["data"])
                except (TypeError, ValueError):
                    logger.warning("Dropping non-JSON message on %s", publisher.channel)
                    continue
                if order_id is not None and payload.get("order_id") != order_id:
                    continue
                event = payload.get("type", "message")
                yield f"event: {event}\ndata: {json.dumps(payload)}\n\n"
                last_sent = loop.time()
            elif loop.time() - last_sent >= settings.SSE_KEEPALIVE_INTERVAL_SECONDS:
                yield ": keepalive\n\n"
                last_sent = loop.time()

    finally:
        ticker.release()
        await pubsub.unsubscribe(publisher.channel)
        await pubsub.aclose()


@router.get("/stream")
async def stream_alerts(
    request: Request,
    order_id: str | None = Query(None, description="Only stream events for this order"),
    publisher: AlertPublisher | None = Depends(get_publisher),
    ticker: TimerTicker = Depends(get_ticker),
):
    """
    SSE endpoint. Browser creates an EventSource to this URL.
    Streams timer_warning / timer_overdue / timer_overdue_repeat alerts and
    status_changed events.
    """
    if publisher is None:
        raise HTTPException(status_code=503, detail="Alert channel is not configured.")

    return StreamingResponse(
        _sse_generator(request, publisher, ticker, order_id),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",  # Disable Nginx buffering
            "Connection": "keep-alive",
        },
    )
