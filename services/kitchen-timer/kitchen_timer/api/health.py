"""
Kitchen Timer — Health endpoint
"""
import asyncio

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from kitchen_timer.api.deps import get_kitchen_service, get_ticker
from kitchen_timer.core.config import get_settings
from kitchen_timer.services.kitchen_service import KitchenService
from kitchen_timer.tasks.ticker import TimerTicker

settings = get_settings()
router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(
    service: KitchenService = Depends(get_kitchen_service),
    ticker: TimerTicker = Depends(get_ticker),
):
    deps: dict[str, str] = {}
    healthy = True

    if service.publisher is None:
        deps["redis"] = "disabled"
    else:
        try:
            await asyncio.wait_for(service.publisher.ping(), timeout=settings.HEALTH_CHECK_TIMEOUT)
            deps["redis"] = "ok"
        except Exception as e:
            deps["redis"] = f"error: {str(e)[:100]}"
            healthy = False

    try:
        ok = await asyncio.wait_for(service.backend.ping(), timeout=settings.HEALTH_CHECK_TIMEOUT)
        deps["order_backend"] = "ok" if ok else "error: unhealthy response"
        healthy = healthy and ok
    except Exception as e:
        deps["order_backend"] = f"error: {str(e)[:100]}"
        healthy = False

    deps["ticker"] = "running" if ticker.is_running else "stopped"

    return JSONResponse(
        content={"status": "healthy" if healthy else "degraded",
                 "service": settings.SERVICE_NAME, "version": settings.SERVICE_VERSION,
                 "dependencies": deps},
        status_code=200 if healthy else 503,
    )
