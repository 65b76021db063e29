"""
Kitchen Timer — FastAPI entrypoint
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from kitchen_timer.api import health, kitchen, notifications
from kitchen_timer.clients.backend import BackendError, KitchenBackendClient
from kitchen_timer.core.config import get_settings
from kitchen_timer.core.notifier import AlertPublisher
from kitchen_timer.services.kitchen_service import KitchenService
from kitchen_timer.store.alerts import AlertMonitor
from kitchen_timer.store.kitchen_store import KitchenStore
from kitchen_timer.tasks.ticker import TimerTicker

settings = get_settings()
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = KitchenStore(
        legacy_pause=settings.TIMER_LEGACY_PAUSE_ACCOUNTING,
        alert_threshold_cap=settings.ALERT_THRESHOLD_CAP_SECONDS,
        alert_monitor=AlertMonitor(repeat_seconds=settings.ALERT_REPEAT_SECONDS),
    )
    backend = KitchenBackendClient()
    publisher = AlertPublisher.from_settings()
    service = KitchenService(store, backend, publisher)
    ticker = TimerTicker(service.tick, interval=settings.TIMER_TICK_INTERVAL_SECONDS)

    app.state.kitchen_service = service
    app.state.publisher = publisher
    app.state.ticker = ticker

    try:
        await service.refresh()
    except BackendError as exc:
        logger.warning("Initial queue fetch failed, starting empty: %s", exc)
    ticker.acquire()

    yield

    await ticker.stop()
    await backend.aclose()
    await publisher.aclose()


app = FastAPI(title="Kitchen Timer", version=settings.SERVICE_VERSION,
              lifespan=lifespan, docs_url="/docs" if settings.DEBUG else None, redoc_url=None)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_credentials=True,
                   allow_methods=["*"], allow_headers=["*"])
if settings.METRICS_ENABLED:
    Instrumentator().instrument(app).expose(app, endpoint="/metrics")
app.include_router(kitchen.router)
app.include_router(notifications.router)
app.include_router(health.router)


@app.get("/")
async def root():
    return {"service": settings.SERVICE_NAME, "version": settings.SERVICE_VERSION}
