"""
Kitchen Timer — Route dependencies

Long-lived objects are created in the application lifespan and parked on
app.state; routes reach them through these accessors.
"""
from fastapi import Request

from kitchen_timer.core.notifier import AlertPublisher
from kitchen_timer.services.kitchen_service import KitchenService
from kitchen_timer.tasks.ticker import TimerTicker


def get_kitchen_service(request: Request) -> KitchenService:
    return request.app.state.kitchen_service


def get_ticker(request: Request) -> TimerTicker:
    return request.app.state.ticker


def get_publisher(request: Request) -> AlertPublisher:
    return request.app.state.publisher
