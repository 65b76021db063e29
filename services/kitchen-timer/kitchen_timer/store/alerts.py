"""
Kitchen Timer — Timer alert evaluation

Signals are UI-facing only (sound/visual); they never change order state.
Latches live on the timer itself, so destroying a timer clears them.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from kitchen_timer.models.timer import CookingTimer


class AlertType(str, Enum):
    WARNING = "timer_warning"
    OVERDUE = "timer_overdue"
    OVERDUE_REPEAT = "timer_overdue_repeat"


@dataclass(frozen=True)
class TimerAlert:
    type: AlertType
    order_id: str
    item_id: str | None
    remaining_time: int
    timestamp: datetime

    def to_payload(self) -> dict:
        return {
            "type": self.type.value,
            "order_id": self.order_id,
            "item_id": self.item_id,
            "remaining_time": self.remaining_time,
            "timestamp": self.timestamp.isoformat(),
        }


class AlertMonitor:
    def __init__(self, repeat_seconds: int = 30):
        self.repeat_seconds = repeat_seconds

    def evaluate(self, timer: CookingTimer, now: datetime) -> list[TimerAlert]:
        if not timer.is_counting:
            return []

        alerts: list[TimerAlert] = []
        if timer.remaining_time == timer.estimated_duration:
            timer.warning_fired = False

        if 0 < timer.remaining_time <= timer.alert_threshold and not timer.warning_fired:
            timer.warning_fired = True
            alerts.append(self._alert(AlertType.WARNING, timer, now))

        if timer.is_overdue:
            if not timer.overdue_fired:
                timer.overdue_fired = True
                timer.last_overdue_alert_at = now
                alerts.append(self._alert(AlertType.OVERDUE, timer, now))
            elif (
                timer.last_overdue_alert_at is None
                or (now - timer.last_overdue_alert_at).total_seconds() >= self.repeat_seconds
            ):
                timer.last_overdue_alert_at = now
                alerts.append(self._alert(AlertType.OVERDUE_REPEAT, timer, now))

        return alerts

    @staticmethod
    def _alert(kind: AlertType, timer: CookingTimer, now: datetime) -> TimerAlert:
        return TimerAlert(
            type=kind,
            order_id=timer.order_id,
            item_id=timer.item_id,
            remaining_time=timer.remaining_time,
            timestamp=now,
        )
