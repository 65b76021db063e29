"""
Kitchen Timer — Cooking timer records

remaining_time is always derived from the clock and start_time, never
decremented, so missed ticks cannot introduce drift.
"""
import math
from dataclasses import dataclass
from datetime import datetime

TimerKey = tuple[str, str | None]

DEFAULT_ALERT_THRESHOLD_CAP = 300


def alert_threshold_for(duration: int, cap: int = DEFAULT_ALERT_THRESHOLD_CAP) -> float:
    """Warn at 10% of the budget, but never earlier than ``cap`` seconds out."""
    return min(cap, duration * 0.1)


@dataclass
class CookingTimer:
    order_id: str
    start_time: datetime
    estimated_duration: int  # seconds
    remaining_time: int
    alert_threshold: float
    item_id: str | None = None
    is_running: bool = True
    is_paused: bool = False
    is_overdue: bool = False
    paused_at: datetime | None = None
    paused_accumulated_seconds: float = 0.0
    # alert latches
    warning_fired: bool = False
    overdue_fired: bool = False
    last_overdue_alert_at: datetime | None = None

    @classmethod
    def start(
        cls,
        order_id: str,
        estimated_duration: int,
        now: datetime,
        item_id: str | None = None,
        threshold_cap: int = DEFAULT_ALERT_THRESHOLD_CAP,
    ) -> "CookingTimer":
        duration = max(0, int(estimated_duration))
        return cls(
            order_id=order_id,
            item_id=item_id,
            start_time=now,
            estimated_duration=duration,
            remaining_time=duration,
            alert_threshold=alert_threshold_for(duration, threshold_cap),
        )

    @property
    def key(self) -> TimerKey:
        return (self.order_id, self.item_id)

    @property
    def is_counting(self) -> bool:
        return self.is_running and not self.is_paused

    def elapsed_seconds(self, now: datetime, legacy_pause: bool = False) -> int:
        elapsed = (now - self.start_time).total_seconds()
        if not legacy_pause:
            elapsed -= self.paused_accumulated_seconds
        return math.floor(elapsed)

    def recompute(self, now: datetime, legacy_pause: bool = False) -> bool:
        """
        Advance remaining_time from the clock. Returns True when this call
        flipped the timer to overdue. Paused or stopped timers are left as is.
        """
        if not self.is_counting:
            return False
        elapsed = self.elapsed_seconds(now, legacy_pause)
        self.remaining_time = max(0, min(self.estimated_duration, self.estimated_duration - elapsed))
        if self.remaining_time == 0 and not self.is_overdue:
            self.is_overdue = True
            return True
        return False

    def pause(self, now: datetime) -> None:
        if self.is_paused:
            return
        self.is_paused = True
        self.is_running = False
        self.paused_at = now

    def resume(self, now: datetime, legacy_pause: bool = False) -> None:
        """
        In legacy mode the paused interval is not recorded, so the next
        recompute counts it as elapsed cooking time.
        """
        if not self.is_paused:
            return
        if not legacy_pause and self.paused_at is not None:
            self.paused_accumulated_seconds += max(0.0, (now - self.paused_at).total_seconds())
        self.is_paused = False
        self.is_running = True
        self.paused_at = None

    @property
    def progress(self) -> float:
        if self.estimated_duration <= 0:
            return 100.0
        done = (self.estimated_duration - self.remaining_time) / self.estimated_duration * 100
        return min(max(done, 0.0), 100.0)
