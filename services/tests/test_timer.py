"""
Cooking timer arithmetic: clock-derived countdown, overdue latch, pause accounting.
"""
from kitchen_timer.models.timer import CookingTimer, alert_threshold_for

from conftest import T0, FakeClock


def _timer(clock: FakeClock, seconds: int = 600) -> CookingTimer:
    return CookingTimer.start("o1", seconds, clock())


def test_remaining_time_is_derived_from_the_clock():
    clock = FakeClock()
    timer = _timer(clock)

    clock.advance(100.4)
    timer.recompute(clock())
    assert timer.remaining_time == 500

    # No ticks for a while: the next recompute catches up in one step
    clock.advance(250)
    timer.recompute(clock())
    assert timer.remaining_time == 250


def test_remaining_time_stays_within_bounds():
    clock = FakeClock()
    timer = _timer(clock, seconds=60)

    clock.advance(-30)
    timer.recompute(clock())
    assert timer.remaining_time == 60

    clock.advance(30 + 500)
    timer.recompute(clock())
    assert timer.remaining_time == 0


def test_overdue_flips_once_and_never_reverts():
    clock = FakeClock()
    timer = _timer(clock, seconds=60)

    clock.advance(59)
    assert timer.recompute(clock()) is False
    assert not timer.is_overdue

    clock.advance(1)
    assert timer.recompute(clock()) is True
    assert timer.is_overdue

    clock.advance(1)
    assert timer.recompute(clock()) is False
    assert timer.is_overdue
    assert timer.remaining_time == 0


def test_non_positive_duration_is_clamped_and_overdue_on_first_recompute():
    timer = CookingTimer.start("o1", -5, T0)
    assert timer.estimated_duration == 0
    assert timer.remaining_time == 0
    assert timer.recompute(T0) is True


def test_alert_threshold_is_ten_percent_capped_at_five_minutes():
    assert alert_threshold_for(600) == 60
    assert alert_threshold_for(6000) == 300
    assert alert_threshold_for(0) == 0
    assert CookingTimer.start("o1", 900, T0).alert_threshold == 90


def test_pause_excludes_paused_interval_by_default():
    clock = FakeClock()
    timer = _timer(clock)

    clock.advance(100)
    timer.recompute(clock())
    timer.pause(clock())

    clock.advance(200)
    timer.recompute(clock())
    assert timer.remaining_time == 500
    assert not timer.is_counting

    timer.resume(clock())
    timer.recompute(clock())
    assert timer.remaining_time == 500
    assert timer.paused_accumulated_seconds == 200

    clock.advance(50)
    timer.recompute(clock())
    assert timer.remaining_time == 450


def test_legacy_pause_counts_paused_interval_after_resume():
    clock = FakeClock()
    timer = _timer(clock)

    clock.advance(100)
    timer.recompute(clock(), legacy_pause=True)
    timer.pause(clock())

    clock.advance(200)
    timer.recompute(clock(), legacy_pause=True)
    assert timer.remaining_time == 500

    timer.resume(clock(), legacy_pause=True)
    timer.recompute(clock(), legacy_pause=True)
    assert timer.remaining_time == 300
    assert timer.paused_accumulated_seconds == 0


def test_pause_and_resume_are_idempotent():
    clock = FakeClock()
    timer = _timer(clock)

    timer.pause(clock())
    clock.advance(10)
    timer.pause(clock())
    clock.advance(10)
    timer.resume(clock())
    timer.resume(clock())

    assert timer.paused_accumulated_seconds == 20
    assert timer.is_running and not timer.is_paused


def test_progress():
    clock = FakeClock()
    timer = _timer(clock)
    clock.advance(150)
    timer.recompute(clock())
    assert timer.progress == 25.0
    assert CookingTimer.start("o2", 0, T0).progress == 100.0
