import pytest

from backend.notifications import (
    REST_COMPLETE,
    REST_COUNTDOWN,
    REST_TIMER_COMPLETE,
    REST_WARNING,
)
from backend.rest_timer import REST_TIMER_KEY, RestTimer


@pytest.fixture
def make_timer(kv_store, scheduler, feedback, clock):
    def _make(session_id=1):
        return RestTimer(
            session_id,
            kv_store,
            scheduler=scheduler,
            feedback=feedback,
            clock=clock.time,
        )

    return _make


def test_remaining_is_computed_from_wall_clock(make_timer, clock, kv_store, scheduler):
    timer = make_timer()
    timer.start(90)
    assert timer.is_running
    assert timer.remaining == 90
    clock.advance(30)
    assert timer.remaining == 60
    record = kv_store.get(REST_TIMER_KEY)
    assert record["session_id"] == 1 and record["duration"] == 90
    assert list(scheduler.active.values()) == [
        (clock.time() - 30 + 90, {"type": REST_TIMER_COMPLETE, "session_id": 1})
    ]


def test_restore_after_suspension(make_timer, clock):
    make_timer().start(90)
    clock.advance(40)
    restored = make_timer()
    restored.restore()
    assert restored.is_running
    assert restored.remaining == 50
    assert restored.has_scheduled_notification


def test_restore_completes_when_end_time_passed(make_timer, clock, kv_store, feedback):
    make_timer().start(90)
    clock.advance(95)
    restored = make_timer()
    restored.restore()
    assert restored.is_idle
    assert feedback.events == [REST_COMPLETE]
    assert kv_store.get(REST_TIMER_KEY) is None


def test_foreign_session_state_is_discarded(make_timer, kv_store):
    make_timer(session_id=999).start(90)
    timer = make_timer(session_id=1)
    timer.restore()
    assert timer.is_idle
    assert kv_store.get(REST_TIMER_KEY) is None


def test_pause_resume_and_reset_keep_one_notification(make_timer, clock, scheduler):
    timer = make_timer()
    timer.start(90)
    clock.advance(30)
    assert timer.pause()
    assert scheduler.active == {}
    clock.advance(100)
    assert timer.remaining == 60
    timer.reset(90)
    assert timer.is_running
    assert timer.remaining == 90
    assert len(scheduler.active) == 1
    timer.pause()
    assert timer.resume()
    assert len(scheduler.active) == 1
    assert timer.remaining == 90


def test_pause_when_idle_is_refused(make_timer):
    timer = make_timer()
    assert not timer.pause()
    assert not timer.resume()
    assert not timer.skip()


def test_adjust_extends_and_clamps(make_timer, clock, feedback):
    timer = make_timer()
    timer.start(90)
    timer.adjust(15)
    assert timer.remaining == 105
    timer.adjust(-500)
    assert timer.remaining == 0
    timer.tick()
    assert timer.is_idle
    assert feedback.events[-1] == REST_COMPLETE


def test_milestones_signal_once_each(make_timer, clock, feedback):
    timer = make_timer()
    timer.start(12)
    for step in (2.5, 7, 1, 1):
        clock.advance(step)
        timer.tick()
        timer.tick()
    clock.advance(1)
    timer.tick()
    assert feedback.events == [
        REST_WARNING,
        REST_COUNTDOWN,
        REST_COUNTDOWN,
        REST_COUNTDOWN,
        REST_COMPLETE,
    ]


def test_short_timer_skips_passed_milestones(make_timer, clock, feedback):
    timer = make_timer()
    timer.start(2)
    clock.advance(1.5)
    timer.tick()
    assert feedback.events == [REST_COUNTDOWN]


def test_skip_stops_without_completion_cue(make_timer, feedback, scheduler, kv_store):
    timer = make_timer()
    listener_calls = []
    timer.completion_listeners.append(lambda: listener_calls.append(1))
    timer.start(90)
    assert timer.skip()
    assert timer.is_idle
    assert feedback.events == []
    assert listener_calls == []
    assert scheduler.active == {}
    assert kv_store.get(REST_TIMER_KEY) is None


def test_handle_notification(make_timer, clock):
    timer = make_timer()
    timer.start(60)
    assert not timer.handle_notification({"type": "other", "session_id": 1})
    assert not timer.handle_notification({"type": REST_TIMER_COMPLETE, "session_id": 2})
    clock.advance(60)
    assert timer.handle_notification({"type": REST_TIMER_COMPLETE, "session_id": 1})
    assert timer.is_idle


def test_early_notification_is_rescheduled(make_timer, clock, scheduler):
    timer = make_timer()
    timer.start(60)
    clock.advance(30)
    payload = {"type": REST_TIMER_COMPLETE, "session_id": 1}
    assert not timer.handle_notification(payload)
    assert timer.is_running
    assert timer.has_scheduled_notification
    assert len(scheduler.history) == 2
    assert scheduler.history[-1][0] == timer.end_time
