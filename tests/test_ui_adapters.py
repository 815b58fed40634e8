"""Tests for the Kivy backed notification scheduler and device feedback."""

import types
import sys
from importlib import util
from pathlib import Path

import pytest

from backend.notifications import REST_COMPLETE, REST_WARNING, SET_COMPLETED, rest_timer_payload


def _import_scheduling(fake_clock):
    """Import :mod:`ui.scheduling` with a stubbed ``kivy.clock``."""

    kivy = types.ModuleType("kivy")
    kivy_clock = types.ModuleType("kivy.clock")
    kivy_clock.Clock = fake_clock
    saved = {name: sys.modules.get(name) for name in ("kivy", "kivy.clock")}
    sys.modules["kivy"] = kivy
    sys.modules["kivy.clock"] = kivy_clock

    spec = util.spec_from_file_location(
        "scheduling", Path(__file__).resolve().parents[1] / "ui" / "scheduling.py"
    )
    module = util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    finally:
        # Restore real modules so other tests remain unaffected.
        for name, original in saved.items():
            if original is None:
                sys.modules.pop(name, None)
            else:
                sys.modules[name] = original
    return module.ClockNotificationScheduler


def test_clock_scheduler_delivers_payload(clock):
    Scheduler = _import_scheduling(clock)
    delivered = []
    scheduler = Scheduler(on_delivery=delivered.append, clock=clock.time)
    notification_id = scheduler.schedule(clock.time() + 90, rest_timer_payload(7))
    assert scheduler.pending == [notification_id]

    clock.advance(89)
    assert delivered == []
    clock.advance(1)
    assert delivered == [{"type": "rest_timer_complete", "session_id": 7}]
    assert scheduler.pending == []


def test_clock_scheduler_cancel(clock):
    Scheduler = _import_scheduling(clock)
    delivered = []
    scheduler = Scheduler(on_delivery=delivered.append, clock=clock.time)
    first = scheduler.schedule(clock.time() + 10, rest_timer_payload(1))
    second = scheduler.schedule(clock.time() + 20, rest_timer_payload(1))
    assert first != second
    scheduler.cancel(first)
    scheduler.cancel(first)
    scheduler.cancel_all()
    clock.advance(30)
    assert delivered == []


def test_delivery_errors_are_logged_not_raised(clock):
    Scheduler = _import_scheduling(clock)

    def boom(payload):
        raise RuntimeError("screen gone")

    scheduler = Scheduler(on_delivery=boom, clock=clock.time)
    scheduler.schedule(clock.time() - 5, rest_timer_payload(1))
    clock.advance(0)


class FakeSounds:
    def __init__(self, fail=False):
        self.played = []
        self.fail = fail

    def play_event(self, event):
        if self.fail:
            raise RuntimeError("audio device busy")
        self.played.append(event)
        return True


class FakeVibrator:
    def __init__(self):
        self.calls = []

    def vibrate(self, ms):
        self.calls.append(ms)


@pytest.fixture
def device_settings(tmp_path, monkeypatch):
    from backend import settings

    monkeypatch.setattr(settings, "SETTINGS_PATH", tmp_path / "settings.json")
    settings.reset_cache()
    yield settings
    settings.reset_cache()


def test_device_feedback_plays_and_vibrates(device_settings):
    from ui.feedback import VIBRATION_MS, DeviceFeedback

    sounds, vibrator = FakeSounds(), FakeVibrator()
    feedback = DeviceFeedback(sounds=sounds, vibrator=vibrator)
    feedback.signal(SET_COMPLETED)
    feedback.signal(REST_COMPLETE)
    assert sounds.played == [SET_COMPLETED, REST_COMPLETE]
    assert vibrator.calls == [VIBRATION_MS[SET_COMPLETED], VIBRATION_MS[REST_COMPLETE]]


def test_device_feedback_respects_settings(device_settings):
    from ui.feedback import DeviceFeedback

    device_settings.set_value("sound_on", False)
    sounds, vibrator = FakeSounds(), FakeVibrator()
    DeviceFeedback(sounds=sounds, vibrator=vibrator).signal(REST_WARNING)
    assert sounds.played == []
    assert len(vibrator.calls) == 1

    device_settings.set_value("vibration_on", False)
    DeviceFeedback(sounds=sounds, vibrator=vibrator).signal(REST_WARNING)
    assert len(vibrator.calls) == 1


def test_device_feedback_never_raises(device_settings):
    from ui.feedback import DeviceFeedback

    DeviceFeedback(sounds=FakeSounds(fail=True), vibrator=FakeVibrator()).signal(REST_COMPLETE)
