"""Sound and vibration cues for workout events.

Vibration uses the Android vibrator service through ``jnius``; on other
platforms only sounds are played.  Cues are best effort and never raise.
"""

from __future__ import annotations

import logging

from backend import settings
from backend.notifications import (
    REST_COMPLETE,
    REST_COUNTDOWN,
    REST_WARNING,
    SET_COMPLETED,
    FeedbackSink,
)

try:  # pragma: no cover - jnius is only available on Android
    from jnius import autoclass  # type: ignore
except Exception:  # pragma: no cover - allow import on non-Android
    autoclass = None  # type: ignore

# Vibration length in milliseconds for each event
VIBRATION_MS = {
    SET_COMPLETED: 40,
    REST_WARNING: 150,
    REST_COUNTDOWN: 60,
    REST_COMPLETE: 400,
}


def _android_vibrator():
    """Return the Android ``Vibrator`` service or ``None`` off-device."""

    if autoclass is None:
        return None
    try:  # pragma: no cover - Android-only classes
        PythonActivity = autoclass("org.kivy.android.PythonActivity")
        Context = autoclass("android.content.Context")
        activity = PythonActivity.mActivity
        return activity.getSystemService(Context.VIBRATOR_SERVICE)
    except Exception:  # pragma: no cover - running on non-Android platform
        return None


class DeviceFeedback(FeedbackSink):
    """Play a sound and vibrate for each feedback event.

    ``sound_on`` and ``vibration_on`` settings are read on every signal so
    changes apply immediately.
    """

    def __init__(self, sounds=None, vibrator=None):
        if sounds is None:
            from assets.sounds import SoundSystem

            sounds = SoundSystem()
        self.sounds = sounds
        self.vibrator = vibrator if vibrator is not None else _android_vibrator()

    def signal(self, event: str) -> None:
        try:
            if settings.get_value("sound_on", True):
                self.sounds.play_event(event)
            if settings.get_value("vibration_on", True) and self.vibrator is not None:
                duration = VIBRATION_MS.get(event)
                if duration:
                    self.vibrator.vibrate(duration)
        except Exception:
            logging.exception("Feedback for %s failed", event)
