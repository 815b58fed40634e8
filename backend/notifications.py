"""Contracts for scheduled notifications and user feedback.

The workout engine never talks to the operating system directly.  It is
handed a notification scheduler and a feedback sink; the classes here are the
do-nothing defaults used when no device integration is available.  Kivy
backed implementations live in :mod:`ui.scheduling` and :mod:`ui.feedback`.
"""

from __future__ import annotations

import itertools

# Payload type of the rest timer completion notification
REST_TIMER_COMPLETE = "rest_timer_complete"

# Feedback events
SET_COMPLETED = "set_completed"
REST_WARNING = "rest_warning"
REST_COUNTDOWN = "rest_countdown"
REST_COMPLETE = "rest_complete"

FEEDBACK_EVENTS = (SET_COMPLETED, REST_WARNING, REST_COUNTDOWN, REST_COMPLETE)


def rest_timer_payload(session_id: int) -> dict:
    return {"type": REST_TIMER_COMPLETE, "session_id": session_id}


class NotificationScheduler:
    """Schedule a payload for delivery at an absolute wall-clock time.

    Subclasses deliver the payload to ``on_delivery`` at or after
    ``fire_at``.  This base class only hands out ids.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.on_delivery = None

    def schedule(self, fire_at: float, payload: dict) -> int:
        return next(self._ids)

    def cancel(self, notification_id: int) -> None:
        pass


class FeedbackSink:
    """Fire-and-forget haptic/sound cues.  Must never raise."""

    def signal(self, event: str) -> None:
        pass
