"""Rest countdown between sets.

The timer stores absolute wall-clock endpoints instead of counting ticks, so
the remaining time is correct after the app was suspended.  While running,
its start time and duration are persisted in the key-value store together
with the owning session id, and a completion notification is scheduled as
the signal that still arrives while the app is in the background.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from core import REST_COUNTDOWN_SECONDS, REST_WARNING_SECONDS
from backend.notifications import (
    REST_COMPLETE,
    REST_COUNTDOWN,
    REST_TIMER_COMPLETE,
    REST_WARNING,
    FeedbackSink,
    NotificationScheduler,
    rest_timer_payload,
)

IDLE = "idle"
RUNNING = "running"
PAUSED = "paused"

# Key-value store entry holding the active timer
REST_TIMER_KEY = "rest_timer"

MILESTONES = (REST_WARNING_SECONDS,) + tuple(REST_COUNTDOWN_SECONDS)


class RestTimer:
    """State machine with ``idle``, ``running`` and ``paused`` states."""

    def __init__(
        self,
        session_id: int,
        kv_store: Any,
        *,
        scheduler: NotificationScheduler | None = None,
        feedback: FeedbackSink | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.session_id = session_id
        self.kv_store = kv_store
        self.scheduler = scheduler or NotificationScheduler()
        self.feedback = feedback or FeedbackSink()
        self.clock = clock
        self.state = IDLE
        self.start_time: float | None = None
        self.end_time: float | None = None
        self.duration = 0.0
        self.paused_remaining = 0.0
        self.completion_listeners: list[Callable[[], Any]] = []
        self._notification_id = None
        self._fired: set[int] = set()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self.state == RUNNING

    @property
    def is_paused(self) -> bool:
        return self.state == PAUSED

    @property
    def is_idle(self) -> bool:
        return self.state == IDLE

    @property
    def remaining(self) -> float:
        """Seconds left, recomputed from the end time on every read."""

        if self.state == RUNNING and self.end_time is not None:
            return max(0.0, self.end_time - self.clock())
        if self.state == PAUSED:
            return self.paused_remaining
        return 0.0

    @property
    def has_scheduled_notification(self) -> bool:
        return self._notification_id is not None

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self, duration: float) -> None:
        """Begin a countdown of ``duration`` seconds.

        Starting while already running restarts the countdown.
        """

        duration = max(0.0, float(duration))
        self._run_from(self.clock(), duration)
        self._fired = {m for m in MILESTONES if m >= duration}
        logging.info("Rest timer started for %.0fs (session %s)", duration, self.session_id)

    def reset(self, duration: float) -> None:
        """Restart the countdown at ``duration`` from a running or paused timer."""

        self.start(duration)

    def pause(self) -> bool:
        if self.state != RUNNING:
            return False
        remaining = self.remaining
        self._cancel_notification()
        self.kv_store.remove(REST_TIMER_KEY)
        self.state = PAUSED
        self.paused_remaining = remaining
        self.end_time = None
        logging.info("Rest timer paused with %.1fs remaining", remaining)
        return True

    def resume(self) -> bool:
        if self.state != PAUSED:
            return False
        self._run_from(self.clock(), self.paused_remaining)
        return True

    def adjust(self, seconds: float) -> bool:
        """Shift the end time by ``seconds`` without going below zero."""

        if self.state == PAUSED:
            self.paused_remaining = max(0.0, self.paused_remaining + seconds)
            return True
        if self.state != RUNNING:
            return False
        now = self.clock()
        new_end = max(now, self.end_time + seconds)
        self._run_from(self.start_time, new_end - self.start_time)
        self._fired = {m for m in self._fired if m >= self.remaining}
        return True

    def skip(self) -> bool:
        """Stop the timer without the completion cue."""

        if self.state == IDLE:
            return False
        self._stop()
        logging.info("Rest timer skipped (session %s)", self.session_id)
        return True

    def complete(self) -> bool:
        """Stop the timer and emit the completion cue."""

        if self.state == IDLE:
            return False
        self._stop()
        logging.info("Rest timer completed (session %s)", self.session_id)
        self._signal(REST_COMPLETE)
        for listener in list(self.completion_listeners):
            listener()
        return True

    def tick(self) -> float:
        """Refresh the countdown; completes the timer when it reaches zero."""

        if self.state != RUNNING:
            return self.remaining
        remaining = self.remaining
        if remaining <= 0:
            self.complete()
            return 0.0
        crossed = [m for m in MILESTONES if remaining <= m and m not in self._fired]
        if crossed:
            self._fired.update(crossed)
            lowest = min(crossed)
            self._signal(REST_WARNING if lowest == REST_WARNING_SECONDS else REST_COUNTDOWN)
        return remaining

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    def restore(self) -> str:
        """Recover a persisted countdown after the app was suspended or restarted.

        A record from another session is discarded.  A countdown whose end
        time already passed is completed immediately.
        """

        record = self.kv_store.get(REST_TIMER_KEY)
        if not record:
            return self.state
        if record.get("session_id") != self.session_id or not record.get("active"):
            logging.info(
                "Discarding rest timer state for session %s", record.get("session_id")
            )
            self.kv_store.remove(REST_TIMER_KEY)
            return self.state
        try:
            start_time = float(record["start_time"])
            duration = float(record["duration"])
        except (KeyError, TypeError, ValueError):
            logging.warning("Discarding malformed rest timer state %r", record)
            self.kv_store.remove(REST_TIMER_KEY)
            return self.state

        self.state = RUNNING
        self.start_time = start_time
        self.duration = duration
        self.end_time = start_time + duration
        remaining = self.remaining
        if remaining <= 0:
            self.complete()
            return self.state
        self._fired = {m for m in MILESTONES if m > remaining}
        self._schedule_notification()
        logging.info("Rest timer restored with %.1fs remaining", remaining)
        return self.state

    def handle_notification(self, payload: dict) -> bool:
        """React to a delivered completion notification."""

        if payload.get("type") != REST_TIMER_COMPLETE:
            return False
        if payload.get("session_id") != self.session_id:
            return False
        self._notification_id = None
        if self.state == RUNNING:
            self.tick()
        if self.state == RUNNING:
            # delivered early; keep a completion notification pending
            self._schedule_notification()
        return self.state == IDLE

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _run_from(self, start_time: float, duration: float) -> None:
        self.state = RUNNING
        self.start_time = start_time
        self.duration = duration
        self.end_time = start_time + duration
        self.paused_remaining = 0.0
        self.kv_store.set(
            REST_TIMER_KEY,
            {
                "active": True,
                "start_time": start_time,
                "duration": duration,
                "session_id": self.session_id,
            },
        )
        self._schedule_notification()

    def _schedule_notification(self) -> None:
        self._cancel_notification()
        self._notification_id = self.scheduler.schedule(
            self.end_time, rest_timer_payload(self.session_id)
        )

    def _cancel_notification(self) -> None:
        if self._notification_id is not None:
            self.scheduler.cancel(self._notification_id)
            self._notification_id = None

    def _stop(self) -> None:
        self._cancel_notification()
        self.kv_store.remove(REST_TIMER_KEY)
        self.state = IDLE
        self.start_time = None
        self.end_time = None
        self.paused_remaining = 0.0

    def _signal(self, event: str) -> None:
        try:
            self.feedback.signal(event)
        except Exception:
            logging.exception("Feedback signal %s failed", event)
