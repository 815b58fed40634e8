"""Deliver scheduled notifications through Kivy's :class:`Clock`.

While the app is running the clock fires the payload at its wall-clock
time.  If the app was suspended in between, the callback runs as soon as the
clock resumes; the rest timer then recomputes its state from the stored end
time, so a late delivery is harmless.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from kivy.clock import Clock

from backend.notifications import NotificationScheduler


class ClockNotificationScheduler(NotificationScheduler):
    """Schedule payloads for ``on_delivery`` using ``Clock.schedule_once``."""

    def __init__(
        self,
        on_delivery: Callable[[dict], Any] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__()
        self.on_delivery = on_delivery
        self.clock = clock
        self._events: dict[int, Any] = {}

    @property
    def pending(self) -> list[int]:
        return list(self._events)

    def schedule(self, fire_at: float, payload: dict) -> int:
        notification_id = super().schedule(fire_at, payload)
        delay = max(0.0, fire_at - self.clock())

        def _deliver(dt, notification_id=notification_id, payload=dict(payload)):
            self._events.pop(notification_id, None)
            if self.on_delivery is None:
                return
            try:
                self.on_delivery(payload)
            except Exception:
                logging.exception("Notification %s delivery failed", notification_id)

        self._events[notification_id] = Clock.schedule_once(_deliver, delay)
        return notification_id

    def cancel(self, notification_id: int) -> None:
        event = self._events.pop(notification_id, None)
        if event is not None:
            event.cancel()

    def cancel_all(self) -> None:
        for notification_id in list(self._events):
            self.cancel(notification_id)
