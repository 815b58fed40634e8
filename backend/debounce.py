"""Coalesce rapid edits into a single delayed write.

The scheduler only needs Kivy's ``schedule_once(callback, timeout)``
signature returning an event with ``cancel()``, so
:data:`kivy.clock.Clock` can be passed directly and tests can supply a fake
clock.
"""

from __future__ import annotations

from typing import Any, Callable, Hashable


class Debouncer:
    """Run ``callback(keys)`` once input has been quiet for ``delay`` seconds.

    Every :meth:`touch` records a key (for example a set id) and restarts the
    quiet period.  When it elapses the callback receives all keys touched
    since the last flush.
    """

    def __init__(
        self,
        scheduler: Any,
        delay: float,
        callback: Callable[[list], Any],
    ) -> None:
        self.scheduler = scheduler
        self.delay = delay
        self.callback = callback
        self._pending: list[Hashable] = []
        self._event = None

    @property
    def pending(self) -> list:
        return list(self._pending)

    def touch(self, key: Hashable) -> None:
        if key not in self._pending:
            self._pending.append(key)
        if self._event is not None:
            self._event.cancel()
        self._event = self.scheduler.schedule_once(self._fire, self.delay)

    def _fire(self, *_args) -> None:
        self._event = None
        self.flush()

    def flush(self) -> Any:
        """Run the callback now for any pending keys."""

        if self._event is not None:
            self._event.cancel()
            self._event = None
        if not self._pending:
            return None
        keys, self._pending = self._pending, []
        return self.callback(keys)

    def cancel(self) -> None:
        """Drop pending keys without running the callback."""

        if self._event is not None:
            self._event.cancel()
            self._event = None
        self._pending = []
