from pathlib import Path
import sys
import types

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from backend.kv_store import KeyValueStore
from backend.notifications import FeedbackSink, NotificationScheduler
from backend.store import WorkoutStore


class FakeEvent:
    def __init__(self, clock, callback, due):
        self.clock = clock
        self.callback = callback
        self.due = due
        self.cancelled = False

    @property
    def is_triggered(self):
        return not self.cancelled

    def cancel(self):
        self.cancelled = True
        if self in self.clock.events:
            self.clock.events.remove(self)


class FakeClock:
    """Wall clock plus ``schedule_once`` driven manually with :meth:`advance`."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now
        self.events: list[FakeEvent] = []

    def time(self) -> float:
        return self.now

    def schedule_once(self, callback, timeout=0):
        event = FakeEvent(self, callback, self.now + timeout)
        self.events.append(event)
        return event

    def advance(self, seconds: float) -> None:
        self.now += seconds
        due = sorted(
            (e for e in self.events if e.due <= self.now), key=lambda e: e.due
        )
        for event in due:
            if event.cancelled:
                continue
            self.events.remove(event)
            event.callback(seconds)


class RecordingScheduler(NotificationScheduler):
    """Notification scheduler that remembers what is pending."""

    def __init__(self):
        super().__init__()
        self.active: dict[int, tuple[float, dict]] = {}
        self.history: list[tuple[float, dict]] = []

    def schedule(self, fire_at, payload):
        notification_id = super().schedule(fire_at, payload)
        self.active[notification_id] = (fire_at, payload)
        self.history.append((fire_at, payload))
        return notification_id

    def cancel(self, notification_id):
        self.active.pop(notification_id, None)


class RecordingFeedback(FeedbackSink):
    def __init__(self):
        self.events: list[str] = []

    def signal(self, event):
        self.events.append(event)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler() -> RecordingScheduler:
    return RecordingScheduler()


@pytest.fixture
def feedback() -> RecordingFeedback:
    return RecordingFeedback()


@pytest.fixture
def kv_store(tmp_path: Path) -> KeyValueStore:
    return KeyValueStore(tmp_path / "state" / "app_state")


@pytest.fixture
def store(tmp_path: Path):
    """Temporary database created from ``data/workout_schema.sql``."""
    db = WorkoutStore(tmp_path / "workout.db")
    yield db
    db.close()


@pytest.fixture
def push_day(store):
    """A 'Push Day' with a Cable Fly / Lateral Raise superset.

    Order: Bench Press, Incline Press, [Cable Fly, Lateral Raise], Tricep Pushdown.
    """
    program = store.create_program("Upper/Lower", created_date=0.0)
    day = store.create_day_template(program.id, "Push Day")
    bench = store.create_exercise_template(day.id, "Bench Press", muscle_group="Chest")
    incline = store.create_exercise_template(day.id, "Incline Press", muscle_group="Chest")
    fly = store.create_exercise_template(day.id, "Cable Fly", muscle_group="Chest", superset_group=1)
    lateral = store.create_exercise_template(
        day.id, "Lateral Raise", muscle_group="Shoulders", superset_group=1
    )
    pushdown = store.create_exercise_template(day.id, "Tricep Pushdown", muscle_group="Triceps")
    store.save()
    return types.SimpleNamespace(
        program=program,
        day=day,
        bench=bench,
        incline=incline,
        fly=fly,
        lateral=lateral,
        pushdown=pushdown,
    )


@pytest.fixture
def make_controller(store, kv_store, clock, scheduler, feedback, push_day):
    """Build an attached controller; pass ``session_id`` to re-open a session."""
    from backend.sessions import start_session
    from backend.workout_session import WorkoutSessionController

    def _make(session_id=None, day_template_id=None, **kwargs):
        day_id = day_template_id or push_day.day.id
        if session_id is None:
            session_id = start_session(store, day_id, now=clock.time()).id
        controller = WorkoutSessionController(
            store,
            day_id,
            session_id,
            kv_store=kv_store,
            scheduler=clock,
            notifier=scheduler,
            feedback=feedback,
            clock=clock.time,
            **kwargs,
        )
        controller.attach()
        return controller

    return _make
