from kivymd.app import MDApp
from kivy.clock import Clock
from kivy.uix.screenmanager import NoTransition
from kivymd.uix.screenmanager import MDScreenManager
import logging

from core import DEFAULT_DB_PATH, DEFAULT_REST_DURATION, INPUT_DEBOUNCE_SECONDS
from backend import settings
from backend.kv_store import KeyValueStore
from backend.sessions import reconcile_orphaned_sessions, resumable_session, start_session
from backend.store import StoreError, WorkoutStore
from backend.workout_session import WorkoutSessionController
from ui.feedback import DeviceFeedback
from ui.scheduling import ClockNotificationScheduler
from ui.screens.home_screen import HomeScreen
from ui.screens.session.workout_session_screen import WorkoutSessionScreen


class WorkoutApp(MDApp):
    store: WorkoutStore | None = None
    kv_store: KeyValueStore | None = None
    workout_session: WorkoutSessionController | None = None

    def build(self):
        self.store = WorkoutStore(DEFAULT_DB_PATH)
        self.kv_store = KeyValueStore()
        self.notifier = ClockNotificationScheduler(on_delivery=self.on_notification)
        self.feedback = DeviceFeedback()
        manager = MDScreenManager(transition=NoTransition())
        manager.add_widget(HomeScreen(name="home"))
        manager.add_widget(WorkoutSessionScreen(name="workout_session"))
        manager.current = "home"
        return manager

    def on_start(self):
        """Close abandoned sessions, then reopen the one still in progress."""

        try:
            reconcile_orphaned_sessions(
                self.store,
                max_age_hours=settings.get_value("orphan_session_age_hours"),
                estimated_duration_hours=settings.get_value("orphan_session_estimated_hours"),
            )
            session = resumable_session(self.store)
        except StoreError:
            logging.warning("Could not check for unfinished sessions at startup")
            return
        if session is not None:
            self.open_workout(session.day_template_id, session.id)

    def _make_controller(self, day_template_id: int, session_id: int) -> WorkoutSessionController:
        return WorkoutSessionController(
            self.store,
            day_template_id,
            session_id,
            kv_store=self.kv_store,
            scheduler=Clock,
            notifier=self.notifier,
            feedback=self.feedback,
            rest_duration=settings.get_value("rest_duration", DEFAULT_REST_DURATION),
            debounce_delay=settings.get_value("input_debounce_seconds", INPUT_DEBOUNCE_SECONDS),
            weight_unit=settings.get_value("weight_unit", "kg"),
        )

    def open_workout(self, day_template_id: int, session_id: int):
        """Show ``session_id`` on the workout screen.

        Assigning the controller attaches it, which creates missing sets and
        restores the navigation cursor and rest timer.
        """

        self.workout_session = self._make_controller(day_template_id, session_id)
        self.root.get_screen("workout_session").controller = self.workout_session
        self.root.current = "workout_session"

    def start_workout(self, day_template_id: int):
        """Start a session for ``day_template_id`` and show the workout screen."""

        if self.workout_session and not self.workout_session.finished:
            self.root.current = "workout_session"
            return
        try:
            session = start_session(self.store, day_template_id)
        except StoreError:
            logging.warning("Could not start a workout for day %s", day_template_id)
            return
        self.open_workout(day_template_id, session.id)

    def finish_workout(self):
        if self.workout_session and self.workout_session.finish_session():
            self.workout_session = None
            self.root.get_screen("workout_session").controller = None
            self.root.current = "home"

    def on_notification(self, payload: dict):
        if self.workout_session:
            self.workout_session.handle_notification(payload)

    def on_pause(self):
        if self.workout_session:
            self.workout_session.on_app_background()
        return True

    def on_resume(self):
        if self.workout_session:
            self.workout_session.on_app_foreground()

    def on_stop(self):
        if self.workout_session:
            self.workout_session.on_app_background()
        if self.store:
            self.store.close()


if __name__ == "__main__":
    WorkoutApp().run()
