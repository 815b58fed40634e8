"""Screen shown while a workout is in progress.

The screen only mirrors :class:`backend.workout_session.WorkoutSessionController`:
labels are refreshed from the controller on a 0.1 s clock and every button
forwards to a controller call.
"""

from __future__ import annotations

import logging

from kivy.clock import Clock
from kivy.metrics import dp
from kivy.properties import BooleanProperty, ObjectProperty, StringProperty
from kivymd.app import MDApp
from kivymd.uix.boxlayout import MDBoxLayout
from kivymd.uix.button import MDFlatButton, MDRaisedButton
from kivymd.uix.dialog import MDDialog
from kivymd.uix.label import MDLabel
from kivymd.uix.screen import MDScreen
from kivymd.uix.scrollview import MDScrollView
from kivymd.uix.selectioncontrol import MDCheckbox
from kivymd.uix.textfield import MDTextField

from backend import units
from backend.workout_session import WEIGHT_FIELD

REST_ADJUST_STEP = 15


class SetRow(MDBoxLayout):
    """Weight/reps inputs for one set."""

    def __init__(self, screen, exercise_set, label: str, **kwargs):
        super().__init__(orientation="horizontal", size_hint_y=None, height=dp(48), **kwargs)
        self.screen = screen
        self.set_id = exercise_set.id
        controller = screen.controller
        self.add_widget(MDLabel(text=label, size_hint_x=0.2))
        self.weight_input = MDTextField(
            text=controller.weight_text(exercise_set),
            hint_text="+kg" if exercise_set.is_bodyweight else controller.weight_unit,
            input_filter="float",
            size_hint_x=0.3,
        )
        self.reps_input = MDTextField(
            text=str(exercise_set.reps) if exercise_set.reps else "",
            hint_text="reps",
            input_filter="int",
            size_hint_x=0.3,
        )
        self.bodyweight_box = MDCheckbox(active=exercise_set.is_bodyweight, size_hint_x=0.2)
        self.weight_input.bind(text=self._on_weight)
        self.reps_input.bind(text=self._on_reps)
        self.bodyweight_box.bind(active=self._on_bodyweight)
        for widget in (self.weight_input, self.reps_input, self.bodyweight_box):
            self.add_widget(widget)

    def _on_weight(self, _field, text):
        if self.bodyweight_box.active:
            extra = units.parse_weight(text, self.screen.controller.weight_unit) or 0.0
            value = self.screen.controller.record_set_input(self.set_id, extra_weight=extra)
        else:
            value = self.screen.controller.record_set_text(self.set_id, weight_text=text)
        self.screen.after_input(value)

    def _on_reps(self, _field, text):
        self.screen.after_input(self.screen.controller.record_set_text(self.set_id, reps_text=text))

    def _on_bodyweight(self, _box, active):
        result = self.screen.controller.record_set_input(self.set_id, is_bodyweight=active)
        self.weight_input.text = ""
        self.screen.after_input(result)

    def focus(self, field: str) -> None:
        target = self.weight_input if field == WEIGHT_FIELD else self.reps_input
        target.focus = True


class WorkoutSessionScreen(MDScreen):
    """Active workout: one exercise group at a time plus the rest timer."""

    controller = ObjectProperty(None, allownone=True)
    group_title = StringProperty("")
    exercise_title = StringProperty("")
    progress_label = StringProperty("")
    elapsed_label = StringProperty("00:00")
    rest_label = StringProperty("")
    error_label = StringProperty("")
    previous_disabled = BooleanProperty(True)
    delete_disabled = BooleanProperty(True)
    is_last_group = BooleanProperty(False)

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._event = None
        self._rows: dict[int, SetRow] = {}
        self._dialog = None
        self._build_layout()

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------
    def _build_layout(self):
        root = MDBoxLayout(orientation="vertical", padding=dp(8), spacing=dp(4))
        header = MDBoxLayout(size_hint_y=None, height=dp(40))
        self._progress = MDLabel()
        self._elapsed = MDLabel(halign="right")
        header.add_widget(self._progress)
        header.add_widget(self._elapsed)
        root.add_widget(header)

        self._title = MDLabel(font_style="H6", size_hint_y=None, height=dp(40))
        self._error = MDLabel(theme_text_color="Error", size_hint_y=None, height=dp(24))
        root.add_widget(self._title)
        root.add_widget(self._error)

        scroll = MDScrollView()
        self._sets_box = MDBoxLayout(orientation="vertical", size_hint_y=None, spacing=dp(4))
        self._sets_box.bind(minimum_height=self._sets_box.setter("height"))
        scroll.add_widget(self._sets_box)
        root.add_widget(scroll)

        rest_bar = MDBoxLayout(size_hint_y=None, height=dp(48), spacing=dp(4))
        self._rest = MDLabel(halign="center")
        rest_bar.add_widget(MDFlatButton(text=f"-{REST_ADJUST_STEP}", on_release=lambda *_: self.adjust_rest(-REST_ADJUST_STEP)))
        rest_bar.add_widget(self._rest)
        rest_bar.add_widget(MDFlatButton(text=f"+{REST_ADJUST_STEP}", on_release=lambda *_: self.adjust_rest(REST_ADJUST_STEP)))
        rest_bar.add_widget(MDFlatButton(text="Pause", on_release=lambda *_: self.toggle_rest_pause()))
        rest_bar.add_widget(MDFlatButton(text="Skip", on_release=lambda *_: self.skip_rest()))
        root.add_widget(rest_bar)

        actions = MDBoxLayout(size_hint_y=None, height=dp(48), spacing=dp(4))
        self._add_set_btn = MDFlatButton(text="Add set", on_release=lambda *_: self.add_set())
        self._remove_set_btn = MDFlatButton(text="Remove set", on_release=lambda *_: self.remove_set())
        self._delete_btn = MDFlatButton(text="Delete", on_release=lambda *_: self.confirm_delete())
        for widget in (self._add_set_btn, self._remove_set_btn, self._delete_btn):
            actions.add_widget(widget)
        root.add_widget(actions)

        nav = MDBoxLayout(size_hint_y=None, height=dp(56), spacing=dp(8))
        self._previous_btn = MDRaisedButton(text="Previous", on_release=lambda *_: self.go_previous())
        self._next_btn = MDRaisedButton(text="Next", on_release=lambda *_: self.go_next())
        nav.add_widget(self._previous_btn)
        nav.add_widget(self._next_btn)
        root.add_widget(nav)
        self.add_widget(root)

    # ------------------------------------------------------------------
    # Screen lifecycle
    # ------------------------------------------------------------------
    def on_controller(self, _instance, controller):
        """Attach a newly assigned controller and redraw.

        Runs on assignment rather than on screen entry so a controller set
        while the screen is already current is still attached.
        """
        self._previous_controller_cleanup()
        self.error_label = self._error.text = ""
        if controller is not None:
            controller.error_listeners.append(self._on_error)
            controller.attach()
            self._attached = controller
            self._ensure_clock_event()
        self.refresh()

    def _previous_controller_cleanup(self):
        previous = getattr(self, "_attached", None)
        if previous is not None and self._on_error in previous.error_listeners:
            previous.error_listeners.remove(self._on_error)
        self._attached = None

    def on_pre_enter(self, *args):
        self.refresh()
        self._ensure_clock_event()
        return super().on_pre_enter(*args)

    def on_leave(self, *args):
        if self._event:
            self._event.cancel()
            self._event = None
        if self.controller is not None:
            self.controller.flush_pending_writes()
        return super().on_leave(*args)

    def _ensure_clock_event(self):
        """Ensure the timer update event is running."""
        if not getattr(self._event, "is_triggered", False):
            self._event = Clock.schedule_interval(self.update_timers, 0.1)

    def update_timers(self, *_args):
        controller = self.controller
        if controller is None:
            return
        controller.tick()
        self.elapsed_label = self._elapsed.text = controller.elapsed_display()
        self.rest_label = self._rest.text = controller.rest_display()

    def _on_error(self, message: str):
        self.error_label = self._error.text = message

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def refresh(self):
        """Rebuild the set rows and button states from the controller."""
        self._sets_box.clear_widgets()
        self._rows = {}
        controller = self.controller
        if controller is None or controller.current_group is None:
            self.group_title = self.exercise_title = self.progress_label = ""
            self._title.text = self._progress.text = ""
            return
        group = controller.current_group
        self.group_title = group.display_title
        self.exercise_title = " / ".join(t.name for t in group.exercises)
        self.progress_label = controller.exercise_progress_display()
        self._title.text = self.group_title or self.exercise_title
        self._progress.text = self.progress_label

        labels = group.member_labels
        for number, round_sets in enumerate(controller.rounds(group), start=1):
            for label, template, exercise_set in zip(labels, group.exercises, round_sets):
                if exercise_set is None:
                    continue
                prefix = f"{label} " if label else ""
                row = SetRow(self, exercise_set, f"{prefix}{template.name} #{number}")
                self._rows[exercise_set.id] = row
                self._sets_box.add_widget(row)

        self.previous_disabled = self._previous_btn.disabled = not controller.can_go_previous
        self.is_last_group = controller.is_last_group
        self._next_btn.text = "Finish Workout" if self.is_last_group else "Next"
        self.delete_disabled = self._delete_btn.disabled = not controller.can_delete_current_exercise()
        self._add_set_btn.text = "Add round" if group.is_superset else "Add set"
        self._remove_set_btn.text = "Remove round" if group.is_superset else "Remove set"
        self.update_timers()

    def after_input(self, result):
        if result.next_focus:
            set_id, field = result.next_focus
            row = self._rows.get(set_id)
            if row is not None:
                Clock.schedule_once(lambda *_: row.focus(field), 0)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    def go_next(self):
        if self.controller is None:
            return
        if self.controller.is_last_group:
            self.confirm_finish()
            return
        if self.controller.go_to_next():
            self.refresh()

    def go_previous(self):
        if self.controller is not None and self.controller.go_to_previous():
            self.refresh()

    def add_set(self):
        controller = self.controller
        group = controller.current_group if controller else None
        if group is None:
            return
        if group.is_superset:
            changed = controller.add_round()
        else:
            changed = controller.add_set(group.exercises[0].id)
        if changed:
            self.refresh()

    def remove_set(self):
        controller = self.controller
        group = controller.current_group if controller else None
        if group is None:
            return
        if group.is_superset:
            changed = controller.remove_round()
        else:
            changed = controller.remove_set(group.exercises[0].id)
        if changed:
            self.refresh()

    def adjust_rest(self, seconds: int):
        if self.controller is not None:
            self.controller.rest_timer.adjust(seconds)

    def toggle_rest_pause(self):
        if self.controller is None:
            return
        timer = self.controller.rest_timer
        if timer.is_paused:
            timer.resume()
        else:
            timer.pause()

    def skip_rest(self):
        if self.controller is not None:
            self.controller.rest_timer.skip()

    def _show_dialog(self, text: str, on_confirm):
        if self._dialog:
            self._dialog.dismiss()

        def _confirm(*_):
            self._dialog.dismiss()
            on_confirm()

        self._dialog = MDDialog(
            text=text,
            buttons=[
                MDFlatButton(text="Cancel", on_release=lambda *_: self._dialog.dismiss()),
                MDRaisedButton(text="Confirm", on_release=_confirm),
            ],
        )
        self._dialog.open()

    def confirm_delete(self):
        controller = self.controller
        if controller is None or not controller.can_delete_current_exercise():
            return
        name = controller.current_exercise.name
        self._show_dialog(f"Delete {name} from this workout?", self._delete_current)

    def _delete_current(self):
        if self.controller.delete_current_exercise():
            self.refresh()

    def confirm_finish(self):
        self._show_dialog("Finish workout?", self._finish)

    def _finish(self):
        app = MDApp.get_running_app()
        if app is not None and hasattr(app, "finish_workout"):
            app.finish_workout()
        elif self.controller is not None:
            self.controller.finish_session()
        logging.info("Workout finished from session screen")
