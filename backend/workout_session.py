"""Controller for a workout that is currently being performed.

:class:`WorkoutSessionController` is bound to one day template and the
session started from it.  It keeps the navigation cursor, turns weight/reps
input into completed sets, drives the rest timer and lets the user add or
remove exercises, sets and superset rounds while training.

Set input is applied to in-memory :class:`~backend.models.ExerciseSet`
objects straight away and written to the database after a short quiet
period.  The in-memory value is what the screen shows, whether or not the
write has happened yet.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from core import (
    DEFAULT_REST_DURATION,
    DEFAULT_SETS_PER_EXERCISE,
    DELETABLE_TAIL_SIZE,
    INPUT_DEBOUNCE_SECONDS,
)
from backend import units
from backend.debounce import Debouncer
from backend.grouping import (
    ExerciseGroup,
    exercise_groups,
    group_index_for_template,
    superset_partner,
)
from backend.models import CompletedExercise, ExerciseSet, ExerciseTemplate, Session
from backend.notifications import SET_COMPLETED, FeedbackSink, NotificationScheduler
from backend.rest_timer import RestTimer
from backend.store import StoreError, WorkoutStore

# Key-value store entry holding the navigation cursor
NAVIGATION_KEY = "workout_navigation"

WEIGHT_FIELD = "weight"
REPS_FIELD = "reps"


@dataclass
class SetInputResult:
    """Outcome of :meth:`WorkoutSessionController.record_set_input`."""

    completed: bool = False
    timer_started: bool = False
    next_focus: tuple[int, str] | None = None


class _ImmediateScheduler:
    """Run debounced writes straight away when no clock is supplied."""

    def schedule_once(self, callback, timeout=0):
        callback(0)
        return self

    def cancel(self) -> None:
        pass


class WorkoutSessionController:
    """Drive an in-progress workout for ``session_id``."""

    def __init__(
        self,
        store: WorkoutStore,
        day_template_id: int,
        session_id: int,
        *,
        kv_store: Any,
        scheduler: Any = None,
        notifier: NotificationScheduler | None = None,
        feedback: FeedbackSink | None = None,
        clock: Callable[[], float] = time.time,
        rest_duration: float = DEFAULT_REST_DURATION,
        debounce_delay: float = INPUT_DEBOUNCE_SECONDS,
        weight_unit: str = units.KG,
    ) -> None:
        self.store = store
        self.kv_store = kv_store
        self.day_template_id = day_template_id
        self.session_id = session_id
        self.clock = clock
        self.feedback = feedback or FeedbackSink()
        self.rest_duration = rest_duration
        self.weight_unit = weight_unit

        session = store.get_session(session_id)
        if session is None:
            raise ValueError(f"Session {session_id} not found")
        self.session: Session = session

        self.rest_timer = RestTimer(
            session_id,
            kv_store,
            scheduler=notifier,
            feedback=self.feedback,
            clock=clock,
        )
        self._debouncer = Debouncer(
            scheduler or _ImmediateScheduler(), debounce_delay, self._commit_sets
        )
        # edited sets; these values win over what is stored until committed
        self._sets: dict[int, ExerciseSet] = {}

        self.current_group_index = 0
        self.current_exercise_in_group = 0
        self.finished = False
        self.last_error: str | None = None
        self.focus_target: tuple[int, str] | None = None
        self.error_listeners: list[Callable[[str], Any]] = []
        self.finish_listeners: list[Callable[[Session], Any]] = []

    # ------------------------------------------------------------------
    # Error reporting
    # ------------------------------------------------------------------

    def _report(self, message: str, exc: Exception | None = None) -> None:
        self.last_error = message
        if exc is not None:
            logging.warning("%s: %s", message, exc)
        for listener in list(self.error_listeners):
            listener(message)

    def _rollback(self) -> None:
        try:
            self.store.rollback()
        except StoreError:
            logging.warning("Rollback after failed write also failed")

    def clear_error(self) -> None:
        self.last_error = None

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def templates(self) -> list[ExerciseTemplate]:
        """Exercise templates of the day, sorted by ``order``."""

        try:
            return self.store.exercise_templates_for_day(self.day_template_id)
        except StoreError as exc:
            self._report("Could not load exercises", exc)
            return []

    @property
    def groups(self) -> list[ExerciseGroup]:
        return exercise_groups(self.templates())

    @property
    def current_group(self) -> ExerciseGroup | None:
        groups = self.groups
        if 0 <= self.current_group_index < len(groups):
            return groups[self.current_group_index]
        return None

    @property
    def current_exercise(self) -> ExerciseTemplate | None:
        group = self.current_group
        if group is None:
            return None
        idx = min(self.current_exercise_in_group, len(group.exercises) - 1)
        return group.exercises[idx]

    def completed_exercise_for(self, template_id: int) -> CompletedExercise | None:
        try:
            return self.store.find_completed_exercise(self.session_id, template_id)
        except StoreError as exc:
            self._report("Could not load exercise", exc)
            return None

    def sets_for(self, template_id: int) -> list[ExerciseSet]:
        """Sets of ``template_id`` in this session, including unsaved edits."""

        completed = self.completed_exercise_for(template_id)
        if completed is None:
            return []
        try:
            rows = self.store.sets_for_completed_exercise(completed.id)
        except StoreError as exc:
            self._report("Could not load sets", exc)
            return []
        return [self._sets.get(row.id, row) for row in rows]

    def rounds(self, group: ExerciseGroup) -> list[list[ExerciseSet | None]]:
        """Sets of ``group`` arranged by round; ``None`` fills uneven rounds."""

        per_member = [self.sets_for(t.id) for t in group.exercises]
        count = max((len(sets) for sets in per_member), default=0)
        return [
            [sets[idx] if idx < len(sets) else None for sets in per_member]
            for idx in range(count)
        ]

    def _load_set(self, set_id: int) -> ExerciseSet | None:
        cached = self._sets.get(set_id)
        if cached is not None:
            return cached
        try:
            exercise_set = self.store.get_set(set_id)
        except StoreError as exc:
            self._report("Could not load set", exc)
            return None
        if exercise_set is not None:
            self._sets[set_id] = exercise_set
        return exercise_set

    # ------------------------------------------------------------------
    # Setup and attachment
    # ------------------------------------------------------------------

    def setup_session(self) -> bool:
        """Make sure every exercise has its completed exercise and sets.

        Missing rows are created, existing ones are never removed, so the
        call is safe to repeat whenever the screen is shown again.
        """

        if self.finished:
            return False
        try:
            for template in self.store.exercise_templates_for_day(self.day_template_id):
                self._ensure_exercise_rows(template)
            self.store.save()
        except StoreError as exc:
            self._rollback()
            self._report("Could not set up workout", exc)
            return False
        return True

    def _ensure_exercise_rows(self, template: ExerciseTemplate) -> CompletedExercise:
        completed = self.store.find_completed_exercise(self.session_id, template.id)
        if completed is None:
            completed = self.store.create_completed_exercise(self.session_id, template.id)
        existing = self.store.sets_for_completed_exercise(completed.id)
        next_order = max((s.order for s in existing), default=-1) + 1
        for offset in range(max(0, template.target_sets - len(existing))):
            self.store.create_set(completed.id, next_order + offset)
        return completed

    def attach(self) -> bool:
        """Prepare the controller when the workout screen is shown."""

        ok = self.setup_session()
        self.restore_navigation()
        if not self.finished:
            self.rest_timer.restore()
        return ok

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def _clamp_cursor(self, groups: list[ExerciseGroup] | None = None) -> None:
        groups = self.groups if groups is None else groups
        if not groups:
            self.current_group_index = 0
            self.current_exercise_in_group = 0
            return
        self.current_group_index = min(max(0, self.current_group_index), len(groups) - 1)
        size = len(groups[self.current_group_index].exercises)
        self.current_exercise_in_group = min(max(0, self.current_exercise_in_group), size - 1)

    def _persist_navigation(self) -> None:
        self.kv_store.set(
            NAVIGATION_KEY,
            {
                "session_id": self.session_id,
                "group_index": self.current_group_index,
                "exercise_index": self.current_exercise_in_group,
            },
        )

    def restore_navigation(self) -> None:
        """Load the saved cursor, clamped to the current groups."""

        record = self.kv_store.get(NAVIGATION_KEY)
        if record and record.get("session_id") == self.session_id:
            try:
                self.current_group_index = int(record.get("group_index", 0))
                self.current_exercise_in_group = int(record.get("exercise_index", 0))
            except (TypeError, ValueError):
                self.current_group_index = 0
                self.current_exercise_in_group = 0
        elif record:
            self.kv_store.remove(NAVIGATION_KEY)
        self._clamp_cursor()

    @property
    def can_go_previous(self) -> bool:
        return self.current_group_index > 0 or self.current_exercise_in_group > 0

    @property
    def can_go_next(self) -> bool:
        return self.current_group_index < len(self.groups) - 1

    @property
    def is_last_group(self) -> bool:
        """``True`` when the screen should offer "Finish Workout" instead of Next."""

        return not self.can_go_next

    def go_to_next(self) -> bool:
        if self.finished or not self.can_go_next:
            return False
        self.current_group_index += 1
        self.current_exercise_in_group = 0
        self._persist_navigation()
        return True

    def go_to_previous(self) -> bool:
        if self.finished or not self.can_go_previous:
            return False
        if self.current_group_index > 0:
            self.current_group_index -= 1
        self.current_exercise_in_group = 0
        self._persist_navigation()
        return True

    def focus_exercise(self, index: int) -> bool:
        """Select which member of the current superset is active."""

        group = self.current_group
        if self.finished or group is None or not 0 <= index < len(group.exercises):
            return False
        self.current_exercise_in_group = index
        self._persist_navigation()
        return True

    # ------------------------------------------------------------------
    # Set input
    # ------------------------------------------------------------------

    def record_set_input(
        self,
        set_id: int,
        weight: float | None = None,
        reps: int | None = None,
        is_bodyweight: bool | None = None,
        extra_weight: float | None = None,
    ) -> SetInputResult:
        """Apply an edit to one set and react to it becoming complete.

        Weights are kilograms.  Switching bodyweight mode clears both the
        weight and the extra weight.  The write to the database is debounced.
        When the edit completes the set the rest timer starts (for a
        superset only once both sets of the round are complete) and
        ``next_focus`` names the input that should receive focus.
        """

        if self.finished:
            return SetInputResult()
        exercise_set = self._load_set(set_id)
        if exercise_set is None:
            logging.warning("Ignoring input for unknown set %s", set_id)
            return SetInputResult()

        was_completed = exercise_set.is_completed
        if is_bodyweight is not None and bool(is_bodyweight) != exercise_set.is_bodyweight:
            exercise_set.is_bodyweight = bool(is_bodyweight)
            exercise_set.weight = 0.0
            exercise_set.extra_weight = 0.0
        if weight is not None:
            exercise_set.weight = max(0.0, float(weight))
        if extra_weight is not None:
            exercise_set.extra_weight = max(0.0, float(extra_weight))
        if reps is not None:
            exercise_set.reps = max(0, int(reps))
        exercise_set.refresh_completed()
        self._debouncer.touch(set_id)

        result = SetInputResult(completed=exercise_set.is_completed)
        if exercise_set.is_completed and not was_completed:
            self._signal(SET_COMPLETED)
            result.timer_started, result.next_focus = self._on_set_completed(exercise_set)
            self.focus_target = result.next_focus
        return result

    def record_set_text(
        self,
        set_id: int,
        weight_text: str | None = None,
        reps_text: str | None = None,
    ) -> SetInputResult:
        """Apply raw text field input using the user's weight unit.

        An empty field counts as zero; unparsable text leaves the value as is.
        """

        weight = None
        reps = None
        if weight_text is not None:
            weight = 0.0 if not weight_text.strip() else units.parse_weight(weight_text, self.weight_unit)
        if reps_text is not None:
            reps = 0 if not reps_text.strip() else units.parse_reps(reps_text)
        return self.record_set_input(set_id, weight=weight, reps=reps)

    def _on_set_completed(self, exercise_set: ExerciseSet) -> tuple[bool, tuple[int, str] | None]:
        try:
            completed = self.store.get_completed_exercise(exercise_set.completed_exercise_id)
        except StoreError as exc:
            self._report("Could not load exercise", exc)
            return False, None
        if completed is None:
            return False, None
        groups = self.groups
        group_index = group_index_for_template(groups, completed.exercise_template_id)
        group = groups[group_index] if group_index is not None else None

        if group is not None and group.is_superset:
            member = group.index_of(completed.exercise_template_id)
            partner = group.exercises[1 - member]
            partner_set = next(
                (s for s in self.sets_for(partner.id) if s.order == exercise_set.order),
                None,
            )
            if partner_set is not None and not partner_set.is_completed:
                return False, (partner_set.id, WEIGHT_FIELD)
            self.rest_timer.start(self.rest_duration)
            for round_sets in self.rounds(group):
                for candidate in round_sets:
                    if candidate is not None and not candidate.is_completed:
                        return True, (candidate.id, WEIGHT_FIELD)
            return True, None

        self.rest_timer.start(self.rest_duration)
        for candidate in self.sets_for(completed.exercise_template_id):
            if not candidate.is_completed:
                return True, (candidate.id, WEIGHT_FIELD)
        return True, None

    def _commit_sets(self, set_ids: list) -> bool:
        try:
            for set_id in set_ids:
                exercise_set = self._sets.get(set_id)
                if exercise_set is not None:
                    self.store.update_set(exercise_set)
            self.store.save()
        except StoreError as exc:
            self._rollback()
            self._report("Could not save set changes", exc)
            return False
        return True

    def flush_pending_writes(self) -> bool:
        """Write any debounced set edits immediately."""

        result = self._debouncer.flush()
        return True if result is None else result

    @property
    def has_pending_writes(self) -> bool:
        return bool(self._debouncer.pending)

    def weight_text(self, exercise_set: ExerciseSet) -> str:
        if exercise_set.is_bodyweight:
            return units.format_weight_input(exercise_set.extra_weight, self.weight_unit)
        return units.format_weight_input(exercise_set.weight, self.weight_unit)

    # ------------------------------------------------------------------
    # Adding and removing exercises
    # ------------------------------------------------------------------

    def add_exercise_mid_workout(self, template: ExerciseTemplate) -> bool:
        """Add a freshly created template to the running workout.

        The template is placed after every existing exercise, receives its
        completed exercise and ``target_sets`` empty sets, and becomes the
        current group.
        """

        if self.finished:
            return False
        try:
            others = [
                t
                for t in self.store.exercise_templates_for_day(self.day_template_id)
                if t.id != template.id
            ]
            last_order = max((t.order for t in others), default=-1)
            if template.order <= last_order:
                template.order = last_order + 1
                self.store.update_exercise_template(template)
            self._ensure_exercise_rows(template)
            self.store.save()
        except StoreError as exc:
            self._rollback()
            self._report("Could not add exercise", exc)
            return False

        groups = self.groups
        self.current_group_index = max(0, len(groups) - 1)
        self.current_exercise_in_group = 0
        if groups:
            self.current_exercise_in_group = groups[-1].index_of(template.id) or 0
        self._persist_navigation()
        logging.info("Added exercise %s to session %s", template.name, self.session_id)
        return True

    def quick_add_exercise(
        self,
        name: str,
        *,
        muscle_group: str = "",
        target_sets: int = DEFAULT_SETS_PER_EXERCISE,
        notes: str = "",
    ) -> ExerciseTemplate | None:
        """Create a standalone template on the day and add it to the workout."""

        name = name.strip()
        if self.finished or not name or target_sets < 1:
            return None
        try:
            template = self.store.create_exercise_template(
                self.day_template_id,
                name,
                muscle_group=muscle_group,
                notes=notes.strip(),
                target_sets=target_sets,
            )
        except StoreError as exc:
            self._rollback()
            self._report("Failed to add exercise. Please try again.", exc)
            return None
        if not self.add_exercise_mid_workout(template):
            return None
        return template

    def can_delete_current_exercise(self) -> bool:
        """Only one of the last few exercises may go, and never the only one."""

        if self.finished:
            return False
        template = self.current_exercise
        if template is None:
            return False
        templates = self.templates()
        if len(templates) <= 1:
            return False
        tail = templates[-DELETABLE_TAIL_SIZE:]
        return any(t.id == template.id for t in tail)

    def delete_current_exercise(self) -> bool:
        """Remove the current exercise, its sets and its template."""

        if not self.can_delete_current_exercise():
            return False
        template = self.current_exercise
        templates = self.templates()
        partner = superset_partner(templates, template)
        try:
            completed = self.store.find_completed_exercise(self.session_id, template.id)
            if completed is not None:
                for exercise_set in self.store.sets_for_completed_exercise(completed.id):
                    self.store.delete_set(exercise_set.id)
                    self._sets.pop(exercise_set.id, None)
                self.store.delete_completed_exercise(completed.id)
            self.store.delete_exercise_template(template.id)
            if partner is not None:
                partner.superset_group = 0
                self.store.update_exercise_template(partner)
            self.store.save()
        except StoreError as exc:
            self._rollback()
            self._report("Could not delete exercise", exc)
            return False

        self._clamp_cursor()
        self._persist_navigation()
        logging.info("Deleted exercise %s from session %s", template.name, self.session_id)
        return True

    # ------------------------------------------------------------------
    # Rounds and sets
    # ------------------------------------------------------------------

    def _group_at(self, group_index: int | None) -> ExerciseGroup | None:
        groups = self.groups
        idx = self.current_group_index if group_index is None else group_index
        if 0 <= idx < len(groups):
            return groups[idx]
        logging.warning("Group index %s out of range", idx)
        return None

    def _resize_sets(self, template_ids: list[int], target: int) -> None:
        """Grow or shrink each exercise's sets to exactly ``target``."""

        for template_id in template_ids:
            template = self.store.get_exercise_template(template_id)
            completed = self._ensure_completed(template)
            sets = self.store.sets_for_completed_exercise(completed.id)
            if len(sets) < target:
                next_order = max((s.order for s in sets), default=-1) + 1
                for offset in range(target - len(sets)):
                    self.store.create_set(completed.id, next_order + offset)
            for exercise_set in sets[target:]:
                self.store.delete_set(exercise_set.id)
                self._sets.pop(exercise_set.id, None)

    def _ensure_completed(self, template: ExerciseTemplate) -> CompletedExercise:
        completed = self.store.find_completed_exercise(self.session_id, template.id)
        if completed is None:
            completed = self.store.create_completed_exercise(self.session_id, template.id)
        return completed

    def _apply_resize(self, template_ids: list[int], target: int, action: str) -> bool:
        try:
            self._resize_sets(template_ids, target)
            self.store.save()
        except StoreError as exc:
            self._rollback()
            self._report(f"Could not {action}", exc)
            return False
        return True

    def add_round(self, group_index: int | None = None) -> bool:
        """Append one set to both exercises of a superset."""

        group = self._group_at(group_index)
        if self.finished or group is None or not group.is_superset:
            return False
        counts = [len(self.sets_for(t.id)) for t in group.exercises]
        return self._apply_resize([t.id for t in group.exercises], max(counts) + 1, "add round")

    def remove_round(self, group_index: int | None = None) -> bool:
        """Drop the last round of a superset, keeping at least one."""

        group = self._group_at(group_index)
        if self.finished or group is None or not group.is_superset:
            return False
        counts = [len(self.sets_for(t.id)) for t in group.exercises]
        if min(counts) < 2:
            return False
        return self._apply_resize([t.id for t in group.exercises], min(counts) - 1, "remove round")

    def _standalone_template(self, template_id: int) -> ExerciseTemplate | None:
        templates = self.templates()
        template = next((t for t in templates if t.id == template_id), None)
        if template is None or superset_partner(templates, template) is not None:
            return None
        return template

    def add_set(self, template_id: int) -> bool:
        """Append a set to a standalone exercise."""

        template = self._standalone_template(template_id)
        if self.finished or template is None:
            return False
        count = len(self.sets_for(template_id))
        return self._apply_resize([template_id], count + 1, "add set")

    def remove_set(self, template_id: int) -> bool:
        """Drop the last set of a standalone exercise, keeping at least one."""

        template = self._standalone_template(template_id)
        if self.finished or template is None:
            return False
        count = len(self.sets_for(template_id))
        if count < 2:
            return False
        return self._apply_resize([template_id], count - 1, "remove set")

    # ------------------------------------------------------------------
    # Rest timer and lifecycle
    # ------------------------------------------------------------------

    def _signal(self, event: str) -> None:
        try:
            self.feedback.signal(event)
        except Exception:
            logging.exception("Feedback signal %s failed", event)

    def tick(self) -> float:
        """Refresh time-based state; called by the screen's display clock."""

        if self.finished:
            return 0.0
        return self.rest_timer.tick()

    def handle_notification(self, payload: dict) -> bool:
        if self.finished:
            return False
        return self.rest_timer.handle_notification(payload)

    def on_app_background(self) -> None:
        """Persist everything before the app is suspended."""

        if self.finished:
            return
        self.flush_pending_writes()
        self._persist_navigation()

    def on_app_foreground(self) -> None:
        """Recompute timers from their stored wall-clock anchors."""

        if self.finished:
            return
        self.rest_timer.restore()
        self.rest_timer.tick()

    def elapsed_seconds(self) -> float:
        return self.session.duration(self.clock())

    def elapsed_display(self) -> str:
        return units.format_elapsed(self.elapsed_seconds())

    def rest_display(self) -> str:
        if self.rest_timer.is_idle:
            return ""
        return units.format_timer(self.rest_timer.remaining)

    def exercise_progress_display(self) -> str:
        groups = self.groups
        if not groups:
            return ""
        return f"Exercise {self.current_group_index + 1} of {len(groups)}"

    def finish_session(self) -> bool:
        """End the workout.

        Pending edits are written, the end time is stored and the rest timer
        is stopped.  If the database write fails the session stays in
        progress and startup reconciliation will close it later.
        """

        if self.finished:
            return False
        self.flush_pending_writes()
        self.rest_timer.skip()
        self.kv_store.remove(NAVIGATION_KEY)
        try:
            session = self.store.get_session(self.session_id) or self.session
            session.end_time = self.clock()
            self.store.update_session(session)
            self.store.save()
        except StoreError as exc:
            self._rollback()
            self._report("Could not finish workout", exc)
            return False
        self.session = session
        self.finished = True
        logging.info("Finished session %s", self.session_id)
        for listener in list(self.finish_listeners):
            listener(session)
        return True
