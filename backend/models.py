"""Plain data records for programs, templates and logged sessions.

Rows are loaded from SQLite into these dataclasses by
:class:`backend.store.WorkoutStore`.  Relationships are stored as foreign key
ids; ordered child lists are fetched from the store rather than kept on the
objects so the data is always read fresh.
"""

from __future__ import annotations

from dataclasses import dataclass

from core import DEFAULT_BODYWEIGHT


@dataclass
class Program:
    id: int
    name: str
    notes: str = ""
    created_date: float = 0.0


@dataclass
class DayTemplate:
    id: int
    program_id: int
    name: str
    notes: str = ""
    order: int = 0


@dataclass
class ExerciseTemplate:
    id: int
    day_template_id: int
    name: str
    muscle_group: str = ""
    notes: str = ""
    order: int = 0
    target_sets: int = 3
    superset_group: int = 0

    @property
    def is_in_superset(self) -> bool:
        return self.superset_group > 0


@dataclass
class Session:
    """A workout performed from a :class:`DayTemplate`."""

    id: int
    day_template_id: int | None
    date: float
    start_time: float | None = None
    end_time: float | None = None
    sleep_hours: float = 0.0
    protein_grams: float = 0.0
    user_bodyweight: float = 0.0
    notes: str = ""

    @property
    def is_in_progress(self) -> bool:
        return self.start_time is not None and self.end_time is None

    def bodyweight(self) -> float:
        """Return the recorded bodyweight or the default when unset."""

        return self.user_bodyweight if self.user_bodyweight > 0 else DEFAULT_BODYWEIGHT

    def duration(self, now: float) -> float:
        """Seconds between start and end, using ``now`` while in progress."""

        if self.start_time is None:
            return 0.0
        end = self.end_time if self.end_time is not None else now
        return max(0.0, end - self.start_time)


@dataclass
class CompletedExercise:
    id: int
    session_id: int
    exercise_template_id: int


@dataclass
class ExerciseSet:
    """One logged set.

    ``weight`` and ``extra_weight`` are kilograms.  A negative
    ``rest_seconds`` marks the set as part of a drop-set cluster; it is only
    used when grouping sets for display.
    """

    id: int
    completed_exercise_id: int
    order: int
    weight: float = 0.0
    reps: int = 0
    is_completed: bool = False
    is_bodyweight: bool = False
    extra_weight: float = 0.0
    rest_seconds: int = 0

    @property
    def has_valid_weight(self) -> bool:
        if self.is_bodyweight:
            return True
        return self.weight > 0

    def derived_completed(self) -> bool:
        """Return the completion state implied by the current inputs."""

        return self.has_valid_weight and self.reps > 0

    def refresh_completed(self) -> bool:
        """Update ``is_completed`` from the inputs.

        Returns ``True`` when the stored flag changed so callers only write
        rows whose value actually differs.
        """

        derived = self.derived_completed()
        if derived == self.is_completed:
            return False
        self.is_completed = derived
        return True

    @property
    def is_drop_set(self) -> bool:
        return self.rest_seconds < 0

    def effective_weight(self, bodyweight: float | None = None) -> float:
        if self.is_bodyweight:
            base = bodyweight if bodyweight and bodyweight > 0 else DEFAULT_BODYWEIGHT
            return base + self.extra_weight
        return self.weight

    def volume(self, bodyweight: float | None = None) -> float:
        return self.effective_weight(bodyweight) * self.reps


def completed_set_count(sets: list[ExerciseSet]) -> int:
    return sum(1 for s in sets if s.is_completed)


def all_sets_completed(sets: list[ExerciseSet]) -> bool:
    return bool(sets) and all(s.is_completed for s in sets)


def total_volume(sets: list[ExerciseSet], bodyweight: float | None = None) -> float:
    """Sum of effective weight x reps over ``sets``."""

    return sum(s.volume(bodyweight) for s in sets)


def max_weight(sets: list[ExerciseSet], bodyweight: float | None = None) -> float:
    """Heaviest effective weight among completed sets."""

    weights = [s.effective_weight(bodyweight) for s in sets if s.is_completed]
    return max(weights, default=0.0)
