"""Session lifecycle helpers.

Starting a workout, closing sessions that were abandoned while in progress,
recording the health metrics entered around a workout, and read-only history
views.  Functions that write leave committing to the caller except where
noted, matching :class:`backend.store.WorkoutStore`.
"""

from __future__ import annotations

import logging
import time

from core import (
    DEFAULT_BODYWEIGHT,
    ORPHAN_SESSION_AGE_HOURS,
    ORPHAN_SESSION_ESTIMATED_HOURS,
)
from backend import units
from backend.models import (
    Session,
    completed_set_count,
    max_weight,
    total_volume,
)
from backend.store import WorkoutStore

# Accepted ranges for values typed on the pre/post workout screens
MIN_BODYWEIGHT = 20.0
MAX_BODYWEIGHT = 500.0
MAX_SLEEP_HOURS = 24.0


def start_session(
    store: WorkoutStore, day_template_id: int, now: float | None = None
) -> Session:
    """Create and commit a new in-progress session for ``day_template_id``.

    The most recently recorded bodyweight is carried forward so bodyweight
    sets have a sensible load before the user enters a new value.
    """

    if store.get_day_template(day_template_id) is None:
        raise ValueError(f"Day template {day_template_id} not found")
    now = time.time() if now is None else now
    bodyweight = store.last_known_bodyweight() or DEFAULT_BODYWEIGHT
    session = store.create_session(
        day_template_id,
        date=now,
        start_time=now,
        user_bodyweight=bodyweight,
    )
    store.save()
    logging.info("Started session %s for day %s", session.id, day_template_id)
    return session


def reconcile_orphaned_sessions(
    store: WorkoutStore,
    now: float | None = None,
    max_age_hours: float = ORPHAN_SESSION_AGE_HOURS,
    estimated_duration_hours: float = ORPHAN_SESSION_ESTIMATED_HOURS,
) -> list[int]:
    """Close in-progress sessions started more than ``max_age_hours`` ago.

    The end time is set to the start time plus ``estimated_duration_hours``.
    Returns the ids of the sessions that were closed.  Commits when anything
    changed.
    """

    now = time.time() if now is None else now
    cutoff = now - max_age_hours * 3600
    closed: list[int] = []
    for session in store.in_progress_sessions():
        if session.start_time is None or session.start_time >= cutoff:
            continue
        session.end_time = session.start_time + estimated_duration_hours * 3600
        store.update_session(session)
        closed.append(session.id)
    if closed:
        store.save()
        logging.info("Closed %d abandoned session(s): %s", len(closed), closed)
    return closed


def resumable_session(store: WorkoutStore) -> Session | None:
    """Return the most recent in-progress session that can be reopened.

    Run after :func:`reconcile_orphaned_sessions` so abandoned sessions are
    already closed.  A session whose day template was deleted cannot be
    resumed.
    """

    session = store.latest_in_progress_session()
    if session is None or session.day_template_id is None:
        return None
    logging.info("Resuming session %s", session.id)
    return session


def record_health_metrics(
    store: WorkoutStore,
    session_id: int,
    sleep_hours: float | None = None,
    protein_grams: float | None = None,
    bodyweight: float | None = None,
    notes: str | None = None,
) -> Session:
    """Store sleep, protein, bodyweight and notes for a session.

    Bodyweight is clamped to the accepted range.  Sleep outside 0-24 h or
    negative protein raises :class:`ValueError`.
    """

    session = store.get_session(session_id)
    if session is None:
        raise ValueError(f"Session {session_id} not found")
    if sleep_hours is not None:
        if not 0 <= sleep_hours <= MAX_SLEEP_HOURS:
            raise ValueError("Sleep must be between 0 and 24 hours")
        session.sleep_hours = float(sleep_hours)
    if protein_grams is not None:
        if protein_grams < 0:
            raise ValueError("Protein cannot be negative")
        session.protein_grams = float(protein_grams)
    if bodyweight is not None:
        session.user_bodyweight = min(MAX_BODYWEIGHT, max(MIN_BODYWEIGHT, float(bodyweight)))
    if notes is not None:
        session.notes = notes.strip()
    store.update_session(session)
    store.save()
    return session


def validate_session(session: Session) -> list[str]:
    """Return a list of problems with ``session``; empty when valid."""

    errors: list[str] = []
    if session.start_time is None:
        errors.append("Session has no start time")
    if session.end_time is not None:
        if session.start_time is not None and session.end_time < session.start_time:
            errors.append("Session ends before it starts")
    if session.sleep_hours < 0 or session.sleep_hours > MAX_SLEEP_HOURS:
        errors.append("Sleep hours out of range")
    if session.protein_grams < 0:
        errors.append("Protein cannot be negative")
    if session.user_bodyweight and not (
        MIN_BODYWEIGHT <= session.user_bodyweight <= MAX_BODYWEIGHT
    ):
        errors.append("Bodyweight out of range")
    return errors


def _day_name(store: WorkoutStore, session: Session) -> str:
    if session.day_template_id is None:
        return ""
    day = store.get_day_template(session.day_template_id)
    return day.name if day else ""


def get_session_history(store: WorkoutStore, limit: int | None = None) -> list[dict]:
    """Return finished sessions, most recent first.

    Each item holds ``id``, ``day_name``, ``date``, ``start_time``,
    ``end_time`` and ``duration`` in seconds.
    """

    history = []
    for session in store.finished_sessions(limit):
        history.append(
            {
                "id": session.id,
                "day_name": _day_name(store, session),
                "date": session.date,
                "start_time": session.start_time,
                "end_time": session.end_time,
                "duration": session.duration(session.end_time or 0.0),
            }
        )
    return history


def get_session_details(store: WorkoutStore, session_id: int) -> dict:
    """Return one session with its exercises and sets.

    Exercises follow template order; each has ``name``, ``muscle_group`` and
    a list of ``sets`` with ``number``, ``weight``, ``reps``,
    ``is_bodyweight``, ``extra_weight`` and ``is_completed``.
    """

    session = store.get_session(session_id)
    if session is None:
        raise ValueError(f"Session {session_id} not found")
    exercises = []
    for completed in store.completed_exercises_for_session(session_id):
        template = store.get_exercise_template(completed.exercise_template_id)
        sets = store.sets_for_completed_exercise(completed.id)
        exercises.append(
            {
                "name": template.name if template else "",
                "muscle_group": template.muscle_group if template else "",
                "sets": [
                    {
                        "number": idx,
                        "weight": s.weight,
                        "reps": s.reps,
                        "is_bodyweight": s.is_bodyweight,
                        "extra_weight": s.extra_weight,
                        "is_completed": s.is_completed,
                    }
                    for idx, s in enumerate(sets, start=1)
                ],
            }
        )
    return {
        "id": session.id,
        "day_name": _day_name(store, session),
        "date": session.date,
        "start_time": session.start_time,
        "end_time": session.end_time,
        "sleep_hours": session.sleep_hours,
        "protein_grams": session.protein_grams,
        "bodyweight": session.user_bodyweight,
        "notes": session.notes,
        "exercises": exercises,
    }


def session_summary(
    store: WorkoutStore, session_id: int, unit: str = units.KG, now: float | None = None
) -> str:
    """Return a short multi-line text summary of a session."""

    session = store.get_session(session_id)
    if session is None:
        raise ValueError(f"Session {session_id} not found")
    now = time.time() if now is None else now
    bodyweight = session.bodyweight()
    lines = [_day_name(store, session) or "Workout"]
    all_sets = []
    for completed in store.completed_exercises_for_session(session_id):
        template = store.get_exercise_template(completed.exercise_template_id)
        sets = store.sets_for_completed_exercise(completed.id)
        all_sets.extend(sets)
        done = completed_set_count(sets)
        if not done:
            continue
        best = max_weight(sets, bodyweight)
        name = template.name if template else "Exercise"
        lines.append(f"{name}: {done} sets, top {units.format_weight(best, unit)}")
    lines.append(
        f"Total: {completed_set_count(all_sets)} sets, "
        f"{units.format_weight(total_volume(all_sets, bodyweight), unit)} lifted"
    )
    lines.append(f"Duration: {units.format_elapsed(session.duration(now))}")
    return "\n".join(lines)
