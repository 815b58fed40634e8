"""SQLite persistence for programs, templates and workout sessions.

:class:`WorkoutStore` keeps a single connection open so several changes can
be committed together with :meth:`WorkoutStore.save`.  Every statement runs
inside the implicit transaction opened by :mod:`sqlite3`; nothing is durable
until ``save`` succeeds.  Database errors are logged and re-raised as
:class:`StoreError` so callers can report them without crashing.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path
from typing import Iterable

from core import DEFAULT_DB_PATH, DEFAULT_SETS_PER_EXERCISE, SCHEMA_PATH
from backend.models import (
    CompletedExercise,
    DayTemplate,
    ExerciseSet,
    ExerciseTemplate,
    Program,
    Session,
)


class StoreError(RuntimeError):
    """Raised when the database rejects a read or write."""


_SESSION_COLUMNS = (
    "id, day_template_id, date, start_time, end_time, sleep_hours, "
    "protein_grams, user_bodyweight, notes"
)
_TEMPLATE_COLUMNS = (
    "id, day_template_id, name, muscle_group, notes, position, target_sets, "
    "superset_group"
)
_SET_COLUMNS = (
    "id, completed_exercise_id, position, weight, reps, is_completed, "
    "is_bodyweight, extra_weight, rest_seconds"
)


def _session_from_row(row) -> Session:
    return Session(*row)


def _template_from_row(row) -> ExerciseTemplate:
    return ExerciseTemplate(*row)


def _set_from_row(row) -> ExerciseSet:
    (
        set_id,
        ce_id,
        position,
        weight,
        reps,
        completed,
        bodyweight,
        extra,
        rest,
    ) = row
    return ExerciseSet(
        id=set_id,
        completed_exercise_id=ce_id,
        order=position,
        weight=weight,
        reps=reps,
        is_completed=bool(completed),
        is_bodyweight=bool(bodyweight),
        extra_weight=extra,
        rest_seconds=rest,
    )


class WorkoutStore:
    """Read and write workout entities in ``db_path``."""

    def __init__(
        self,
        db_path: Path = DEFAULT_DB_PATH,
        *,
        schema_path: Path = SCHEMA_PATH,
    ) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.db_path))
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._ensure_schema(Path(schema_path))

    def _ensure_schema(self, schema_path: Path) -> None:
        row = self.conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='sessions'"
        ).fetchone()
        if row:
            return
        with schema_path.open("r", encoding="utf-8") as fh:
            self.conn.executescript(fh.read())
        logging.info("Created workout schema in %s", self.db_path)

    # ------------------------------------------------------------------
    # Low level helpers
    # ------------------------------------------------------------------

    def _execute(self, sql: str, params: Iterable = ()) -> sqlite3.Cursor:
        try:
            return self.conn.execute(sql, tuple(params))
        except sqlite3.Error as exc:
            logging.exception("Database statement failed: %s", sql.strip().split("\n")[0])
            raise StoreError(str(exc)) from exc

    def save(self) -> None:
        """Commit all pending changes atomically."""

        try:
            self.conn.commit()
        except sqlite3.Error as exc:
            logging.exception("Commit failed for %s", self.db_path)
            raise StoreError(str(exc)) from exc

    def rollback(self) -> None:
        """Discard uncommitted changes."""

        try:
            self.conn.rollback()
        except sqlite3.Error as exc:
            logging.exception("Rollback failed for %s", self.db_path)
            raise StoreError(str(exc)) from exc

    def close(self) -> None:
        self.conn.close()

    # ------------------------------------------------------------------
    # Programs and templates
    # ------------------------------------------------------------------

    def create_program(self, name: str, notes: str = "", created_date: float | None = None) -> Program:
        created = time.time() if created_date is None else created_date
        cur = self._execute(
            "INSERT INTO programs (name, notes, created_date) VALUES (?, ?, ?)",
            (name, notes, created),
        )
        return Program(cur.lastrowid, name, notes, created)

    def get_program(self, program_id: int) -> Program | None:
        row = self._execute(
            "SELECT id, name, notes, created_date FROM programs WHERE id = ?",
            (program_id,),
        ).fetchone()
        return Program(*row) if row else None

    def create_day_template(
        self,
        program_id: int,
        name: str,
        notes: str = "",
        order: int | None = None,
    ) -> DayTemplate:
        if order is None:
            order = self._next_position("day_templates", "program_id", program_id)
        cur = self._execute(
            "INSERT INTO day_templates (program_id, name, notes, position) VALUES (?, ?, ?, ?)",
            (program_id, name, notes, order),
        )
        return DayTemplate(cur.lastrowid, program_id, name, notes, order)

    def get_day_template(self, day_template_id: int) -> DayTemplate | None:
        row = self._execute(
            "SELECT id, program_id, name, notes, position FROM day_templates WHERE id = ?",
            (day_template_id,),
        ).fetchone()
        return DayTemplate(*row) if row else None

    def day_templates_for_program(self, program_id: int) -> list[DayTemplate]:
        rows = self._execute(
            """
            SELECT id, program_id, name, notes, position
              FROM day_templates
             WHERE program_id = ?
             ORDER BY position, id
            """,
            (program_id,),
        ).fetchall()
        return [DayTemplate(*row) for row in rows]

    def all_day_templates(self) -> list[DayTemplate]:
        """Every day template grouped by program, in order."""

        rows = self._execute(
            """
            SELECT id, program_id, name, notes, position
              FROM day_templates
             ORDER BY program_id, position, id
            """
        ).fetchall()
        return [DayTemplate(*row) for row in rows]

    def _next_position(self, table: str, parent_column: str, parent_id: int) -> int:
        row = self._execute(
            f"SELECT MAX(position) FROM {table} WHERE {parent_column} = ?",
            (parent_id,),
        ).fetchone()
        return 0 if row[0] is None else row[0] + 1

    def create_exercise_template(
        self,
        day_template_id: int,
        name: str,
        *,
        muscle_group: str = "",
        notes: str = "",
        target_sets: int = DEFAULT_SETS_PER_EXERCISE,
        superset_group: int = 0,
        order: int | None = None,
    ) -> ExerciseTemplate:
        """Create a template; ``order`` defaults to after the last exercise."""

        if target_sets < 1:
            raise ValueError("target_sets must be at least 1")
        if order is None:
            order = self._next_position("exercise_templates", "day_template_id", day_template_id)
        cur = self._execute(
            """
            INSERT INTO exercise_templates
                (day_template_id, name, muscle_group, notes, position, target_sets, superset_group)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (day_template_id, name, muscle_group, notes, order, target_sets, superset_group),
        )
        return ExerciseTemplate(
            cur.lastrowid,
            day_template_id,
            name,
            muscle_group,
            notes,
            order,
            target_sets,
            superset_group,
        )

    def get_exercise_template(self, template_id: int) -> ExerciseTemplate | None:
        row = self._execute(
            f"SELECT {_TEMPLATE_COLUMNS} FROM exercise_templates WHERE id = ?",
            (template_id,),
        ).fetchone()
        return _template_from_row(row) if row else None

    def exercise_templates_for_day(self, day_template_id: int) -> list[ExerciseTemplate]:
        """Return the day's exercise templates sorted by ``order``."""

        rows = self._execute(
            f"""
            SELECT {_TEMPLATE_COLUMNS}
              FROM exercise_templates
             WHERE day_template_id = ?
             ORDER BY position, id
            """,
            (day_template_id,),
        ).fetchall()
        return [_template_from_row(row) for row in rows]

    def update_exercise_template(self, template: ExerciseTemplate) -> None:
        self._execute(
            """
            UPDATE exercise_templates
               SET name = ?, muscle_group = ?, notes = ?, position = ?,
                   target_sets = ?, superset_group = ?
             WHERE id = ?
            """,
            (
                template.name,
                template.muscle_group,
                template.notes,
                template.order,
                template.target_sets,
                template.superset_group,
                template.id,
            ),
        )

    def delete_exercise_template(self, template_id: int) -> None:
        """Delete a template together with its logged history."""

        self._execute("DELETE FROM exercise_templates WHERE id = ?", (template_id,))

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(
        self,
        day_template_id: int | None,
        *,
        date: float,
        start_time: float | None = None,
        user_bodyweight: float = 0.0,
    ) -> Session:
        cur = self._execute(
            """
            INSERT INTO sessions (day_template_id, date, start_time, end_time, user_bodyweight)
            VALUES (?, ?, ?, NULL, ?)
            """,
            (day_template_id, date, start_time, user_bodyweight),
        )
        return Session(
            cur.lastrowid,
            day_template_id,
            date,
            start_time=start_time,
            user_bodyweight=user_bodyweight,
        )

    def get_session(self, session_id: int) -> Session | None:
        row = self._execute(
            f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE id = ?",
            (session_id,),
        ).fetchone()
        return _session_from_row(row) if row else None

    def update_session(self, session: Session) -> None:
        self._execute(
            """
            UPDATE sessions
               SET date = ?, start_time = ?, end_time = ?, sleep_hours = ?,
                   protein_grams = ?, user_bodyweight = ?, notes = ?
             WHERE id = ?
            """,
            (
                session.date,
                session.start_time,
                session.end_time,
                session.sleep_hours,
                session.protein_grams,
                session.user_bodyweight,
                session.notes,
                session.id,
            ),
        )

    def delete_session(self, session_id: int) -> None:
        self._execute("DELETE FROM sessions WHERE id = ?", (session_id,))

    def in_progress_sessions(self) -> list[Session]:
        rows = self._execute(
            f"""
            SELECT {_SESSION_COLUMNS}
              FROM sessions
             WHERE start_time IS NOT NULL AND end_time IS NULL
             ORDER BY start_time
            """
        ).fetchall()
        return [_session_from_row(row) for row in rows]

    def latest_in_progress_session(self) -> Session | None:
        row = self._execute(
            f"""
            SELECT {_SESSION_COLUMNS}
              FROM sessions
             WHERE start_time IS NOT NULL AND end_time IS NULL
             ORDER BY date DESC, id DESC
             LIMIT 1
            """
        ).fetchone()
        return _session_from_row(row) if row else None

    def finished_sessions(self, limit: int | None = None) -> list[Session]:
        """Return completed sessions, most recent first."""

        sql = (
            f"SELECT {_SESSION_COLUMNS} FROM sessions "
            "WHERE end_time IS NOT NULL ORDER BY date DESC, id DESC"
        )
        if limit is not None:
            rows = self._execute(sql + " LIMIT ?", (limit,)).fetchall()
        else:
            rows = self._execute(sql).fetchall()
        return [_session_from_row(row) for row in rows]

    def last_known_bodyweight(self) -> float | None:
        row = self._execute(
            """
            SELECT user_bodyweight FROM sessions
             WHERE user_bodyweight > 0
             ORDER BY date DESC, id DESC
             LIMIT 1
            """
        ).fetchone()
        return row[0] if row else None

    # ------------------------------------------------------------------
    # Completed exercises and sets
    # ------------------------------------------------------------------

    def find_completed_exercise(self, session_id: int, template_id: int) -> CompletedExercise | None:
        row = self._execute(
            """
            SELECT id, session_id, exercise_template_id FROM completed_exercises
             WHERE session_id = ? AND exercise_template_id = ?
            """,
            (session_id, template_id),
        ).fetchone()
        return CompletedExercise(*row) if row else None

    def get_completed_exercise(self, completed_id: int) -> CompletedExercise | None:
        row = self._execute(
            "SELECT id, session_id, exercise_template_id FROM completed_exercises WHERE id = ?",
            (completed_id,),
        ).fetchone()
        return CompletedExercise(*row) if row else None

    def create_completed_exercise(self, session_id: int, template_id: int) -> CompletedExercise:
        cur = self._execute(
            "INSERT INTO completed_exercises (session_id, exercise_template_id) VALUES (?, ?)",
            (session_id, template_id),
        )
        return CompletedExercise(cur.lastrowid, session_id, template_id)

    def completed_exercises_for_session(self, session_id: int) -> list[CompletedExercise]:
        """Return the session's exercises in template order."""

        rows = self._execute(
            """
            SELECT ce.id, ce.session_id, ce.exercise_template_id
              FROM completed_exercises ce
              JOIN exercise_templates et ON et.id = ce.exercise_template_id
             WHERE ce.session_id = ?
             ORDER BY et.position, et.id
            """,
            (session_id,),
        ).fetchall()
        return [CompletedExercise(*row) for row in rows]

    def completed_exercises_for_template(self, template_id: int) -> list[CompletedExercise]:
        """Return the template's history, newest session first."""

        rows = self._execute(
            """
            SELECT ce.id, ce.session_id, ce.exercise_template_id
              FROM completed_exercises ce
              JOIN sessions s ON s.id = ce.session_id
             WHERE ce.exercise_template_id = ?
             ORDER BY s.date DESC, s.id DESC
            """,
            (template_id,),
        ).fetchall()
        return [CompletedExercise(*row) for row in rows]

    def delete_completed_exercise(self, completed_id: int) -> None:
        self._execute("DELETE FROM completed_exercises WHERE id = ?", (completed_id,))

    def create_set(
        self,
        completed_exercise_id: int,
        order: int,
        *,
        weight: float = 0.0,
        reps: int = 0,
        is_bodyweight: bool = False,
        extra_weight: float = 0.0,
        rest_seconds: int = 0,
    ) -> ExerciseSet:
        exercise_set = ExerciseSet(
            id=0,
            completed_exercise_id=completed_exercise_id,
            order=order,
            weight=weight,
            reps=reps,
            is_bodyweight=is_bodyweight,
            extra_weight=extra_weight,
            rest_seconds=rest_seconds,
        )
        exercise_set.refresh_completed()
        cur = self._execute(
            """
            INSERT INTO exercise_sets
                (completed_exercise_id, position, weight, reps, is_completed,
                 is_bodyweight, extra_weight, rest_seconds)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                completed_exercise_id,
                order,
                weight,
                reps,
                int(exercise_set.is_completed),
                int(is_bodyweight),
                extra_weight,
                rest_seconds,
            ),
        )
        exercise_set.id = cur.lastrowid
        return exercise_set

    def get_set(self, set_id: int) -> ExerciseSet | None:
        row = self._execute(
            f"SELECT {_SET_COLUMNS} FROM exercise_sets WHERE id = ?",
            (set_id,),
        ).fetchone()
        return _set_from_row(row) if row else None

    def sets_for_completed_exercise(self, completed_exercise_id: int) -> list[ExerciseSet]:
        rows = self._execute(
            f"""
            SELECT {_SET_COLUMNS}
              FROM exercise_sets
             WHERE completed_exercise_id = ?
             ORDER BY position, id
            """,
            (completed_exercise_id,),
        ).fetchall()
        return [_set_from_row(row) for row in rows]

    def update_set(self, exercise_set: ExerciseSet) -> None:
        self._execute(
            """
            UPDATE exercise_sets
               SET position = ?, weight = ?, reps = ?, is_completed = ?,
                   is_bodyweight = ?, extra_weight = ?, rest_seconds = ?
             WHERE id = ?
            """,
            (
                exercise_set.order,
                exercise_set.weight,
                exercise_set.reps,
                int(exercise_set.is_completed),
                int(exercise_set.is_bodyweight),
                exercise_set.extra_weight,
                exercise_set.rest_seconds,
                exercise_set.id,
            ),
        )

    def delete_set(self, set_id: int) -> None:
        self._execute("DELETE FROM exercise_sets WHERE id = ?", (set_id,))

    def count_rows(self, table: str) -> int:
        """Return the number of rows in ``table`` (diagnostics and tests)."""

        return self._execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
