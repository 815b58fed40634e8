from __future__ import annotations

from pathlib import Path

# Number of sets a new exercise template starts with
DEFAULT_SETS_PER_EXERCISE = 3

# Default rest duration between sets in seconds
DEFAULT_REST_DURATION = 90

# Bodyweight assumed for bodyweight sets until the user records one (kg)
DEFAULT_BODYWEIGHT = 70.0

# Quiet period before weight/reps edits are written to the database
INPUT_DEBOUNCE_SECONDS = 1.0

# Only the last few exercises of a workout may be removed mid-session
DELETABLE_TAIL_SIZE = 3

# In-progress sessions older than this are considered abandoned at startup
ORPHAN_SESSION_AGE_HOURS = 6

# Estimated length assigned to an abandoned session when it is closed
ORPHAN_SESSION_ESTIMATED_HOURS = 3

# Rest timer milestones that trigger feedback (seconds remaining)
REST_WARNING_SECONDS = 10
REST_COUNTDOWN_SECONDS = (3, 2, 1)

# Default path to the bundled SQLite database
DEFAULT_DB_PATH = Path(__file__).resolve().parent / "data" / "workout.db"

# Schema used to create new databases
SCHEMA_PATH = Path(__file__).resolve().parent / "data" / "workout_schema.sql"

# Directory holding small JSON state files (timer, navigation cursor)
STATE_DIR = Path(__file__).resolve().parent / "data"
