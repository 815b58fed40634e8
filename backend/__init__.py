"""Shared constants and globals for backend modules."""

from __future__ import annotations

from core import (
    DEFAULT_BODYWEIGHT,
    DEFAULT_DB_PATH,
    DEFAULT_REST_DURATION,
    DEFAULT_SETS_PER_EXERCISE,
)

__all__ = [
    "DEFAULT_BODYWEIGHT",
    "DEFAULT_DB_PATH",
    "DEFAULT_REST_DURATION",
    "DEFAULT_SETS_PER_EXERCISE",
]
