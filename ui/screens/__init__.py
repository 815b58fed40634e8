"""UI screen modules for the workout app."""

from .home_screen import HomeScreen
from .session import WorkoutSessionScreen

__all__ = [
    "HomeScreen",
    "WorkoutSessionScreen",
]
