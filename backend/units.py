"""Weight unit conversion and small display formatters.

Weights are always stored in kilograms.  The user's preferred unit only
affects what is shown on screen and how typed values are interpreted.
"""

from __future__ import annotations

import math

KG = "kg"
LBS = "lbs"
WEIGHT_UNITS = (KG, LBS)

KG_PER_LB = 0.45359237


def _check_unit(unit: str) -> str:
    if unit not in WEIGHT_UNITS:
        raise ValueError(f"Unknown weight unit '{unit}'")
    return unit


def to_display(weight_kg: float, unit: str = KG) -> float:
    """Return ``weight_kg`` expressed in ``unit``."""

    if _check_unit(unit) == LBS:
        return weight_kg / KG_PER_LB
    return weight_kg


def to_storage(value: float, unit: str = KG) -> float:
    """Return the kilogram value for ``value`` entered in ``unit``."""

    if _check_unit(unit) == LBS:
        return value * KG_PER_LB
    return value


def parse_weight(text: str | None, unit: str = KG) -> float | None:
    """Parse user input into kilograms.

    Empty input returns ``None``.  Commas are accepted as decimal separators
    and negative or non-numeric input is rejected with ``None``.
    """

    if text is None:
        return None
    cleaned = text.strip().replace(",", ".")
    if not cleaned:
        return None
    try:
        value = float(cleaned)
    except ValueError:
        return None
    if value < 0 or math.isnan(value) or math.isinf(value):
        return None
    return to_storage(value, unit)


def parse_reps(text: str | None) -> int | None:
    """Parse a repetition count, returning ``None`` for invalid input."""

    if text is None:
        return None
    cleaned = text.strip()
    if not cleaned.isdigit():
        return None
    return int(cleaned)


def format_number(value: float) -> str:
    """Format ``value`` without a trailing ``.0`` for whole numbers."""

    rounded = round(value, 1)
    if rounded == int(rounded):
        return str(int(rounded))
    return f"{rounded:.1f}"


def format_weight(weight_kg: float, unit: str = KG) -> str:
    """Return a display string such as ``"80 kg"`` or ``"176.4 lbs"``."""

    return f"{format_number(to_display(weight_kg, unit))} {unit}"


def format_weight_input(weight_kg: float, unit: str = KG) -> str:
    """Return the text a weight field shows; zero renders as empty."""

    if weight_kg <= 0:
        return ""
    return format_number(to_display(weight_kg, unit))


def format_timer(seconds: float) -> str:
    """Format a countdown as ``MM:SS`` rounding partial seconds up."""

    total = max(0, math.ceil(seconds))
    minutes, secs = divmod(total, 60)
    return f"{minutes:02d}:{secs:02d}"


def format_elapsed(seconds: float) -> str:
    """Format elapsed workout time as ``MM:SS`` or ``H:MM:SS``."""

    total = max(0, int(seconds))
    hours, rem = divmod(total, 3600)
    minutes, secs = divmod(rem, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"
