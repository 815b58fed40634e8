from __future__ import annotations

"""Utility functions for loading and saving user settings.

The settings are stored as a list of dictionaries to preserve order.
Each dictionary contains ``key``, ``value`` and ``type`` entries.
"""

from pathlib import Path
import json
import logging
from typing import Any, List, Dict

from core import (
    DEFAULT_REST_DURATION,
    INPUT_DEBOUNCE_SECONDS,
    ORPHAN_SESSION_AGE_HOURS,
    ORPHAN_SESSION_ESTIMATED_HOURS,
)

# Path to the JSON file where settings are persisted.
SETTINGS_PATH = Path(__file__).resolve().parents[1] / "data" / "settings.json"

# Default settings to initialize the file on first run.
DEFAULT_SETTINGS: List[Dict[str, Any]] = [
    {"key": "weight_unit", "value": "kg", "type": "choice"},
    {"key": "rest_duration", "value": DEFAULT_REST_DURATION, "type": "int"},
    {"key": "input_debounce_seconds", "value": INPUT_DEBOUNCE_SECONDS, "type": "float"},
    {"key": "orphan_session_age_hours", "value": ORPHAN_SESSION_AGE_HOURS, "type": "float"},
    {
        "key": "orphan_session_estimated_hours",
        "value": ORPHAN_SESSION_ESTIMATED_HOURS,
        "type": "float",
    },
    {"key": "sound_on", "value": True, "type": "bool"},
    {"key": "vibration_on", "value": True, "type": "bool"},
]

# Internal cache so settings are only read from disk once.
_settings_cache: List[Dict[str, Any]] | None = None


def _defaults() -> List[Dict[str, Any]]:
    return [dict(item) for item in DEFAULT_SETTINGS]


def load_settings() -> List[Dict[str, Any]]:
    """Load settings from :data:`SETTINGS_PATH` or create defaults.

    Keys added in newer versions are appended so older files keep working.
    """
    if SETTINGS_PATH.exists():
        try:
            with SETTINGS_PATH.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError):
            logging.warning("Settings file %s unreadable, using defaults", SETTINGS_PATH)
        else:
            if isinstance(data, list):
                known = {item.get("key") for item in data}
                missing = [d for d in _defaults() if d["key"] not in known]
                return data + missing
    defaults = _defaults()
    save_settings(defaults)
    return defaults


def save_settings(settings: List[Dict[str, Any]]) -> None:
    """Persist ``settings`` to :data:`SETTINGS_PATH`."""
    SETTINGS_PATH.parent.mkdir(parents=True, exist_ok=True)
    with SETTINGS_PATH.open("w", encoding="utf-8") as fh:
        json.dump(settings, fh)


def get_settings() -> List[Dict[str, Any]]:
    """Return the cached settings list, loading from disk if needed."""
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = load_settings()
    return _settings_cache


def reset_cache() -> None:
    """Drop the in-memory cache so the next read hits the disk."""
    global _settings_cache
    _settings_cache = None


def get_value(key: str, default: Any = None) -> Any:
    """Fetch the value associated with ``key``."""
    for item in get_settings():
        if item.get("key") == key:
            return item.get("value")
    return default


def set_value(key: str, value: Any) -> None:
    """Update ``key`` with ``value`` and persist the change."""
    settings = get_settings()
    for item in settings:
        if item.get("key") == key:
            item["value"] = value
            break
    else:
        settings.append({"key": key, "value": value, "type": type(value).__name__})
    save_settings(settings)
