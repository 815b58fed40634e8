"""Small durable key-value store kept outside the workout database.

Values must be JSON serialisable.  The whole mapping is written to two files
(``<base>_1.json`` and ``<base>_2.json``) so a write interrupted by the app
being killed still leaves one readable copy behind.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from core import STATE_DIR

DEFAULT_BASE = STATE_DIR / "app_state"


class KeyValueStore:
    """Persist a flat ``str -> JSON value`` mapping."""

    def __init__(self, base: Path = DEFAULT_BASE) -> None:
        self.base = Path(base)
        self.primary = self.base.with_name(self.base.name + "_1.json")
        self.backup = self.base.with_name(self.base.name + "_2.json")
        self._data: dict[str, Any] | None = None

    def _load(self) -> dict[str, Any]:
        if self._data is not None:
            return self._data
        for path in (self.primary, self.backup):
            try:
                if not path.exists():
                    continue
                text = path.read_text(encoding="utf-8").strip()
                if not text:
                    continue
                data = json.loads(text)
            except (OSError, ValueError):
                logging.warning("Ignoring unreadable state file %s", path)
                continue
            if isinstance(data, dict):
                self._data = data
                return data
        self._data = {}
        return self._data

    def _write(self) -> None:
        payload = json.dumps(self._load())
        try:
            self.base.parent.mkdir(parents=True, exist_ok=True)
            self.primary.write_text(payload, encoding="utf-8")
            self.backup.write_text(payload, encoding="utf-8")
        except OSError:
            logging.exception("Failed to write state file %s", self.primary)

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._load()[key] = value
        self._write()

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._write()

    def clear(self) -> None:
        """Forget every key and delete the backing files."""

        self._data = {}
        for path in (self.primary, self.backup):
            try:
                path.unlink()
            except FileNotFoundError:
                pass
