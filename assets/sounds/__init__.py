from pathlib import Path
from kivy.core.audio import SoundLoader

from backend.notifications import (
    REST_COMPLETE,
    REST_COUNTDOWN,
    REST_WARNING,
    SET_COMPLETED,
)

# Sound file (without extension) played for each feedback event
EVENT_SOUNDS = {
    SET_COMPLETED: "set_done",
    REST_WARNING: "warning",
    REST_COUNTDOWN: "tick",
    REST_COMPLETE: "end",
}


class SoundSystem:
    """Play short workout cues.

    Sounds are loaded lazily from the ``assets/sounds`` directory to keep
    memory usage minimal.  Missing files are remembered as ``None`` and
    silently skipped.
    """

    def __init__(self):
        self._base = Path(__file__).resolve().parent
        self._cache: dict[str, object] = {}
        # Preload the countdown sounds to avoid first-play latency.
        for name in ("tick", "end"):
            self._load(name)

    # ------------------------------------------------------------------
    # Core helpers
    # ------------------------------------------------------------------
    def _load(self, name: str):
        if name in self._cache:
            return self._cache[name]
        path = self._base / f"{name}.wav"
        snd = SoundLoader.load(str(path)) if path.exists() else None
        self._cache[name] = snd
        return snd

    def play(self, name: str) -> None:
        """Play a named sound if available."""
        snd = self._load(name)
        if snd:
            snd.stop()
            snd.play()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def play_event(self, event: str) -> bool:
        """Play the cue for a feedback ``event``; ``False`` if it has none."""
        name = EVENT_SOUNDS.get(event)
        if name is None:
            return False
        self.play(name)
        return True

    def stop(self) -> None:
        """Stop every loaded sound."""
        for snd in self._cache.values():
            if snd:
                snd.stop()
