"""Sound cue adapter — implements SoundPort.

Synthesises a short 800 Hz tone with an exponential fade and plays it
without blocking. numpy and sounddevice are imported on first use; when
either is missing (or PortAudio is not installed) the cue is disabled and
playback becomes a no-op.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)

TONE_HZ = 800.0
TONE_SECONDS = 0.3
START_GAIN = 0.3
END_GAIN = 0.01


class ToneCue:
    """Short synthesized beep played through the default output device."""

    def __init__(self, sample_rate: int = 44100) -> None:
        self._sample_rate = sample_rate
        self._sd: Any = None        # sounddevice module (runtime import)
        self._tone: Any = None      # numpy array, built once
        self._disabled = False

    @property
    def available(self) -> bool:
        return self._load()

    def _load(self) -> bool:
        if self._disabled:
            return False
        if self._sd is not None:
            return True
        try:
            import numpy as np  # type: ignore
            import sounddevice as sd  # type: ignore
        except (ImportError, OSError) as exc:
            logger.info("Sound cue disabled (numpy/sounddevice unavailable): %s", exc)
            self._disabled = True
            return False

        self._sd = sd
        self._tone = build_tone(np, self._sample_rate)
        return True

    def play(self) -> None:
        if not self._load():
            return
        try:
            self._sd.play(self._tone, self._sample_rate)
        except Exception as exc:
            logger.debug("Sound cue playback failed: %s", exc)


def build_tone(np: Any, sample_rate: int) -> Any:
    """Sine at TONE_HZ whose gain decays exponentially from START_GAIN to END_GAIN."""
    n = int(sample_rate * TONE_SECONDS)
    t = np.arange(n, dtype=np.float32) / sample_rate
    gain = START_GAIN * (END_GAIN / START_GAIN) ** (t / TONE_SECONDS)
    return (gain * np.sin(2 * np.pi * TONE_HZ * t)).astype(np.float32)
