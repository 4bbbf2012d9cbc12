from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np
import pytest


SR = 22050


def _tone(seconds: float, level_db: float, sr: int = SR, freq: float = 440.0) -> np.ndarray:
    """Sine whose RMS is level_db (dBFS); -inf/None gives digital silence."""
    n = int(round(seconds * sr))
    if level_db is None:
        return np.zeros(n)
    amplitude = np.sqrt(2.0) * 10 ** (level_db / 20.0)
    t = np.arange(n) / sr
    return amplitude * np.sin(2 * np.pi * freq * t)


@pytest.fixture
def make_signal():
    """Build a mono signal from (seconds, level_db) pieces."""

    def build(pieces: Sequence[Tuple[float, float]], sr: int = SR) -> np.ndarray:
        return np.concatenate([_tone(seconds, level, sr) for seconds, level in pieces])

    return build
