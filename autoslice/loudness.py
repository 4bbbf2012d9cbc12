"""
Loudness profiling and noise floor estimation.

Turns mono PCM into a series of short-window RMS levels in dB and
estimates the ambient noise floor from the quietest frames.
"""

import logging
import math

import numpy as np
import librosa

from autoslice.config import (
    HOP_MS,
    MAX_DISPLAY_POINTS,
    NOISE_FLOOR_FRACTION,
    RMS_BLOCK_FRAMES,
    SILENCE_FLOOR_DB,
    WINDOW_MS,
)
from autoslice.errors import InsufficientDataError
from autoslice.models import LoudnessSeries


logger = logging.getLogger(__name__)


def compute_loudness(
    samples: np.ndarray,
    sample_rate: int,
    window_ms: float = WINDOW_MS,
    hop_ms: float = HOP_MS,
) -> LoudnessSeries:
    """
    Compute windowed RMS loudness in dB.

    Frames are not centered or padded: frame k covers samples
    [k * hop, k * hop + window), so the frame count is
    floor((n - window) / hop) + 1.

    Args:
        samples: PCM samples; multi-channel input is downmixed to mono
        sample_rate: Sample rate of the samples
        window_ms: Analysis window length in milliseconds
        hop_ms: Distance between frame starts in milliseconds

    Returns:
        LoudnessSeries with one level per frame, floored at -100 dB

    Raises:
        InsufficientDataError: if the audio is shorter than one window
    """
    window_size = int(math.floor(sample_rate * window_ms / 1000))
    hop_size = int(math.floor(sample_rate * hop_ms / 1000))
    if window_size <= 0 or hop_size <= 0:
        raise ValueError(
            f"Window and hop must span at least one sample (window={window_size}, hop={hop_size})"
        )

    y = np.asarray(samples)
    if not np.issubdtype(y.dtype, np.floating):
        y = y.astype(np.float32)
    if y.ndim > 1:
        y = librosa.to_mono(y)

    n_frames = (len(y) - window_size) // hop_size + 1
    if n_frames <= 0:
        raise InsufficientDataError(
            f"Audio has {len(y)} samples, fewer than one {window_ms} ms window ({window_size} samples)"
        )

    # Blockwise so the squared frames of a multi-hour set never exist at once
    rms = np.empty(n_frames, dtype=np.float64)
    for first in range(0, n_frames, RMS_BLOCK_FRAMES):
        count = min(RMS_BLOCK_FRAMES, n_frames - first)
        offset = first * hop_size
        chunk = y[offset:offset + (count - 1) * hop_size + window_size]
        rms[first:first + count] = librosa.feature.rms(
            y=chunk, frame_length=window_size, hop_length=hop_size, center=False,
        )[0]

    levels = np.full(n_frames, SILENCE_FLOOR_DB)
    audible = rms > 0
    levels[audible] = 20.0 * np.log10(rms[audible])
    levels = np.maximum(levels, SILENCE_FLOOR_DB)

    times = np.arange(n_frames) * hop_size / float(sample_rate)

    logger.debug(
        "Profiled %d frames (window=%d, hop=%d samples at %d Hz)",
        n_frames, window_size, hop_size, sample_rate,
    )
    return LoudnessSeries(times=times, levels_db=levels, hop_ms=hop_ms)


def estimate_noise_floor(series: LoudnessSeries) -> float:
    """
    Estimate the noise floor as the mean of the quietest 10% of frames.

    Averaging a decile instead of taking the minimum keeps the estimate
    close to the background level of the recording.

    Args:
        series: Loudness series

    Returns:
        Noise floor in dB

    Raises:
        InsufficientDataError: if the series is empty
    """
    if len(series) == 0:
        raise InsufficientDataError("Cannot estimate a noise floor from an empty series")

    ordered = np.sort(series.levels_db)
    count = max(1, int(math.floor(len(ordered) * NOISE_FLOOR_FRACTION)))
    return float(np.mean(ordered[:count]))


def downsample_series(series: LoudnessSeries, max_points: int = MAX_DISPLAY_POINTS) -> LoudnessSeries:
    """Stride-decimate a series so it has at most max_points frames."""
    if len(series) <= max_points:
        return series

    step = int(math.ceil(len(series) / max_points))
    return LoudnessSeries(
        times=series.times[::step],
        levels_db=series.levels_db[::step],
        hop_ms=series.hop_ms * step,
    )
