"""
Silence gap detection.

Finds runs of frames below an effective threshold that are long enough
to count as the pause between two tracks, and turns them into split
markers. The threshold is either given or derived from the noise floor,
and relaxed step by step when nothing is found.
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import List, Optional

import numpy as np
from scipy import ndimage

from autoslice.config import (
    AUTO_THRESHOLD,
    AUTO_THRESHOLD_CEILING_DB,
    AUTO_THRESHOLD_SCALE,
    BOUNDARY_EXCLUSION_SECONDS,
    FALLBACK_LIMIT_DB,
    FALLBACK_STEP_DB,
    HOP_MS,
    MIN_SILENCE_MS,
    SENSITIVITY,
    THRESHOLD_DB,
    WINDOW_MS,
)
from autoslice.loudness import estimate_noise_floor
from autoslice.models import DetectionResult, LoudnessSeries, SilenceRegion


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GapDetectionParams:
    """Knobs for gap detection."""

    threshold_db: float = THRESHOLD_DB  # Manual threshold, or ceiling in auto mode
    min_duration_ms: float = MIN_SILENCE_MS  # Shortest silence that splits tracks
    sensitivity: float = SENSITIVITY  # 0 = hug the noise floor, 1 = reach toward -20 dB
    auto_threshold: bool = AUTO_THRESHOLD
    window_ms: float = WINDOW_MS
    hop_ms: float = HOP_MS  # Must match the hop the series was computed with

    def __post_init__(self):
        if not 0.0 <= self.sensitivity <= 1.0:
            raise ValueError(f"sensitivity must be within [0, 1], got {self.sensitivity}")
        if self.min_duration_ms <= 0:
            raise ValueError(f"min_duration_ms must be positive, got {self.min_duration_ms}")
        if self.hop_ms <= 0:
            raise ValueError(f"hop_ms must be positive, got {self.hop_ms}")


def compute_effective_threshold(
    noise_floor_db: float,
    threshold_db: float,
    sensitivity: float,
) -> float:
    """
    Place the threshold between the noise floor and a typical signal level.

    The manual threshold is a ceiling: the auto value never exceeds it.

    Args:
        noise_floor_db: Estimated noise floor
        threshold_db: Manual threshold acting as an upper bound
        sensitivity: 0.0 to 1.0

    Returns:
        Effective threshold in dB
    """
    effective = noise_floor_db + (AUTO_THRESHOLD_CEILING_DB - noise_floor_db) * sensitivity * AUTO_THRESHOLD_SCALE
    return min(effective, threshold_db)


def find_silence_regions(
    series: LoudnessSeries,
    threshold_db: float,
    min_frames: int,
) -> List[SilenceRegion]:
    """
    Find maximal runs of frames strictly below the threshold.

    A run that ends at a loud frame i spans [times[start], times[i]]; a run
    that reaches the end of the series spans [times[start], times[-1]]. A
    run covering the whole series has nothing on either side to separate
    and is not reported.

    Args:
        series: Loudness series
        threshold_db: Frames with level < threshold are silent
        min_frames: Minimum run length in frames

    Returns:
        Qualifying regions in time order
    """
    n_frames = len(series)
    if n_frames == 0:
        return []

    silent = series.levels_db < threshold_db
    labels, n_runs = ndimage.label(silent)
    if n_runs == 0:
        return []

    regions = []
    for run in ndimage.find_objects(labels):
        start, stop = run[0].start, run[0].stop
        if stop - start < min_frames:
            continue
        if start == 0 and stop == n_frames:
            continue

        start_time = float(series.times[start])
        if stop < n_frames:
            end_time = float(series.times[stop])
        else:
            end_time = float(series.times[n_frames - 1])

        if end_time > start_time:
            regions.append(SilenceRegion(start_time=start_time, end_time=end_time))

    return regions


def filter_boundary_markers(
    markers: List[float],
    total_duration: float,
    margin: float = BOUNDARY_EXCLUSION_SECONDS,
) -> List[float]:
    """Drop markers within `margin` seconds of either end of the file."""
    return [m for m in markers if margin < m < total_duration - margin]


def detect_gaps(
    series: LoudnessSeries,
    params: Optional[GapDetectionParams] = None,
    total_duration: Optional[float] = None,
) -> DetectionResult:
    """
    Detect inter-track silences and derive split markers.

    When nothing survives and the threshold is still below -25 dB, the
    detection is repeated in manual mode with the threshold raised by
    5 dB. Finding nothing at all is not an error: it means one track.

    Args:
        series: Loudness series from compute_loudness
        params: Detection parameters (defaults if omitted)
        total_duration: True length of the file; defaults to the series span

    Returns:
        DetectionResult with regions, markers and the threshold used
    """
    if params is None:
        params = GapDetectionParams()
    if total_duration is None:
        total_duration = series.duration

    if len(series) == 0:
        return DetectionResult(
            silence_regions=[],
            markers=[],
            effective_threshold_db=params.threshold_db,
            noise_floor_db=None,
        )

    min_frames = int(math.ceil(params.min_duration_ms / params.hop_ms))

    while True:
        noise_floor = None
        if params.auto_threshold:
            noise_floor = estimate_noise_floor(series)
            effective = compute_effective_threshold(noise_floor, params.threshold_db, params.sensitivity)
        else:
            effective = params.threshold_db

        regions = find_silence_regions(series, effective, min_frames)
        markers = filter_boundary_markers([r.midpoint for r in regions], total_duration)

        logger.debug(
            "Threshold %.2f dB: %d silence region(s), %d marker(s) after boundary filter",
            effective, len(regions), len(markers),
        )

        if markers or effective >= FALLBACK_LIMIT_DB:
            break

        logger.info(
            "No gaps detected at %.2f dB, retrying at %.2f dB",
            effective, effective + FALLBACK_STEP_DB,
        )
        params = replace(params, threshold_db=effective + FALLBACK_STEP_DB, auto_threshold=False)

    return DetectionResult(
        silence_regions=regions,
        markers=markers,
        effective_threshold_db=float(effective),
        noise_floor_db=noise_floor,
    )
