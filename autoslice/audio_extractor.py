"""
Local audio file analysis

Decodes a source file to mono PCM, profiles its loudness and runs gap
detection. This is the file-level entry point used by the CLI.
"""

import logging
import threading
from pathlib import Path
from typing import Optional, Set, Tuple

import numpy as np
import librosa
import soundfile as sf

from autoslice.config import ANALYSIS_SAMPLE_RATE
from autoslice.errors import DetectionInProgressError
from autoslice.gap_detector import GapDetectionParams, detect_gaps
from autoslice.loudness import compute_loudness
from autoslice.models import AudioInfo, DetectionResult, LoudnessSeries


logger = logging.getLogger(__name__)

# Files with a detection in flight
_active_paths: Set[str] = set()
_active_lock = threading.Lock()


def get_audio_info(audio_path: str) -> AudioInfo:
    """
    Probe duration, sample rate and channel count of an audio file.

    soundfile reads the header directly; formats it cannot open (MP3 on
    older libsndfile builds, M4A) fall back to librosa.

    Args:
        audio_path: Path to audio file

    Returns:
        AudioInfo for the file
    """
    path = Path(audio_path)
    if not path.exists():
        raise FileNotFoundError(audio_path)

    try:
        info = sf.info(str(path))
        return AudioInfo(
            file_path=str(path),
            duration=float(info.duration),
            sample_rate=int(info.samplerate),
            channels=int(info.channels),
            format=info.format.lower(),
        )
    except RuntimeError:
        logger.debug("soundfile cannot read %s, probing with librosa", path)

    sr = librosa.get_samplerate(str(path))
    duration = librosa.get_duration(path=str(path))
    y, _ = librosa.load(str(path), sr=None, mono=False, duration=1.0)
    channels = 1 if y.ndim == 1 else int(y.shape[0])
    return AudioInfo(
        file_path=str(path),
        duration=float(duration),
        sample_rate=int(sr),
        channels=channels,
        format=path.suffix.lstrip(".").lower(),
    )


def load_mono_pcm(audio_path: str, sr: int = ANALYSIS_SAMPLE_RATE) -> Tuple[np.ndarray, int]:
    """
    Decode a file to mono float PCM at the analysis sample rate.

    Args:
        audio_path: Path to audio file
        sr: Target sample rate

    Returns:
        Tuple of (samples, sample_rate)
    """
    try:
        y, sr = librosa.load(audio_path, sr=sr, mono=True)
    except FileNotFoundError:
        raise
    except Exception as e:
        raise ValueError(f"Failed to load audio: {e}")
    return y, sr


def profile_file(
    audio_path: str,
    params: Optional[GapDetectionParams] = None,
) -> LoudnessSeries:
    """Decode a file and return its loudness series."""
    if params is None:
        params = GapDetectionParams()
    y, sr = load_mono_pcm(audio_path)
    return compute_loudness(y, sr, window_ms=params.window_ms, hop_ms=params.hop_ms)


def detect_gaps_in_file(
    audio_path: str,
    params: Optional[GapDetectionParams] = None,
) -> DetectionResult:
    """
    Detect silence gaps in an audio file.

    Only one detection per file may run at a time.

    Args:
        audio_path: Path to audio file
        params: Detection parameters

    Returns:
        DetectionResult for the file
    """
    if params is None:
        params = GapDetectionParams()

    key = str(Path(audio_path).resolve())
    with _active_lock:
        if key in _active_paths:
            raise DetectionInProgressError(f"Detection already running for {audio_path}")
        _active_paths.add(key)

    try:
        # Step 1: Probe the real duration (the series stops one window short)
        info = get_audio_info(audio_path)

        # Step 2: Decode and profile, then release the PCM buffer
        series = profile_file(audio_path, params)

        # Step 3: Detect gaps
        result = detect_gaps(series, params, total_duration=info.duration)
    finally:
        with _active_lock:
            _active_paths.discard(key)

    logger.info(
        "Detected %d track(s) in %s (threshold %.1f dB)",
        result.track_count, info.file_name, result.effective_threshold_db,
    )
    return result
