"""
Tuning constants and environment overrides.

Every empirical value used by detection and export lives here so the
pipeline modules never hard-code numbers.
"""

import os
import shutil
from pathlib import Path
from typing import Optional


# Loudness profiling (analysis runs on a mono 22.05 kHz downmix)
ANALYSIS_SAMPLE_RATE = 22050
WINDOW_MS = 50
HOP_MS = 25
SILENCE_FLOOR_DB = -100.0
# Frames per librosa.feature.rms call when profiling long files
RMS_BLOCK_FRAMES = 4096

# Noise floor is the mean of the quietest fraction of frames
NOISE_FLOOR_FRACTION = 0.1

# Gap detection defaults
THRESHOLD_DB = -40.0
MIN_SILENCE_MS = 1500
SENSITIVITY = 0.5
AUTO_THRESHOLD = True

# Auto threshold sits between the noise floor and this signal level
AUTO_THRESHOLD_CEILING_DB = -20.0
AUTO_THRESHOLD_SCALE = 0.3

# Markers closer than this to either end of the file are dropped
BOUNDARY_EXCLUSION_SECONDS = 5.0

# Fallback relaxation: retry while the threshold is below the limit
FALLBACK_LIMIT_DB = -25.0
FALLBACK_STEP_DB = 5.0

# Two markers closer than this are the same marker
MARKER_DEDUP_SECONDS = 0.1

# Export
DEFAULT_ARTIST = "Unknown Artist"
DEFAULT_ALBUM = "Unknown Album"
DEFAULT_FORMAT = "flac"
SUPPORTED_FORMATS = ("wav", "flac", "mp3")
MP3_BITRATE_KBPS = 320
MAX_ATTEMPTS = 3
RETRY_DELAY_SECONDS = 1.0
EXPORT_LOG_NAME = "export.log"

# Duration assumed for an open-ended final segment when estimating progress
OPEN_END_ESTIMATE_SECONDS = 300.0

# EBU R128 style loudness normalization target
LOUDNORM_INTEGRATED = -16
LOUDNORM_TRUE_PEAK = -1.5
LOUDNORM_RANGE = 11
LOUDNORM_FILTER = f"loudnorm=I={LOUDNORM_INTEGRATED}:TP={LOUDNORM_TRUE_PEAK}:LRA={LOUDNORM_RANGE}"

# Tracklist matching tolerance bands (seconds)
MATCH_HIGH_SECONDS = 3.0
MATCH_MEDIUM_SECONDS = 10.0

# Display decimation for long loudness series
MAX_DISPLAY_POINTS = 50000

# Undo depth for the editing session history
MAX_HISTORY = 50

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def resolve_ffmpeg(explicit: Optional[str] = None) -> Optional[str]:
    """Locate the FFmpeg binary (argument, then AUTOSLICE_FFMPEG, then PATH)."""
    if explicit:
        return explicit
    env_path = os.environ.get("AUTOSLICE_FFMPEG")
    if env_path:
        return env_path
    return shutil.which("ffmpeg")


def resolve_output_dir(default_path: Optional[Path] = None) -> Path:
    """Return the base output directory, honoring AUTOSLICE_OUTPUT_DIR."""
    env_path = os.environ.get("AUTOSLICE_OUTPUT_DIR")
    if env_path:
        return Path(env_path)
    if default_path is not None:
        return default_path
    return Path.cwd() / "output"


def discogs_token() -> Optional[str]:
    token = os.environ.get("AUTOSLICE_DISCOGS_TOKEN", "").strip()
    return token or None


def log_level_name(verbose: bool = False) -> str:
    if verbose:
        return "DEBUG"
    return os.environ.get("AUTOSLICE_LOG_LEVEL", "WARNING").upper()
