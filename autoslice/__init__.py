"""
AutoSlice: Split continuous recordings into individual tracks.

Detects the silence between tracks of a DJ set or album rip, lets the
caller adjust split markers and cut out unwanted audio, and exports each
track as a tagged WAV, FLAC or MP3 file through FFmpeg.

Features:
- Loudness profiling and noise floor estimation
- Silence gap detection with automatic threshold and fallback relaxation
- Segment planning with excluded regions
- Sequential export with retry, progress events and an export log
- Tracklist parsing and duration-based matching (Discogs lookup)
"""

__version__ = "1.0.0"

from autoslice.models import (
    DetectionResult,
    ExcludedRegion,
    ExportReport,
    ExportResult,
    LoudnessSeries,
    MatchResult,
    Segment,
    SilenceRegion,
    TracklistEntry,
)
from autoslice.loudness import compute_loudness, estimate_noise_floor
from autoslice.gap_detector import GapDetectionParams, detect_gaps
from autoslice.audio_extractor import detect_gaps_in_file, get_audio_info
from autoslice.segment_planner import plan_segments, sanitize
from autoslice.session import EditSession, SessionHistory
from autoslice.exporter import ExportOptions, export_tracks
from autoslice.tracklist import match_segments_to_tracklist, parse_tracklist_text

__all__ = [
    # Models
    "DetectionResult",
    "ExcludedRegion",
    "ExportReport",
    "ExportResult",
    "LoudnessSeries",
    "MatchResult",
    "Segment",
    "SilenceRegion",
    "TracklistEntry",
    # Detection
    "compute_loudness",
    "estimate_noise_floor",
    "GapDetectionParams",
    "detect_gaps",
    "detect_gaps_in_file",
    "get_audio_info",
    # Planning and export
    "plan_segments",
    "sanitize",
    "EditSession",
    "SessionHistory",
    "ExportOptions",
    "export_tracks",
    # Tracklists
    "match_segments_to_tracklist",
    "parse_tracklist_text",
]
