"""
Data models for detection, planning, export and tracklist matching.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

import numpy as np

from autoslice.config import OPEN_END_ESTIMATE_SECONDS


# Match confidence levels, weakest first
CONFIDENCE_NONE = "none"
CONFIDENCE_LOW = "low"
CONFIDENCE_MEDIUM = "medium"
CONFIDENCE_HIGH = "high"


@dataclass(frozen=True)
class LoudnessSeries:
    """Short-window RMS loudness over time, at a fixed hop."""

    times: np.ndarray  # Frame start times in seconds, strictly increasing
    levels_db: np.ndarray  # RMS level per frame, floored at -100 dB
    hop_ms: float  # Spacing between frames

    def __len__(self) -> int:
        return len(self.levels_db)

    @property
    def duration(self) -> float:
        """Time of the last frame (0.0 for an empty series)."""
        if len(self.times) == 0:
            return 0.0
        return float(self.times[-1])

    @classmethod
    def empty(cls, hop_ms: float = 25) -> "LoudnessSeries":
        return cls(times=np.zeros(0), levels_db=np.zeros(0), hop_ms=hop_ms)


@dataclass(frozen=True)
class SilenceRegion:
    """A run of frames below the effective threshold."""

    start_time: float
    end_time: float

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def midpoint(self) -> float:
        return (self.start_time + self.end_time) / 2


@dataclass(frozen=True)
class ExcludedRegion:
    """Audio removed from whatever segment it falls within."""

    start: float
    end: float

    def __post_init__(self):
        if not self.end > self.start:
            raise ValueError(f"Excluded region must have end > start (got {self.start}..{self.end})")

    def overlaps(self, start: float, end: Optional[float]) -> bool:
        """True if this region intersects [start, end); None means open-ended."""
        upper = float("inf") if end is None else end
        return self.start < upper and self.end > start

    def clamp(self, start: float, end: Optional[float]) -> "ExcludedRegion":
        upper = self.end if end is None else min(self.end, end)
        return ExcludedRegion(max(self.start, start), upper)


@dataclass(frozen=True)
class TimeRange:
    """A kept chunk of audio; end None means 'to the end of the source'."""

    start: float
    end: Optional[float]

    @property
    def duration(self) -> Optional[float]:
        if self.end is None:
            return None
        return self.end - self.start


@dataclass(frozen=True)
class Segment:
    """One output track, derived fresh from markers, exclusions and names."""

    index: int
    start: float
    end: Optional[float]  # None = end of file
    track_number: int
    name: str
    artist: str
    exclusions: Tuple[ExcludedRegion, ...] = ()
    file_name: str = ""
    total_duration: Optional[float] = None  # Known source length, if any

    @property
    def track_label(self) -> str:
        """Zero-padded track number, e.g. '01'."""
        return f"{self.track_number:02d}"

    @property
    def kept_ranges(self) -> List[TimeRange]:
        """Ordered sub-ranges left after removing the exclusions."""
        kept = []
        current = self.start
        for excl in self.exclusions:
            if excl.start > current:
                kept.append(TimeRange(current, excl.start))
            current = max(current, excl.end)

        if self.end is None:
            if self.total_duration is None or current < self.total_duration:
                kept.append(TimeRange(current, None))
        elif current < self.end:
            kept.append(TimeRange(current, self.end))
        return kept

    @property
    def is_empty(self) -> bool:
        return len(self.kept_ranges) == 0

    @property
    def estimated_duration(self) -> float:
        """Seconds of audio this segment should produce, for progress math."""
        total = 0.0
        for chunk in self.kept_ranges:
            if chunk.end is None:
                if self.total_duration is not None:
                    total += self.total_duration - chunk.start
                else:
                    total += OPEN_END_ESTIMATE_SECONDS
            else:
                total += chunk.end - chunk.start
        return total


@dataclass(frozen=True)
class DetectionResult:
    """Output of gap detection."""

    silence_regions: List[SilenceRegion]
    markers: List[float]
    effective_threshold_db: float
    noise_floor_db: Optional[float] = None

    @property
    def track_count(self) -> int:
        return len(self.markers) + 1

    def to_dict(self) -> dict:
        return {
            "gaps": [
                {
                    "start": round(r.start_time, 3),
                    "end": round(r.end_time, 3),
                    "duration": round(r.duration, 3),
                }
                for r in self.silence_regions
            ],
            "markers": [round(m, 3) for m in self.markers],
            "track_count": self.track_count,
            "effective_threshold": round(self.effective_threshold_db, 2),
            "noise_floor": None if self.noise_floor_db is None else round(self.noise_floor_db, 2),
        }


@dataclass(frozen=True)
class AudioInfo:
    """Basic properties of a source file."""

    file_path: str
    duration: float
    sample_rate: int
    channels: int
    format: str

    @property
    def file_name(self) -> str:
        return Path(self.file_path).name


@dataclass(frozen=True)
class ExportResult:
    """One successfully exported track."""

    track_number: int
    name: str
    file_name: str
    file_path: Path
    start: float
    end: Optional[float]
    attempts: int = 1  # Encode attempts used, including the successful one


@dataclass
class ExportReport:
    """Everything a finished export produced."""

    tracks: List[ExportResult]
    output_path: Path

    def to_dict(self) -> dict:
        return {
            "output_path": str(self.output_path),
            "tracks": [
                {
                    "track_number": t.track_number,
                    "name": t.name,
                    "file_name": t.file_name,
                    "file_path": str(t.file_path),
                    "start": t.start,
                    "end": t.end,
                }
                for t in self.tracks
            ],
        }


@dataclass(frozen=True)
class TracklistEntry:
    """A track from a lookup service or a pasted tracklist."""

    position: str
    title: str
    artist_names: str = ""
    duration_seconds: float = 0.0


@dataclass(frozen=True)
class SegmentSpan:
    """Start, end and duration of a detected segment, for matching."""

    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass(frozen=True)
class MatchResult:
    """Index-aligned pairing of a detected segment and a tracklist entry."""

    index: int
    segment: Optional[SegmentSpan]
    track: Optional[TracklistEntry]
    confidence: str  # "none", "low", "medium", "high"
    title: str = ""


@dataclass(frozen=True)
class ParsedTrack:
    """One line of a pasted tracklist."""

    time: Optional[float]  # Start time in seconds, if the line had one
    time_str: Optional[str]
    artist: str
    title: str


@dataclass(frozen=True)
class ReleaseSummary:
    """A search hit from the metadata lookup service."""

    id: int
    title: str
    year: str = ""
    country: str = ""
    format: str = ""
    label: str = ""
    thumbnail_url: str = ""


@dataclass(frozen=True)
class ReleaseInfo:
    """Release-level metadata that comes with a tracklist."""

    title: str = ""
    artists: str = ""
    year: str = ""
    genres: List[str] = field(default_factory=list)
    styles: List[str] = field(default_factory=list)
    labels: str = ""
    images: List[str] = field(default_factory=list)
