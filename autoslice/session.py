"""
Editing session state.

Markers, excluded regions and per-track names are held in an immutable,
versioned snapshot. Every edit returns a new session; planning and export
only ever see a snapshot.
"""

from dataclasses import dataclass, replace
from typing import Iterable, List, Optional, Tuple

from autoslice.config import MARKER_DEDUP_SECONDS, MAX_HISTORY
from autoslice.models import DetectionResult, ExcludedRegion, SegmentSpan, TracklistEntry


def _dedupe_markers(times: Iterable[float], total_duration: Optional[float]) -> Tuple[float, ...]:
    kept: List[float] = []
    for t in sorted(float(t) for t in times):
        if t <= 0:
            continue
        if total_duration is not None and t >= total_duration:
            continue
        if kept and t - kept[-1] < MARKER_DEDUP_SECONDS:
            continue
        kept.append(t)
    return tuple(kept)


def merge_regions(regions: Iterable[ExcludedRegion]) -> Tuple[ExcludedRegion, ...]:
    """Merge overlapping or touching regions into a sorted, disjoint tuple."""
    merged: List[ExcludedRegion] = []
    for region in sorted(regions, key=lambda r: (r.start, r.end)):
        if merged and region.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = ExcludedRegion(last.start, max(last.end, region.end))
        else:
            merged.append(region)
    return tuple(merged)


def _set_at(values: Tuple[str, ...], index: int, value: str) -> Tuple[str, ...]:
    if index < 0:
        raise IndexError(f"Track index must be >= 0, got {index}")
    padded = list(values) + [""] * (index + 1 - len(values))
    padded[index] = value
    return tuple(padded)


@dataclass(frozen=True)
class EditSession:
    """Snapshot of the user's edits for one source file."""

    total_duration: Optional[float] = None
    markers: Tuple[float, ...] = ()
    excluded_regions: Tuple[ExcludedRegion, ...] = ()
    track_names: Tuple[str, ...] = ()
    track_artists: Tuple[str, ...] = ()
    version: int = 0

    def _next(self, **changes) -> "EditSession":
        return replace(self, version=self.version + 1, **changes)

    @property
    def track_count(self) -> int:
        return len(self.markers) + 1

    # Markers

    def add_marker(self, time: float) -> "EditSession":
        """Add a marker; duplicates and out-of-range times are ignored."""
        time = float(time)
        if time <= 0 or (self.total_duration is not None and time >= self.total_duration):
            return self
        if any(abs(m - time) < MARKER_DEDUP_SECONDS for m in self.markers):
            return self
        return self._next(markers=tuple(sorted(self.markers + (time,))))

    def remove_marker(self, index: int) -> "EditSession":
        markers = list(self.markers)
        del markers[index]
        return self._next(markers=tuple(markers))

    def move_marker(self, index: int, time: float) -> "EditSession":
        others = list(self.markers)
        del others[index]
        moved = replace(self, markers=tuple(others)).add_marker(time)
        if moved.markers == tuple(others):
            # Rejected move keeps the marker where it was
            return self
        return moved

    def set_markers(self, times: Iterable[float]) -> "EditSession":
        return self._next(markers=_dedupe_markers(times, self.total_duration))

    def clear_markers(self) -> "EditSession":
        return self._next(markers=())

    def apply_detection(self, result: DetectionResult) -> "EditSession":
        return self.set_markers(result.markers)

    # Excluded regions

    def add_excluded_region(self, start: float, end: float) -> "EditSession":
        region = ExcludedRegion(float(start), float(end))
        return self._next(excluded_regions=merge_regions(self.excluded_regions + (region,)))

    def remove_excluded_region(self, index: int) -> "EditSession":
        regions = list(self.excluded_regions)
        del regions[index]
        return self._next(excluded_regions=tuple(regions))

    def clear_excluded_regions(self) -> "EditSession":
        return self._next(excluded_regions=())

    # Naming

    def set_track_name(self, index: int, name: str) -> "EditSession":
        return self._next(track_names=_set_at(self.track_names, index, name))

    def set_track_artist(self, index: int, artist: str) -> "EditSession":
        return self._next(track_artists=_set_at(self.track_artists, index, artist))

    def apply_tracklist(self, entries: Iterable[TracklistEntry]) -> "EditSession":
        """Copy titles and artists from a tracklist, position by position."""
        entries = list(entries)
        return self._next(
            track_names=tuple(e.title for e in entries),
            track_artists=tuple(e.artist_names for e in entries),
        )

    def segment_bounds(self) -> List[SegmentSpan]:
        """Segment spans for tracklist matching; needs a known duration."""
        if self.total_duration is None:
            raise ValueError("Session has no total duration")
        edges = (0.0,) + self.markers + (self.total_duration,)
        return [SegmentSpan(start, end) for start, end in zip(edges, edges[1:])]


class SessionHistory:
    """Bounded undo/redo stacks of session snapshots."""

    def __init__(self, session: EditSession, max_history: int = MAX_HISTORY):
        self.current = session
        self.max_history = max_history
        self._undo: List[EditSession] = []
        self._redo: List[EditSession] = []

    def push(self, session: EditSession) -> EditSession:
        """Make `session` current, remembering the previous one."""
        self._undo.append(self.current)
        if len(self._undo) > self.max_history:
            self._undo.pop(0)
        self._redo.clear()
        self.current = session
        return session

    def undo(self) -> EditSession:
        if self._undo:
            self._redo.append(self.current)
            self.current = self._undo.pop()
        return self.current

    def redo(self) -> EditSession:
        if self._redo:
            self._undo.append(self.current)
            self.current = self._redo.pop()
        return self.current

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)
