"""
Segment planning.

Turns split markers, excluded regions and per-track naming into the
ordered list of output segments. Pure: no I/O, same input gives the
same segments.
"""

import re
from typing import List, Optional, Sequence

from autoslice.config import DEFAULT_ARTIST, DEFAULT_FORMAT, MARKER_DEDUP_SECONDS
from autoslice.errors import EmptySegmentError
from autoslice.models import ExcludedRegion, Segment


# Characters that are not allowed in file names on at least one platform
_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*]')


def sanitize(text: str) -> str:
    """
    Make a string safe to use as a file or directory name.

    Replaces each of < > : " / \\ | ? * with an underscore, then strips
    surrounding whitespace and trailing dots.

    Args:
        text: Raw title, artist or album

    Returns:
        Sanitized name
    """
    cleaned = _UNSAFE_CHARS.sub("_", text).strip()
    return cleaned.rstrip(".")


def track_file_name(track_number: int, name: str, format: str) -> str:
    """Output file name, e.g. '03 - Song Title.flac'."""
    return f"{track_number:02d} - {sanitize(name)}.{format}"


def _pick(values: Sequence[str], index: int) -> Optional[str]:
    if index < len(values):
        value = values[index]
        if value and value.strip():
            return value
    return None


def _normalize_markers(markers: Sequence[float]) -> List[float]:
    normalized: List[float] = []
    for t in sorted(float(m) for m in markers):
        if normalized and t - normalized[-1] < MARKER_DEDUP_SECONDS:
            continue
        normalized.append(t)
    return normalized


def plan_segments(
    markers: Sequence[float],
    excluded_regions: Sequence[ExcludedRegion] = (),
    track_names: Sequence[str] = (),
    track_artists: Sequence[str] = (),
    default_artist: str = DEFAULT_ARTIST,
    total_duration: Optional[float] = None,
    format: str = DEFAULT_FORMAT,
) -> List[Segment]:
    """
    Compute the output segments for a set of markers.

    Segment i spans [markers[i-1] or 0, markers[i] or None). Excluded
    regions are clamped to every segment they overlap.

    Args:
        markers: Split times in seconds
        excluded_regions: Audio to cut out, anywhere in the file
        track_names: Per-track titles (missing or blank -> "Track NN")
        track_artists: Per-track artists (missing or blank -> default_artist)
        default_artist: Album artist
        total_duration: Length of the source, if known
        format: Output file extension

    Returns:
        List of len(markers) + 1 segments
    """
    ordered = _normalize_markers(markers)
    regions = sorted(excluded_regions, key=lambda r: (r.start, r.end))
    segments = []

    for i in range(len(ordered) + 1):
        start = 0.0 if i == 0 else ordered[i - 1]
        end = None if i == len(ordered) else ordered[i]
        track_number = i + 1

        name = _pick(track_names, i) or f"Track {track_number:02d}"
        artist = _pick(track_artists, i) or default_artist

        exclusions = tuple(
            region.clamp(start, end)
            for region in regions
            if region.overlaps(start, end)
        )

        segments.append(Segment(
            index=i,
            start=start,
            end=end,
            track_number=track_number,
            name=name,
            artist=artist,
            exclusions=exclusions,
            file_name=track_file_name(track_number, name, format),
            total_duration=total_duration,
        ))

    return segments


def ensure_exportable(segments: Sequence[Segment]) -> None:
    """Raise EmptySegmentError for the first segment with no audio left."""
    for segment in segments:
        if segment.is_empty:
            raise EmptySegmentError(segment.track_number)
