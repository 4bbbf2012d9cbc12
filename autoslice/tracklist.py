"""
Tracklist parsing and matching.

Aligns detected segments with a reference tracklist by comparing
durations position by position, and parses pasted tracklist text.
"""

import re
from typing import List, Optional, Sequence

from autoslice.config import MATCH_HIGH_SECONDS, MATCH_MEDIUM_SECONDS
from autoslice.models import (
    CONFIDENCE_HIGH,
    CONFIDENCE_LOW,
    CONFIDENCE_MEDIUM,
    CONFIDENCE_NONE,
    MatchResult,
    ParsedTrack,
    SegmentSpan,
    TracklistEntry,
)


# 0:00, 01:23, 1:23:45
_TIME = re.compile(r"(\d{1,2}:\d{2}(?::\d{2})?)")
# Leading "1. ", "01) ", "3- "
_NUMBERING = re.compile(r"^\d{1,3}[.)\-]\s+")
# "Artist - Title" or "Artist – Title"
_SEPARATOR = re.compile(r"\s+[-–]\s+")


def parse_duration(text: Optional[str]) -> int:
    """
    Parse 'M:SS' or 'H:MM:SS' into seconds.

    Returns 0 for blank or malformed input.
    """
    if not text:
        return 0
    try:
        parts = [int(p) for p in text.strip().split(":")]
    except ValueError:
        return 0
    if len(parts) == 2:
        return parts[0] * 60 + parts[1]
    if len(parts) == 3:
        return parts[0] * 3600 + parts[1] * 60 + parts[2]
    return 0


def classify_confidence(duration_diff: float) -> str:
    """Map an absolute duration difference in seconds to a confidence level."""
    diff = abs(duration_diff)
    if diff <= MATCH_HIGH_SECONDS:
        return CONFIDENCE_HIGH
    if diff <= MATCH_MEDIUM_SECONDS:
        return CONFIDENCE_MEDIUM
    return CONFIDENCE_LOW


def match_segments_to_tracklist(
    segments: Sequence[SegmentSpan],
    tracklist: Sequence[TracklistEntry],
) -> List[MatchResult]:
    """
    Pair segments and tracks by position and rate how well durations agree.

    No reordering or best-fit search: segment i is compared with track i.
    A missing counterpart, or a track without a known duration, gives
    confidence "none".

    Args:
        segments: Detected segments in order
        tracklist: Reference tracks in order

    Returns:
        One MatchResult per position, max(len(segments), len(tracklist)) in total
    """
    matched = []
    for i in range(max(len(segments), len(tracklist))):
        segment = segments[i] if i < len(segments) else None
        track = tracklist[i] if i < len(tracklist) else None

        confidence = CONFIDENCE_NONE
        if segment is not None and track is not None and track.duration_seconds > 0:
            confidence = classify_confidence(segment.duration - track.duration_seconds)

        if track is not None:
            title = track.title
        elif segment is not None:
            title = f"Track {i + 1:02d}"
        else:
            title = ""

        matched.append(MatchResult(index=i, segment=segment, track=track, confidence=confidence, title=title))

    return matched


def parse_tracklist_text(text: str) -> List[ParsedTrack]:
    """
    Parse a pasted tracklist, one track per line.

    Each line may carry leading numbering, a start time anywhere in the
    line and an "Artist - Title" pair. Lines with neither title nor time
    are dropped.

    Args:
        text: Raw tracklist text

    Returns:
        Parsed tracks in input order
    """
    tracks = []
    for line in text.splitlines():
        content = line.strip()
        if not content:
            continue

        content = _NUMBERING.sub("", content)

        time_str = None
        seconds = None
        match = _TIME.search(content)
        if match:
            time_str = match.group(1)
            content = content.replace(time_str, "", 1).strip()
            # Brackets left behind by "[00:00]" style timestamps
            content = re.sub(r"^[\[\(]\s*[\]\)]\s*", "", content)
            seconds = float(parse_duration(time_str))

        artist = ""
        title = content
        parts = _SEPARATOR.split(content)
        if len(parts) >= 2:
            artist = parts[0].strip()
            title = " - ".join(parts[1:]).strip()

        title = re.sub(r"^[-–]\s+", "", title).strip()

        if title or time_str:
            tracks.append(ParsedTrack(time=seconds, time_str=time_str, artist=artist, title=title))

    return tracks


def markers_from_parsed(tracks: Sequence[ParsedTrack], total_duration: Optional[float] = None) -> List[float]:
    """
    Split markers implied by the start times of a parsed tracklist.

    The first track starts the file, so only later start times split it.
    Times outside (0, total_duration) are dropped.
    """
    markers = []
    for track in tracks[1:]:
        if track.time is None or track.time <= 0:
            continue
        if total_duration is not None and track.time >= total_duration:
            continue
        markers.append(track.time)
    return sorted(set(markers))


def entries_from_parsed(tracks: Sequence[ParsedTrack]) -> List[TracklistEntry]:
    """Convert parsed lines into tracklist entries (durations unknown)."""
    return [
        TracklistEntry(position=str(i + 1), title=t.title, artist_names=t.artist)
        for i, t in enumerate(tracks)
    ]
