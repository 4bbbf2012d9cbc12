from __future__ import annotations

import pytest

from autoslice.models import SegmentSpan, TracklistEntry
from autoslice.tracklist import (
    classify_confidence,
    entries_from_parsed,
    markers_from_parsed,
    match_segments_to_tracklist,
    parse_duration,
    parse_tracklist_text,
)


def _segments(durations):
    spans, start = [], 0.0
    for d in durations:
        spans.append(SegmentSpan(start, start + d))
        start += d
    return spans


def _tracks(durations):
    return [TracklistEntry(str(i + 1), f"Song {i + 1}", "", d) for i, d in enumerate(durations)]


def test_confidence_by_duration_difference() -> None:
    matches = match_segments_to_tracklist(_segments([180, 200, 400]), _tracks([181, 250, 50]))

    assert [m.confidence for m in matches] == ["high", "low", "low"]
    assert [m.title for m in matches] == ["Song 1", "Song 2", "Song 3"]


@pytest.mark.parametrize(
    "diff, expected",
    [(0, "high"), (3, "high"), (-3, "high"), (3.5, "medium"), (10, "medium"), (-10, "medium"), (10.01, "low")],
)
def test_tolerance_bands(diff, expected) -> None:
    assert classify_confidence(diff) == expected


def test_missing_counterparts_have_no_confidence() -> None:
    matches = match_segments_to_tracklist(_segments([100, 100, 100]), _tracks([100]))

    assert len(matches) == 3
    assert [m.confidence for m in matches] == ["high", "none", "none"]
    assert matches[1].track is None
    assert matches[2].title == "Track 03"

    more_tracks = match_segments_to_tracklist(_segments([100]), _tracks([100, 200]))
    assert more_tracks[1].segment is None
    assert more_tracks[1].confidence == "none"
    assert more_tracks[1].title == "Song 2"


def test_track_without_duration_has_no_confidence() -> None:
    matches = match_segments_to_tracklist(_segments([100]), _tracks([0]))

    assert matches[0].confidence == "none"


def test_parse_duration() -> None:
    assert parse_duration("3:45") == 225
    assert parse_duration("1:02:03") == 3723
    assert parse_duration("") == 0
    assert parse_duration(None) == 0
    assert parse_duration("abc") == 0
    assert parse_duration("45") == 0


def test_parse_tracklist_text() -> None:
    text = """
    1. 00:00 Daft Punk - Aerodynamic
    02) 4:12 Justice – Genesis
    Untimed Title
    3- 1:02:03 Artist - Title - Extended Mix

    """

    tracks = parse_tracklist_text(text)

    assert [(t.time, t.artist, t.title) for t in tracks] == [
        (0.0, "Daft Punk", "Aerodynamic"),
        (252.0, "Justice", "Genesis"),
        (None, "", "Untimed Title"),
        (3723.0, "Artist", "Title - Extended Mix"),
    ]
    assert tracks[1].time_str == "4:12"


def test_bracketed_timestamps_leave_no_debris() -> None:
    tracks = parse_tracklist_text("[05:30] Someone - Something")

    assert tracks[0].time == 330.0
    assert tracks[0].artist == "Someone"
    assert tracks[0].title == "Something"


def test_markers_from_parsed_skip_first_and_out_of_range() -> None:
    tracks = parse_tracklist_text("0:00 A - One\n4:00 B - Two\nC - Three\n9:00 D - Four\n90:00 E - Five")

    assert markers_from_parsed(tracks, total_duration=1200) == [240.0, 540.0]


def test_entries_from_parsed() -> None:
    entries = entries_from_parsed(parse_tracklist_text("A - One\nTwo"))

    assert entries == [TracklistEntry("1", "One", "A", 0.0), TracklistEntry("2", "Two", "", 0.0)]


def test_dash_numbering_is_stripped() -> None:
    (track,) = parse_tracklist_text("3- 10:00 Moby - Porcelain")

    assert (track.time, track.artist, track.title) == (600.0, "Moby", "Porcelain")
