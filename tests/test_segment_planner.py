from __future__ import annotations

import math

import pytest

from autoslice.errors import EmptySegmentError
from autoslice.models import ExcludedRegion, TimeRange
from autoslice.segment_planner import ensure_exportable, plan_segments, sanitize, track_file_name


def test_three_segments_with_clamped_exclusion() -> None:
    segments = plan_segments([30, 90], [ExcludedRegion(40, 45)], total_duration=120)

    assert [(s.start, s.end) for s in segments] == [(0.0, 30), (30, 90), (90, None)]
    assert segments[0].exclusions == ()
    assert segments[1].exclusions == (ExcludedRegion(40, 45),)
    assert segments[1].kept_ranges == [TimeRange(30, 40), TimeRange(45, 90)]
    assert segments[2].exclusions == ()
    assert segments[2].kept_ranges == [TimeRange(90, None)]


def test_default_names_and_file_names() -> None:
    segments = plan_segments([100.0], track_names=["Intro"], format="mp3")

    assert [s.name for s in segments] == ["Intro", "Track 02"]
    assert [s.file_name for s in segments] == ["01 - Intro.mp3", "02 - Track 02.mp3"]
    assert segments[1].track_label == "02"


def test_artist_falls_back_to_default() -> None:
    segments = plan_segments([10, 20], track_artists=["A", "  "], default_artist="Album Artist")

    assert [s.artist for s in segments] == ["A", "Album Artist", "Album Artist"]


@pytest.mark.parametrize("markers", [[], [12.5], [5, 10, 15, 200.25], [3, 1, 2]])
def test_segments_partition_the_time_axis(markers) -> None:
    segments = plan_segments(markers)

    assert len(segments) == len(markers) + 1
    assert segments[0].start == 0.0
    assert segments[-1].end is None
    for left, right in zip(segments, segments[1:]):
        assert left.end == right.start
        assert left.start < left.end
    assert [s.track_number for s in segments] == list(range(1, len(segments) + 1))


def test_kept_ranges_and_exclusions_reconstruct_each_segment() -> None:
    regions = [ExcludedRegion(5, 12), ExcludedRegion(18, 35), ExcludedRegion(55, 58), ExcludedRegion(90, 95)]
    segments = plan_segments([10, 30, 60], regions)

    for segment in segments:
        end = math.inf if segment.end is None else segment.end
        pieces = [(k.start, math.inf if k.end is None else k.end) for k in segment.kept_ranges]
        pieces += [(e.start, e.end) for e in segment.exclusions]
        pieces.sort()

        assert pieces[0][0] == segment.start
        for (_, a_end), (b_start, _) in zip(pieces, pieces[1:]):
            assert a_end == b_start
        if segment.end is not None:
            assert pieces[-1][1] == end


def test_exclusion_spanning_a_marker_is_split_between_segments() -> None:
    segments = plan_segments([30], [ExcludedRegion(25, 35)])

    assert segments[0].exclusions == (ExcludedRegion(25, 30),)
    assert segments[1].exclusions == (ExcludedRegion(30, 35),)
    assert segments[0].kept_ranges == [TimeRange(0.0, 25)]
    assert segments[1].kept_ranges == [TimeRange(35, None)]


def test_exclusions_are_ordered_by_start() -> None:
    segments = plan_segments([], [ExcludedRegion(50, 60), ExcludedRegion(10, 20)])

    assert [e.start for e in segments[0].exclusions] == [10, 50]


def test_planning_is_idempotent() -> None:
    args = ([30.0, 90.0], [ExcludedRegion(40, 45)], ["a", "b"], ["x"], "Someone", 120.0, "wav")

    assert plan_segments(*args) == plan_segments(*args)


def test_fully_excluded_segment_is_fatal() -> None:
    segments = plan_segments([30, 60], [ExcludedRegion(29, 61)])

    assert segments[1].is_empty
    with pytest.raises(EmptySegmentError) as excinfo:
        ensure_exportable(segments)
    assert excinfo.value.track_number == 2


def test_excluded_tail_of_known_length_file_is_empty() -> None:
    segments = plan_segments([60], [ExcludedRegion(60, 120)], total_duration=120)

    assert segments[1].is_empty


def test_estimated_duration_sums_kept_chunks() -> None:
    segments = plan_segments([30, 90], [ExcludedRegion(40, 45)])

    assert segments[1].estimated_duration == pytest.approx(55)
    # Open-ended final segment without a known file length
    assert segments[2].estimated_duration == pytest.approx(300)


def test_sanitize_removes_unsafe_characters() -> None:
    cleaned = sanitize("AC/DC: Back In Black")

    assert not any(ch in cleaned for ch in '<>:"/\\|?*')
    assert not cleaned.endswith(".")
    assert cleaned == "AC_DC_ Back In Black"


def test_sanitize_strips_trailing_dots_and_spaces() -> None:
    assert sanitize('  What? "Live"... ') == 'What_ _Live_'
    assert sanitize("Vol. 2...") == "Vol. 2"


def test_unsafe_title_is_sanitized_in_file_name() -> None:
    segments = plan_segments([], track_names=["Who? Me."])

    assert segments[0].file_name == "01 - Who_ Me.flac"
    assert segments[0].name == "Who? Me."


def test_excluded_region_requires_positive_length() -> None:
    with pytest.raises(ValueError):
        ExcludedRegion(10, 10)


def test_track_file_name_uses_requested_extension() -> None:
    assert track_file_name(3, "Who? Me", "mp3") == "03 - Who_ Me.mp3"
    assert plan_segments([], track_names=["Who? Me"], format="wav")[0].file_name == "01 - Who_ Me.wav"
