"""
CLI for AutoSlice - split a continuous recording into tagged tracks.
"""

import json
from dataclasses import asdict
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import click

from autoslice.audio_extractor import detect_gaps_in_file, get_audio_info
from autoslice.config import (
    DEFAULT_ALBUM,
    DEFAULT_ARTIST,
    DEFAULT_FORMAT,
    LOG_FORMAT,
    MIN_SILENCE_MS,
    MP3_BITRATE_KBPS,
    SENSITIVITY,
    SUPPORTED_FORMATS,
    THRESHOLD_DB,
    discogs_token,
    log_level_name,
    resolve_output_dir,
)
from autoslice.discogs import DiscogsClient
from autoslice.errors import AutoSliceError
from autoslice.exporter import ExportOptions, export_tracks
from autoslice.gap_detector import GapDetectionParams
from autoslice.segment_planner import plan_segments
from autoslice.session import EditSession
from autoslice.tracklist import (
    entries_from_parsed,
    markers_from_parsed,
    match_segments_to_tracklist,
    parse_tracklist_text,
)


def _format_time(seconds: Optional[float]) -> str:
    if seconds is None:
        return "end"
    minutes = int(seconds // 60)
    return f"{minutes}:{seconds - minutes * 60:05.2f}"


def _parse_markers(text: Optional[str]) -> List[float]:
    if not text:
        return []
    try:
        return [float(part) for part in text.split(",") if part.strip()]
    except ValueError:
        raise click.BadParameter(f"markers must be comma-separated seconds, got {text!r}")


def _parse_region(text: str) -> Tuple[float, float]:
    start, _, end = text.partition("-")
    try:
        return float(start), float(end)
    except ValueError:
        raise click.BadParameter(f"excluded region must look like START-END, got {text!r}")


def _fail(message: str) -> None:
    click.echo(f"❌ {message}", err=True)
    sys.exit(1)


def _detection_params(threshold, min_duration, sensitivity, manual) -> GapDetectionParams:
    return GapDetectionParams(
        threshold_db=threshold,
        min_duration_ms=min_duration,
        sensitivity=sensitivity,
        auto_threshold=not manual,
    )


_detection_options = [
    click.option("--threshold", type=float, default=THRESHOLD_DB, show_default=True,
                 help="Silence threshold in dB (ceiling when auto threshold is on)"),
    click.option("--min-duration", type=float, default=MIN_SILENCE_MS, show_default=True,
                 help="Minimum silence length in milliseconds"),
    click.option("--sensitivity", type=click.FloatRange(0.0, 1.0), default=SENSITIVITY, show_default=True,
                 help="How far above the noise floor the auto threshold sits"),
    click.option("--manual", is_flag=True, help="Use --threshold as is instead of the noise floor"),
]


def detection_options(func):
    for option in reversed(_detection_options):
        func = option(func)
    return func


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log debug output")
def main(verbose: bool):
    """AutoSlice: split recordings into tracks at silence gaps."""
    level = getattr(logging, log_level_name(verbose), logging.WARNING)
    logging.basicConfig(level=level, format=LOG_FORMAT)


@main.command()
@click.argument("audio_path")
@detection_options
@click.option("--json", "output_json", is_flag=True, help="Output as JSON to stdout")
@click.option("-o", "--output", "output_file", type=click.Path(), help="Write JSON output to file")
def detect(audio_path, threshold, min_duration, sensitivity, manual, output_json, output_file):
    """Detect silence gaps and print the split markers."""
    try:
        params = _detection_params(threshold, min_duration, sensitivity, manual)
        if not output_json:
            click.echo(f"🎵 Analyzing audio file: {audio_path}\n")
        result = detect_gaps_in_file(audio_path, params)
    except FileNotFoundError:
        _fail(f"File not found: {audio_path}")
    except (AutoSliceError, ValueError) as e:
        _fail(f"Error: {e}")

    data = result.to_dict()
    if output_file:
        with open(output_file, "w") as f:
            json.dump(data, f, indent=2)
        click.echo(f"✅ Output written to: {output_file}\n")

    if output_json:
        click.echo(json.dumps(data, indent=2))
    elif not output_file:
        click.echo(f"✅ Threshold: {result.effective_threshold_db:.1f} dB")
        if result.noise_floor_db is not None:
            click.echo(f"✅ Noise floor: {result.noise_floor_db:.1f} dB")
        click.echo(f"✅ Tracks: {result.track_count}\n")
        click.echo("📍 Markers:\n")
        for i, marker in enumerate(result.markers, 1):
            click.echo(f"{i}. {_format_time(marker)} ({marker:.2f}s)")
        click.echo()


@main.command(name="export")
@click.argument("audio_path")
@click.option("--markers", help="Comma-separated split times in seconds (default: detect)")
@click.option("--exclude", "excludes", multiple=True, help="Region to cut out, START-END in seconds")
@click.option("--tracklist", "tracklist_file", type=click.Path(exists=True),
              help="Text tracklist for names (and markers, if it has times)")
@click.option("-d", "--output-dir", type=click.Path(), help="Base output directory")
@click.option("-f", "--format", "fmt", type=click.Choice(SUPPORTED_FORMATS), default=DEFAULT_FORMAT, show_default=True)
@click.option("--artist", default=DEFAULT_ARTIST, show_default=True)
@click.option("--album", default=DEFAULT_ALBUM, show_default=True)
@click.option("--year", default="")
@click.option("--album-artist", default="")
@click.option("--genre", default="")
@click.option("--comment", default="")
@click.option("--cover", type=click.Path(), help="Cover image to embed")
@click.option("--normalize", is_flag=True, help="Normalize loudness to -16 LUFS")
@click.option("--sample-rate", type=int, help="Output sample rate in Hz")
@click.option("--bitrate", type=int, default=MP3_BITRATE_KBPS, show_default=True, help="MP3 bitrate in kbps")
@detection_options
@click.option("--json", "output_json", is_flag=True, help="Output the export report as JSON")
def export_cmd(audio_path, markers, excludes, tracklist_file, output_dir, fmt, artist, album, year,
               album_artist, genre, comment, cover, normalize, sample_rate, bitrate,
               threshold, min_duration, sensitivity, manual, output_json):
    """Split AUDIO_PATH into tracks and export them."""
    try:
        info = get_audio_info(audio_path)
        session = EditSession(total_duration=info.duration)

        parsed = []
        if tracklist_file:
            parsed = parse_tracklist_text(Path(tracklist_file).read_text(encoding="utf-8"))
            session = session.apply_tracklist(entries_from_parsed(parsed))

        if markers:
            session = session.set_markers(_parse_markers(markers))
        elif markers_from_parsed(parsed, info.duration):
            session = session.set_markers(markers_from_parsed(parsed, info.duration))
        else:
            params = _detection_params(threshold, min_duration, sensitivity, manual)
            session = session.apply_detection(detect_gaps_in_file(audio_path, params))

        for region in excludes:
            session = session.add_excluded_region(*_parse_region(region))

        segments = plan_segments(
            session.markers,
            session.excluded_regions,
            session.track_names,
            session.track_artists,
            default_artist=artist,
            total_duration=info.duration,
            format=fmt,
        )
        options = ExportOptions(
            output_dir=str(output_dir or resolve_output_dir()),
            format=fmt,
            artist=artist,
            album=album,
            year=year,
            album_artist=album_artist,
            genre=genre,
            comment=comment,
            mp3_bitrate=bitrate,
            sample_rate=sample_rate,
            normalize=normalize,
            cover_art=cover,
        )

        def show_progress(event):
            if output_json:
                return
            if event["type"] == "start_track":
                click.echo(f"🎧 [{event['track_num']}/{event['total_tracks']}] {event['track_name']}")
            elif event["type"] == "retry":
                click.echo(f"   ↻ retrying (attempt {event['attempt']}): {event['error']}", err=True)

        report = export_tracks(audio_path, segments, options, progress=show_progress)
    except FileNotFoundError as e:
        _fail(f"File not found: {e}")
    except (AutoSliceError, ValueError) as e:
        _fail(f"Error: {e}")

    if output_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        click.echo(f"\n✅ Exported {len(report.tracks)} track(s) to {report.output_path}")


@main.command()
@click.argument("artist")
@click.argument("album")
@click.option("--release-id", type=int, help="Fetch this release's tracklist instead of searching")
@click.option("--audio", "audio_path", help="Match the tracklist against this file's detected segments")
@click.option("--markers", help="Comma-separated markers to match against (with --audio)")
@click.option("--token", help="Discogs personal access token (or AUTOSLICE_DISCOGS_TOKEN)")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON to stdout")
def lookup(artist, album, release_id, audio_path, markers, token, output_json):
    """Search Discogs for a release, or match its tracklist to a file."""
    client = DiscogsClient(token=token or discogs_token())
    try:
        if release_id is None:
            releases = client.search(artist, album)
            if output_json:
                click.echo(json.dumps([asdict(r) for r in releases], indent=2))
                return
            for r in releases:
                click.echo(f"{r.id}: {r.title} ({r.year or '?'}, {r.country or '?'}) {r.format}")
            return

        tracklist, info = client.get_tracklist(release_id)
        if not audio_path:
            for entry in tracklist:
                click.echo(f"{entry.position}. {entry.title} [{_format_time(entry.duration_seconds)}]")
            return

        duration = get_audio_info(audio_path).duration
        session = EditSession(total_duration=duration)
        if markers:
            session = session.set_markers(_parse_markers(markers))
        else:
            session = session.apply_detection(detect_gaps_in_file(audio_path))
        matches = match_segments_to_tracklist(session.segment_bounds(), tracklist)
    except FileNotFoundError as e:
        _fail(f"File not found: {e}")
    except (AutoSliceError, ValueError) as e:
        _fail(f"Error: {e}")

    if output_json:
        click.echo(json.dumps([
            {
                "index": m.index,
                "title": m.title,
                "confidence": m.confidence,
                "segment_duration": None if m.segment is None else round(m.segment.duration, 2),
                "track_duration": None if m.track is None else m.track.duration_seconds,
            }
            for m in matches
        ], indent=2))
        return

    click.echo(f"📀 {info.artists} - {info.title} ({info.year})\n")
    for m in matches:
        seg = "-" if m.segment is None else _format_time(m.segment.duration)
        ref = "-" if m.track is None else _format_time(m.track.duration_seconds)
        click.echo(f"{m.index + 1:02d}. {m.title} [{seg} vs {ref}] {m.confidence}")


@main.command(name="parse-tracklist")
@click.argument("tracklist_file", type=click.Path(exists=True))
def parse_tracklist_cmd(tracklist_file):
    """Parse a pasted tracklist and print it as JSON."""
    tracks = parse_tracklist_text(Path(tracklist_file).read_text(encoding="utf-8"))
    click.echo(json.dumps([asdict(t) for t in tracks], indent=2))


if __name__ == "__main__":
    main()
