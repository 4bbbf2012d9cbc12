"""
Export orchestration.

Encodes planned segments one after another through the transcoder, with
a bounded retry per segment, progress events for the caller and a plain
text export.log in the album folder.
"""

import enum
import logging
import os
import time
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from autoslice.config import (
    DEFAULT_ALBUM,
    DEFAULT_ARTIST,
    DEFAULT_FORMAT,
    EXPORT_LOG_NAME,
    MAX_ATTEMPTS,
    MP3_BITRATE_KBPS,
    RETRY_DELAY_SECONDS,
)
from autoslice.errors import (
    ExportCancelledError,
    ExportFatalError,
    OutputNotWritableError,
    TagWriteError,
    TagWriteWarning,
)
from autoslice.models import ExportReport, ExportResult, Segment
from autoslice.segment_planner import ensure_exportable, sanitize, track_file_name
from autoslice.tagging import write_mp3_tags
from autoslice.transcoder import FFmpegTranscoder, TranscodeRequest


logger = logging.getLogger(__name__)

ProgressSink = Callable[[Dict], None]


class TrackState(enum.Enum):
    """Lifecycle of one segment during export."""

    PENDING = "pending"
    ENCODING = "encoding"
    RETRY_SCHEDULED = "retry_scheduled"
    SUCCEEDED = "succeeded"
    FAILED_FATAL = "failed_fatal"


@dataclass
class ExportOptions:
    """Album-level settings shared by every track of one export."""

    output_dir: str
    format: str = DEFAULT_FORMAT  # "wav", "flac" or "mp3"
    artist: str = DEFAULT_ARTIST
    album: str = DEFAULT_ALBUM
    year: str = ""
    album_artist: str = ""
    genre: str = ""
    comment: str = ""
    mp3_bitrate: int = MP3_BITRATE_KBPS
    sample_rate: Optional[int] = None  # None keeps the source rate
    normalize: bool = False
    cover_art: Optional[str] = None

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir) / sanitize(self.artist) / sanitize(self.album)

    @property
    def has_cover(self) -> bool:
        return bool(self.cover_art) and Path(self.cover_art).is_file()


@dataclass
class AttemptOutcome:
    """Final state of a segment's retry loop."""

    state: TrackState
    attempts: int
    last_error: Optional[BaseException] = None

    @property
    def retries(self) -> int:
        return max(0, self.attempts - 1)


def run_attempts(
    action: Callable[[], object],
    max_attempts: int = MAX_ATTEMPTS,
    delay: float = RETRY_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
    on_failure: Optional[Callable[[int, BaseException, int], None]] = None,
) -> AttemptOutcome:
    """
    Run `action` until it succeeds or the attempt budget is spent.

    Any exception counts as a failed attempt. A fixed delay separates
    consecutive attempts; there is no delay after the last failure.

    Args:
        action: Callable performing one attempt; raises on failure
        max_attempts: Total attempts allowed
        delay: Seconds to wait before each retry
        sleep: Sleep function (injectable for tests)
        on_failure: Called with (attempt, error, attempts_left) after each failure

    Returns:
        AttemptOutcome in state SUCCEEDED or FAILED_FATAL
    """
    state = TrackState.PENDING
    attempts = 0
    last_error = None

    while state not in (TrackState.SUCCEEDED, TrackState.FAILED_FATAL):
        if state is TrackState.RETRY_SCHEDULED:
            sleep(delay)

        state = TrackState.ENCODING
        attempts += 1
        try:
            action()
            state = TrackState.SUCCEEDED
        except Exception as exc:
            last_error = exc
            left = max_attempts - attempts
            if on_failure is not None:
                on_failure(attempts, exc, left)
            state = TrackState.RETRY_SCHEDULED if left > 0 else TrackState.FAILED_FATAL

    return AttemptOutcome(state=state, attempts=attempts, last_error=last_error)


class ExportLog:
    """Timestamped lines in export.log, mirrored to the module logger."""

    def __init__(self, path: Path):
        self.path = path
        self._logger = logging.Logger(f"{__name__}.file", level=logging.INFO)
        self._handler = logging.FileHandler(path, encoding="utf-8")
        self._handler.setFormatter(logging.Formatter("[%(asctime)s] %(message)s"))
        self._logger.addHandler(self._handler)

    def __enter__(self) -> "ExportLog":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def info(self, msg: str, *args) -> None:
        self._logger.info(msg, *args)
        logger.info(msg, *args)

    def warning(self, msg: str, *args) -> None:
        self._logger.warning(msg, *args)
        logger.warning(msg, *args)

    def error(self, msg: str, *args) -> None:
        self._logger.error(msg, *args)
        logger.error(msg, *args)

    def close(self) -> None:
        self._logger.removeHandler(self._handler)
        self._handler.close()


def check_output_dir(output_dir: str) -> None:
    """Fail fast unless the base output directory exists and is writable."""
    base = Path(output_dir)
    if not base.is_dir() or not os.access(base, os.W_OK):
        raise OutputNotWritableError(output_dir)


def build_metadata(segment: Segment, options: ExportOptions) -> Dict[str, str]:
    """Tags written by the transcoder for one track."""
    metadata = {
        "artist": segment.artist,
        "album": options.album,
        "title": segment.name,
        "track": str(segment.track_number),
    }
    if options.year:
        metadata["date"] = str(options.year)
    if options.album_artist:
        metadata["album_artist"] = options.album_artist
    if options.genre:
        metadata["genre"] = options.genre
    if options.comment:
        metadata["comment"] = options.comment
    return metadata


def build_request(input_file: str, segment: Segment, options: ExportOptions, output_file: Path) -> TranscodeRequest:
    """Translate a planned segment into a transcode request."""
    return TranscodeRequest(
        input_file=str(input_file),
        output_file=str(output_file),
        start=segment.start,
        end=segment.end,
        kept_ranges=segment.kept_ranges if segment.exclusions else [],
        format=options.format,
        mp3_bitrate=options.mp3_bitrate,
        sample_rate=options.sample_rate,
        normalize=options.normalize,
        cover_art=options.cover_art if options.has_cover else None,
        metadata=build_metadata(segment, options),
    )


def _emit(progress: Optional[ProgressSink], event: Dict) -> None:
    if progress is not None:
        progress(event)


def export_tracks(
    input_file: str,
    segments: Sequence[Segment],
    options: ExportOptions,
    progress: Optional[ProgressSink] = None,
    transcoder=None,
    tag_writer: Callable = write_mp3_tags,
    sleep: Callable[[float], None] = time.sleep,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> ExportReport:
    """
    Export every planned segment as a tagged audio file.

    Segments are encoded strictly in order. A segment gets up to three
    attempts one second apart; if all fail the whole export stops with
    ExportFatalError and files already written are left in place.

    Args:
        input_file: Source audio file
        segments: Output of plan_segments; file names are rebuilt with
                  the extension of options.format
        options: Album-level export settings
        progress: Receives init, start_track, encode_progress, retry and
                  complete events as dicts
        transcoder: Object with transcode(request, on_progress); FFmpeg by default
        tag_writer: Secondary tag writer for MP3 output
        sleep: Sleep function used for the retry delay
        should_cancel: Polled between segments; True stops the export

    Returns:
        ExportReport with one ExportResult per segment

    Raises:
        OutputNotWritableError: base output directory missing or read-only
        EmptySegmentError: a segment has no audio after exclusions
        ExportFatalError: a segment failed all its attempts
        ExportCancelledError: should_cancel returned True
    """
    # Step 1: Pre-flight checks, before anything touches the disk
    check_output_dir(options.output_dir)
    ensure_exportable(segments)

    if transcoder is None:
        transcoder = FFmpegTranscoder()

    output_path = options.output_path
    output_path.mkdir(parents=True, exist_ok=True)

    total = len(segments)
    results: List[ExportResult] = []

    with ExportLog(output_path / EXPORT_LOG_NAME) as log:
        log.info("Starting export process for %s", input_file)
        log.info("Output Directory: %s", output_path)
        log.info(
            "Format: %s, Normalize: %s, SampleRate: %s",
            options.format, options.normalize, options.sample_rate or "Original",
        )

        _emit(progress, {"type": "init", "total_tracks": total})

        # Step 2: Encode segments one by one
        for segment in segments:
            if should_cancel is not None and should_cancel():
                log.warning("Export cancelled before track %d", segment.track_number)
                raise ExportCancelledError(len(results))

            file_name = track_file_name(segment.track_number, segment.name, options.format)
            file_path = output_path / file_name
            request = build_request(input_file, segment, options, file_path)
            estimate = segment.estimated_duration

            log.info("Starting encoding track %d: %s", segment.track_number, file_name)
            _emit(progress, {
                "type": "start_track",
                "track_num": segment.track_number,
                "total_tracks": total,
                "track_name": segment.name,
            })

            def on_progress(percent, elapsed, _segment=segment, _estimate=estimate):
                if percent is None and elapsed is not None and _estimate > 0:
                    percent = elapsed / _estimate * 100
                if percent is None:
                    return
                _emit(progress, {
                    "type": "encode_progress",
                    "track_num": _segment.track_number,
                    "percent": min(float(percent), 100.0),
                })

            def on_failure(attempt, exc, left, _segment=segment):
                log.error(
                    "Error encoding track %d. Retries left: %d. Error: %s",
                    _segment.track_number, left, exc,
                )
                if left > 0:
                    log.info("Retrying track %d...", _segment.track_number)
                    _emit(progress, {
                        "type": "retry",
                        "track_num": _segment.track_number,
                        "attempt": attempt + 1,
                        "error": str(exc),
                    })

            outcome = run_attempts(
                lambda: transcoder.transcode(request, on_progress),
                sleep=sleep,
                on_failure=on_failure,
            )

            if outcome.state is TrackState.FAILED_FATAL:
                log.error("FATAL: Failed to encode track %d after all retries.", segment.track_number)
                raise ExportFatalError(segment.track_number, str(outcome.last_error))

            log.info("Successfully encoded track %d", segment.track_number)

            # Step 3: MP3 players often ignore FFmpeg's tags, rewrite them
            if options.format == "mp3":
                _retag_mp3(tag_writer, file_path, segment, options, log)

            results.append(ExportResult(
                track_number=segment.track_number,
                name=segment.name,
                file_name=file_name,
                file_path=file_path,
                start=segment.start,
                end=segment.end,
                attempts=outcome.attempts,
            ))

        log.info("Export process completed successfully.")

    _emit(progress, {"type": "complete", "total_tracks": total, "output_path": str(output_path)})
    return ExportReport(tracks=results, output_path=output_path)


def _retag_mp3(tag_writer, file_path: Path, segment: Segment, options: ExportOptions, log: ExportLog) -> None:
    try:
        tag_writer(
            file_path,
            title=segment.name,
            artist=segment.artist,
            album=options.album,
            track_number=segment.track_number,
            year=options.year or None,
            genre=options.genre or None,
            album_artist=options.album_artist or None,
            comment=options.comment or None,
            cover_art=options.cover_art if options.has_cover else None,
        )
    except TagWriteError as exc:
        log.warning("ID3 tag write warning for track %d: %s", segment.track_number, exc)
        warnings.warn(f"ID3 tag write failed for {file_path.name}: {exc}", TagWriteWarning)
