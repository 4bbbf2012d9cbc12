"""
FFmpeg transcoder.

Builds and runs the FFmpeg command for one segment: plain trim, or trim
and concatenate the kept chunks around exclusions, with optional loudness
normalization, cover art, sample rate override and metadata tags.
"""

import logging
import re
import subprocess
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from autoslice.config import LOUDNORM_FILTER, MP3_BITRATE_KBPS, resolve_ffmpeg
from autoslice.errors import TranscodeError
from autoslice.models import TimeRange


logger = logging.getLogger(__name__)

# on_progress(percent, elapsed_seconds); either may be None
ProgressCallback = Callable[[Optional[float], Optional[float]], None]

_TIMEMARK = re.compile(r"(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")

# Output codec and container per format
_CODECS = {
    "wav": ("pcm_s16le", "wav"),
    "flac": ("flac", "flac"),
    "mp3": ("libmp3lame", "mp3"),
}


@dataclass
class TranscodeRequest:
    """Everything FFmpeg needs to produce one track."""

    input_file: str
    output_file: str
    start: float
    end: Optional[float]
    kept_ranges: List[TimeRange] = field(default_factory=list)  # Empty = plain trim
    format: str = "flac"
    mp3_bitrate: int = MP3_BITRATE_KBPS
    sample_rate: Optional[int] = None
    normalize: bool = False
    cover_art: Optional[str] = None  # Only set when the image exists
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def has_exclusions(self) -> bool:
        return len(self.kept_ranges) > 0


def _ts(seconds: float) -> str:
    return f"{seconds:.6f}".rstrip("0").rstrip(".") or "0"


def parse_timemark(timemark: str) -> Optional[float]:
    """Convert 'HH:MM:SS.ff' to seconds; None if it does not parse."""
    match = _TIMEMARK.search(timemark or "")
    if not match:
        return None
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def build_filter_graph(kept_ranges: Sequence[TimeRange], normalize: bool) -> Tuple[List[str], str]:
    """
    Build a filter graph that trims each kept chunk and splices them.

    Every chunk gets its timestamps reset so the concat introduces no gap.

    Args:
        kept_ranges: Chunks to keep, in order
        normalize: Apply loudnorm to the spliced result

    Returns:
        Tuple of (filter chains, output label)
    """
    if not kept_ranges:
        raise TranscodeError("Track is completely excluded. Cannot export empty track.")

    filters = []
    labels = []
    for i, chunk in enumerate(kept_ranges):
        trim = f"atrim=start={_ts(chunk.start)}"
        if chunk.end is not None:
            trim += f":end={_ts(chunk.end)}"
        filters.append(f"[0:a]{trim},asetpts=PTS-STARTPTS[a{i}]")
        labels.append(f"[a{i}]")

    output = "a0"
    if len(kept_ranges) > 1:
        filters.append(f"{''.join(labels)}concat=n={len(kept_ranges)}:v=0:a=1[concatOut]")
        output = "concatOut"

    if normalize:
        filters.append(f"[{output}]{LOUDNORM_FILTER}[outa]")
        output = "outa"

    return filters, output


class FFmpegTranscoder:
    """Runs FFmpeg as a subprocess."""

    def __init__(self, ffmpeg_path: Optional[str] = None):
        self.ffmpeg_path = resolve_ffmpeg(ffmpeg_path)

    def build_command(self, request: TranscodeRequest) -> List[str]:
        """Translate a request into an FFmpeg argument list."""
        if not self.ffmpeg_path:
            raise TranscodeError("FFmpeg not found; install it or set AUTOSLICE_FFMPEG")

        cmd = [self.ffmpeg_path, "-hide_banner", "-nostdin", "-y"]

        # Inputs
        if request.has_exclusions:
            cmd += ["-i", request.input_file]
        else:
            cmd += ["-ss", _ts(request.start), "-i", request.input_file]
        if request.cover_art:
            cmd += ["-i", request.cover_art]

        # Audio routing and filters
        if request.has_exclusions:
            filters, label = build_filter_graph(request.kept_ranges, request.normalize)
            cmd += ["-filter_complex", ";".join(filters), "-map", f"[{label}]"]
        else:
            if request.end is not None:
                cmd += ["-t", _ts(request.end - request.start)]
            cmd += ["-map", "0:a"]
            if request.normalize:
                cmd += ["-af", LOUDNORM_FILTER]

        if request.cover_art:
            cmd += ["-map", "1:v", "-c:v", "copy", "-disposition:v:0", "attached_pic"]

        if request.sample_rate:
            cmd += ["-ar", str(request.sample_rate)]

        codec, container = _CODECS.get(request.format, _CODECS["flac"])
        cmd += ["-c:a", codec]
        if request.format == "mp3":
            cmd += ["-b:a", f"{request.mp3_bitrate}k"]
            if request.cover_art:
                # ID3v2.3 is what most players read cover art from
                cmd += ["-id3v2_version", "3"]
        cmd += ["-f", container]

        for key, value in request.metadata.items():
            cmd += ["-metadata", f"{key}={value}"]

        cmd += ["-progress", "pipe:1", "-nostats", "-loglevel", "error"]
        cmd.append(request.output_file)
        return cmd

    def transcode(self, request: TranscodeRequest, on_progress: Optional[ProgressCallback] = None) -> str:
        """
        Encode one track, reporting elapsed output time as it goes.

        Args:
            request: What to encode
            on_progress: Called with (None, elapsed_seconds) per progress block

        Returns:
            Path of the written file

        Raises:
            TranscodeError: FFmpeg missing, failed to start, or exited non-zero
        """
        cmd = self.build_command(request)
        logger.debug("Running %s", " ".join(cmd))

        with tempfile.TemporaryFile() as stderr_file:
            try:
                proc = subprocess.Popen(
                    cmd,
                    stdout=subprocess.PIPE,
                    stderr=stderr_file,
                    text=True,
                )
            except OSError as exc:
                raise TranscodeError(f"Could not start FFmpeg: {exc}") from exc

            with proc:
                for line in proc.stdout:
                    elapsed = _parse_progress_line(line)
                    if elapsed is not None and on_progress is not None:
                        on_progress(None, elapsed)
                returncode = proc.wait()

            if returncode != 0:
                stderr_file.seek(0)
                stderr = stderr_file.read().decode("utf-8", errors="replace").strip()
                tail = "\n".join(stderr.splitlines()[-5:])
                raise TranscodeError(tail or f"FFmpeg exited with code {returncode}", returncode=returncode)

        return request.output_file


def _parse_progress_line(line: str) -> Optional[float]:
    key, _, value = line.strip().partition("=")
    if key != "out_time" or value.startswith("-"):
        return None
    return parse_timemark(value)
