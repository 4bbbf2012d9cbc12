"""
Secondary ID3 tagging pass for MP3 output.

FFmpeg writes tags itself; this pass rewrites them with mutagen so that
players with poor ID3 support still see title, artist and cover art.
"""

import logging
import mimetypes
from pathlib import Path
from typing import Optional

from mutagen.id3 import APIC, COMM, ID3, ID3NoHeaderError, TALB, TCON, TDRC, TIT2, TPE1, TPE2, TRCK
from mutagen import MutagenError

from autoslice.errors import TagWriteError


logger = logging.getLogger(__name__)


def write_mp3_tags(
    path: Path,
    title: str,
    artist: str,
    album: str,
    track_number: int,
    year: Optional[str] = None,
    genre: Optional[str] = None,
    album_artist: Optional[str] = None,
    comment: Optional[str] = None,
    cover_art: Optional[str] = None,
) -> None:
    """
    Rewrite ID3v2.3 tags on an existing MP3 file in place.

    Args:
        path: MP3 file to update
        title, artist, album, track_number: Always written
        year, genre, album_artist, comment: Written when non-empty
        cover_art: Image to embed as the front cover

    Raises:
        TagWriteError: if the file cannot be read or saved
    """
    file_path = str(path)
    try:
        tags = ID3(file_path)
    except ID3NoHeaderError:
        tags = ID3()
    except MutagenError as exc:
        raise TagWriteError(f"Cannot read tags from {path}: {exc}") from exc

    tags.setall("TIT2", [TIT2(encoding=3, text=title)])
    tags.setall("TPE1", [TPE1(encoding=3, text=artist)])
    tags.setall("TALB", [TALB(encoding=3, text=album)])
    tags.setall("TRCK", [TRCK(encoding=3, text=str(track_number))])
    if year:
        tags.setall("TDRC", [TDRC(encoding=3, text=str(year))])
    if genre:
        tags.setall("TCON", [TCON(encoding=3, text=genre)])
    if album_artist:
        tags.setall("TPE2", [TPE2(encoding=3, text=album_artist)])
    if comment:
        tags.setall("COMM", [COMM(encoding=3, lang="eng", desc="", text=comment)])

    if cover_art:
        cover_path = Path(cover_art)
        try:
            data = cover_path.read_bytes()
        except OSError as exc:
            raise TagWriteError(f"Cannot read cover art {cover_art}: {exc}") from exc
        mime = mimetypes.guess_type(cover_path.name)[0] or "image/jpeg"
        tags.setall("APIC", [APIC(encoding=3, mime=mime, type=3, desc="Cover", data=data)])

    try:
        tags.save(file_path, v2_version=3)
    except (MutagenError, OSError) as exc:
        raise TagWriteError(f"Cannot save tags to {path}: {exc}") from exc

    logger.debug("Wrote ID3 tags to %s", path)
