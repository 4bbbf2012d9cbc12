"""
Discogs release lookup.

Searches releases and fetches tracklists so detected segments can be
named. Only the matcher's caller uses this; detection and export never
touch the network.
"""

import logging
import tempfile
import time
from pathlib import Path
from typing import List, Optional, Tuple
from urllib.parse import urlparse

import requests

from autoslice.errors import LookupServiceError
from autoslice.models import ReleaseInfo, ReleaseSummary, TracklistEntry
from autoslice.tracklist import parse_duration


logger = logging.getLogger(__name__)

DISCOGS_BASE = "https://api.discogs.com"
USER_AGENT = "AutoSlice/1.0"


def _names(items) -> str:
    return ", ".join(item.get("name", "") for item in items or [])


class DiscogsClient:
    def __init__(
        self,
        token: Optional[str] = None,
        base_url: str = DISCOGS_BASE,
        user_agent: str = USER_AGENT,
        timeout: float = 15,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": user_agent})
        if token:
            self.session.headers["Authorization"] = f"Discogs token={token}"

    def _get_json(self, path: str, params: Optional[dict] = None) -> dict:
        url = f"{self.base_url}{path}"
        try:
            r = self.session.get(url, params=params, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as exc:
            raise LookupServiceError(f"Discogs request failed: {exc}") from exc
        try:
            return r.json()
        except ValueError as exc:
            raise LookupServiceError(f"Failed to parse Discogs response: {r.text[:200]}") from exc

    def search(self, artist: str, album: str, per_page: int = 10) -> List[ReleaseSummary]:
        query = f"{artist} {album}".strip()
        data = self._get_json("/database/search", {"q": query, "type": "release", "per_page": per_page})
        results = data.get("results") or []
        logger.info("Discogs search %r returned %d release(s)", query, len(results))
        return [
            ReleaseSummary(
                id=int(r["id"]),
                title=r.get("title", ""),
                year=str(r.get("year") or ""),
                country=r.get("country") or "",
                format=", ".join(r.get("format") or []),
                label=", ".join(r.get("label") or []),
                thumbnail_url=r.get("thumb") or "",
            )
            for r in results
            if "id" in r
        ]

    def get_tracklist(self, release_id: int) -> Tuple[List[TracklistEntry], ReleaseInfo]:
        data = self._get_json(f"/releases/{release_id}")
        rows = [t for t in data.get("tracklist") or [] if t.get("type_") == "track"]

        tracklist = [
            TracklistEntry(
                position=t.get("position") or str(i + 1),
                title=t.get("title", ""),
                artist_names=_names(t.get("artists")),
                duration_seconds=float(parse_duration(t.get("duration"))),
            )
            for i, t in enumerate(rows)
        ]
        info = ReleaseInfo(
            title=data.get("title", ""),
            artists=_names(data.get("artists")),
            year=str(data.get("year") or ""),
            genres=list(data.get("genres") or []),
            styles=list(data.get("styles") or []),
            labels=_names(data.get("labels")),
            images=[img.get("resource_url") or img.get("uri", "") for img in data.get("images") or []],
        )
        return tracklist, info

    def download_cover(self, image_url: str, dest_dir: Optional[str] = None) -> Path:
        """Save a release image to a local file and return its path."""
        try:
            r = self.session.get(image_url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise LookupServiceError(f"Failed to download image: {exc}") from exc
        if r.status_code != 200:
            raise LookupServiceError(f"Failed to download image (Status: {r.status_code})")

        suffix = Path(urlparse(image_url).path).suffix or ".jpg"
        target_dir = Path(dest_dir) if dest_dir else Path(tempfile.gettempdir())
        target = target_dir / f"autoslice_cover_{int(time.time() * 1000)}{suffix}"
        target.write_bytes(r.content)
        return target
