"""
TorrentLeechAdapter - TrackerAdapter for TorrentLeech

The upload form authenticates with the announce key and carries only the category,
the .torrent and an .nfo. When the release ships no .nfo, the media report is written
next to the .torrent as <release>.nfo and sent instead.

TorrentLeech has no search API here: find_existing() returns None and a duplicate
shows up as "Duplicate torrent" in the upload response body.
"""

import logging
import os
import re
from typing import Dict, Optional, Tuple

from seedtools.adapters.tracker_adapter import Category, FormFields, FormFiles, TrackerAdapter
from seedtools.services.artifact_builder import UploadArtifact
from seedtools.services.classifier import ContentType, ReleaseInfo
from seedtools.services.exceptions import TrackerRejected
from seedtools.services.metadata_resolver import ExternalIds
from seedtools.utils.release_naming import generate_release_name

logger = logging.getLogger(__name__)


DUPLICATE_MARKER = "Duplicate torrent"

# Category key -> TorrentLeech category id; any key can be overridden in the YAML.
DEFAULT_CATEGORIES: Dict[str, int] = {
    "TvBoxsets": 27,
    "TvEpisodesHd": 32,
    "TvEpisodes": 26,
    "Movie4K": 47,
    "MovieBluray": 13,
    "MovieBlurayRip": 14,
    "MovieDvd": 12,
    "MovieDvdRip": 11,
    "MovieWebrip": 37,
    "MovieHdRip": 43,
}

SD_RESOLUTIONS = ("480p", "480i", "576p", "576i")
UHD_RESOLUTIONS = ("2160p", "4320p", "8640p")

_REMUX_RE = re.compile(r"(?i)\bremux\b")
_BLURAY_RE = re.compile(r"(?i)\b(blu-?ray|bdrip|brrip|hddvd)\b")
_DVD_RE = re.compile(r"(?i)\bdvd")
_WEB_RE = re.compile(r"(?i)\bweb")
_HDTV_RE = re.compile(r"(?i)\bhdtv\b")


def movie_category_key(release: ReleaseInfo) -> str:
    """Category key for a movie from its resolution and source tokens; WEB when nothing else fits."""
    name = release.base_name.replace(".", " ").replace("_", " ")
    if release.resolution_tag in UHD_RESOLUTIONS:
        return "Movie4K"
    if _BLURAY_RE.search(name):
        return "MovieBluray" if _REMUX_RE.search(name) else "MovieBlurayRip"
    if _DVD_RE.search(name):
        return "MovieDvd" if _REMUX_RE.search(name) else "MovieDvdRip"
    if _HDTV_RE.search(name) and not _WEB_RE.search(name):
        return "MovieHdRip"
    return "MovieWebrip"


def category_key(release: ReleaseInfo) -> str:
    content_type = release.content_type
    if content_type is ContentType.BOXSET:
        return "TvBoxsets"
    if content_type is ContentType.TV:
        if not release.has_episode:
            return "TvBoxsets"
        return "TvEpisodes" if release.resolution_tag in SD_RESOLUTIONS else "TvEpisodesHd"
    if content_type is ContentType.MOVIE:
        return movie_category_key(release)
    return content_type.value


class TorrentLeechAdapter(TrackerAdapter):
    """Announce-key form upload with a body-marker duplicate check."""

    name = "TorrentLeech"

    def category_for(self, release: ReleaseInfo, music_format: Optional[str] = None) -> Category:
        """
        Raises:
            TrackerRejected: No TorrentLeech category is mapped for the release
        """
        key = category_key(release)
        override = self.settings.category_override(key)
        if override:
            return override[0], 0
        if key not in DEFAULT_CATEGORIES:
            raise TrackerRejected(
                f"No {self.name} category for {release.content_type.value} releases "
                f"(add '{key}' under categories in {self.slug}.yaml)"
            )
        return DEFAULT_CATEGORIES[key], 0

    def nfo_for(self, artifact: UploadArtifact, release: ReleaseInfo) -> Optional[str]:
        """The release's .nfo, or the media report written out as one."""
        if artifact.nfo_path:
            return artifact.nfo_path
        if not artifact.mediainfo:
            return None

        torrent_dir = os.path.dirname(artifact.torrent_path) or "."
        nfo_path = os.path.join(torrent_dir, f"{generate_release_name(release.base_name)}.nfo")
        with open(nfo_path, "w", encoding="utf-8") as f:
            f.write(artifact.mediainfo)
        logger.info(f"Wrote media report as NFO: {nfo_path}")
        return nfo_path

    def build_form(
        self,
        artifact: UploadArtifact,
        release: ReleaseInfo,
        ids: ExternalIds,
        category: Category,
        name: Optional[str] = None,
    ) -> Tuple[FormFields, FormFiles]:
        fields: FormFields = {
            "announcekey": self.settings.announce_key,
            "category": str(category[0]),
        }
        files: FormFiles = {"torrent": artifact.torrent_path}
        nfo_path = self.nfo_for(artifact, release)
        if nfo_path:
            files["nfo"] = nfo_path
        return fields, files

    def check_response(self, response):
        if DUPLICATE_MARKER in (response.text or ""):
            raise TrackerRejected(
                f"{self.name} reports a duplicate torrent",
                status_code=response.status_code,
                response_data=response.text[:1000],
            )
        return super().check_response(response)
