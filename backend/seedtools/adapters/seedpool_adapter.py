"""
SeedpoolAdapter - TrackerAdapter for Seedpool (UNIT3D)

Authentication is a Bearer API token on uploads and an api_token query parameter on
searches.

Category table (category_id, type_id):

    video-tv       (2, 24)
    video-movie    (1, 22)
    video-boxset   (13, 26)
    music          (<music category>, 13) for mp3, (<music category>, 11) for flac

Other families use the ids configured under `categories:` in the tracker YAML and
(0, 0) otherwise. A TV mapping whose release has no episode is submitted as a boxset.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

import httpx

from seedtools.adapters.tracker_adapter import Category, FormFields, FormFiles, TrackerAdapter
from seedtools.schemas.config import TrackerSettings
from seedtools.services.artifact_builder import UploadArtifact
from seedtools.services.classifier import ContentType, ReleaseInfo
from seedtools.services.dupe_checker import DupeChecker
from seedtools.services.metadata_resolver import ExternalIds
from seedtools.utils.release_naming import generate_release_name

logger = logging.getLogger(__name__)


TV_CATEGORY = (2, 24)
MOVIE_CATEGORY = (1, 22)
BOXSET_CATEGORY = (13, 26)
MUSIC_TYPE_IDS = {"mp3": 13, "flac": 11}
SEASONAL_CATEGORY_IDS = (2, 13)

DEFAULT_CATEGORIES: Dict[str, Category] = {
    ContentType.TV.value: TV_CATEGORY,
    ContentType.MOVIE.value: MOVIE_CATEGORY,
    ContentType.BOXSET.value: BOXSET_CATEGORY,
}


def remap_season_pack(category: Category, episode: Optional[int]) -> Category:
    """TV category with no episode number goes up as a boxset."""
    if category[0] == TV_CATEGORY[0] and not episode:
        return BOXSET_CATEGORY
    return category


class SeedpoolAdapter(TrackerAdapter):
    """UNIT3D upload API with search-endpoint dedupe."""

    name = "Seedpool"

    def __init__(
        self,
        settings: TrackerSettings,
        http_client: Optional[httpx.Client] = None,
        dupe_checker: Optional[DupeChecker] = None,
    ):
        super().__init__(settings, http_client)
        self.dupe_checker = dupe_checker
        if self.dupe_checker is None and settings.search_url:
            self.dupe_checker = DupeChecker(
                settings.search_url, settings.api_key, settings.dupe_match, http_client=self._client,
            )

    def category_for(self, release: ReleaseInfo, music_format: Optional[str] = None) -> Category:
        key = release.content_type.value
        override = self.settings.category_override(key)

        if release.content_type is ContentType.MUSIC:
            category_id = override[0] if override else 0
            return category_id, MUSIC_TYPE_IDS.get(music_format or "mp3", MUSIC_TYPE_IDS["mp3"])

        if override:
            return override
        return DEFAULT_CATEGORIES.get(key, (0, 0))

    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.settings.api_key}", "Accept": "application/json"}

    def build_form(
        self,
        artifact: UploadArtifact,
        release: ReleaseInfo,
        ids: ExternalIds,
        category: Category,
        name: Optional[str] = None,
    ) -> Tuple[FormFields, FormFiles]:
        category_id, type_id = remap_season_pack(category, release.episode) if release.content_type.is_video else category

        fields: FormFields = {
            "name": name or generate_release_name(release.base_name),
            "category_id": str(category_id),
            "type_id": str(type_id),
            "resolution_id": str(release.resolution_id),
            "anonymous": "1" if self.settings.anonymous else "0",
            "mal": "0",
            "stream": "0",
            "sd": "0",
            "description": artifact.description,
            "mediainfo": artifact.mediainfo,
        }
        fields.update(ids.form_fields())

        if category_id in SEASONAL_CATEGORY_IDS and release.content_type.is_video:
            if release.season is not None:
                fields["season_number"] = str(release.season)
            fields["episode_number"] = str(release.episode or 0)

        files: FormFiles = {"torrent": artifact.torrent_path}
        if artifact.nfo_path:
            files["nfo"] = artifact.nfo_path
        return fields, files

    def find_existing(self, name: str) -> Optional[str]:
        if self.dupe_checker is None:
            logger.warning(f"No search URL configured for {self.slug}; skipping dupe check")
            return None
        return self.dupe_checker.find_existing(name)

    def download_existing(self, link: str, destination: Path) -> Path:
        if self.dupe_checker is None:
            return super().download_existing(link, destination)
        return self.dupe_checker.download(link, destination)
