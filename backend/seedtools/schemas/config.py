"""
Configuration Schemas

Pydantic models validating config/config.yaml and config/trackers/<slug>.yaml.
Together they form the RunContext handed to every pipeline stage; nothing in the
pipeline reads configuration from anywhere else.
"""

from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from seedtools.services.exceptions import ConfigValidationError


def _normalize_url(value: str) -> str:
    value = (value or "").strip().rstrip("/")
    if value and not value.startswith("http"):
        value = f"http://{value}"
    return value


class GeneralSettings(BaseModel):
    """API keys for metadata providers and optional services."""
    model_config = ConfigDict(frozen=True)

    tmdb_api_key: str = ""
    youtube_api_key: str = ""
    imgbb_api_key: str = ""
    igdb_client_id: str = ""
    igdb_bearer_token: str = ""

    @property
    def igdb_configured(self) -> bool:
        return bool(self.igdb_client_id and self.igdb_bearer_token)


class PathSettings(BaseModel):
    """Output directories and external tool binaries."""
    model_config = ConfigDict(frozen=True)

    torrent_dir: str = "./torrents"
    screenshots_dir: str = "./screenshots"
    torrent_creator: str = Field("mkbrr", pattern="^(mkbrr|torf)$")
    mkbrr: str = "mkbrr"
    ffmpeg: str = "ffmpeg"
    ffprobe: str = "ffprobe"
    scp: str = "scp"
    pdftoppm: str = "pdftoppm"
    pdfinfo: str = "pdfinfo"
    unrar: str = "unrar"


class QbittorrentInstance(BaseModel):
    """One qBittorrent Web UI to inject finished torrents into."""
    model_config = ConfigDict(frozen=True)

    webui_url: str
    username: str = ""
    password: str = ""
    category: Optional[str] = None
    default_save_path: Optional[str] = None

    @field_validator("webui_url")
    @classmethod
    def normalize_webui_url(cls, value: str) -> str:
        return _normalize_url(value)


class DelugeInstance(BaseModel):
    """One Deluge Web UI (JSON-RPC) to inject finished torrents into."""
    model_config = ConfigDict(frozen=True)

    webui_url: str
    password: str = ""
    label: Optional[str] = None
    default_save_path: Optional[str] = None

    @field_validator("webui_url")
    @classmethod
    def normalize_webui_url(cls, value: str) -> str:
        return _normalize_url(value)


class TrackerSettings(BaseModel):
    """
    One tracker definition.

    categories maps a category key (see adapters) to either a single id or a
    [category_id, type_id] pair, overriding the adapter's built-in table.
    """
    model_config = ConfigDict(frozen=True)

    slug: str
    adapter: str
    enabled: bool = True
    api_key: str = ""
    announce_key: str = ""
    announce_url: str
    upload_url: str
    search_url: Optional[str] = None
    source: Optional[str] = None
    anonymous: bool = False
    exclude_junk: bool = False
    custom_description: str = ""
    dupe_match: str = Field("auto", pattern="^(auto|exact|season_episode)$")
    cdn_remote_path: Optional[str] = None
    cdn_image_path: Optional[str] = None
    categories: Dict[str, List[int]] = Field(default_factory=dict)

    @field_validator("categories", mode="before")
    @classmethod
    def coerce_category_ids(cls, value):
        if not value:
            return {}
        return {str(k): ([v] if isinstance(v, int) else list(v)) for k, v in value.items()}

    @field_validator("announce_url", "upload_url")
    @classmethod
    def require_url(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value.strip()

    def category_override(self, key: str) -> Optional[Tuple[int, int]]:
        ids = self.categories.get(key)
        if not ids:
            return None
        return ids[0], (ids[1] if len(ids) > 1 else 0)

    @property
    def has_cdn(self) -> bool:
        return bool(self.cdn_remote_path and self.cdn_image_path)


class RunContext(BaseModel):
    """Everything a pipeline run needs: keys, paths, trackers and client instances."""
    model_config = ConfigDict(frozen=True)

    general: GeneralSettings = Field(default_factory=GeneralSettings)
    paths: PathSettings = Field(default_factory=PathSettings)
    qbittorrent: List[QbittorrentInstance] = Field(default_factory=list)
    deluge: List[DelugeInstance] = Field(default_factory=list)
    trackers: Dict[str, TrackerSettings] = Field(default_factory=dict)

    def tracker(self, slug: str) -> TrackerSettings:
        try:
            return self.trackers[slug]
        except KeyError:
            raise ConfigValidationError(
                f"Tracker '{slug}' is not configured",
                errors=[f"available: {', '.join(sorted(self.trackers)) or 'none'}"],
            ) from None
