"""
Configuration Loader for seed-tools

Loads config/config.yaml plus one config/trackers/<slug>.yaml per tracker and
validates them into a RunContext.

Tracker files keep the sectioned layout operators already use:

    general:      enabled, api_key, announce_url_1
    settings:     announce_url, upload_url, search_url, tl_key, stripshit_from_videos,
                  custom_description, source, anonymous, dupe_match
    screenshots:  remote_path, image_path
    categories:   {key: id | [category_id, type_id]}

Usage:
    loader = TrackerConfigLoader("config")
    context = loader.load_run_context()
    seedpool = context.tracker("seedpool")
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import ValidationError

from seedtools.schemas.config import RunContext, TrackerSettings
from seedtools.services.exceptions import ConfigValidationError

logger = logging.getLogger(__name__)


# section key -> TrackerSettings field
_TRACKER_KEY_MAP = {
    "api_key": "api_key",
    "enabled": "enabled",
    "announce_url": "announce_url",
    "announce_url_1": "announce_url",
    "upload_url": "upload_url",
    "search_url": "search_url",
    "tl_key": "announce_key",
    "announce_key": "announce_key",
    "stripshit_from_videos": "exclude_junk",
    "exclude_junk": "exclude_junk",
    "custom_description": "custom_description",
    "source": "source",
    "anonymous": "anonymous",
    "dupe_match": "dupe_match",
    "adapter": "adapter",
    "remote_path": "cdn_remote_path",
    "image_path": "cdn_image_path",
}


class TrackerConfigLoader:
    """
    Loads and validates the YAML configuration tree.

    Args:
        config_dir: Directory holding config.yaml and trackers/
    """

    MAIN_CONFIG = "config.yaml"
    TRACKERS_DIR = "trackers"

    def __init__(self, config_dir: Union[str, Path] = "config"):
        self.config_dir = Path(config_dir)
        logger.debug(f"TrackerConfigLoader initialized with config_dir: {self.config_dir}")

    def get_available_trackers(self) -> List[str]:
        """Tracker slugs with a YAML file under trackers/."""
        trackers_dir = self.config_dir / self.TRACKERS_DIR
        if not trackers_dir.exists():
            logger.warning(f"Tracker config directory does not exist: {trackers_dir}")
            return []
        return sorted(p.stem for p in trackers_dir.iterdir() if p.suffix in (".yaml", ".yml"))

    def load_run_context(self) -> RunContext:
        """
        Build the RunContext from disk.

        Raises:
            ConfigValidationError: If a file is missing, unparseable or fails validation
        """
        main = self._load_file(self.config_dir / self.MAIN_CONFIG)

        trackers: Dict[str, Dict[str, Any]] = {}
        for slug in self.get_available_trackers():
            raw = self._load_file(self._find_tracker_file(slug))
            trackers[slug] = self.flatten_tracker_config(slug, raw)

        deluge = main.get("deluge") or []
        if isinstance(deluge, dict):
            deluge = [deluge]

        payload = {
            "general": main.get("general") or {},
            "paths": main.get("paths") or {},
            "qbittorrent": main.get("qbittorrent") or [],
            "deluge": [d for d in deluge if d.get("webui_url")],
            "trackers": trackers,
        }

        try:
            context = RunContext.model_validate(payload)
        except ValidationError as e:
            errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
            raise ConfigValidationError(f"Invalid configuration in {self.config_dir}", errors) from e

        logger.info(
            f"Loaded configuration: trackers={sorted(context.trackers)}, "
            f"qbittorrent={len(context.qbittorrent)}, deluge={len(context.deluge)}"
        )
        return context

    @staticmethod
    def flatten_tracker_config(slug: str, raw: Dict[str, Any]) -> Dict[str, Any]:
        """Merge the general/settings/screenshots sections into TrackerSettings fields."""
        flat: Dict[str, Any] = {"slug": slug, "adapter": slug}

        for section in ("general", "settings", "screenshots"):
            for key, value in (raw.get(section) or {}).items():
                field = _TRACKER_KEY_MAP.get(key)
                if field is None:
                    logger.debug(f"Ignoring unknown key '{section}.{key}' for tracker {slug}")
                    continue
                flat[field] = value

        for key, value in raw.items():
            if key in _TRACKER_KEY_MAP and not isinstance(value, dict):
                flat[_TRACKER_KEY_MAP[key]] = value

        if raw.get("categories"):
            flat["categories"] = raw["categories"]
        return flat

    def validate_tracker(self, settings: TrackerSettings) -> List[str]:
        """Non-fatal sanity checks, returned as human-readable warnings."""
        warnings = []
        if settings.adapter == "seedpool" and not settings.api_key:
            warnings.append(f"{settings.slug}: api_key is empty, uploads will be rejected")
        if settings.adapter == "torrentleech" and not settings.announce_key:
            warnings.append(f"{settings.slug}: tl_key is empty, uploads will be rejected")
        if settings.cdn_remote_path and not settings.cdn_image_path:
            warnings.append(f"{settings.slug}: screenshots.image_path is required with remote_path")
        return warnings

    def _find_tracker_file(self, slug: str) -> Path:
        for suffix in (".yaml", ".yml"):
            candidate = self.config_dir / self.TRACKERS_DIR / f"{slug}{suffix}"
            if candidate.exists():
                return candidate
        raise ConfigValidationError(f"No configuration file found for tracker '{slug}'")

    @staticmethod
    def _load_file(path: Path) -> Dict[str, Any]:
        if not path.exists():
            raise ConfigValidationError(f"Configuration file not found: {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Failed to parse {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigValidationError(f"{path} must contain a mapping at the top level")
        return data


def load_run_context(config_dir: Optional[Union[str, Path]] = None) -> RunContext:
    """Shortcut used by the CLI."""
    from seedtools.config import config

    return TrackerConfigLoader(config_dir or config.CONFIG_DIR).load_run_context()
