"""
TrackerFactory for seed-tools

Creates tracker adapters from the RunContext. Each tracker YAML names its adapter
type; the factory keeps a registry of adapter types and caches one adapter per
tracker slug for the lifetime of a run.

Architecture:
    TrackerFactory
        ├── SeedpoolAdapter     (adapter: "seedpool")     UNIT3D API, search dedupe
        └── TorrentLeechAdapter (adapter: "torrentleech") announce-key form upload

Usage:
    factory = TrackerFactory(context)
    adapter = factory.get_adapter("seedpool")
    ...
    factory.close()
"""

import logging
from typing import Dict, List, Type

from seedtools.adapters.seedpool_adapter import SeedpoolAdapter
from seedtools.adapters.torrentleech_adapter import TorrentLeechAdapter
from seedtools.adapters.tracker_adapter import TrackerAdapter
from seedtools.schemas.config import RunContext
from seedtools.services.exceptions import ConfigValidationError

logger = logging.getLogger(__name__)


class TrackerFactory:
    """
    Factory for creating tracker adapters.

    Adapter Registry:
        - "seedpool": SeedpoolAdapter
        - "torrentleech": TorrentLeechAdapter

    Example:
        >>> factory = TrackerFactory(context)
        >>> TrackerFactory.register_adapter("mytracker", MyTrackerAdapter)
        >>> adapter = factory.get_adapter("mytracker")
    """

    _REGISTRY: Dict[str, Type[TrackerAdapter]] = {
        "seedpool": SeedpoolAdapter,
        "torrentleech": TorrentLeechAdapter,
    }

    def __init__(self, context: RunContext):
        self.context = context
        self._adapter_cache: Dict[str, TrackerAdapter] = {}

    @classmethod
    def register_adapter(cls, adapter_type: str, adapter_class: Type[TrackerAdapter]) -> None:
        cls._REGISTRY[adapter_type] = adapter_class
        logger.info(f"Registered tracker adapter: {adapter_type} -> {adapter_class.__name__}")

    @classmethod
    def available_types(cls) -> List[str]:
        return sorted(cls._REGISTRY)

    def get_adapter(self, slug: str) -> TrackerAdapter:
        """
        Adapter for the tracker with this slug, cached per factory.

        Raises:
            ConfigValidationError: Unknown slug, disabled tracker or unregistered adapter type
        """
        if slug in self._adapter_cache:
            return self._adapter_cache[slug]

        settings = self.context.tracker(slug)
        if not settings.enabled:
            raise ConfigValidationError(f"Tracker '{slug}' is disabled in its configuration")

        adapter_class = self._REGISTRY.get(settings.adapter)
        if adapter_class is None:
            raise ConfigValidationError(
                f"Unknown adapter type: {settings.adapter}",
                errors=[f"available types: {', '.join(self.available_types())}"],
            )

        adapter = adapter_class(settings)
        self._adapter_cache[slug] = adapter
        logger.info(f"Created {settings.adapter} adapter for tracker: {slug}")
        return adapter

    def close(self) -> None:
        """Close every cached adapter's HTTP client."""
        for adapter in self._adapter_cache.values():
            adapter.close()
        self._adapter_cache.clear()
        logger.debug("Adapter cache cleared")
