"""
Configuration Schemas Package

Pydantic models validating the YAML configuration into a RunContext.
"""

from seedtools.schemas.config import (
    DelugeInstance,
    GeneralSettings,
    PathSettings,
    QbittorrentInstance,
    RunContext,
    TrackerSettings,
)

__all__ = [
    'GeneralSettings',
    'PathSettings',
    'QbittorrentInstance',
    'DelugeInstance',
    'TrackerSettings',
    'RunContext',
]
