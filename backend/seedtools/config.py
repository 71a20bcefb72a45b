"""
Configuration Management for seed-tools

Operational settings (where the YAML lives, logging, database, timeouts, retries) come
from environment variables with sensible defaults. Tracker credentials, client
instances and tool paths live in the YAML tree loaded into a RunContext.
"""

import os


class Config:
    """
    Centralized operational configuration using environment variables.

    All settings have sensible defaults and can be overridden via environment
    variables.
    """

    # =============================================================================
    # APPLICATION SETTINGS
    # =============================================================================
    APP_VERSION = "1.0.0"
    APP_TITLE = "seed-tools"
    APP_DESCRIPTION = "Classify media releases, upload them to private trackers and seed them"

    # =============================================================================
    # CONFIGURATION FILES
    # =============================================================================
    CONFIG_DIR = os.getenv("SEEDTOOLS_CONFIG_DIR", "config")

    # =============================================================================
    # LOGGING
    # =============================================================================
    DEBUG = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG else "INFO").upper()
    LOG_FILE = os.getenv("LOG_FILE", "seed-tools.log")
    LOG_JSON = os.getenv("LOG_JSON", "false").lower() == "true"

    # =============================================================================
    # DATABASE CONFIGURATION (upload history ledger)
    # =============================================================================
    _db_path = "./data/seed-tools.db"
    DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{_db_path}")

    # =============================================================================
    # REQUEST TIMEOUTS (seconds)
    # =============================================================================
    # Tracker search, upload and download requests
    API_REQUEST_TIMEOUT = int(os.getenv("API_REQUEST_TIMEOUT", "120"))

    # TMDB, IGDB, Open Library and YouTube lookups
    TMDB_API_TIMEOUT = int(os.getenv("TMDB_API_TIMEOUT", "10"))

    # qBittorrent and Deluge Web UI requests
    QBITTORRENT_TIMEOUT = int(os.getenv("QBITTORRENT_TIMEOUT", "30"))

    # Image host uploads
    IMAGE_HOST_TIMEOUT = int(os.getenv("IMAGE_HOST_TIMEOUT", "60"))

    # =============================================================================
    # RETRY CONFIGURATION
    # =============================================================================
    # Maximum number of retries for idempotent network requests
    MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))

    # Exponential backoff base multiplier
    RETRY_EXPONENTIAL_BASE = float(os.getenv("RETRY_EXPONENTIAL_BASE", "2"))

    # =============================================================================
    # SYNC MODE
    # =============================================================================
    # Pause between torrents added during -sync
    SYNC_DELAY_SECONDS = float(os.getenv("SYNC_DELAY_SECONDS", "3"))

    @classmethod
    def validate(cls) -> bool:
        """
        Validate critical configuration values.

        Returns:
            True if configuration is valid, False otherwise
        """
        if not cls.DATABASE_URL or not cls.CONFIG_DIR:
            return False

        if cls.LOG_LEVEL not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            return False

        if min(cls.API_REQUEST_TIMEOUT, cls.TMDB_API_TIMEOUT, cls.QBITTORRENT_TIMEOUT) <= 0:
            return False

        return cls.MAX_RETRIES >= 0 and cls.SYNC_DELAY_SECONDS >= 0

    @classmethod
    def get_summary(cls) -> dict:
        """
        Get configuration summary for logging/debugging.

        Returns:
            Dictionary with non-sensitive configuration values
        """
        return {
            "app_version": cls.APP_VERSION,
            "config_dir": cls.CONFIG_DIR,
            "log_level": cls.LOG_LEVEL,
            "log_file": cls.LOG_FILE,
            "database_url": cls.DATABASE_URL.split("@")[-1] if "@" in cls.DATABASE_URL else "sqlite",
            "api_timeout": cls.API_REQUEST_TIMEOUT,
            "tmdb_timeout": cls.TMDB_API_TIMEOUT,
            "client_timeout": cls.QBITTORRENT_TIMEOUT,
            "max_retries": cls.MAX_RETRIES,
            "sync_delay": cls.SYNC_DELAY_SECONDS,
        }


# Singleton instance
config = Config()
