"""
Pytest configuration for backend tests.

This file configures pytest for the backend test suite, including
fixtures and test discovery settings.
"""

import sys
from contextlib import contextmanager
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add backend directory to Python path for imports
backend_root = Path(__file__).parent.parent
sys.path.insert(0, str(backend_root))

from seedtools.models.base import Base  # noqa: E402
from seedtools.schemas.config import PathSettings, RunContext, TrackerSettings  # noqa: E402
from seedtools.services.structured_logging import clear_context  # noqa: E402


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "e2e: mark test as an end-to-end test"
    )


@pytest.fixture(autouse=True)
def _reset_logging_context():
    yield
    clear_context()


@pytest.fixture
def no_retry_sleep(monkeypatch):
    """Make retry backoff instantaneous."""
    sleeps = []
    monkeypatch.setattr("seedtools.services.exceptions.time.sleep", sleeps.append)
    return sleeps


@pytest.fixture
def ledger_engine():
    """In-memory SQLite ledger shared across sessions."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(ledger_engine):
    """Context-manager session factory with the same shape as database.get_session."""
    Session = sessionmaker(bind=ledger_engine, autocommit=False, autoflush=False)

    @contextmanager
    def factory():
        db = Session()
        try:
            yield db
        finally:
            db.close()

    return factory


@pytest.fixture
def seedpool_settings():
    return TrackerSettings(
        slug="seedpool",
        adapter="seedpool",
        api_key="sp-token",
        announce_url="https://tracker.seedpool.org/announce/abc",
        upload_url="https://seedpool.org/api/torrents/upload",
        search_url="https://seedpool.org/api/torrents/filter",
    )


@pytest.fixture
def torrentleech_settings():
    return TrackerSettings(
        slug="torrentleech",
        adapter="torrentleech",
        announce_key="tl-key",
        announce_url="https://tracker.torrentleech.org/a/tl-key/announce",
        upload_url="https://www.torrentleech.org/torrents/upload/apiupload",
    )


@pytest.fixture
def run_context(tmp_path, seedpool_settings, torrentleech_settings):
    """RunContext writing torrents and screenshots under tmp_path."""
    return RunContext(
        paths=PathSettings(
            torrent_dir=str(tmp_path / "torrents"),
            screenshots_dir=str(tmp_path / "screenshots"),
        ),
        trackers={
            "seedpool": seedpool_settings,
            "torrentleech": torrentleech_settings,
        },
    )
