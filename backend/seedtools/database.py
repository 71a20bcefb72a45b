"""
Database Configuration for seed-tools

Connection and session management for the upload history ledger.
"""

import os
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from seedtools.config import Config
from seedtools.models.base import Base

DATABASE_URL = Config.DATABASE_URL


def make_engine(database_url: str = DATABASE_URL) -> Engine:
    """Create an engine, creating the SQLite directory when needed."""
    if database_url.startswith('sqlite:///'):
        db_dir = os.path.dirname(database_url.replace('sqlite:///', ''))
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir, exist_ok=True)

    return create_engine(
        database_url,
        connect_args={"check_same_thread": False} if database_url.startswith('sqlite') else {}
    )


engine: Optional[Engine] = None
SessionLocal = sessionmaker(autocommit=False, autoflush=False)


def init_db(database_url: str = DATABASE_URL) -> Engine:
    """Bind the session factory and create missing tables."""
    global engine
    engine = make_engine(database_url)
    SessionLocal.configure(bind=engine)
    Base.metadata.create_all(bind=engine)
    return engine


@contextmanager
def get_session() -> Iterator[Session]:
    """
    Yield a session bound to the ledger, initializing it on first use.

    Yields:
        SQLAlchemy session
    """
    if engine is None:
        init_db()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
