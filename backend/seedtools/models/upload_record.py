"""
Upload History Ledger for seed-tools

One row per (input path, tracker) pipeline outcome. Before asking a tracker whether
a release exists, the pipeline checks this ledger: an earlier accepted upload whose
torrent file is still on disk is re-seeded directly, so a second run over the same
input can never submit it again.
"""

import enum
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import Column, DateTime, Enum, Index, Integer, String, Text
from sqlalchemy.orm import Session

from .base import Base


class UploadStatus(str, enum.Enum):
    """Outcome of one tracker run."""
    UPLOADED = "uploaded"
    DUPLICATE = "duplicate"
    FAILED = "failed"


class UploadRecord(Base):
    """
    Database model for one tracker outcome.

    Table Structure:
        - input_path: Absolute path of the release on disk
        - tracker: Tracker slug (e.g., "seedpool")
        - release_name: Normalized release name submitted
        - torrent_path: .torrent written or downloaded for seeding
        - status: uploaded | duplicate | failed
        - message: Error text or tracker response summary
    """

    __tablename__ = 'upload_records'

    id = Column(Integer, primary_key=True, autoincrement=True)
    input_path = Column(String(1024), nullable=False, index=True)
    tracker = Column(String(50), nullable=False, index=True)
    release_name = Column(String(500), nullable=False)
    torrent_path = Column(String(1024), nullable=True)
    status = Column(Enum(UploadStatus), nullable=False)
    message = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index('ix_upload_records_input_tracker', 'input_path', 'tracker'),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert record to dictionary."""
        return {
            'id': self.id,
            'input_path': self.input_path,
            'tracker': self.tracker,
            'release_name': self.release_name,
            'torrent_path': self.torrent_path,
            'status': self.status.value if self.status else None,
            'message': self.message,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def record(
        cls,
        db: Session,
        input_path: str,
        tracker: str,
        release_name: str,
        status: UploadStatus,
        torrent_path: Optional[str] = None,
        message: Optional[str] = None,
    ) -> 'UploadRecord':
        """Insert and commit one outcome."""
        entry = cls(
            input_path=input_path,
            tracker=tracker,
            release_name=release_name,
            torrent_path=torrent_path,
            status=status,
            message=message,
            created_at=datetime.utcnow(),
        )
        db.add(entry)
        db.commit()
        db.refresh(entry)
        return entry

    @classmethod
    def find_uploaded(cls, db: Session, input_path: str, tracker: str) -> Optional['UploadRecord']:
        """Most recent accepted upload for this input on this tracker."""
        return (
            db.query(cls)
            .filter(
                cls.input_path == input_path,
                cls.tracker == tracker,
                cls.status == UploadStatus.UPLOADED,
            )
            .order_by(cls.created_at.desc(), cls.id.desc())
            .first()
        )

    @classmethod
    def recent(cls, db: Session, limit: int = 20) -> List['UploadRecord']:
        """Latest outcomes, newest first."""
        return db.query(cls).order_by(cls.created_at.desc(), cls.id.desc()).limit(limit).all()

    def __repr__(self) -> str:
        return f"<UploadRecord(tracker='{self.tracker}', release='{self.release_name}', status={self.status})>"
