"""
Database models for seed-tools
"""

from .base import Base
from .upload_record import UploadRecord, UploadStatus

__all__ = ['Base', 'UploadRecord', 'UploadStatus']
