"""
SQLAlchemy Base Configuration for seed-tools

Declarative base shared by the upload history ledger models.
"""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
