"""
Database Package - SQLAlchemy
=============================

Case documents stored in a single table, SQLite or PostgreSQL.
"""

from .models import Base, CaseRecord
from .session import Database

__all__ = [
    "Base",
    "CaseRecord",
    "Database",
]
