"""
SQLAlchemy Models for Database
==============================

One row per case. Scalar columns hold what search and sorting need;
sides, verdict and arguments are stored as JSON documents, so each case
behaves like a document with field-level updates.

Supports both PostgreSQL and SQLite via SQLAlchemy.
"""

from datetime import datetime
from sqlalchemy import Column, String, Text, Integer, DateTime, Index, JSON
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow():
    return datetime.utcnow()


class CaseRecord(Base):
    """Case document"""
    __tablename__ = "cases"

    id = Column(Integer, primary_key=True, autoincrement=True)
    case_id = Column(String(64), nullable=False, unique=True, index=True)

    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=False)
    country = Column(String(120), nullable=False)
    case_type = Column(String(50), nullable=False, default="civil")

    # Mirror of derive_status(), rewritten in every write transaction
    status = Column(String(50), nullable=False, default="created")

    side_a = Column(JSON, nullable=False, default=dict)
    side_b = Column(JSON, nullable=False, default=dict)
    verdict = Column(JSON(none_as_null=True), nullable=True)
    arguments = Column(JSON, nullable=False, default=list)
    counters = Column(JSON, nullable=False, default=dict)  # 'metadata' is reserved by SQLAlchemy

    last_activity = Column(DateTime, default=utcnow, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_cases_status", "status"),
        Index("ix_cases_country", "country"),
        Index("ix_cases_case_type", "case_type"),
        Index("ix_cases_last_activity", "last_activity"),
    )
