"""
Database Session Management
===========================

Engine and session factory owned by an explicitly constructed Database
object (created once at startup, injected into the CaseStore).
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool

from .models import Base


def _create_engine_for_url(database_url: str, echo: bool = False):
    # SQLite for development/testing
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            echo=echo,
        )

    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        echo=echo,
    )


class Database:
    """
    Owner of the SQLAlchemy engine and session factory.

    Usage:
        db = Database("sqlite:///./adjudicator.db")
        db.init()
        with db.session() as session:
            session.query(CaseRecord).all()
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self.engine = _create_engine_for_url(database_url, echo=echo)
        self._session_factory = sessionmaker(
            bind=self.engine, autocommit=False, autoflush=False, expire_on_commit=False
        )

    def init(self):
        """Create tables"""
        Base.metadata.create_all(bind=self.engine)

    def dispose(self):
        self.engine.dispose()

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Transactional session: commits on success, rolls back on error.
        """
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
