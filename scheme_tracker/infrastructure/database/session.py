"""Database engine and session management"""

from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from scheme_tracker.config import settings
from scheme_tracker.infrastructure.database.models import Base


def build_engine(database_url: str) -> Engine:
    """
    Create an engine for `database_url`.

    SQLite (local runs and tests) shares one connection across threads;
    other backends get a pool of 10 (+10 overflow) recycled hourly.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_engine(
        database_url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=10,
        max_overflow=10,
        pool_recycle=3600,
    )


def init_db(bind: Engine) -> None:
    """Create missing tables"""
    Base.metadata.create_all(bind=bind)


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Iterator[Session]:
    """Dependency injection for database sessions"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
