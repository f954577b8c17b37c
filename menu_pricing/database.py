"""Database connection and session management."""
import os
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from menu_pricing.config import get_settings


def get_database_url() -> str:
    """Build database URL from environment variables.

    An explicit DATABASE_URL wins; otherwise a PostgreSQL TCP URL is
    assembled from the DB_* settings.
    """
    if url := os.getenv("DATABASE_URL"):
        return url

    settings = get_settings()
    return (
        f"postgresql://{settings.DB_USER}:{settings.DB_PASSWORD}"
        f"@{settings.DB_HOST}:{settings.DB_PORT}/{settings.DB_NAME}"
    )


@lru_cache
def get_engine():
    """Create SQLAlchemy engine (cached)."""
    return create_engine(
        get_database_url(),
        pool_pre_ping=True,
    )


def get_session() -> Session:
    """Create a new database session."""
    SessionLocal = sessionmaker(bind=get_engine())
    return SessionLocal()


def get_db():
    """Dependency for FastAPI routes that need a database session."""
    db = get_session()
    try:
        yield db
    finally:
        db.close()
