from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from fastapi import HTTPException
from loguru import logger
from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, sessionmaker

from app.config.settings import settings
from app.core.errors import AppError

# Lazy initialization to avoid import-time database connections
_engine = None
_SessionLocal = None


def _is_postgresql(url: str) -> bool:
    lowered = url.lower()
    return lowered.startswith(("postgresql", "postgres"))


def _get_engine():
    """Get or create the database engine (lazy initialization)."""
    global _engine
    if _engine is None:
        logger.info("Initializing database engine")

        connect_args = {}
        if "sqlite" in settings.database_url.lower():
            connect_args = {"check_same_thread": False}
            logger.warning("Using SQLite database (local development only)")
        elif _is_postgresql(settings.database_url):
            connect_args = {
                "connect_timeout": 10,
                "application_name": "activity-insights",
            }
            logger.info("Using PostgreSQL database")

        _engine = create_engine(
            settings.database_url,
            connect_args=connect_args,
            echo=False,
            pool_pre_ping=True,  # Verify connections before using (important for cloud DBs)
            pool_recycle=3600,
        )
        logger.info("Database engine initialized")
    return _engine


def _get_session_local():
    """Get or create the session factory (lazy initialization)."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_get_engine())
        logger.info("Database session factory initialized")
    return _SessionLocal


def init_db() -> None:
    """Create all tables that do not exist yet."""
    from app.db.models import Base

    Base.metadata.create_all(bind=_get_engine())
    logger.info("Database tables verified")


def check_database() -> bool:
    """Return True when the database answers a trivial query."""
    try:
        with _get_session_local()() as session:
            session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {type(e).__name__}: {e}")
        return False
    return True


def get_db() -> Generator[Session, None, None]:
    """Get database session for FastAPI dependencies.

    For non-FastAPI code that needs a context manager, use get_session() instead.
    """
    session = _get_session_local()()
    try:
        yield session
    finally:
        session.close()


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Get database session context manager.

    Commits when the block exits cleanly. HTTPException and AppError are
    re-raised after a rollback without error logging (expected API responses
    and business errors); anything else is logged as a database error,
    rolled back and re-raised.
    """
    session = _get_session_local()()
    try:
        yield session
        session.commit()
    except (HTTPException, AppError) as e:
        logger.debug(f"{type(e).__name__} in session, rolling back")
        session.rollback()
        raise
    except Exception as e:
        logger.error(f"Database session error, rolling back: {type(e).__name__}: {e}")
        session.rollback()
        raise
    finally:
        session.close()
