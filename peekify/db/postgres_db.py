from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, Row
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker


def get_database_url() -> str:
    """
    Get database connection URL from environment.

    Determines environment from ENVIRONMENT variable:
    - 'production' or 'prod' -> DATABASE_URL_PROD
    - 'staging' or 'stage' -> DATABASE_URL_STAGING

    Falls back to DATABASE_URL if specific env vars not set.
    """
    env = os.getenv("ENVIRONMENT", "").lower()

    if env in ("production", "prod"):
        url = os.getenv("DATABASE_URL_PROD")
        if url:
            return url

    if env in ("staging", "stage"):
        url = os.getenv("DATABASE_URL_STAGING")
        if url:
            return url

    url = os.getenv("DATABASE_URL")
    if url:
        return url

    raise ValueError(
        "No database URL found. Set DATABASE_URL_PROD, DATABASE_URL_STAGING, or DATABASE_URL"
    )


# Global engine and session factory (lazy initialization)
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine() -> Engine:
    """Get or create SQLAlchemy engine with connection pooling."""
    global _engine
    if _engine is None:
        database_url = get_database_url()
        if database_url.startswith("sqlite"):
            # Local development and tests
            _engine = create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                echo=False,
            )
            event.listen(_engine, "connect", _enable_sqlite_foreign_keys)
        else:
            _engine = create_engine(
                database_url,
                pool_size=10,
                max_overflow=20,
                pool_pre_ping=True,  # Verify connections before using
                pool_recycle=3600,  # Recycle connections after 1 hour
                echo=False,  # Set to True for SQL debugging
            )
    return _engine


def get_session_factory() -> sessionmaker:
    """Get or create session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            bind=get_engine(),
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )
    return _SessionLocal


def reset_engine() -> None:
    """Dispose the engine so the next call picks up a new DATABASE_URL."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


@contextmanager
def get_db_session() -> Iterator[Session]:
    """
    Context manager for database sessions.

    Every statement inside the block runs in one transaction:
    commits on success, rolls back on exception.
    """
    SessionLocal = get_session_factory()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def row_to_dict(row: Optional[Row]) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    return dict(row._mapping)


def is_unique_violation(exc: IntegrityError) -> bool:
    """True if the IntegrityError came from a UNIQUE/PK constraint (PostgreSQL 23505 or SQLite)."""
    orig = getattr(exc, "orig", None)
    if getattr(orig, "sqlstate", None) == "23505" or getattr(orig, "pgcode", None) == "23505":
        return True
    return "UNIQUE constraint failed" in str(orig)
