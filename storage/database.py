"""
Storage - Database.

============================================================
RESPONSIBILITY
============================================================
Manages database engines and sessions.

- Resolves the database URL from the environment
- Creates pooled engines (StaticPool for in-memory SQLite)
- Provides the session factory used by the PersistenceSink
- Creates the schema on demand

============================================================
DEGRADED MODE
============================================================
DATABASE_URL is optional. Without it get_session_factory()
returns None and the sink turns every write into a logged
no-op. require_session_factory() is for callers that cannot
run without storage.

============================================================
"""

import logging
import os
from typing import Dict, Optional

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from data_ingestion.exceptions import StorageUnavailableError, StorageWriteError


logger = logging.getLogger(__name__)

# Engines are cached per URL so repeated factory lookups share a pool
_engines: Dict[str, Engine] = {}


def get_database_url(database_url: Optional[str] = None) -> Optional[str]:
    """
    Resolve the database URL.

    Args:
        database_url: Explicit URL; falls back to DATABASE_URL

    Returns:
        A synchronous SQLAlchemy URL, or None when storage is not configured
    """
    if database_url is None:
        load_dotenv()
        database_url = os.getenv("DATABASE_URL")

    if not database_url:
        return None

    if database_url.startswith("postgresql+asyncpg"):
        # Convert async URL to sync
        database_url = database_url.replace("postgresql+asyncpg", "postgresql", 1)
    elif database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)

    return database_url


def _redact(url: str) -> str:
    return url.split("@")[-1]


def create_database_engine(
    database_url: str,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_recycle: int = 1800,
    echo: bool = False,
) -> Engine:
    """
    Create (or reuse) an engine for a URL.

    Args:
        database_url: SQLAlchemy URL
        pool_size: Connections kept in the pool (server databases only)
        max_overflow: Connections beyond pool_size
        pool_recycle: Recycle connections after N seconds
        echo: Log SQL statements

    Returns:
        SQLAlchemy Engine
    """
    engine = _engines.get(database_url)
    if engine is not None:
        return engine

    logger.info(f"Creating database engine for: {_redact(database_url)}")

    if database_url.startswith("sqlite"):
        if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
            # One shared connection, otherwise every session sees an empty database
            engine = create_engine(
                database_url,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
                echo=echo,
            )
        else:
            engine = create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                echo=echo,
            )
    else:
        engine = create_engine(
            database_url,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_recycle=pool_recycle,
            pool_pre_ping=True,
            echo=echo,
        )

    _engines[database_url] = engine
    return engine


def get_session_factory(database_url: Optional[str] = None) -> Optional[sessionmaker]:
    """
    Session factory for the configured database.

    Returns:
        A sessionmaker, or None when no database is configured
    """
    url = get_database_url(database_url)
    if url is None:
        logger.warning("DATABASE_URL not set, storage runs in degraded (no-op) mode")
        return None

    return sessionmaker(
        bind=create_database_engine(url),
        class_=Session,
        autoflush=False,
        expire_on_commit=False,
    )


def require_session_factory(database_url: Optional[str] = None) -> sessionmaker:
    """
    Session factory, failing when storage is not configured.

    Raises:
        StorageUnavailableError: If no database URL is available
    """
    factory = get_session_factory(database_url)
    if factory is None:
        raise StorageUnavailableError("Durable store not configured (DATABASE_URL is unset)")
    return factory


def create_all_tables(engine: Engine) -> None:
    """
    Create every table defined in storage.models.

    Raises:
        StorageWriteError: If table creation fails
    """
    from storage.models import Base

    try:
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        logger.error(f"Failed to create database tables: {e}")
        raise StorageWriteError(f"Table creation failed: {e}", original_error=e) from e


def dispose_engines() -> None:
    """Dispose every cached engine (shutdown and tests)."""
    for engine in _engines.values():
        engine.dispose()
    _engines.clear()
