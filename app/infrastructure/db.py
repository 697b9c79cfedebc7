"""
Database connection and session management with centralized configuration.

This module provides database connectivity using the centralized configuration
system, with proper error handling and logging integration.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .config import DatabaseConfig, get_settings
from .exceptions import ConfigurationError
from .logging import get_logger
from .models import Base

logger = get_logger(__name__)

MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def _memory_options(options: dict[str, Any]) -> dict[str, Any]:
    # One shared connection so every thread sees the same in-memory database
    options = {k: v for k, v in options.items() if k not in ("pool_recycle", "pool_pre_ping")}
    options["poolclass"] = StaticPool
    options["connect_args"] = {"check_same_thread": False}
    return options


def _enable_sqlite_pragmas(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _set_pragmas(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()


def create_database_engine(config: DatabaseConfig | None = None) -> Engine:
    """
    Create SQLAlchemy engine with proper configuration.

    Args:
        config: Database configuration (uses default if None)

    Returns:
        Configured SQLAlchemy engine

    Example:
        >>> engine = create_database_engine()
        >>> # Uses configuration from environment/settings
    """
    if config is None:
        config = get_settings().database

    connection_url = config.get_connection_url()
    engine_options = config.get_engine_options()
    if config.is_memory:
        engine_options = _memory_options(engine_options)

    logger.info(f"Creating database engine for {config.backend} backend")
    logger.debug(f"Connection URL: {connection_url.split('@')[0]}@***")  # Hide credentials in logs

    try:
        engine = create_engine(connection_url, **engine_options)
    except Exception as e:
        logger.error(f"Failed to create database engine: {str(e)}")
        raise ConfigurationError(f"Cannot create engine: {e}", config_key="DB_BACKEND") from e

    if config.backend == "sqlite" and not config.is_memory:
        _enable_sqlite_pragmas(engine)
    logger.info("Database engine created successfully")
    return engine


def create_session_factory(engine: Engine | None = None) -> sessionmaker:
    """
    Create SQLAlchemy session factory.

    Example:
        >>> SessionLocal = create_session_factory()
        >>> with SessionLocal() as session:
        ...     pass
    """
    if engine is None:
        engine = create_database_engine()

    return sessionmaker(
        bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True
    )


def make_engine_and_session(connection_url: str | None = None) -> tuple[Engine, sessionmaker]:
    """
    Create engine and session factory, either from an explicit URL or from settings.

    In-memory SQLite URLs share a single connection across threads.

    Example:
        >>> engine, SessionLocal = make_engine_and_session("sqlite://")
        >>> with SessionLocal() as session:
        ...     pass
    """
    if connection_url:
        options: dict[str, Any] = {"echo": False, "future": True, "pool_pre_ping": True}
        if connection_url in MEMORY_URLS:
            options = _memory_options(options)
        elif connection_url.startswith("sqlite"):
            options["connect_args"] = {"check_same_thread": False}
        engine = create_engine(connection_url, **options)
        SessionLocal = create_session_factory(engine)
    else:
        engine = create_database_engine()
        SessionLocal = create_session_factory(engine)

    return engine, SessionLocal


def init_schema(engine: Engine) -> None:
    """Create the ratings table if it is missing. Alembic owns real migrations."""
    Base.metadata.create_all(engine)
    logger.info("Database schema ensured")


def is_database_configured() -> bool:
    """
    Check if database is properly configured.

    Example:
        >>> if is_database_configured():
        ...     engine = create_database_engine()
    """
    try:
        config = get_settings().database
        config.get_connection_url()
        return True
    except Exception as e:
        logger.warning(f"Database configuration invalid: {str(e)}")
        return False
