"""Database connection and session management."""

import os
from typing import Optional
from sqlalchemy import create_engine, Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# Global engine instance
_engine: Optional[Engine] = None

# Session factory bound to the global engine
SessionLocal = sessionmaker(autocommit=False, autoflush=False)

# Base class for all database models
Base = declarative_base()


def get_database_engine(database_url: Optional[str] = None,
                       echo: bool = False,
                       connect_args: Optional[dict] = None) -> Engine:
    """Get or create database engine with configuration."""
    global _engine

    if _engine is None:
        # Use provided URL or fall back to environment variable
        if database_url is None:
            database_url = os.getenv("NODEFLOW_DATABASE_URL", "sqlite:///./nodeflow.db")
        _engine = _create_engine(database_url, echo, connect_args)
        SessionLocal.configure(bind=_engine)

    return _engine


def _create_engine(database_url: str, echo: bool, connect_args: Optional[dict]) -> Engine:
    # Run threads share SQLite connections
    if connect_args is None:
        connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}

    # An in-memory database only exists on a single connection
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        return create_engine(database_url, connect_args=connect_args, poolclass=StaticPool, echo=echo)

    return create_engine(database_url, echo=echo, connect_args=connect_args)


def init_database(database_url: str, echo: bool = False) -> Engine:
    """
    Replace the global engine with one for the given URL.

    Args:
        database_url: SQLAlchemy database URL
        echo: Log every SQL statement

    Returns:
        The new engine
    """
    reset_database_engine()
    return get_database_engine(database_url, echo=echo)


def reset_database_engine():
    """Reset the global database engine (mainly for testing)."""
    global _engine
    if _engine:
        _engine.dispose()
    _engine = None


def get_db():
    """Dependency to get database session."""
    get_database_engine()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables():
    """Create all database tables."""
    from . import models  # noqa: F401  registers the mapped classes
    Base.metadata.create_all(bind=get_database_engine())


def drop_tables():
    """Drop all database tables."""
    from . import models  # noqa: F401
    Base.metadata.drop_all(bind=get_database_engine())
