"""Database connection and session management."""

import os
from typing import Optional
from sqlalchemy import create_engine, Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

DEFAULT_DATABASE_URL = "sqlite:///./automation_engine.db"

# Global engine instance
_engine: Optional[Engine] = None

# Base class for all database models
Base = declarative_base()


def _is_memory_sqlite(database_url: str) -> bool:
    return database_url.startswith("sqlite") and (
        ":memory:" in database_url or database_url.rstrip("/") == "sqlite:"
    )


def build_engine(database_url: str, echo: bool = False,
                 connect_args: Optional[dict] = None) -> Engine:
    """Create a new engine for the given URL.

    In-memory SQLite shares a single connection (StaticPool) so every session
    sees the same database; file-backed SQLite uses a regular pool so
    concurrent sessions get their own connections.
    """
    if connect_args is None:
        if database_url.startswith("sqlite"):
            connect_args = {"check_same_thread": False, "timeout": 30}
        else:
            connect_args = {}

    if _is_memory_sqlite(database_url):
        return create_engine(
            database_url,
            connect_args=connect_args,
            poolclass=StaticPool,
            echo=echo
        )
    return create_engine(database_url, echo=echo, connect_args=connect_args)


def get_database_engine(database_url: Optional[str] = None,
                        echo: bool = False,
                        connect_args: Optional[dict] = None) -> Engine:
    """Get or create the process-wide database engine."""
    global _engine

    if _engine is None:
        if database_url is None:
            database_url = os.getenv("AUTOMATION_ENGINE_DATABASE_URL", DEFAULT_DATABASE_URL)
        _engine = build_engine(database_url, echo=echo, connect_args=connect_args)

    return _engine


def reset_database_engine():
    """Reset the global database engine (mainly for testing)."""
    global _engine
    if _engine:
        _engine.dispose()
    _engine = None


def create_session_factory(engine: Optional[Engine] = None) -> sessionmaker:
    """Create a session factory bound to the given (or global) engine."""
    bind = engine or get_database_engine()
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


def create_tables(engine: Optional[Engine] = None):
    """Create all database tables."""
    # Models must be imported so they register on Base.metadata.
    from . import models  # noqa: F401
    Base.metadata.create_all(bind=engine or get_database_engine())


def drop_tables(engine: Optional[Engine] = None):
    """Drop all database tables."""
    from . import models  # noqa: F401
    Base.metadata.drop_all(bind=engine or get_database_engine())
