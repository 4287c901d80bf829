"""Database models and storage layer."""

from .database import (
    Base,
    build_engine,
    get_database_engine,
    reset_database_engine,
    create_session_factory,
    create_tables,
    drop_tables,
)
from .models import WorkflowModel, ExecutionEventModel

__all__ = [
    "Base",
    "build_engine",
    "get_database_engine",
    "reset_database_engine",
    "create_session_factory",
    "create_tables",
    "drop_tables",
    "WorkflowModel",
    "ExecutionEventModel",
]
