"""SQLAlchemy database models for the automation engine."""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text, JSON, Integer, Boolean
from .database import Base


class WorkflowModel(Base):
    """Database model for workflow definitions."""
    __tablename__ = "workflows"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    description = Column(Text)
    triggers = Column(JSON, nullable=False, default=list)
    conditions = Column(JSON, nullable=False, default=list)
    actions = Column(JSON, nullable=False, default=list)
    workspace_id = Column(Integer, nullable=False, index=True)
    created_by = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    execution_count = Column(Integer, nullable=False, default=0)
    last_executed = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)


class ExecutionEventModel(Base):
    """Database model for append-only execution events.

    No foreign key to ``workflows``: deleting a workflow keeps its history.
    """
    __tablename__ = "execution_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_type = Column(String, nullable=False)  # workflow_created, workflow_executed, workflow_error
    workflow_id = Column(Integer)
    event_data = Column(JSON)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)
