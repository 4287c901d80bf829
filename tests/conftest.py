"""Pytest configuration and fixtures."""

import os
import tempfile
import threading
from typing import Any, Dict, List

import pytest

from automation.core.action_registry import ActionDispatcher, ActionRegistry
from automation.core.event_logger import ExecutionLogger
from automation.core.workflow_engine import WorkflowEngine
from automation.core.workflow_store import WorkflowStore
from automation.models.core import WorkflowCreate
from automation.storage.database import build_engine, create_session_factory, create_tables


class RecordingHandler:
    """Action handler that records the parameters it was called with."""

    def __init__(self, result: Any = "ok"):
        self.result = result
        self.calls: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def __call__(self, params: Dict[str, Any]) -> Any:
        with self._lock:
            self.calls.append(params)
        if callable(self.result):
            return self.result(params)
        return self.result


class FailingHandler:
    """Action handler that always raises."""

    def __init__(self, message: str = "boom"):
        self.message = message
        self.calls = 0

    def __call__(self, params: Dict[str, Any]) -> Any:
        self.calls += 1
        raise RuntimeError(self.message)


@pytest.fixture
def db_engine():
    """Create a temporary file-backed database."""
    db_fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(db_fd)

    engine = build_engine(f"sqlite:///{db_path}")
    create_tables(engine)

    yield engine

    engine.dispose()
    try:
        os.unlink(db_path)
    except OSError:
        pass


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def store(session_factory):
    return WorkflowStore(session_factory)


@pytest.fixture
def event_logger(session_factory):
    return ExecutionLogger(session_factory)


@pytest.fixture
def recorder():
    return RecordingHandler(result={"echo": True})


@pytest.fixture
def registry(recorder):
    registry = ActionRegistry()
    registry.register("record", recorder, "Records its parameters")
    return registry


@pytest.fixture
def dispatcher(registry):
    dispatcher = ActionDispatcher(registry, timeout=5.0, max_workers=8)
    yield dispatcher
    dispatcher.shutdown()


@pytest.fixture
def engine(store, dispatcher, event_logger):
    return WorkflowEngine(store=store, dispatcher=dispatcher, event_logger=event_logger)


@pytest.fixture
def make_definition():
    """Factory for workflow definitions with sensible defaults."""
    def _make(**overrides) -> WorkflowCreate:
        data = {
            "name": "Test Workflow",
            "description": "Workflow used in tests",
            "triggers": [{"type": "manual"}],
            "conditions": [],
            "actions": [{"type": "record", "message": "hello {{user.name}}"}],
            "workspace_id": 1,
            "created_by": "tester",
        }
        data.update(overrides)
        return WorkflowCreate.model_validate(data)
    return _make
