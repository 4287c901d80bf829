"""Core automation engine components."""

from .exceptions import (
    WorkflowEngineError,
    WorkflowUnavailable,
    WorkflowValidationError,
    UnknownActionType,
    ActionExecutionError,
    ActionTimeoutError,
    ExecutionCancelled,
    ActionRegistryError,
    StorageError,
    ConfigurationError,
)
from .logging import setup_logging, get_logger
from .interpolation import interpolate, resolve_path
from .conditions import evaluate_conditions
from .action_registry import ActionRegistry, ActionDispatcher
from .event_logger import ExecutionLogger
from .workflow_store import WorkflowStore
from .workflow_engine import WorkflowEngine

__all__ = [
    "WorkflowEngineError",
    "WorkflowUnavailable",
    "WorkflowValidationError",
    "UnknownActionType",
    "ActionExecutionError",
    "ActionTimeoutError",
    "ExecutionCancelled",
    "ActionRegistryError",
    "StorageError",
    "ConfigurationError",
    "setup_logging",
    "get_logger",
    "interpolate",
    "resolve_path",
    "evaluate_conditions",
    "ActionRegistry",
    "ActionDispatcher",
    "ExecutionLogger",
    "WorkflowStore",
    "WorkflowEngine",
]
