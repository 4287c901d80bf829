"""Data models for the automation engine."""

from .core import (
    ConditionOperator,
    EventType,
    Condition,
    ActionDefinition,
    WorkflowCreate,
    WorkflowUpdate,
    Workflow,
    ActionResult,
    ExecutionResult,
    ExecutionEvent,
    ActionInfo,
    WorkflowTemplate,
)

__all__ = [
    "ConditionOperator",
    "EventType",
    "Condition",
    "ActionDefinition",
    "WorkflowCreate",
    "WorkflowUpdate",
    "Workflow",
    "ActionResult",
    "ExecutionResult",
    "ExecutionEvent",
    "ActionInfo",
    "WorkflowTemplate",
]
