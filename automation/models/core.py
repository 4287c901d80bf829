"""Core Pydantic models for the automation engine."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ConditionOperator(str, Enum):
    """Closed set of comparison operators a condition may use."""
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"


class EventType(str, Enum):
    """Enumeration of execution event types."""
    WORKFLOW_CREATED = "workflow_created"
    WORKFLOW_EXECUTED = "workflow_executed"
    WORKFLOW_ERROR = "workflow_error"


class Condition(BaseModel):
    """A predicate over the execution context.

    The operator is kept as a plain string so that records written by older
    versions still load; unknown operators are rejected by ``WorkflowCreate``
    and ``WorkflowUpdate`` and evaluate to false otherwise.
    """
    field: str = Field(..., description="Dotted path into the execution context")
    operator: str = Field(..., description="Comparison operator")
    value: Any = Field(None, description="Expected value")

    @field_validator('field')
    @classmethod
    def validate_field(cls, field):
        if not field or not field.strip():
            raise ValueError("Condition field cannot be empty")
        return field.strip()


class ActionDefinition(BaseModel):
    """One unit of work: a kind tag plus kind-specific parameters.

    Parameters live flat on the action, e.g.
    ``{"type": "webhook", "url": "https://...", "payload": {...}}``.
    """
    model_config = ConfigDict(extra="allow")

    type: str = Field(..., description="Action kind used to look up the handler")

    @field_validator('type')
    @classmethod
    def validate_type(cls, action_type):
        if not action_type or not action_type.strip():
            raise ValueError("Action type cannot be empty")
        return action_type.strip()

    @property
    def parameters(self) -> Dict[str, Any]:
        """Kind-specific parameters (everything except ``type``)."""
        return dict(self.model_extra or {})


def _check_operators(conditions: List[Condition]) -> List[Condition]:
    allowed = {op.value for op in ConditionOperator}
    for condition in conditions:
        if condition.operator not in allowed:
            raise ValueError(
                f"Unsupported condition operator '{condition.operator}' "
                f"(allowed: {', '.join(sorted(allowed))})"
            )
    return conditions


class WorkflowCreate(BaseModel):
    """Definition submitted when creating a workflow."""
    name: str = Field(..., description="Workflow name")
    description: Optional[str] = Field(None, description="Optional description")
    triggers: List[Dict[str, Any]] = Field(default_factory=list, description="Opaque trigger descriptors")
    conditions: List[Condition] = Field(default_factory=list, description="Conditions, all of which must hold")
    actions: List[ActionDefinition] = Field(default_factory=list, description="Actions executed in order")
    workspace_id: int = Field(..., description="Owning workspace")
    created_by: str = Field(..., description="Creator id")
    is_active: bool = Field(True, description="Whether the workflow may execute")

    @field_validator('name')
    @classmethod
    def validate_name_not_empty(cls, name):
        if not name or not name.strip():
            raise ValueError("Workflow name cannot be empty")
        return name.strip()

    @field_validator('conditions')
    @classmethod
    def validate_operators(cls, conditions):
        return _check_operators(conditions)


class WorkflowUpdate(BaseModel):
    """Fields replaced wholesale on update; omitted fields are left as they are."""
    name: Optional[str] = None
    description: Optional[str] = None
    triggers: Optional[List[Dict[str, Any]]] = None
    conditions: Optional[List[Condition]] = None
    actions: Optional[List[ActionDefinition]] = None
    is_active: Optional[bool] = None

    @field_validator('name')
    @classmethod
    def validate_name_not_empty(cls, name):
        if name is not None and not name.strip():
            raise ValueError("Workflow name cannot be empty")
        return name.strip() if name else name

    @field_validator('conditions')
    @classmethod
    def validate_operators(cls, conditions):
        if conditions is None:
            return conditions
        return _check_operators(conditions)


class Workflow(BaseModel):
    """A stored workflow as loaded from the store."""
    id: int
    name: str
    description: Optional[str] = None
    triggers: List[Dict[str, Any]] = Field(default_factory=list)
    conditions: List[Condition] = Field(default_factory=list)
    actions: List[ActionDefinition] = Field(default_factory=list)
    workspace_id: int
    created_by: str
    is_active: bool = True
    execution_count: int = Field(0, ge=0)
    last_executed: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ActionResult(BaseModel):
    """Uniform wrapper around a handler's returned payload."""
    type: str = Field(..., description="Kind of the action that produced the result")
    result: Any = Field(None, description="Handler payload")


class ExecutionResult(BaseModel):
    """Outcome of one engine invocation."""
    success: bool
    results: List[ActionResult] = Field(default_factory=list)
    message: Optional[str] = None


class ExecutionEvent(BaseModel):
    """Append-only record of a workflow's creation, successful run or failed run."""
    id: int
    event_type: EventType
    workflow_id: Optional[int] = None
    event_data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime


class ActionInfo(BaseModel):
    """Registered action kind as exposed by the API."""
    type: str
    description: str = ""
    has_schema: bool = False


class WorkflowTemplate(BaseModel):
    """Ready-made workflow shape offered to users."""
    id: str
    name: str
    description: str
    template: Dict[str, Any]
