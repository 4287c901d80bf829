"""Custom exceptions for the automation engine with detailed error information."""

from datetime import datetime
from typing import Optional, Dict, Any, List
from enum import Enum


class ErrorSeverity(Enum):
    """Error severity levels for categorizing exceptions."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Categories of errors for better classification."""
    VALIDATION = "validation"
    EXECUTION = "execution"
    STORAGE = "storage"
    NETWORK = "network"
    CONFIGURATION = "configuration"
    BUSINESS_LOGIC = "business_logic"


class WorkflowEngineError(Exception):
    """Base exception for all automation engine errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.EXECUTION,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.severity = severity
        self.category = category
        self.details = details or {}
        self.recoverable = recoverable
        self.context = context or {}
        self.timestamp = datetime.utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging and API responses."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "severity": self.severity.value,
            "category": self.category.value,
            "details": self.details,
            "recoverable": self.recoverable,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "exception_type": self.__class__.__name__
        }

    def add_context(self, **kwargs):
        """Add additional context to the exception."""
        self.context.update(kwargs)
        return self

    def add_details(self, **kwargs):
        """Add additional details to the exception."""
        self.details.update(kwargs)
        return self


class WorkflowUnavailable(WorkflowEngineError):
    """Raised when a workflow is missing or inactive and cannot be executed."""

    def __init__(self, workflow_id: Any, reason: str = "not found or inactive", **kwargs):
        super().__init__(
            f"Workflow {workflow_id} {reason}",
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.BUSINESS_LOGIC,
            **kwargs
        )
        self.workflow_id = workflow_id
        self.add_context(workflow_id=workflow_id)


class WorkflowValidationError(WorkflowEngineError):
    """Raised when a workflow definition is rejected at creation or update."""

    def __init__(
        self,
        message: str,
        validation_errors: Optional[List[str]] = None,
        workflow_name: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.VALIDATION,
            **kwargs
        )
        self.validation_errors = validation_errors or []
        if workflow_name:
            self.add_context(workflow_name=workflow_name)
        if validation_errors:
            self.add_details(validation_errors=validation_errors)


class UnknownActionType(WorkflowEngineError):
    """Raised when no handler is registered for an action kind."""

    def __init__(self, action_type: Any, **kwargs):
        super().__init__(
            f"Unknown action type: {action_type}",
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.CONFIGURATION,
            **kwargs
        )
        self.action_type = action_type
        self.add_context(action_type=action_type)


class ActionExecutionError(WorkflowEngineError):
    """Raised when an action handler fails."""

    def __init__(
        self,
        message: str,
        action_type: Optional[str] = None,
        action_index: Optional[int] = None,
        execution_time: Optional[float] = None,
        recoverable: bool = True,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.EXECUTION,
            recoverable=recoverable,
            **kwargs
        )
        self.action_type = action_type
        self.action_index = action_index
        if action_type:
            self.add_context(action_type=action_type)
        if action_index is not None:
            self.add_context(action_index=action_index)
        if execution_time:
            self.add_details(execution_time=execution_time)


class ActionTimeoutError(ActionExecutionError):
    """Raised when an action handler exceeds its time budget."""

    def __init__(self, action_type: str, timeout: float, **kwargs):
        super().__init__(
            f"Action '{action_type}' timed out after {timeout} seconds",
            action_type=action_type,
            recoverable=False,
            **kwargs
        )
        self.timeout = timeout
        self.add_details(timeout=timeout)


class ExecutionCancelled(WorkflowEngineError):
    """Raised when a running execution is cancelled by its caller."""

    def __init__(self, workflow_id: Any = None, action_type: Optional[str] = None, **kwargs):
        target = f"workflow {workflow_id}" if workflow_id is not None else "workflow"
        super().__init__(
            f"Execution of {target} was cancelled",
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.EXECUTION,
            **kwargs
        )
        self.workflow_id = workflow_id
        self.action_type = action_type
        if workflow_id is not None:
            self.add_context(workflow_id=workflow_id)
        if action_type:
            self.add_context(action_type=action_type)


class ActionRegistryError(WorkflowEngineError):
    """Raised when action registry operations fail."""

    def __init__(
        self,
        message: str,
        action_type: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.CONFIGURATION,
            **kwargs
        )
        if action_type:
            self.add_context(action_type=action_type)
        if operation:
            self.add_context(operation=operation)


class StorageError(WorkflowEngineError):
    """Raised when storage operations fail."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.STORAGE,
            recoverable=True,
            **kwargs
        )
        if operation:
            self.add_context(operation=operation)
        if table:
            self.add_context(table=table)


class ConfigurationError(WorkflowEngineError):
    """Raised when configuration is invalid or missing."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.CONFIGURATION,
            **kwargs
        )
        if config_key:
            self.add_context(config_key=config_key)


def create_error_response(error: WorkflowEngineError) -> Dict[str, Any]:
    """Create a standardized error response from a WorkflowEngineError."""
    return {
        "error": error.error_code,
        "message": error.message,
        "details": {
            **error.details,
            "severity": error.severity.value,
            "category": error.category.value,
            "recoverable": error.recoverable,
            "timestamp": error.timestamp.isoformat()
        },
        "context": error.context
    }
