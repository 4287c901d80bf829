"""Workflow Engine: loads a workflow, checks its conditions and runs its actions in order."""

import threading
import time
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from ..models.core import (
    ActionDefinition,
    ActionResult,
    EventType,
    ExecutionResult,
    Workflow,
    WorkflowCreate,
    WorkflowUpdate,
)
from .action_registry import ActionDispatcher
from .conditions import evaluate_conditions
from .event_logger import ExecutionLogger
from .exceptions import (
    ExecutionCancelled,
    WorkflowEngineError,
    WorkflowUnavailable,
    WorkflowValidationError,
)
from .logging import get_logger, set_logging_context, clear_logging_context
from .workflow_store import WorkflowStore

logger = get_logger(__name__)

# Reserved context keys visible to actions only.
PREVIOUS_RESULT_KEY = "previous"
STEPS_KEY = "steps"

CONDITIONS_NOT_MET = "Conditions not met"


def build_action_context(context: Mapping[str, Any], results: List[ActionResult]) -> Dict[str, Any]:
    """
    Context handed to the next action.

    A shallow copy of the caller's context with ``previous`` set to the last
    action's result (or None for the first action) and ``steps`` holding
    every earlier result in order. The caller's mapping is never modified.
    """
    action_context = dict(context)
    dumped = [result.model_dump() for result in results]
    action_context[PREVIOUS_RESULT_KEY] = dumped[-1] if dumped else None
    action_context[STEPS_KEY] = dumped
    return action_context


class WorkflowEngine:
    """Orchestrates one workflow execution per call.

    The engine holds no per-execution state, so a single instance serves any
    number of concurrent invocations, including several of the same workflow.
    """

    def __init__(self, store: WorkflowStore, dispatcher: ActionDispatcher,
                 event_logger: ExecutionLogger):
        """Initialize the engine.

        Args:
            store: Persistence for workflow definitions and counters
            dispatcher: Runs individual actions
            event_logger: Append-only execution event store
        """
        self.store = store
        self.dispatcher = dispatcher
        self.event_logger = event_logger
        logger.info("WorkflowEngine initialized")

    # Definition management

    def validate_actions(self, actions: List[ActionDefinition]) -> List[str]:
        """Problems that would prevent the given actions from dispatching."""
        errors: List[str] = []
        for index, action in enumerate(actions):
            for problem in self.dispatcher.registry.validate(action):
                errors.append(f"actions[{index}]: {problem}")
        return errors

    def create_workflow(self, definition: WorkflowCreate) -> Workflow:
        """
        Validate and store a workflow, then log a ``workflow_created`` event.

        Raises:
            WorkflowValidationError: If an action kind is unknown or its parameters are invalid
            StorageError: If the workflow cannot be stored
        """
        errors = self.validate_actions(definition.actions)
        if errors:
            message = f"Workflow validation failed: {'; '.join(errors)}"
            logger.warning(message)
            raise WorkflowValidationError(message, validation_errors=errors, workflow_name=definition.name)

        workflow = self.store.create(definition)
        self.event_logger.append(EventType.WORKFLOW_CREATED, {
            "workflow_id": workflow.id,
            "workspace_id": workflow.workspace_id,
            "created_by": workflow.created_by,
        })
        logger.info(f"Created workflow '{workflow.name}' with ID: {workflow.id}")
        return workflow

    def update_workflow(self, workflow_id: int, changes: WorkflowUpdate) -> Optional[Workflow]:
        """Validate replacement actions (if any) and apply the update."""
        if changes.actions is not None:
            errors = self.validate_actions(changes.actions)
            if errors:
                message = f"Workflow validation failed: {'; '.join(errors)}"
                logger.warning(message)
                raise WorkflowValidationError(message, validation_errors=errors)
        return self.store.update(workflow_id, changes)

    def get_workflow(self, workflow_id: int) -> Optional[Workflow]:
        return self.store.load(workflow_id)

    def list_workflows(self, workspace_id: int) -> List[Workflow]:
        return self.store.list_by_workspace(workspace_id)

    def delete_workflow(self, workflow_id: int) -> bool:
        return self.store.delete(workflow_id)

    # Execution

    def execute(self, workflow_id: int, context: Optional[Mapping[str, Any]] = None,
                cancel_event: Optional[threading.Event] = None) -> ExecutionResult:
        """
        Execute a workflow against a context.

        Args:
            workflow_id: ID of the workflow to run
            context: Trigger-supplied data for conditions and templates
            cancel_event: Set it to stop the running action and skip the rest

        Returns:
            ``ExecutionResult`` with ordered action results, or a skip result
            (``success=False``) when the conditions are not met

        Raises:
            WorkflowUnavailable: If the workflow is missing or inactive
            UnknownActionType: If an action kind has no handler
            ActionExecutionError: If an action fails or times out
            ExecutionCancelled: If ``cancel_event`` was set
            StorageError: If loading or the counter update fails
        """
        context = dict(context or {})
        set_logging_context(workflow_id=workflow_id, operation="execute")
        try:
            workflow = self.store.load(workflow_id)
            if workflow is None:
                raise WorkflowUnavailable(workflow_id, reason="not found")
            if not workflow.is_active:
                raise WorkflowUnavailable(workflow_id, reason="is inactive")

            if not evaluate_conditions(workflow.conditions, context):
                logger.info(f"Conditions not met for workflow {workflow_id}; skipping")
                return ExecutionResult(success=False, message=CONDITIONS_NOT_MET)

            return self._run_actions(workflow, context, cancel_event)
        finally:
            clear_logging_context()

    def _run_actions(self, workflow: Workflow, context: Dict[str, Any],
                     cancel_event: Optional[threading.Event]) -> ExecutionResult:
        results: List[ActionResult] = []
        start_time = time.time()
        current_index: Optional[int] = None
        current_type: Optional[str] = None

        try:
            for index, action in enumerate(workflow.actions):
                current_index, current_type = index, action.type
                if cancel_event is not None and cancel_event.is_set():
                    raise ExecutionCancelled(workflow.id, action_type=action.type)

                result = self.dispatcher.run(
                    action,
                    build_action_context(context, results),
                    cancel_event=cancel_event,
                    action_index=index,
                )
                results.append(result)

            current_index, current_type = None, None
            self.store.increment_execution(workflow.id, executed_at=datetime.utcnow())

        except WorkflowEngineError as e:
            self._log_failure(workflow, context, e, current_index, current_type)
            raise
        except Exception as e:
            logger.exception(f"Unexpected error while executing workflow {workflow.id}")
            self._log_failure(workflow, context, e, current_index, current_type)
            raise

        self.event_logger.append(EventType.WORKFLOW_EXECUTED, {
            "workflow_id": workflow.id,
            "results": [result.model_dump() for result in results],
            "context": context,
        })
        logger.info(
            f"Workflow {workflow.id} executed {len(results)} action(s) in {time.time() - start_time:.3f}s"
        )
        return ExecutionResult(success=True, results=results)

    def _log_failure(self, workflow: Workflow, context: Dict[str, Any], error: Exception,
                     action_index: Optional[int], action_type: Optional[str]) -> None:
        if isinstance(error, ExecutionCancelled) and error.workflow_id is None:
            error.workflow_id = workflow.id
            error.add_context(workflow_id=workflow.id)
        message = getattr(error, "message", str(error))

        payload: Dict[str, Any] = {
            "workflow_id": workflow.id,
            "error": message,
            "error_type": getattr(error, "error_code", type(error).__name__),
            "action_type": action_type,
            "action_index": action_index,
            "context": context,
        }

        logger.error(
            f"Workflow {workflow.id} failed"
            + (f" at action {action_index} ({action_type})" if action_index is not None else "")
            + f": {message}"
        )
        self.event_logger.append(EventType.WORKFLOW_ERROR, payload)
