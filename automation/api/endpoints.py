"""FastAPI REST endpoints for the automation engine.

Most endpoints are plain ``def`` functions that FastAPI runs in its threadpool.
Workflow execution is ``async`` so it can watch for client disconnects while
the engine works in a separate thread.
"""

import asyncio
import threading
from datetime import datetime
from typing import Dict, List, Any, NoReturn, Optional
from fastapi import APIRouter, HTTPException, Depends, Query, Request, Response, status
from pydantic import BaseModel, Field

from ..core.action_registry import ActionRegistry
from ..core.event_logger import ExecutionLogger
from ..core.exceptions import WorkflowEngineError, create_error_response
from ..core.middleware import status_code_for_error
from ..core.workflow_engine import WorkflowEngine
from ..models.core import (
    ActionInfo,
    EventType,
    ExecutionEvent,
    ExecutionResult,
    Workflow,
    WorkflowCreate,
    WorkflowTemplate,
    WorkflowUpdate,
)
from ..templates import get_workflow_templates
from ..core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["automation"])

DISCONNECT_POLL_INTERVAL = 0.1


def _component(request: Request, name: str):
    component = getattr(request.app.state, name, None)
    if component is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"{name.replace('_', ' ').capitalize()} not initialized"
        )
    return component


def get_workflow_engine(request: Request) -> WorkflowEngine:
    """Dependency to get the workflow engine."""
    return _component(request, "workflow_engine")


def get_action_registry(request: Request) -> ActionRegistry:
    """Dependency to get the action registry."""
    return _component(request, "action_registry")


def get_execution_logger(request: Request) -> ExecutionLogger:
    """Dependency to get the execution logger."""
    return _component(request, "execution_logger")


# Request/Response models
class ExecuteWorkflowRequest(BaseModel):
    """Request model for executing a workflow."""
    context: Dict[str, Any] = Field(default_factory=dict, description="Trigger data for conditions and templates")


class ErrorResponse(BaseModel):
    """Standard error response model."""
    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")


def _raise_for_engine_error(error: WorkflowEngineError, operation: str) -> NoReturn:
    status_code = status_code_for_error(error)
    if status_code >= 500:
        logger.error(f"Engine error during {operation}: {error.message}")
    else:
        logger.warning(f"Engine error during {operation}: {error.message}")
    raise HTTPException(status_code=status_code, detail=create_error_response(error))


def _raise_unexpected(error: Exception, operation: str) -> NoReturn:
    logger.error(f"Unexpected error during {operation}: {str(error)}", exc_info=True)
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "InternalError",
            "message": f"An unexpected error occurred during {operation}",
            "details": {"original_error": str(error)},
            "timestamp": datetime.utcnow().isoformat()
        }
    )


def _not_found(workflow_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={
            "error": "WorkflowNotFound",
            "message": f"Workflow {workflow_id} not found",
            "details": {"workflow_id": workflow_id}
        }
    )


# Endpoints

@router.post(
    "/workflows",
    response_model=Workflow,
    status_code=status.HTTP_201_CREATED,
    summary="Create a workflow",
    responses={400: {"model": ErrorResponse}}
)
def create_workflow(
    definition: WorkflowCreate,
    engine: WorkflowEngine = Depends(get_workflow_engine)
) -> Workflow:
    """
    Create a new workflow.

    Actions are checked against the registered kinds and their parameter
    schemas; a rejected definition returns 400 with the list of problems.
    """
    try:
        return engine.create_workflow(definition)
    except WorkflowEngineError as e:
        _raise_for_engine_error(e, "workflow creation")
    except Exception as e:
        _raise_unexpected(e, "workflow creation")


@router.get(
    "/workflows",
    response_model=List[Workflow],
    summary="List workflows of a workspace"
)
def list_workflows(
    workspace_id: int = Query(..., description="Owning workspace"),
    engine: WorkflowEngine = Depends(get_workflow_engine)
) -> List[Workflow]:
    try:
        return engine.list_workflows(workspace_id)
    except WorkflowEngineError as e:
        _raise_for_engine_error(e, "workflow listing")


@router.get(
    "/workflows/templates",
    response_model=List[WorkflowTemplate],
    summary="List built-in workflow templates"
)
def list_workflow_templates() -> List[WorkflowTemplate]:
    return get_workflow_templates()


@router.get(
    "/workflows/{workflow_id}",
    response_model=Workflow,
    summary="Get a workflow",
    responses={404: {"model": ErrorResponse}}
)
def get_workflow(
    workflow_id: int,
    engine: WorkflowEngine = Depends(get_workflow_engine)
) -> Workflow:
    try:
        workflow = engine.get_workflow(workflow_id)
    except WorkflowEngineError as e:
        _raise_for_engine_error(e, "workflow retrieval")
    if workflow is None:
        raise _not_found(workflow_id)
    return workflow


@router.put(
    "/workflows/{workflow_id}",
    response_model=Workflow,
    summary="Update a workflow",
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}
)
def update_workflow(
    workflow_id: int,
    changes: WorkflowUpdate,
    engine: WorkflowEngine = Depends(get_workflow_engine)
) -> Workflow:
    """Replace the provided fields; condition and action lists are replaced wholesale."""
    try:
        workflow = engine.update_workflow(workflow_id, changes)
    except WorkflowEngineError as e:
        _raise_for_engine_error(e, "workflow update")
    if workflow is None:
        raise _not_found(workflow_id)
    return workflow


@router.delete(
    "/workflows/{workflow_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a workflow",
    responses={404: {"model": ErrorResponse}}
)
def delete_workflow(
    workflow_id: int,
    engine: WorkflowEngine = Depends(get_workflow_engine)
) -> Response:
    try:
        deleted = engine.delete_workflow(workflow_id)
    except WorkflowEngineError as e:
        _raise_for_engine_error(e, "workflow deletion")
    if not deleted:
        raise _not_found(workflow_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


async def _watch_disconnect(request: Request, cancel_event: threading.Event,
                            poll_interval: float = DISCONNECT_POLL_INTERVAL) -> None:
    """Set ``cancel_event`` once the client has gone away."""
    while not cancel_event.is_set():
        if await request.is_disconnected():
            logger.info("Client disconnected; cancelling workflow execution")
            cancel_event.set()
            return
        await asyncio.sleep(poll_interval)


@router.post(
    "/workflows/{workflow_id}/execute",
    response_model=ExecutionResult,
    summary="Execute a workflow",
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    }
)
async def execute_workflow(
    workflow_id: int,
    request: Request,
    body: Optional[ExecuteWorkflowRequest] = None,
    engine: WorkflowEngine = Depends(get_workflow_engine)
) -> ExecutionResult:
    """
    Execute a workflow synchronously.

    Returns ``success: false`` with a message when the conditions do not
    hold. Failures map to 404 (missing or inactive workflow), 422 (unknown
    action kind), 502 (an action failed or timed out), 409 (the client
    disconnected mid-run) and 500 (storage).

    The engine runs in a worker thread. A disconnect stops the execution
    before its next action; a handler already running finishes in the
    background.
    """
    context = body.context if body is not None else {}
    cancel_event = threading.Event()
    watcher = asyncio.create_task(_watch_disconnect(request, cancel_event))
    try:
        logger.info(f"Executing workflow {workflow_id}")
        return await asyncio.to_thread(engine.execute, workflow_id, context, cancel_event)
    except WorkflowEngineError as e:
        _raise_for_engine_error(e, "workflow execution")
    except Exception as e:
        _raise_unexpected(e, "workflow execution")
    finally:
        watcher.cancel()


@router.get(
    "/workflows/{workflow_id}/events",
    response_model=List[ExecutionEvent],
    summary="Get execution events of a workflow"
)
def get_workflow_events(
    workflow_id: int,
    event_type: Optional[EventType] = Query(None, description="Filter by event type"),
    limit: int = Query(100, ge=1, le=1000),
    event_logger: ExecutionLogger = Depends(get_execution_logger)
) -> List[ExecutionEvent]:
    try:
        return event_logger.list_events(workflow_id=workflow_id, event_type=event_type, limit=limit)
    except WorkflowEngineError as e:
        _raise_for_engine_error(e, "event retrieval")


@router.get(
    "/actions",
    response_model=List[ActionInfo],
    summary="List registered action kinds"
)
def list_actions(
    registry: ActionRegistry = Depends(get_action_registry)
) -> List[ActionInfo]:
    return registry.get_action_info()
