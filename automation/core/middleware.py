"""Middleware for error handling and logging."""

import time
import uuid
from datetime import datetime
from typing import Callable
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .exceptions import (
    ActionExecutionError,
    ConfigurationError,
    ExecutionCancelled,
    StorageError,
    UnknownActionType,
    WorkflowEngineError,
    WorkflowUnavailable,
    WorkflowValidationError,
    create_error_response,
)
from .logging import get_logger, set_logging_context, clear_logging_context


logger = get_logger(__name__)


def status_code_for_error(error: WorkflowEngineError) -> int:
    """Determine appropriate HTTP status code for an engine error."""
    if isinstance(error, WorkflowUnavailable):
        return status.HTTP_404_NOT_FOUND
    elif isinstance(error, WorkflowValidationError):
        return status.HTTP_400_BAD_REQUEST
    elif isinstance(error, UnknownActionType):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(error, ActionExecutionError):
        return status.HTTP_502_BAD_GATEWAY
    elif isinstance(error, ExecutionCancelled):
        return status.HTTP_409_CONFLICT
    elif isinstance(error, (StorageError, ConfigurationError)):
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    else:
        return status.HTTP_500_INTERNAL_SERVER_ERROR


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Assigns request IDs and turns escaped exceptions into JSON error responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request with error handling."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start_time = time.time()

        set_logging_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else "unknown"
        )

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response

        except WorkflowEngineError as e:
            duration = time.time() - start_time

            logger.warning(
                f"Automation engine error: {request.method} {request.url.path} - "
                f"Error: {e.error_code} - Duration: {duration:.3f}s",
                extra={"extra_fields": {"error_details": e.to_dict()}}
            )

            return JSONResponse(
                status_code=status_code_for_error(e),
                content={**create_error_response(e), "request_id": request_id},
                headers={"X-Request-ID": request_id}
            )

        except Exception as e:
            duration = time.time() - start_time

            logger.error(
                f"Unexpected error: {request.method} {request.url.path} - "
                f"Error: {str(e)} - Duration: {duration:.3f}s",
                exc_info=True
            )

            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": "InternalServerError",
                    "message": "An unexpected error occurred",
                    "details": {
                        "error_type": type(e).__name__,
                        "timestamp": datetime.utcnow().isoformat()
                    },
                    "request_id": request_id
                },
                headers={"X-Request-ID": request_id}
            )

        finally:
            clear_logging_context()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request with its status and duration, flagging slow ones."""

    def __init__(self, app, slow_request_threshold: float = 5.0):
        super().__init__(app)
        self.slow_request_threshold = slow_request_threshold

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        logger.debug(
            f"Request details: {request.method} {request.url} - "
            f"Query params: {dict(request.query_params)}"
        )

        response = await call_next(request)

        duration = time.time() - start_time
        logger.info(
            f"Request completed: {request.method} {request.url.path} - "
            f"Status: {response.status_code} - Duration: {duration:.3f}s"
        )

        if duration > self.slow_request_threshold:
            logger.warning(
                f"Slow request detected: {request.method} {request.url.path} - "
                f"Duration: {duration:.3f}s (threshold: {self.slow_request_threshold}s)"
            )

        response.headers["X-Response-Time"] = f"{duration:.3f}s"
        return response
