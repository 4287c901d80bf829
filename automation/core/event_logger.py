"""Execution Logger: append-only store of workflow execution events."""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic_core import to_jsonable_python
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..models.core import EventType, ExecutionEvent
from ..storage.database import create_session_factory
from ..storage.models import ExecutionEventModel
from .exceptions import StorageError
from .logging import get_logger

logger = get_logger(__name__)

FailureCallback = Callable[[str, Dict[str, Any], Exception], None]


class ExecutionLogger:
    """Appends execution events; never updates or deletes them.

    A failed append is reported to the host process (ERROR log with traceback
    and the optional ``on_failure`` callback) instead of being raised, so the
    engine can still return its result to the workflow caller.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None,
                 on_failure: Optional[FailureCallback] = None):
        self._session_factory = session_factory or create_session_factory()
        self._on_failure = on_failure

    def append(self, event_type: Union[EventType, str], payload: Dict[str, Any],
               workflow_id: Optional[int] = None) -> Optional[int]:
        """
        Persist one event.

        Args:
            event_type: Kind of event
            payload: Event data; converted to JSON-compatible values
            workflow_id: Workflow the event belongs to (defaults to payload["workflow_id"])

        Returns:
            The id of the stored event, or None if persisting it failed
        """
        event_type = EventType(event_type).value
        if workflow_id is None:
            workflow_id = payload.get("workflow_id")

        db = None
        try:
            event_data = to_jsonable_python(payload, fallback=str)
            db = self._session_factory()
            model = ExecutionEventModel(
                event_type=event_type,
                workflow_id=workflow_id,
                event_data=event_data,
                timestamp=datetime.utcnow(),
            )
            db.add(model)
            db.commit()
            return model.id
        except Exception as e:
            if db is not None:
                db.rollback()
            self._report_failure(event_type, payload, e)
            return None
        finally:
            if db is not None:
                db.close()

    def _report_failure(self, event_type: str, payload: Dict[str, Any], error: Exception) -> None:
        logger.error(
            f"Failed to persist execution event '{event_type}': {error}",
            exc_info=error,
            extra={"extra_fields": {
                "event_type": event_type,
                "workflow_id": payload.get("workflow_id"),
                "error_type": type(error).__name__,
            }}
        )
        if self._on_failure is not None:
            try:
                self._on_failure(event_type, payload, error)
            except Exception as callback_error:
                logger.error(f"Event failure callback raised: {callback_error}", exc_info=True)

    def list_events(self, workflow_id: Optional[int] = None,
                    event_type: Optional[Union[EventType, str]] = None,
                    limit: int = 100) -> List[ExecutionEvent]:
        """Events in chronological order, optionally filtered."""
        db = self._session_factory()
        try:
            query = db.query(ExecutionEventModel)
            if workflow_id is not None:
                query = query.filter(ExecutionEventModel.workflow_id == workflow_id)
            if event_type is not None:
                query = query.filter(ExecutionEventModel.event_type == EventType(event_type).value)
            models = (
                query.order_by(ExecutionEventModel.timestamp, ExecutionEventModel.id)
                .limit(limit)
                .all()
            )
            return [
                ExecutionEvent(
                    id=model.id,
                    event_type=EventType(model.event_type),
                    workflow_id=model.workflow_id,
                    event_data=model.event_data or {},
                    timestamp=model.timestamp,
                )
                for model in models
            ]
        except SQLAlchemyError as e:
            logger.error(f"Database error while listing execution events: {str(e)}")
            raise StorageError(f"Failed to list execution events: {str(e)}", operation="list", table="execution_events")
        finally:
            db.close()
