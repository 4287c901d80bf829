"""Workflow Store: persistence of workflow definitions and execution counters."""

import threading
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..models.core import Workflow, WorkflowCreate, WorkflowUpdate
from ..storage.database import create_session_factory
from ..storage.models import WorkflowModel
from .exceptions import StorageError
from .logging import get_logger

logger = get_logger(__name__)


def _to_workflow(model: WorkflowModel) -> Workflow:
    """Detached snapshot of a stored row."""
    return Workflow(
        id=model.id,
        name=model.name,
        description=model.description,
        triggers=model.triggers or [],
        conditions=model.conditions or [],
        actions=model.actions or [],
        workspace_id=model.workspace_id,
        created_by=model.created_by,
        is_active=bool(model.is_active),
        execution_count=model.execution_count or 0,
        last_executed=model.last_executed,
        created_at=model.created_at,
    )


class WorkflowStore:
    """Create/read/update/delete of workflows plus the atomic execution counter."""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        """Initialize the store.

        Args:
            session_factory: Factory producing SQLAlchemy sessions; defaults to
                one bound to the global engine
        """
        self._session_factory = session_factory or create_session_factory()
        self._counter_locks: Dict[int, threading.Lock] = {}
        self._counter_lock_manager = threading.Lock()

    def _session(self) -> Session:
        return self._session_factory()

    def _get_counter_lock(self, workflow_id: int) -> threading.Lock:
        with self._counter_lock_manager:
            if workflow_id not in self._counter_locks:
                self._counter_locks[workflow_id] = threading.Lock()
            return self._counter_locks[workflow_id]

    def _drop_counter_lock(self, workflow_id: int) -> None:
        with self._counter_lock_manager:
            self._counter_locks.pop(workflow_id, None)

    def create(self, definition: WorkflowCreate) -> Workflow:
        """
        Persist a new workflow definition.

        Args:
            definition: Validated workflow definition

        Returns:
            The stored workflow, including its generated id

        Raises:
            StorageError: If the insert fails
        """
        db = self._session()
        try:
            model = WorkflowModel(
                name=definition.name,
                description=definition.description,
                triggers=list(definition.triggers),
                conditions=[c.model_dump() for c in definition.conditions],
                actions=[a.model_dump() for a in definition.actions],
                workspace_id=definition.workspace_id,
                created_by=definition.created_by,
                is_active=definition.is_active,
                execution_count=0,
                created_at=datetime.utcnow(),
            )
            db.add(model)
            db.commit()
            db.refresh(model)

            logger.info(f"Stored workflow '{model.name}' with ID: {model.id}")
            return _to_workflow(model)

        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Database error while creating workflow: {str(e)}")
            raise StorageError(f"Failed to store workflow: {str(e)}", operation="create", table="workflows")
        finally:
            db.close()

    def load(self, workflow_id: int) -> Optional[Workflow]:
        """Load a workflow snapshot, or None if it does not exist."""
        db = self._session()
        try:
            model = db.get(WorkflowModel, workflow_id)
            if model is None:
                return None
            return _to_workflow(model)
        except SQLAlchemyError as e:
            logger.error(f"Database error while loading workflow {workflow_id}: {str(e)}")
            raise StorageError(f"Failed to load workflow: {str(e)}", operation="load", table="workflows")
        finally:
            db.close()

    def list_by_workspace(self, workspace_id: int) -> List[Workflow]:
        """All workflows owned by a workspace, oldest first."""
        db = self._session()
        try:
            models = (
                db.query(WorkflowModel)
                .filter(WorkflowModel.workspace_id == workspace_id)
                .order_by(WorkflowModel.id)
                .all()
            )
            return [_to_workflow(model) for model in models]
        except SQLAlchemyError as e:
            logger.error(f"Database error while listing workflows: {str(e)}")
            raise StorageError(f"Failed to list workflows: {str(e)}", operation="list", table="workflows")
        finally:
            db.close()

    def update(self, workflow_id: int, changes: WorkflowUpdate) -> Optional[Workflow]:
        """
        Replace the provided fields of a workflow.

        Lists (triggers, conditions, actions) are replaced wholesale. Counters
        are never touched here.

        Returns:
            The updated workflow, or None if it does not exist
        """
        values: Dict[str, Any] = {}
        provided = changes.model_fields_set
        for field_name in ("name", "description", "is_active", "triggers"):
            if field_name in provided:
                values[field_name] = getattr(changes, field_name)
        if "conditions" in provided:
            values["conditions"] = [c.model_dump() for c in changes.conditions or []]
        if "actions" in provided:
            values["actions"] = [a.model_dump() for a in changes.actions or []]
        if "triggers" in values and values["triggers"] is None:
            values["triggers"] = []
        if "is_active" in values and values["is_active"] is None:
            del values["is_active"]
        if "name" in values and values["name"] is None:
            del values["name"]

        db = self._session()
        try:
            model = db.get(WorkflowModel, workflow_id)
            if model is None:
                return None
            for key, value in values.items():
                setattr(model, key, value)
            db.commit()
            db.refresh(model)

            logger.info(f"Updated workflow {workflow_id} ({', '.join(sorted(values)) or 'no changes'})")
            return _to_workflow(model)

        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Database error while updating workflow {workflow_id}: {str(e)}")
            raise StorageError(f"Failed to update workflow: {str(e)}", operation="update", table="workflows")
        finally:
            db.close()

    def delete(self, workflow_id: int) -> bool:
        """Delete a workflow definition. Execution history is kept."""
        db = self._session()
        try:
            model = db.get(WorkflowModel, workflow_id)
            if model is None:
                return False
            db.delete(model)
            db.commit()
            self._drop_counter_lock(workflow_id)
            logger.info(f"Deleted workflow {workflow_id}")
            return True
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Database error while deleting workflow {workflow_id}: {str(e)}")
            raise StorageError(f"Failed to delete workflow: {str(e)}", operation="delete", table="workflows")
        finally:
            db.close()

    def increment_execution(self, workflow_id: int, executed_at: Optional[datetime] = None) -> int:
        """
        Atomically add one to the execution counter and stamp last_executed.

        The increment is a single UPDATE evaluated by the database, and
        in-process callers for the same workflow are serialized as well.

        Returns:
            The new execution count

        Raises:
            StorageError: If the workflow vanished or the update fails
        """
        executed_at = executed_at or datetime.utcnow()
        with self._get_counter_lock(workflow_id):
            db = self._session()
            try:
                result = db.execute(
                    update(WorkflowModel)
                    .where(WorkflowModel.id == workflow_id)
                    .values(
                        execution_count=WorkflowModel.execution_count + 1,
                        last_executed=executed_at,
                    )
                )
                if result.rowcount == 0:
                    db.rollback()
                    self._drop_counter_lock(workflow_id)
                    raise StorageError(
                        f"Workflow {workflow_id} not found while updating execution count",
                        operation="increment_execution",
                        table="workflows"
                    )
                db.commit()
                count = db.query(WorkflowModel.execution_count).filter(WorkflowModel.id == workflow_id).scalar()
                logger.debug(f"Workflow {workflow_id} execution count is now {count}")
                return count or 0
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Database error while updating execution count for {workflow_id}: {str(e)}")
                raise StorageError(
                    f"Failed to update execution count: {str(e)}",
                    operation="increment_execution",
                    table="workflows"
                )
            finally:
                db.close()
