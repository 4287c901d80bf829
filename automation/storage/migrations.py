"""Index creation for workflow and event lookups."""

from typing import Optional
from sqlalchemy import Engine, text

from .database import get_database_engine
from ..core.logging import get_logger

logger = get_logger(__name__)


def create_lookup_indexes(engine: Optional[Engine] = None) -> None:
    """Create the indexes used by workspace listings and event queries."""
    bind = engine or get_database_engine()
    try:
        with bind.connect() as connection:
            connection.execute(text("""
                CREATE INDEX IF NOT EXISTS idx_workflows_workspace
                ON workflows(workspace_id)
            """))

            connection.execute(text("""
                CREATE INDEX IF NOT EXISTS idx_execution_events_workflow_timestamp
                ON execution_events(workflow_id, timestamp)
            """))

            connection.execute(text("""
                CREATE INDEX IF NOT EXISTS idx_execution_events_event_type
                ON execution_events(event_type)
            """))

            connection.commit()
            logger.info("Created lookup indexes for workflows and execution events")

    except Exception as e:
        logger.error(f"Failed to create lookup indexes: {str(e)}")
        raise


if __name__ == "__main__":
    create_lookup_indexes()
