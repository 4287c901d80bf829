#!/usr/bin/env python3
"""Database initialization script."""

import sys

from automation.config import load_config
from automation.storage.database import build_engine, create_tables
from automation.storage.migrations import create_lookup_indexes
from automation.core.logging import setup_logging


def main():
    """Create the workflow and execution event tables and their indexes."""
    config = load_config()

    logger = setup_logging(level=config.log_level.value)

    try:
        logger.info(f"Initializing database at {config.database_url}")

        engine = build_engine(
            config.database_url,
            echo=config.database_echo,
            connect_args=config.get_database_connect_args()
        )

        create_tables(engine)
        logger.info("Database tables created successfully")

        create_lookup_indexes(engine)
        logger.info("Lookup indexes created successfully")

        logger.info("Database initialization completed")

    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
