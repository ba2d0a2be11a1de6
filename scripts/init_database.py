#!/usr/bin/env python3
"""
Initialize the Library Lending database.

This script:
1. Creates all database tables
2. Optionally replaces the contents with generated sample data
3. Verifies the database is ready for MCP server use

Usage:
    python scripts/init_database.py [--drop-existing] [--sample-data] [--database-url URL]
"""

import argparse
import logging
import sys

from sqlalchemy import inspect

from library_lending_mcp.database import get_db_manager
from library_lending_mcp.database.seed import seed_database

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

EXPECTED_TABLES = {
    "branches",
    "employees",
    "members",
    "books",
    "issued_status",
    "return_status",
}


def main():
    """Main entry point for database initialization."""
    parser = argparse.ArgumentParser(description="Initialize the Library Lending MCP database")
    parser.add_argument(
        "--drop-existing",
        action="store_true",
        help="Drop existing tables before creating new ones",
    )
    parser.add_argument(
        "--sample-data",
        action="store_true",
        help="Replace the database contents with generated sample data",
    )
    parser.add_argument(
        "--database-url",
        help="Override default database URL",
    )

    args = parser.parse_args()

    logger.info("Initializing database manager...")
    db_manager = get_db_manager(args.database_url)

    if not db_manager.verify_connection():
        logger.error("Failed to connect to database")
        sys.exit(1)

    try:
        logger.info("Creating database schema...")
        db_manager.init_database(drop_existing=args.drop_existing)

        if args.sample_data:
            logger.info("Loading sample data...")
            counts = seed_database(db_manager.database_url)
            logger.info(
                "Sample data loaded: %d books (%d on loan), %d members",
                counts["books"],
                counts["on_loan"],
                counts["members"],
            )

        tables = set(inspect(db_manager.engine).get_table_names())
        logger.info("Tables: %s", ", ".join(sorted(tables)))

        missing_tables = EXPECTED_TABLES - tables
        if missing_tables:
            logger.error("Missing expected tables: %s", sorted(missing_tables))
            sys.exit(1)

        logger.info("Database initialization complete: %s", db_manager.database_url)

    except Exception:
        logger.exception("Database initialization failed")
        sys.exit(1)
    finally:
        db_manager.close()


if __name__ == "__main__":
    main()
