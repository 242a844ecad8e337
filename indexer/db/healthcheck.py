"""Database health check - verify required tables exist."""

from sqlalchemy import inspect

from db.session import Database
from log import get_logger

logger = get_logger(__name__)

# Tables the indexer reads and writes
REQUIRED_TABLES = [
    "sync_state",
    "events",
    "campaigns",
]


def check_tables_exist(database: Database) -> None:
    """Verify all required tables exist in the database.

    Args:
        database: Database to inspect

    Raises:
        RuntimeError: If any required table is missing
    """
    logger.info("Checking database schema...")

    existing = set(inspect(database.engine).get_table_names())
    missing = [name for name in REQUIRED_TABLES if name not in existing]
    if missing:
        raise RuntimeError(
            f"DB schema missing. Tables not found: {', '.join(missing)}. "
            "Run the platform migrations first."
        )

    logger.info("All required tables exist")
