"""
Database Schema Management Module (`db.schema_manager`)
-------------------------------------------------------

Creates the fragment store tables on startup and reports drift between the
live database and the ORM definitions.

Main entry points:
- `SchemaManager.initialize_database()` (async) — create missing tables, then validate
- `SchemaManager.validate_schema()` (async) — list missing tables/columns
"""

import logging
from typing import List

from sqlalchemy import inspect
from sqlalchemy.engine import Connection

from db.db import Base, async_engine

logger = logging.getLogger(__name__)


class SchemaManager:
    """Additive-only schema bootstrap for the ORM models registered on `Base`."""

    def __init__(self, engine=async_engine):
        self.engine = engine

    async def initialize_database(self) -> None:
        """
        Full database initialization process:
        1. Creates missing tables
        2. Validates final schema
        """
        logger.info("Starting database initialization...")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        issues = await self.validate_schema()
        if issues:
            logger.warning("Schema validation completed with %d issues.", len(issues))
            for issue in issues[:5]:
                logger.warning("  - %s", issue)
        else:
            logger.info("Database schema is up to date.")

    async def validate_schema(self) -> List[str]:
        """Return human-readable differences between ORM tables and the database."""
        async with self.engine.connect() as conn:
            return await conn.run_sync(self._collect_issues)

    @staticmethod
    def _collect_issues(sync_conn: Connection) -> List[str]:
        inspector = inspect(sync_conn)
        issues: List[str] = []
        for table in Base.metadata.sorted_tables:
            if not inspector.has_table(table.name):
                issues.append(f"Missing table: {table.name}")
                continue
            db_columns = {c["name"] for c in inspector.get_columns(table.name)}
            for column in table.columns:
                if column.name not in db_columns:
                    issues.append(f"Missing column: {table.name}.{column.name}")
        return issues
