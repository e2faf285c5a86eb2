"""
db/__init__.py
------------
Database package initialization.
Exposes the engine, session helpers and schema bootstrap used by the app.
"""

from db.db import (
    Base,
    async_engine,
    AsyncSessionLocal,
    get_async_session,
)

from db.schema_manager import SchemaManager

import logging
logger = logging.getLogger(__name__)

# Instantiate SchemaManager at module level
_schema_manager = SchemaManager()

async def init_db() -> None:
    """Create missing tables and validate the schema."""
    await _schema_manager.initialize_database()

__all__ = [
    "Base",
    "async_engine",
    "AsyncSessionLocal",
    "get_async_session",
    "init_db",
    "SchemaManager",
]
