"""
Database Utilities Module (`db.db`)
-----------------------------------

Async SQLAlchemy engine and session factory for the fragment store.

Features:
- Single async engine built from `settings.DATABASE_URL` (asyncpg for PostgreSQL,
  aiosqlite for local/dev SQLite).
- In-memory SQLite URLs share one connection (StaticPool) so every session sees
  the same database.
- FastAPI dependency `get_async_session`.
- Declarative `Base` for the ORM models.
"""

import logging
from typing import Any, AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from config import settings


logger = logging.getLogger(__name__)

DATABASE_URL = settings.DATABASE_URL


def _engine_options(url: str) -> dict[str, Any]:
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True}

    options: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:"):
        options["poolclass"] = StaticPool
    return options


# ---------------------------------------------------------
# Async engine/session: for normal runtime usage
# ---------------------------------------------------------
async_engine = create_async_engine(DATABASE_URL, echo=False, **_engine_options(DATABASE_URL))

AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    expire_on_commit=False
)

logger.info("Database engine configured for dialect %s", async_engine.dialect.name)

# ---------------------------------------------------------
# Base for models
# ---------------------------------------------------------
Base = declarative_base()

# ---------------------------------------------------------
# Session management utilities
# ---------------------------------------------------------
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for getting an async DB session."""
    async with AsyncSessionLocal() as session:
        yield session
