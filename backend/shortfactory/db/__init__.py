"""
Database module for shortfactory.

Provides async SQLAlchemy engine with SQLite WAL mode,
session management, and schema initialization.
"""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from shortfactory.db.engine import async_session, engine, get_session, make_engine, make_session_factory, shutdown
from shortfactory.db.models import Base, ChannelProfileRecord, JobRecord, ProjectRecord


async def init_database(bind: Optional[AsyncEngine] = None):
    """Initialize database schema on first run."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


__all__ = [
    "Base",
    "ChannelProfileRecord",
    "JobRecord",
    "ProjectRecord",
    "engine",
    "async_session",
    "get_session",
    "make_engine",
    "make_session_factory",
    "shutdown",
    "init_database",
]
