"""Database table creation and management."""

from typing import List

import structlog
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine

from .database import Base

logger = structlog.get_logger(__name__)


def _register_models() -> None:
    """Import ORM models so their tables are attached to ``Base.metadata``."""
    from ..models import records  # noqa: F401


async def create_all_tables(engine: AsyncEngine) -> None:
    """Create all application tables.

    Tables that already exist are left untouched.

    Args:
        engine: AsyncEngine instance for database operations
    """
    _register_models()
    async with engine.begin() as conn:
        try:
            await conn.run_sync(Base.metadata.create_all)
            logger.info("All database tables created successfully", tables=sorted(Base.metadata.tables))
        except Exception as e:
            logger.error("Failed to create database tables", error=str(e))
            raise


async def drop_all_tables(engine: AsyncEngine) -> None:
    """Drop all application tables.

    WARNING: This will delete all data!
    Use only for development/testing.

    Args:
        engine: AsyncEngine instance for database operations
    """
    _register_models()
    async with engine.begin() as conn:
        try:
            await conn.run_sync(Base.metadata.drop_all)
            logger.warning("All database tables dropped")
        except Exception as e:
            logger.error("Failed to drop database tables", error=str(e))
            raise


async def recreate_all_tables(engine: AsyncEngine) -> None:
    """Drop and recreate all tables.

    WARNING: This will delete all data!
    Use only for development/testing.

    Args:
        engine: AsyncEngine instance for database operations
    """
    logger.warning("Recreating all database tables - ALL DATA WILL BE LOST!")

    await drop_all_tables(engine)
    await create_all_tables(engine)

    logger.info("Database tables recreated successfully")


async def list_tables(engine: AsyncEngine) -> List[str]:
    """Return the names of the tables present in the database."""
    async with engine.connect() as conn:
        return await conn.run_sync(lambda sync_conn: sorted(inspect(sync_conn).get_table_names()))
