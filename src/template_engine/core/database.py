"""Database configuration and connection management."""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from .config import settings

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class DatabaseManager:
    """Database connection manager."""

    def __init__(self, database_url: Optional[str] = None, echo: Optional[bool] = None):
        self.database_url = database_url or settings.database_url
        self.echo = settings.database_echo if echo is None else echo
        self.engine: Optional[AsyncEngine] = None
        self.session_maker: Optional[async_sessionmaker] = None
        self._is_connected = False

    async def initialize(self) -> bool:
        """Initialize database connection."""
        try:
            self.engine = create_async_engine(
                self.database_url,
                echo=self.echo,
                pool_pre_ping=True,
                pool_recycle=3600,
                **self._engine_options(),
            )

            self.session_maker = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False
            )

            await self._test_connection()

            logger.info(
                "Database initialized successfully",
                database_type=self._get_db_type(),
                echo_enabled=self.echo
            )

            self._is_connected = True
            return True

        except Exception as e:
            logger.error(
                "Database initialization failed",
                error=str(e),
                database_url=self._mask_db_url()
            )
            self._is_connected = False
            return False

    def _engine_options(self) -> dict:
        """Driver specific engine options."""
        if self._get_db_type() == "sqlite":
            # Concurrent writers wait for the write lock instead of failing at once
            return {"connect_args": {"timeout": 15}}
        return {}

    async def _test_connection(self):
        """Test database connection."""
        if not self.engine:
            raise RuntimeError("Database engine not initialized")

        async with self.engine.begin() as conn:
            result = await conn.execute(text("SELECT 1"))
            result.fetchone()

        logger.debug("Database connection test successful")

    def _get_db_type(self) -> str:
        """Get database type from URL."""
        if "postgresql" in self.database_url:
            return "postgresql"
        elif "sqlite" in self.database_url:
            return "sqlite"
        elif "mysql" in self.database_url:
            return "mysql"
        else:
            return "unknown"

    def _mask_db_url(self) -> str:
        """Mask sensitive info in database URL."""
        if '@' in self.database_url:
            return self.database_url.split('@')[0] + '@***'
        return self.database_url

    @asynccontextmanager
    async def get_session(self):
        """Get database session context manager."""
        if not self.session_maker:
            raise RuntimeError("Database not initialized")

        async with self.session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self):
        """Close database connections."""
        if self.engine:
            await self.engine.dispose()
            logger.info("Database connections closed")
            self._is_connected = False

    @property
    def is_connected(self) -> bool:
        """Check if database is connected."""
        return self._is_connected


# Global database manager instance
db_manager = DatabaseManager()


async def init_database(manager: Optional[DatabaseManager] = None) -> bool:
    """Initialize database connection and create tables."""
    from .database_setup import create_all_tables

    manager = manager or db_manager
    success = await manager.initialize()
    if success:
        await create_all_tables(manager.engine)
        logger.info("Database setup completed successfully")
    return success


async def close_database(manager: Optional[DatabaseManager] = None):
    """Close database connections."""
    await (manager or db_manager).close()


async def check_database_health(manager: Optional[DatabaseManager] = None) -> dict:
    """Check database health status."""
    manager = manager or db_manager
    if not manager.is_connected:
        return {
            "status": "disconnected",
            "database_type": manager._get_db_type(),
            "error": "Database not connected"
        }

    try:
        async with manager.get_session() as session:
            await session.execute(text("SELECT 1"))

        return {
            "status": "healthy",
            "database_type": manager._get_db_type(),
            "echo_enabled": manager.echo
        }

    except Exception as e:
        return {
            "status": "error",
            "database_type": manager._get_db_type(),
            "error": str(e)
        }
