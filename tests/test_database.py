"""Tests for database wiring."""

import pytest

from template_engine.core.database import DatabaseManager, check_database_health


@pytest.mark.asyncio
async def test_health_of_connected_database(database):
    health = await check_database_health(database)

    assert health["status"] == "healthy"
    assert health["database_type"] == "sqlite"


@pytest.mark.asyncio
async def test_health_of_unconnected_database():
    health = await check_database_health(DatabaseManager("sqlite+aiosqlite:///:memory:"))

    assert health["status"] == "disconnected"
    assert health["error"] == "Database not connected"
