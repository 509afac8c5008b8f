"""Pytest configuration and fixtures."""
from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from smart_money_indexer.app.infrastructure.db.metadata import metadata


@pytest.fixture
async def async_engine():
    pytest.importorskip("aiosqlite", exc_type=ImportError)
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    yield engine
    await engine.dispose()
