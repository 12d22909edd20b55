"""Shared fixtures for stowage tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import stowage.models  # noqa: F401  registers the tables on SQLModel.metadata
from stowage import StorageAsync

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine

    from stowage import Bucket


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine with all tables created."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False, poolclass=StaticPool)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def storage() -> AsyncIterator[StorageAsync]:
    """Session with the default provider types, closed after each test."""
    s = StorageAsync()
    yield s
    await s.close()


@pytest.fixture
async def bucket(storage: StorageAsync) -> Bucket:
    """Bucket ``docs`` on memory provider ``mem``."""
    await storage.add_provider("memory://?name=mem")
    return (await storage.add_bucket("mem://docs")).result
