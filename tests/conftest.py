"""
Pytest configuration and shared fixtures.

This module provides:
- Environment variable setup for tests
- An in-memory SQLite engine per test
- Sessions, repositories and a seeded collection
"""

import os

import pytest


# Set test environment variables BEFORE any imports
# This must happen first to ensure settings load with test values
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["LOG_JSON"] = "true"
os.environ["LOG_SOFT_FAILURES"] = "true"
os.environ["ROLLBACK_ON_SAVE_FAILURE"] = "true"

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from entities import Item, Membership  # noqa: E402
from generic_repository.models import Base  # noqa: E402
from generic_repository.repositories.generic import GenericRepository  # noqa: E402


@pytest.fixture
def anyio_backend():
    """
    Configure anyio backend for async tests.

    Returns:
        str: Backend name ("asyncio")
    """
    return "asyncio"


@pytest.fixture
async def engine():
    """
    Create an in-memory SQLite engine with all tables.

    StaticPool keeps a single connection so every session sees the same
    in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    """Session factory bound to the test engine (autoflush on)."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def async_session(session_maker):
    """Provide the session under test."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def repo(async_session: AsyncSession) -> GenericRepository[Item]:
    """GenericRepository bound to Item."""
    return GenericRepository(async_session, Item)


@pytest.fixture
def membership_repo(async_session: AsyncSession) -> GenericRepository[Membership]:
    """GenericRepository bound to the composite-key Membership entity."""
    return GenericRepository(async_session, Membership)


@pytest.fixture
async def seeded(async_session: AsyncSession) -> list[Item]:
    """
    Commit three items, in primary-key order:
    (1, score 10, tools), (2, score 30, toys), (3, score 20, tools).
    """
    items = [
        Item(id=1, name="alpha", category="tools", score=10, price=2.5),
        Item(id=2, name="beta", category="toys", score=30, price=4.0),
        Item(id=3, name="gamma", category="tools", score=20, price=1.5),
    ]
    async_session.add_all(items)
    await async_session.commit()
    return items
