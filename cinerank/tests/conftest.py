"""Pytest configuration and shared fixtures."""

import os

# Set test environment variables before any imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_cinerank.db"
os.environ["ADMIN_TOKEN"] = "test-admin-token"
os.environ["LLM_ENABLED"] = "true"
os.environ.pop("TMDB_BEARER_TOKEN", None)

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

TEST_DB_PATH = "./test_cinerank.db"


@pytest.fixture(scope="session")
def anyio_backend():
    """Use asyncio as the async backend for tests."""
    return "asyncio"


@pytest.fixture
async def engine():
    """Create test database engine."""
    from cinerank.storage.db import Base

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{TEST_DB_PATH}",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()

    # Cleanup test database file
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def session(session_factory):
    """Create test database session."""
    async with session_factory() as session:
        yield session
