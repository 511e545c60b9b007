"""
Pytest configuration and fixtures for backend tests.

This module provides the core testing infrastructure including:
- A throwaway SQLite database per test, built from the model metadata
- Session fixtures for database access
- Test client for API integration tests

Each request handled through ``client`` opens its own session, the same way
production does, so concurrent requests really race against each other.
"""

import os
from collections.abc import AsyncGenerator

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402
from sqlmodel.ext.asyncio.session import AsyncSession  # noqa: E402

from taskboard.core.rate_limit import limiter  # noqa: E402
from taskboard.db.session import build_engine, build_sessionmaker, get_session  # noqa: E402
from taskboard.main import app  # noqa: E402


@pytest.fixture(scope="function")
async def engine(tmp_path):
    """Create a test database engine with every table in place."""
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'taskboard_test.db'}"
    # Concurrent writers queue on the file lock instead of failing outright
    test_engine = build_engine(database_url, poolclass=NullPool, connect_args={"timeout": 30})
    async with test_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest.fixture(scope="function")
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """
    Session for arranging data and asserting on it.

    The database file is discarded with ``tmp_path``, so no cleanup is needed.
    """
    async with session_factory() as test_session:
        yield test_session


@pytest.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    Create an async HTTP client for testing API endpoints.

    Usage:
        async def test_endpoint(client: AsyncClient):
            response = await client.get("/api/v1/health")
            assert response.status_code == 200
    """

    async def override_get_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as request_session:
            yield request_session

    app.dependency_overrides[get_session] = override_get_session
    app.state.session_factory = session_factory

    # Disable rate limiting in tests
    limiter.enabled = False

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    del app.state.session_factory
