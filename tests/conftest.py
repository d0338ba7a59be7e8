"""Pytest configuration and shared fixtures.

Most service tests run against ``AsyncMock`` sessions and router tests replace
the database, user, notifier, and scheduler dependencies. Tests that need
real query and transaction behaviour take ``db_session``, an in-memory
SQLite database, so no database server is needed.
"""

import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Set testing mode BEFORE importing app to use NullPool
os.environ["TESTING"] = "true"

from sugar_monitor.config import settings

# Override settings for testing
settings.testing = True

from sugar_monitor.core.auth import get_current_user
from sugar_monitor.database import build_engine, create_schema, get_db
from sugar_monitor.dependencies import get_notifier, get_report_scheduler
from sugar_monitor.main import app


@pytest.fixture
def override():
    """Install dependency overrides for one test and clear them afterwards."""

    def _install(
        user=None,
        db=None,
        notifier=None,
        report_scheduler=None,
    ):
        if user is not None:
            app.dependency_overrides[get_current_user] = lambda: user
        if db is not None:
            app.dependency_overrides[get_db] = lambda: db
        if notifier is not None:
            app.dependency_overrides[get_notifier] = lambda: notifier
        if report_scheduler is not None:
            app.dependency_overrides[get_report_scheduler] = lambda: report_scheduler

    yield _install
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP client for testing the API."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide a session on a fresh in-memory database with all tables."""
    engine = build_engine("sqlite+aiosqlite://")
    await create_schema(engine)
    session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_maker() as session:
        yield session
    await engine.dispose()
