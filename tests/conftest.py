"""Shared pytest fixtures.

These fixtures live at `tests/` scope so they are available to every test
module.

Key goals:
- Prevent global singletons (settings, DB session manager) from leaking
  state across tests.
- Provide in-memory sessions for service tests and a file-backed session
  manager for tests that need several connections at once.
"""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from capstone_approvals.config import Settings, reset_settings
from capstone_approvals.infra.db.models import Base
from capstone_approvals.infra.db.session import DatabaseSessionManager, reset_session_manager


@pytest.fixture(autouse=True)
def _reset_global_singletons() -> None:
    """Ensure global singletons do not leak between tests."""
    reset_settings()
    reset_session_manager()
    yield
    reset_settings()
    reset_session_manager()


@pytest.fixture
def settings() -> Settings:
    """Settings for tests: in-memory database, no retry backoff."""
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        vote_retry_backoff_seconds=0.0,
    )


@pytest.fixture
async def db_session() -> AsyncSession:
    """Create an in-memory database session for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session_maker() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def file_settings(tmp_path) -> Settings:
    """Settings pointing at a SQLite file shared by several connections."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'approvals.db'}",
        vote_retry_backoff_seconds=0.0,
        vote_max_attempts=10,
    )


@pytest.fixture
async def session_manager(file_settings: Settings) -> DatabaseSessionManager:
    """Initialized session manager over a file-backed database with all tables."""
    manager = DatabaseSessionManager(file_settings)
    await manager.init()
    await manager.create_all()

    yield manager

    await manager.close()
