"""Database session management with connection pooling.

Manages SQLAlchemy async engine and session creation with support
for both SQLite and PostgreSQL databases.

Key features:
- Async session management with context managers
- Connection pooling (PostgreSQL) and appropriate defaults (SQLite)
- Automatic session commit/rollback
- Global session manager singleton pattern
- FastAPI dependency injection support
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from capstone_approvals.config import Settings
from capstone_approvals.infra.db.models import Base


class DatabaseSessionManager:
    """Database session manager with connection pooling.

    Example:
        manager = DatabaseSessionManager(settings)
        await manager.init()

        async with manager.session() as session:
            result = await session.execute(select(ApprovalRequest))
            requests = result.scalars().all()

        await manager.close()
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize session manager.

        Args:
            settings: Application settings
        """
        self.settings = settings
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    async def init(self) -> None:
        """Initialize database engine and session factory.

        Creates async engine with appropriate configuration for SQLite or PostgreSQL.
        Must be called before using session() method.
        """
        if self.settings.is_sqlite:
            connect_args = {
                "check_same_thread": False,  # Required for async
                "timeout": 30.0,  # Lock timeout
            }
            pool_config = {}
        else:
            connect_args = {}
            pool_config = {
                "pool_size": self.settings.database_pool_size,
                "max_overflow": self.settings.database_max_overflow,
                "pool_pre_ping": True,  # Verify connections
                "pool_recycle": 3600,  # Recycle after 1 hour
            }

        self._engine = create_async_engine(
            self.settings.database_url,
            echo=self.settings.database_echo,
            connect_args=connect_args,
            **pool_config,
        )

        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def create_all(self) -> None:
        """Create every table that does not exist yet (dev/test only; use Alembic otherwise)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """Close database engine and cleanup connections."""
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    @property
    def is_initialized(self) -> bool:
        return self._session_factory is not None

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get database session context manager.

        Automatically commits on success or rolls back on error.

        Yields:
            AsyncSession instance

        Raises:
            RuntimeError: If session manager not initialized
        """
        if self._session_factory is None:
            raise RuntimeError("SessionManager not initialized. Call init() first.")

        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    @property
    def engine(self) -> AsyncEngine:
        """Get database engine.

        Raises:
            RuntimeError: If not initialized
        """
        if self._engine is None:
            raise RuntimeError("SessionManager not initialized. Call init() first.")
        return self._engine


# Global session manager instance
_session_manager: DatabaseSessionManager | None = None


def get_session_manager(settings: Settings | None = None) -> DatabaseSessionManager:
    """Get global session manager instance (singleton).

    Args:
        settings: Application settings (defaults to the global settings on first call)

    Returns:
        DatabaseSessionManager instance
    """
    global _session_manager

    if _session_manager is None:
        if settings is None:
            from capstone_approvals.config import get_settings

            settings = get_settings()
        _session_manager = DatabaseSessionManager(settings)

    return _session_manager


async def initialize_session_manager(settings: Settings | None = None) -> DatabaseSessionManager:
    """Create (if needed) and initialize the global session manager.

    Args:
        settings: Application settings (optional, uses global if not provided)

    Returns:
        Initialized DatabaseSessionManager
    """
    manager = get_session_manager(settings)
    if not manager.is_initialized:
        await manager.init()
    return manager


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session for FastAPI dependency injection.

    Yields:
        AsyncSession instance

    Example:
        from fastapi import Depends

        @router.get("/approval-requests")
        async def list_requests(session: AsyncSession = Depends(get_session)):
            ...
    """
    manager = await initialize_session_manager()
    async with manager.session() as session:
        yield session


def get_session_factory(settings: Settings | None = None) -> DatabaseSessionManager:
    """Get a standalone session manager for use outside the FastAPI context.

    The caller owns it: ``await factory.init()`` before use and
    ``await factory.close()`` afterwards.

    Args:
        settings: Application settings (optional, uses global if not provided)

    Example:
        factory = get_session_factory(settings)
        await factory.init()
        async with factory.session() as session:
            result = await session.execute(select(ApprovalRequest))
    """
    if settings is None:
        from capstone_approvals.config import get_settings

        settings = get_settings()
    return DatabaseSessionManager(settings)


def reset_session_manager() -> None:
    """Reset global session manager (mainly for testing).

    This should only be used in test fixtures to ensure clean state.
    """
    global _session_manager
    _session_manager = None
