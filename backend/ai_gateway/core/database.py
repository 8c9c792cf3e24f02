"""
AI Gateway - Database Connection
================================

Async engine and sessions for the analysis_history store. SQLite
(aiosqlite) by default, pooled PostgreSQL (asyncpg) when configured.
"""

from collections.abc import AsyncGenerator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from ai_gateway.core.config import settings


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# A callable opening a short-lived session, used by work that outlives the request scope
SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


# ==========================================================================
# Engine Setup
# ==========================================================================

def create_engine() -> AsyncEngine:
    """Engine for DATABASE_URL."""
    # SQLite doesn't support pool_size/max_overflow
    if settings.is_sqlite:
        return create_async_engine(
            str(settings.DATABASE_URL),
            echo=settings.DATABASE_ECHO,
            connect_args={"check_same_thread": False},
        )
    else:
        return create_async_engine(
            str(settings.DATABASE_URL),
            pool_size=settings.DATABASE_POOL_SIZE,
            max_overflow=settings.DATABASE_MAX_OVERFLOW,
            echo=settings.DATABASE_ECHO,
            pool_pre_ping=True,  # Verify connections before use
        )


engine = create_engine()


# ==========================================================================
# Session Factory
# ==========================================================================

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


# ==========================================================================
# Session Dependencies
# ==========================================================================

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session for the history and blocking analysis endpoints."""
    async with get_db_session() as session:
        yield session


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """One short transaction, committed on exit. Each pipeline write opens one."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> SessionFactory:
    """
    Dependency returning the session factory for streamed work.

    SSE generators keep running after the endpoint returns, so they open
    their own sessions instead of borrowing the request-scoped one.
    """
    return get_db_session


# ==========================================================================
# Lifecycle
# ==========================================================================

async def init_db() -> None:
    """Create the analysis_history table if it does not exist."""
    async with engine.begin() as conn:
        from ai_gateway.core import models  # noqa: F401
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine pool on shutdown."""
    await engine.dispose()
