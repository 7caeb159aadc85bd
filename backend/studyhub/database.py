"""
StudyHub Backend - Database Engine & Session Factory
====================================================

What:  Async SQLAlchemy engine, session factory and declarative base.
How:   One engine with a connection pool per process. Store adapters receive
       the session factory and open one short transaction per primitive
       (`async with session_factory.begin() as session`), so independent
       reads such as "count" and "page" can run concurrently.
Who:   MaterialStore, UserDirectory, the health check and Alembic.

Connection Pooling (PostgreSQL):
    pool_size=20:      persistent connections for normal load
    max_overflow=10:   temporary connections for bursts (total max = 30)
    pool_pre_ping:     validates connections before use
    pool_recycle=3600: recycles connections every hour

    SQLite (local runs and tests) uses SQLAlchemy's default pool for the
    aiosqlite driver, so the pool options are not passed.
"""

from typing import Any, Dict

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from studyhub.config import settings


def engine_options(database_url: str) -> Dict[str, Any]:
    """Keyword arguments for create_async_engine, by backend."""
    options: Dict[str, Any] = {"echo": settings.log_level == "DEBUG"}
    if database_url.startswith("sqlite"):
        return options
    options.update(
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=settings.db_pool_pre_ping,
        pool_recycle=3600,
    )
    return options


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory used by every store adapter.

    expire_on_commit=False keeps loaded attributes (including the
    selectin-loaded branch and upvote collections) readable after the
    transaction commits and the session closes.
    """
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


# ── Engine & Factory ──────────────────────────────────────────────────────
engine = create_async_engine(settings.database_url, **engine_options(settings.database_url))

async_session_factory = build_session_factory(engine)


# ── Base Model ────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares a single metadata object, which Alembic reads for autogenerate
    and the test suite uses for `create_all`.
    """
    pass


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def dispose_engine() -> None:
    """
    What:  Gracefully closes all connections in the pool.
    When:  Called during application shutdown (lifespan handler).
    """
    await engine.dispose()
