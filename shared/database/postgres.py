"""
PostgreSQL Client
=================

Async relational store client using SQLAlchemy 2.0 with asyncpg.

Any SQLAlchemy async URL works; the test suite points it at
``sqlite+aiosqlite://``.

Version: 0.1.0
"""

import time
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from shared.config import settings
from shared.logging import get_logger


logger = get_logger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for ORM models."""

    pass


class PostgresClient:
    """
    Async relational store client wrapper.

    Manages the engine and session factory for the process.
    """

    _engine: AsyncEngine | None = None
    _session_factory: async_sessionmaker[AsyncSession] | None = None

    @classmethod
    def get_engine(cls, url: str | None = None) -> AsyncEngine:
        """Get or create the async engine."""
        if cls._engine is None:
            url = url or settings.database.async_url
            kwargs: dict[str, Any] = {"echo": settings.database.echo}
            if url.startswith("postgresql"):
                kwargs.update(
                    pool_size=settings.database.pool_size,
                    max_overflow=10,
                    pool_pre_ping=True,
                    pool_recycle=3600,
                )
            cls._engine = create_async_engine(url, **kwargs)
            logger.info(
                "database_engine_created",
                dialect=cls._engine.dialect.name,
                database=cls._engine.url.database,
            )
        return cls._engine

    @classmethod
    def get_session_factory(cls) -> async_sessionmaker[AsyncSession]:
        """Get or create the session factory."""
        if cls._session_factory is None:
            cls._session_factory = async_sessionmaker(
                cls.get_engine(),
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
        return cls._session_factory

    @classmethod
    async def create_all(cls) -> None:
        """Create every table registered on `Base` that does not exist yet."""
        async with cls.get_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database_tables_created", tables=sorted(Base.metadata.tables))

    @classmethod
    async def close(cls) -> None:
        """Close the engine and release all connections."""
        if cls._engine is not None:
            await cls._engine.dispose()
            cls._engine = None
            cls._session_factory = None
            logger.info("database_engine_closed")

    @classmethod
    async def health_check(cls) -> dict[str, Any]:
        """
        Check database health.

        Returns:
            dict with status and latency
        """
        try:
            start = time.perf_counter()
            async with cls.get_session_factory()() as session:
                result = await session.execute(text("SELECT 1"))
                _ = result.scalar()
            latency_ms = (time.perf_counter() - start) * 1000

            return {
                "status": "healthy",
                "latency_ms": round(latency_ms, 2),
                "dialect": cls.get_engine().dialect.name,
            }
        except Exception as e:
            logger.error("database_health_check_failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e),
            }

