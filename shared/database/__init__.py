"""
Database Module
===============

Async relational store client (SQLAlchemy 2.0 + asyncpg).

Usage:
    from shared.database import PostgresClient

    session_factory = PostgresClient.get_session_factory()
    async with session_factory() as session:
        result = await session.execute(select(IngestJob))
"""

from shared.database.postgres import (
    Base,
    PostgresClient,
)


__all__ = [
    "Base",
    "PostgresClient",
]
