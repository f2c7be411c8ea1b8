"""
Test Configuration
==================

Pytest fixtures for Cindral ingestion tests.
"""

import os
from collections.abc import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

# Set test environment
os.environ["ENVIRONMENT"] = "testing"
os.environ.setdefault("ANTHROPIC_API_KEY", "test-key")

from services.regulatory_ingestion import db_models  # noqa: E402,F401
from services.regulatory_ingestion.models import Provision  # noqa: E402
from shared.database import Base  # noqa: E402


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for async tests."""
    return "asyncio"


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database with the ingestion schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
def make_provision() -> Callable[..., Provision]:
    def _make(
        number: str = "1",
        text: str = "Text A",
        regulation_id: str = "acme-dora",
        section_title: str | None = None,
    ) -> Provision:
        return Provision.create(
            regulation_id=regulation_id,
            number=number,
            full_text=text,
            section_title=section_title,
        )

    return _make


@pytest.fixture
def two_article_html() -> str:
    """Two articles in EUR-Lex heading style."""
    return """
    <html><body><div id="docHtml">
      <p class="ti-section-1">CHAPTER I</p>
      <p class="ti-section-2">General provisions</p>
      <p class="ti-art">Article 1</p>
      <p class="normal">Text A</p>
      <p class="ti-art">Article 2</p>
      <p class="normal">Text B</p>
    </div></body></html>
    """
