"""
Tests for Settings
==================

Version: 0.1.0
"""

import pytest
from pydantic import ValidationError

from shared.config.settings import DatabaseSettings, Environment, IngestionSettings, Settings


class TestDatabaseSettings:
    """Tests for DatabaseSettings.async_url."""

    def test_default_url_uses_asyncpg(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("DATABASE_URL", raising=False)

        url = DatabaseSettings().async_url

        assert url.startswith("postgresql+asyncpg://cindral:")
        assert url.endswith("@localhost:5432/cindral")

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("postgres://u:p@db:5432/x", "postgresql+asyncpg://u:p@db:5432/x"),
            ("postgresql://u:p@db:5432/x", "postgresql+asyncpg://u:p@db:5432/x"),
            ("postgresql+asyncpg://u:p@db/x", "postgresql+asyncpg://u:p@db/x"),
            ("sqlite+aiosqlite:///ingest.db", "sqlite+aiosqlite:///ingest.db"),
        ],
    )
    def test_database_url_override(
        self, monkeypatch: pytest.MonkeyPatch, raw: str, expected: str
    ) -> None:
        monkeypatch.setenv("DATABASE_URL", raw)

        assert DatabaseSettings().async_url == expected


class TestIngestionSettings:
    """Tests for IngestionSettings."""

    def test_defaults(self) -> None:
        ingestion = IngestionSettings()

        assert ingestion.concurrency == 3
        assert ingestion.inter_batch_delay_ms == 300
        assert ingestion.max_siblings == 100
        assert ingestion.failure_excerpt_size == 5

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("INGEST_CONCURRENCY", "5")

        assert IngestionSettings().concurrency == 5

    def test_concurrency_must_be_positive(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("INGEST_CONCURRENCY", "0")

        with pytest.raises(ValidationError):
            IngestionSettings()


class TestSettings:
    """Tests for top-level Settings."""

    def test_testing_environment(self) -> None:
        settings = Settings()

        assert settings.environment == Environment.TESTING
        assert settings.is_testing
        assert not settings.is_production

    def test_log_level_case_insensitive(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "debug")

        assert Settings().log_level.value == "DEBUG"
