"""
Tests for Structured Logging
============================

Version: 0.1.0
"""

import structlog

from shared.logging import bind_context, clear_context, unbind_context
from shared.logging.logger import _censor


class TestSecretCensoring:
    """Tests for secret redaction."""

    def test_sensitive_keys_redacted(self) -> None:
        censored = _censor({"api_key": "sk-ant-123", "Authorization": "Bearer x", "url": "https://x"})

        assert censored["api_key"] == "***REDACTED***"
        assert censored["Authorization"] == "***REDACTED***"
        assert censored["url"] == "https://x"

    def test_nested_dicts_redacted(self) -> None:
        censored = _censor({"config": {"db_password": "hunter2", "host": "db"}})

        assert censored["config"]["db_password"] == "***REDACTED***"
        assert censored["config"]["host"] == "db"

    def test_token_counters_kept(self) -> None:
        censored = _censor({"input_tokens": 120, "output_tokens": 40, "total_tokens": 160})

        assert censored == {"input_tokens": 120, "output_tokens": 40, "total_tokens": 160}


class TestContextBinding:
    """Tests for job context helpers."""

    def test_bind_and_unbind(self) -> None:
        clear_context()
        bind_context(job_id="job-1", organization_id="acme")

        assert structlog.contextvars.get_contextvars() == {
            "job_id": "job-1",
            "organization_id": "acme",
        }

        unbind_context("job_id")

        assert structlog.contextvars.get_contextvars() == {"organization_id": "acme"}
        clear_context()
