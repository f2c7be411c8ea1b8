"""
Tests for Ingestion CLI
=======================

Tests for:
- Argument validation and exit codes
- Catalog listing
- Result rendering

Version: 0.1.0
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from rich.console import Console

from services.regulatory_ingestion import cli
from services.regulatory_ingestion.models import (
    FailedProvision,
    IngestionStats,
    IngestJobStatus,
)
from services.regulatory_ingestion.orchestrator import IngestJobResult
from services.regulatory_ingestion.sources import EUR_LEX_SOURCES
from tests.fakes import ScriptedLLMProvider


# ============================================================================
# Argument Handling
# ============================================================================


class TestArguments:
    """Tests for argument validation."""

    def test_no_arguments_exits_1(self, capsys) -> None:
        assert cli.main([]) == 1
        assert "usage" in capsys.readouterr().err.lower()

    def test_unknown_flag_exits_1(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--bogus"])

        assert exc_info.value.code == 1

    def test_help_exits_0(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--help"])

        assert exc_info.value.code == 0

    def test_org_required_for_ingest(self, capsys) -> None:
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["dora"])

        assert exc_info.value.code == 1
        assert "--org" in capsys.readouterr().err

    def test_unknown_regulation_exits_1(self, capsys) -> None:
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["sox", "--org", "acme"])

        assert exc_info.value.code == 1
        assert "unknown regulation: sox" in capsys.readouterr().err

    def test_regulation_and_all_conflict(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["dora", "--all", "--org", "acme"])

        assert exc_info.value.code == 1

    def test_list_exits_0(self, capsys) -> None:
        assert cli.main(["--list"]) == 0

        out = capsys.readouterr().out
        for key in ("dora", "gdpr", "ai-act", "mica", "nis2", "psd2"):
            assert key in out


# ============================================================================
# Dispatch
# ============================================================================


class TestDispatch:
    """Tests that commands reach the right coroutine."""

    def test_alias_resolves_to_catalog_key(self) -> None:
        with patch.object(cli, "run_ingestion", new_callable=AsyncMock, return_value=0) as run:
            assert cli.main(["aiact", "--org", "acme"]) == 0

        _, keys, org = run.await_args.args
        assert keys == ["ai-act"]
        assert org == "acme"

    def test_all_runs_every_key(self) -> None:
        with patch.object(cli, "run_ingestion", new_callable=AsyncMock, return_value=0) as run:
            cli.main(["--all", "--org", "acme"])

        _, keys, _ = run.await_args.args
        assert keys == ["dora", "gdpr", "ai-act", "mica", "nis2", "psd2"]

    def test_failed_run_exits_1(self) -> None:
        with patch.object(cli, "run_ingestion", new_callable=AsyncMock, return_value=1):
            assert cli.main(["dora", "--org", "acme"]) == 1

    def test_unexpected_error_exits_1(self) -> None:
        with patch.object(
            cli, "run_ingestion", new_callable=AsyncMock, side_effect=RuntimeError("db down")
        ):
            assert cli.main(["dora", "--org", "acme"]) == 1

    def test_status_does_not_require_org(self) -> None:
        with patch.object(cli, "show_status", new_callable=AsyncMock, return_value=0) as status:
            assert cli.main(["--status"]) == 0

        _, org = status.await_args.args
        assert org is None


# ============================================================================
# Rendering
# ============================================================================


class TestRendering:
    """Tests for result output."""

    @pytest.fixture
    def console(self) -> Console:
        return Console(record=True, width=120)

    def test_failure_excerpt_truncated(self, console: Console, make_provision) -> None:
        failed = [
            FailedProvision(make_provision(number=str(i)), f"error {i}") for i in range(1, 8)
        ]
        result = IngestJobResult(job_id="job-1", status=IngestJobStatus.SUCCEEDED, failed=failed)

        cli.print_failures(console, result, limit=5)

        text = console.export_text()
        assert "7 articles failed" in text
        assert "Article 5: error 5" in text
        assert "Article 6" not in text
        assert "... and 2 more" in text

    def test_success_summary(self, console: Console) -> None:
        stats = IngestionStats(regulation_id="acme-dora", articles_found=2, articles_processed=2)
        stats.tokens_used.input_tokens = 1200
        stats.tokens_used.estimated_cost = 0.0123
        result = IngestJobResult(
            job_id="job-1",
            status=IngestJobStatus.SUCCEEDED,
            articles_created=2,
            stats=stats,
        )

        cli.print_result(console, "DORA", result)

        text = console.export_text()
        assert "Ingestion complete: DORA" in text
        assert "1,200 in" in text
        assert "$0.0123" in text

    def test_failed_summary(self, console: Console) -> None:
        result = IngestJobResult(job_id="job-1", status=IngestJobStatus.FAILED, error="boom")

        cli.print_result(console, "DORA", result)

        assert "Ingestion failed for DORA: boom" in console.export_text()


# ============================================================================
# Ingestion Runs
# ============================================================================


class TestRunIngestion:
    """Tests for run_ingestion wiring onto the orchestrator."""

    @staticmethod
    def _scripted_ingest_all(failing: set[str]):
        async def ingest_all(organization_id, keys, on_job_start, on_job_finish):
            results = []
            for key in keys:
                source = EUR_LEX_SOURCES[key]
                hooks = on_job_start(source)
                hooks.on_enrich_progress(1, 1)
                hooks.on_persist_progress(1, 1)
                status = IngestJobStatus.FAILED if key in failing else IngestJobStatus.SUCCEEDED
                result = IngestJobResult(job_id=f"job-{key}", status=status, error="boom")
                on_job_finish(source, result)
                results.append(result)
            return results

        return ingest_all

    async def _run(self, keys: list[str], failing: set[str]) -> tuple[int, MagicMock, str]:
        console = Console(record=True, width=120)
        provider = ScriptedLLMProvider(lambda messages: "{}")
        orchestrator = MagicMock()
        orchestrator.ingest_all = AsyncMock(side_effect=self._scripted_ingest_all(failing))

        with (
            patch.object(cli, "create_llm_provider", return_value=provider),
            patch.object(cli, "PersistenceGateway"),
            patch.object(cli, "IngestJobOrchestrator", return_value=orchestrator),
        ):
            code = await cli.run_ingestion(console, keys, "acme")

        assert provider.closed
        return code, orchestrator, console.export_text()

    @pytest.mark.asyncio
    async def test_single_key_goes_through_ingest_all(self) -> None:
        code, orchestrator, text = await self._run(["dora"], failing=set())

        assert code == 0
        args = orchestrator.ingest_all.await_args
        assert args.args == ("acme", ["dora"])
        assert "Ingesting DORA" in text
        assert "Ingestion complete: DORA" in text
        assert "All ingestion complete" not in text

    @pytest.mark.asyncio
    async def test_all_keys_report_totals_and_failures(self) -> None:
        keys = list(EUR_LEX_SOURCES)

        code, _, text = await self._run(keys, failing={"gdpr"})

        assert code == 1
        assert "Ingestion failed for GDPR: boom" in text
        assert "All ingestion complete" in text
        assert "Total regulations: 6" in text
        assert "gdpr" in text.split("All ingestion complete")[1]

    @pytest.mark.asyncio
    async def test_missing_api_key_exits_1(self) -> None:
        console = Console(record=True, width=120)

        with patch.object(cli, "create_llm_provider", side_effect=ValueError("no key")):
            assert await cli.run_ingestion(console, ["dora"], "acme") == 1

        assert "no key" in console.export_text()
