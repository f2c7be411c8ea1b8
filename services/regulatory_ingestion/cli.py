"""
Ingestion CLI
=============

Command line entry point for the regulatory ingestion pipeline.

Usage:
    python -m services.regulatory_ingestion dora --org finbank-eu
    python -m services.regulatory_ingestion --all --org finbank-eu
    python -m services.regulatory_ingestion --list
    python -m services.regulatory_ingestion --status [--org finbank-eu]

Exit status is 1 for missing or invalid arguments and for failed runs.

Version: 0.1.0
"""

import argparse
import asyncio
import sys
from collections.abc import Sequence
from typing import NoReturn

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TaskID, TextColumn
from rich.table import Table

from services.regulatory_ingestion.batch import BatchEnricher
from services.regulatory_ingestion.enrichment import EnrichmentClient
from services.regulatory_ingestion.extractor import ProvisionExtractor
from services.regulatory_ingestion.fetcher import SourceFetcher
from services.regulatory_ingestion.models import ProgressCallback
from services.regulatory_ingestion.orchestrator import (
    IngestJobOrchestrator,
    IngestJobResult,
    IngestProgressHooks,
)
from services.regulatory_ingestion.persistence import PersistenceGateway
from services.regulatory_ingestion.sources import (
    EUR_LEX_SOURCES,
    RegulationSource,
    list_available_regulations,
    resolve_regulation_key,
)
from shared.config import settings
from shared.database import PostgresClient
from shared.llm import create_llm_provider
from shared.logging import get_logger, setup_logging


logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


class IngestArgumentParser(argparse.ArgumentParser):
    """Argument parser that exits with status 1 on usage errors."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(EXIT_FAILURE, f"{self.prog}: error: {message}\n")


def build_parser() -> IngestArgumentParser:
    keys = ", ".join(EUR_LEX_SOURCES)
    parser = IngestArgumentParser(
        prog="python -m services.regulatory_ingestion",
        description="Cindral regulatory ingestion pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python -m services.regulatory_ingestion dora --org finbank-eu\n"
            "  python -m services.regulatory_ingestion --all --org finbank-eu\n"
        ),
    )
    parser.add_argument(
        "regulation",
        nargs="?",
        help=f"Regulation to ingest ({keys})",
    )
    parser.add_argument("--all", action="store_true", help="Ingest all regulations")
    parser.add_argument("--list", action="store_true", help="List available regulations")
    parser.add_argument(
        "--status",
        action="store_true",
        help="Show recent ingest jobs and database row counts",
    )
    parser.add_argument(
        "--org",
        metavar="ID",
        help="Organization id (required when ingesting)",
    )
    return parser


class ProgressReporter:
    """Adapts (completed, total) callbacks onto rich progress tasks."""

    def __init__(self, progress: Progress) -> None:
        self._progress = progress
        self._tasks: dict[str, TaskID] = {}

    def callback(self, description: str) -> ProgressCallback:
        def update(completed: int, total: int) -> None:
            task = self._tasks.get(description)
            if task is None:
                task = self._progress.add_task(description, total=total)
                self._tasks[description] = task
            self._progress.update(task, completed=completed, total=total)

        return update


def print_failures(console: Console, result: IngestJobResult, limit: int) -> None:
    if not result.failed:
        return
    console.print(f"\n[yellow]{len(result.failed)} articles failed to process:[/yellow]")
    for failure in result.failed[:limit]:
        console.print(f"   - {failure.provision.article_number}: {failure.error}")
    if len(result.failed) > limit:
        console.print(f"   ... and {len(result.failed) - limit} more")


def print_result(console: Console, name: str, result: IngestJobResult) -> None:
    if not result.succeeded:
        console.print(f"\n[red]Ingestion failed for {name}:[/red] {result.error}")
        console.print(f"   Job: {result.job_id}")
        return

    print_failures(console, result, settings.ingestion.failure_excerpt_size)

    stats = result.stats
    table = Table(title=f"Ingestion complete: {name}", show_header=False)
    table.add_row("Job", result.job_id)
    if stats is not None:
        table.add_row("Articles found", str(stats.articles_found))
        table.add_row("Articles processed", str(stats.articles_processed))
        table.add_row("Articles failed", str(stats.articles_failed))
        table.add_row("Obligations", str(stats.obligations_generated))
    table.add_row(
        "DB writes",
        f"{result.articles_created} new, {result.articles_updated} updated, "
        f"{result.articles_unchanged} unchanged, {result.obligations_created} obligations",
    )
    if stats is not None:
        table.add_row(
            "Tokens used",
            f"{stats.tokens_used.input_tokens:,} in / {stats.tokens_used.output_tokens:,} out",
        )
        table.add_row("Estimated cost", f"${stats.estimated_cost:.4f}")
        table.add_row("Duration", f"{stats.duration_ms / 1000:.1f}s")
    console.print(table)

    if stats is not None and stats.articles_found == 0:
        console.print("[yellow]No articles found. The HTML structure may have changed.[/yellow]")


def print_catalog(console: Console) -> None:
    table = Table(title="Available EUR-Lex regulations")
    table.add_column("Key")
    table.add_column("Name")
    table.add_column("Title")
    for source in list_available_regulations():
        table.add_row(source.key, source.name, source.full_title)
    console.print(table)


async def show_status(console: Console, organization_id: str | None) -> int:
    gateway = PersistenceGateway()
    try:
        summary = await gateway.database_summary(organization_id)
        jobs = await gateway.list_jobs(organization_id, limit=10)
    finally:
        await PostgresClient.close()

    console.print(
        f"Regulations: {summary.regulations}  Articles: {summary.articles}  "
        f"Obligations: {summary.obligations}  Ingest jobs: {summary.ingest_jobs}"
    )

    table = Table(title="Recent ingest jobs")
    for column in ("Id", "Org", "Source", "Status", "Started", "Finished"):
        table.add_column(column)
    for job in jobs:
        table.add_row(
            job.id,
            job.organization_id,
            job.source,
            job.status.value,
            job.started_at.isoformat(timespec="seconds"),
            job.finished_at.isoformat(timespec="seconds") if job.finished_at else "-",
        )
    console.print(table)
    return EXIT_OK


class JobRenderer:
    """Per-job console output: a heading, transient progress bars, then the summary."""

    def __init__(self, console: Console) -> None:
        self._console = console
        self._progress: Progress | None = None

    def start(self, source: RegulationSource) -> IngestProgressHooks:
        self.stop()
        self._console.rule(f"Ingesting {source.name}")
        self._progress = Progress(
            TextColumn("{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            console=self._console,
            transient=True,
        )
        self._progress.start()
        reporter = ProgressReporter(self._progress)
        return IngestProgressHooks(
            on_enrich_progress=reporter.callback("Analyzing articles"),
            on_persist_progress=reporter.callback("Saving to database"),
        )

    def finish(self, source: RegulationSource, result: IngestJobResult) -> None:
        self.stop()
        print_result(self._console, source.name, result)

    def stop(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None


async def run_ingestion(console: Console, keys: list[str], organization_id: str) -> int:
    try:
        provider = create_llm_provider()
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        return EXIT_FAILURE

    renderer = JobRenderer(console)
    try:
        async with SourceFetcher() as fetcher:
            orchestrator = IngestJobOrchestrator(
                fetcher=fetcher,
                extractor=ProvisionExtractor(),
                enricher=BatchEnricher(EnrichmentClient(provider)),
                gateway=PersistenceGateway(),
            )
            results = await orchestrator.ingest_all(
                organization_id,
                keys,
                on_job_start=renderer.start,
                on_job_finish=renderer.finish,
            )
    finally:
        renderer.stop()
        await provider.close()
        await PostgresClient.close()

    if len(results) > 1:
        total_cost = sum(r.stats.estimated_cost for r in results if r.stats)
        total_articles = sum(r.stats.articles_processed for r in results if r.stats)
        total_obligations = sum(r.stats.obligations_generated for r in results if r.stats)
        failed_jobs = [key for key, r in zip(keys, results, strict=True) if not r.succeeded]
        console.rule("All ingestion complete")
        console.print(f"   Total regulations: {len(results)}")
        console.print(f"   Total articles:    {total_articles}")
        console.print(f"   Total obligations: {total_obligations}")
        console.print(f"   Total cost:        ${total_cost:.4f}")
        if failed_jobs:
            console.print(f"   [red]Failed:[/red]            {', '.join(failed_jobs)}")

    return EXIT_OK if all(r.succeeded for r in results) else EXIT_FAILURE


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    console = Console()

    setup_logging(
        log_level=settings.log_level.value,
        json_logs=settings.is_production,
        service_name=settings.service_name,
    )

    if args.list:
        print_catalog(console)
        return EXIT_OK

    if args.status:
        return asyncio.run(show_status(console, args.org))

    if args.all and args.regulation:
        parser.error("give either a regulation or --all, not both")

    if not args.all and not args.regulation:
        parser.print_help(sys.stderr)
        return EXIT_FAILURE

    if not args.org:
        parser.error("--org is required when ingesting")

    if args.all:
        keys = list(EUR_LEX_SOURCES)
    else:
        source = resolve_regulation_key(args.regulation)
        if source is None:
            parser.error(
                f"unknown regulation: {args.regulation} "
                f"(available: {', '.join(EUR_LEX_SOURCES)})"
            )
        keys = [source.key]

    try:
        return asyncio.run(run_ingestion(console, keys, args.org))
    except Exception as e:
        logger.error("ingestion_aborted", error=str(e), error_type=type(e).__name__)
        console.print(f"\n[red]Ingestion failed:[/red] {e}")
        return EXIT_FAILURE
