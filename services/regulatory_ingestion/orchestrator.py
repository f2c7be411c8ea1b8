"""
Ingest Job Orchestrator
=======================

Runs one ingestion end to end and records it as an ingest job:

    running -> Fetch -> Extract -> Enrich -> Persist -> succeeded
                                          \\-> (any exception) -> failed

The orchestrator is the only place exceptions are turned into a job state.
A run in which some articles failed enrichment still finishes ``succeeded``;
the failures are counted in the job log and surfaced via
`IngestJobResult.is_partial`.

Version: 0.1.0
"""

import json
import time
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from services.regulatory_ingestion.batch import BatchEnricher
from services.regulatory_ingestion.errors import (
    IngestionError,
    JobOrchestrationError,
    PersistenceError,
)
from services.regulatory_ingestion.extractor import ProvisionExtractor
from services.regulatory_ingestion.fetcher import SourceFetcher
from services.regulatory_ingestion.models import (
    FailedProvision,
    IngestionStats,
    IngestJobStatus,
    ProgressCallback,
    RegulationRecord,
    scoped_regulation_id,
)
from services.regulatory_ingestion.persistence import (
    BatchUpsertResult,
    PersistenceContext,
    PersistenceGateway,
)
from services.regulatory_ingestion.sources import (
    EUR_LEX_SOURCES,
    RegulationSource,
    resolve_regulation_key,
)
from shared.config import settings
from shared.logging import bind_context, get_logger, unbind_context


logger = get_logger(__name__)


@dataclass(frozen=True)
class IngestJobOptions:
    """What to ingest, and for whom."""

    organization_id: str
    key: str = "dora"
    source: str = "eur-lex"
    source_url: str | None = None


@dataclass
class IngestProgressHooks:
    """Optional progress callbacks, used by the CLI for progress bars."""

    on_enrich_progress: ProgressCallback | None = None
    on_persist_progress: ProgressCallback | None = None


@dataclass
class IngestJobResult:
    """Outcome of one ingest job."""

    job_id: str
    status: IngestJobStatus
    regulation_id: str | None = None
    regulations_created: int = 0
    articles_created: int = 0
    articles_updated: int = 0
    articles_unchanged: int = 0
    obligations_created: int = 0
    failed: list[FailedProvision] = field(default_factory=list)
    stats: IngestionStats | None = None
    error: str | None = None

    @property
    def is_partial(self) -> bool:
        """Succeeded, but some articles could not be enriched."""
        return self.status == IngestJobStatus.SUCCEEDED and bool(self.failed)

    @property
    def succeeded(self) -> bool:
        return self.status in (IngestJobStatus.SUCCEEDED, IngestJobStatus.PARTIAL)


JobStartCallback = Callable[[RegulationSource], IngestProgressHooks | None]
JobFinishCallback = Callable[[RegulationSource, IngestJobResult], None]


class IngestJobOrchestrator:
    """
    Sequences fetch, extraction, enrichment and persistence for one job.

    All collaborators are injected; the caller owns their lifecycles.
    """

    def __init__(
        self,
        fetcher: SourceFetcher,
        extractor: ProvisionExtractor,
        enricher: BatchEnricher,
        gateway: PersistenceGateway,
        id_factory: Callable[[], str] | None = None,
        failure_excerpt_size: int | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.extractor = extractor
        self.enricher = enricher
        self.gateway = gateway
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self._failure_excerpt_size = (
            failure_excerpt_size
            if failure_excerpt_size is not None
            else settings.ingestion.failure_excerpt_size
        )

    async def run(
        self,
        options: IngestJobOptions,
        hooks: IngestProgressHooks | None = None,
    ) -> IngestJobResult:
        """
        Run one ingest job.

        Args:
            options: Regulation key, tenant and source
            hooks: Optional progress callbacks

        Returns:
            IngestJobResult with status ``succeeded`` or ``failed``

        Raises:
            JobOrchestrationError: If the job record cannot be created or finalized
        """
        hooks = hooks or IngestProgressHooks()
        source = resolve_regulation_key(options.key)
        job_id = self._id_factory()
        source_url = options.source_url or (source.source_url if source else None)

        try:
            await self.gateway.create_job(
                job_id=job_id,
                organization_id=options.organization_id,
                source=options.source,
                source_url=source_url,
            )
        except PersistenceError as e:
            raise JobOrchestrationError(
                f"Could not create ingest job: {e}", job_id=job_id, original_error=e
            ) from e

        bind_context(job_id=job_id, organization_id=options.organization_id)
        logger.info("ingest_job_started", key=options.key, source=options.source)

        try:
            try:
                if source is None or source_url is None:
                    raise IngestionError(f"Unknown regulation: {options.key}")
                result = await self._execute(job_id, options, source, source_url, hooks)
            except Exception as e:
                error_message = str(e) or type(e).__name__
                logger.error(
                    "ingest_job_failed",
                    error=error_message,
                    error_type=type(e).__name__,
                )
                await self._finish(job_id, IngestJobStatus.FAILED, error_message=error_message)
                return IngestJobResult(
                    job_id=job_id,
                    status=IngestJobStatus.FAILED,
                    error=error_message,
                )

            await self._finish(job_id, result.status, log=self._job_log(result))
            logger.info(
                "ingest_job_succeeded",
                articles_created=result.articles_created,
                articles_updated=result.articles_updated,
                obligations_created=result.obligations_created,
                articles_failed=len(result.failed),
            )
            return result
        finally:
            unbind_context("job_id", "organization_id")

    async def ingest_all(
        self,
        organization_id: str,
        keys: Sequence[str] | None = None,
        on_job_start: JobStartCallback | None = None,
        on_job_finish: JobFinishCallback | None = None,
    ) -> list[IngestJobResult]:
        """
        Ingest catalog regulations one job at a time.

        Args:
            organization_id: Tenant that owns every row written
            keys: Catalog keys to ingest, in order (default: the whole catalog)
            on_job_start: Called before each job; may return progress hooks for it
            on_job_finish: Called with each job's result

        Returns:
            One result per key, in order. A failed job does not stop the rest.
        """
        results = []
        for key in keys if keys is not None else list(EUR_LEX_SOURCES):
            source = EUR_LEX_SOURCES[key]
            hooks = on_job_start(source) if on_job_start is not None else None
            result = await self.run(
                IngestJobOptions(organization_id=organization_id, key=key),
                hooks,
            )
            if on_job_finish is not None:
                on_job_finish(source, result)
            results.append(result)
        return results

    async def _execute(
        self,
        job_id: str,
        options: IngestJobOptions,
        source: RegulationSource,
        source_url: str,
        hooks: IngestProgressHooks,
    ) -> IngestJobResult:
        started = time.perf_counter()
        regulation_id = scoped_regulation_id(options.organization_id, source.id)
        stats = IngestionStats(regulation_id=regulation_id)

        document = await self.fetcher.fetch(source_url)
        provisions = self.extractor.extract(document.raw_markup, regulation_id)
        stats.articles_found = len(provisions)

        if not provisions:
            logger.warning(
                "extraction_empty",
                regulation_id=regulation_id,
                url=source_url,
                hint="The source markup may have changed",
            )
            stats.duration_ms = (time.perf_counter() - started) * 1000
            return IngestJobResult(
                job_id=job_id,
                status=IngestJobStatus.SUCCEEDED,
                regulation_id=regulation_id,
                stats=stats,
            )

        ctx = PersistenceContext(
            ingest_job_id=job_id,
            organization_id=options.organization_id,
            source_type=options.source,
        )
        regulation_inserted = await self.gateway.upsert_regulation(
            RegulationRecord(
                id=regulation_id,
                name=source.name,
                full_title=source.full_title,
                jurisdiction=source.jurisdiction,
                source_url=source_url,
                effective_date=source.effective_date,
                celex_number=source.celex_number,
            ),
            ctx,
        )

        batch = await self.enricher.enrich_all(
            provisions,
            source.name,
            on_progress=hooks.on_enrich_progress,
        )

        persisted: BatchUpsertResult = await self.gateway.batch_upsert_articles(
            batch.enriched,
            ctx,
            on_progress=hooks.on_persist_progress,
        )

        stats.articles_processed = len(batch.enriched)
        stats.articles_failed = len(batch.failed)
        stats.obligations_generated = sum(len(a.obligations) for a in batch.enriched)
        stats.tokens_used = batch.total_usage
        stats.duration_ms = (time.perf_counter() - started) * 1000

        return IngestJobResult(
            job_id=job_id,
            status=IngestJobStatus.SUCCEEDED,
            regulation_id=regulation_id,
            regulations_created=int(regulation_inserted),
            articles_created=persisted.articles_inserted,
            articles_updated=persisted.articles_updated,
            articles_unchanged=persisted.articles_unchanged,
            obligations_created=persisted.obligations_inserted,
            failed=batch.failed,
            stats=stats,
        )

    async def _finish(
        self,
        job_id: str,
        status: IngestJobStatus,
        log: str | None = None,
        error_message: str | None = None,
    ) -> None:
        try:
            await self.gateway.finish_job(job_id, status, log=log, error_message=error_message)
        except PersistenceError as e:
            # The job row is now stuck in ``running``
            logger.error("ingest_job_finalize_failed", status=status.value, error=str(e))
            raise JobOrchestrationError(
                f"Could not finalize ingest job {job_id}: {e}",
                job_id=job_id,
                original_error=e,
            ) from e

    def _job_log(self, result: IngestJobResult) -> str:
        stats = result.stats
        payload = {
            "regulationId": result.regulation_id,
            "articlesFound": stats.articles_found if stats else 0,
            "regulationsCreated": result.regulations_created,
            "articlesCreated": result.articles_created,
            "articlesUpdated": result.articles_updated,
            "articlesUnchanged": result.articles_unchanged,
            "obligationsCreated": result.obligations_created,
            "articlesFailed": len(result.failed),
            "failedArticles": [
                {"articleNumber": f.provision.article_number, "error": f.error}
                for f in result.failed[: self._failure_excerpt_size]
            ],
            "tokensUsed": stats.tokens_used.to_dict() if stats else None,
            "durationMs": round(stats.duration_ms) if stats else 0,
        }
        return json.dumps(payload)
