"""
Persistence Gateway
===================

Idempotent writes of regulations, articles and obligations, plus ingest job
bookkeeping.

Every lookup is scoped by ``organization_id``. Writes within a run are issued
one at a time, each in its own transaction.

Article writes are checksum-aware: re-ingesting an article whose text hashes
to the stored checksum leaves the row untouched. Obligations are only ever
created; an existing obligation id is skipped, never updated.

Version: 0.1.0
"""

from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from services.regulatory_ingestion.db_models import (
    Article,
    IngestJob,
    Obligation,
    Regulation,
)
from services.regulatory_ingestion.errors import PersistenceError
from services.regulatory_ingestion.models import (
    EnrichedProvision,
    IngestJobStatus,
    ObligationStatus,
    ProgressCallback,
    RegulationRecord,
    report_progress,
)
from shared.database import PostgresClient
from shared.logging import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class PersistenceContext:
    """Provenance applied to every row written during one job."""

    ingest_job_id: str
    organization_id: str
    source_type: str = "eur-lex"


@dataclass
class ArticleUpsertResult:
    """What a single article upsert did."""

    article_inserted: bool = False
    article_updated: bool = False
    obligations_inserted: int = 0

    @property
    def article_unchanged(self) -> bool:
        return not (self.article_inserted or self.article_updated)


@dataclass
class BatchUpsertResult:
    """Aggregate counts for a batch of article upserts."""

    articles_inserted: int = 0
    articles_updated: int = 0
    articles_unchanged: int = 0
    obligations_inserted: int = 0

    def add(self, result: ArticleUpsertResult) -> None:
        if result.article_inserted:
            self.articles_inserted += 1
        elif result.article_updated:
            self.articles_updated += 1
        else:
            self.articles_unchanged += 1
        self.obligations_inserted += result.obligations_inserted


@dataclass(frozen=True)
class DatabaseSummary:
    regulations: int
    articles: int
    obligations: int
    ingest_jobs: int


class IngestJobStatusView(BaseModel):
    """Read-only view of an ingest job for dashboards and tooling."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    organization_id: str
    source: str
    status: IngestJobStatus
    started_at: datetime
    finished_at: datetime | None = None
    error_message: str | None = None


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PersistenceGateway:
    """
    Relational store access for the ingestion pipeline.

    Usage:
        gateway = PersistenceGateway()
        ctx = PersistenceContext(ingest_job_id=job_id, organization_id="finbank-eu")
        await gateway.upsert_regulation(record, ctx)
        counts = await gateway.batch_upsert_articles(enriched, ctx)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Args:
            session_factory: Session factory (default: the process-wide one)
            clock: Source of provenance timestamps
        """
        self._session_factory = session_factory or PostgresClient.get_session_factory()
        self._clock = clock or _utcnow

    @asynccontextmanager
    async def _transaction(
        self,
        entity: str,
        entity_id: str | None = None,
    ) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as e:
            logger.error(
                "persistence_failed",
                entity=entity,
                entity_id=entity_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise PersistenceError(
                f"Failed to write {entity} {entity_id or ''}".strip() + f": {e}",
                entity=entity,
                entity_id=entity_id,
                original_error=e,
            ) from e

    # =========================================================================
    # Regulations, articles, obligations
    # =========================================================================

    async def upsert_regulation(
        self,
        regulation: RegulationRecord,
        ctx: PersistenceContext,
    ) -> bool:
        """
        Insert or overwrite a regulation.

        Returns:
            True if a new row was inserted
        """
        now = self._clock()

        async with self._transaction("regulation", regulation.id) as session:
            existing = await session.scalar(
                select(Regulation).where(
                    Regulation.id == regulation.id,
                    Regulation.organization_id == ctx.organization_id,
                )
            )

            if existing is None:
                session.add(
                    Regulation(
                        id=regulation.id,
                        organization_id=ctx.organization_id,
                        name=regulation.name,
                        full_title=regulation.full_title,
                        jurisdiction=regulation.jurisdiction,
                        effective_date=regulation.effective_date,
                        celex_number=regulation.celex_number,
                        source_url=regulation.source_url,
                        source_type=ctx.source_type,
                        ingest_job_id=ctx.ingest_job_id,
                        ingest_timestamp=now,
                        last_updated=now,
                    )
                )
                inserted = True
            else:
                existing.name = regulation.name
                existing.full_title = regulation.full_title
                existing.jurisdiction = regulation.jurisdiction
                existing.effective_date = regulation.effective_date
                existing.celex_number = regulation.celex_number
                existing.source_url = regulation.source_url
                existing.source_type = ctx.source_type
                existing.ingest_job_id = ctx.ingest_job_id
                existing.ingest_timestamp = now
                existing.last_updated = now
                inserted = False

        logger.info(
            "regulation_upserted",
            regulation_id=regulation.id,
            organization_id=ctx.organization_id,
            inserted=inserted,
        )
        return inserted

    async def upsert_article(
        self,
        article: EnrichedProvision,
        ctx: PersistenceContext,
    ) -> ArticleUpsertResult:
        """
        Insert, update or skip an article, then create any missing obligations.

        Args:
            article: Enriched provision; its id is the article id
            ctx: Job provenance

        Returns:
            ArticleUpsertResult
        """
        result = ArticleUpsertResult()
        checksum = article.checksum
        now = self._clock()

        async with self._transaction("article", article.id) as session:
            existing = await session.scalar(
                select(Article).where(
                    Article.id == article.id,
                    Article.organization_id == ctx.organization_id,
                )
            )

            if existing is None:
                session.add(
                    Article(
                        id=article.id,
                        organization_id=ctx.organization_id,
                        regulation_id=article.regulation_id,
                        article_number=article.article_number,
                        section_title=article.section_title,
                        raw_text=article.full_text,
                        ai_summary=article.ai_summary,
                        risk_level=article.risk_level.value,
                        system_types=list(article.system_types),
                        checksum=checksum,
                        ingest_job_id=ctx.ingest_job_id,
                        ingest_timestamp=now,
                    )
                )
                result.article_inserted = True
            elif existing.checksum != checksum:
                existing.article_number = article.article_number
                existing.section_title = article.section_title
                existing.raw_text = article.full_text
                existing.ai_summary = article.ai_summary
                existing.risk_level = article.risk_level.value
                existing.system_types = list(article.system_types)
                existing.checksum = checksum
                existing.ingest_job_id = ctx.ingest_job_id
                existing.ingest_timestamp = now
                result.article_updated = True

            obligation_ids = article.obligation_ids()
            if obligation_ids:
                present = set(
                    await session.scalars(
                        select(Obligation.id).where(
                            Obligation.id.in_(obligation_ids),
                            Obligation.organization_id == ctx.organization_id,
                        )
                    )
                )
                for obligation_id, draft in zip(obligation_ids, article.obligations, strict=True):
                    if obligation_id in present:
                        continue
                    session.add(
                        Obligation(
                            id=obligation_id,
                            organization_id=ctx.organization_id,
                            article_id=article.id,
                            regulation_id=article.regulation_id,
                            title=draft.title,
                            summary=draft.description,
                            status=ObligationStatus.NOT_STARTED.value,
                            source_type="llm",
                            checksum=draft.checksum,
                            ingest_job_id=ctx.ingest_job_id,
                            ingest_timestamp=now,
                        )
                    )
                    result.obligations_inserted += 1

        logger.debug(
            "article_upserted",
            article_id=article.id,
            inserted=result.article_inserted,
            updated=result.article_updated,
            obligations_inserted=result.obligations_inserted,
        )
        return result

    async def batch_upsert_articles(
        self,
        articles: list[EnrichedProvision],
        ctx: PersistenceContext,
        on_progress: ProgressCallback | None = None,
    ) -> BatchUpsertResult:
        """
        Upsert articles one after another.

        Raises:
            PersistenceError: On the first failed write; earlier writes stay committed
        """
        totals = BatchUpsertResult()
        total = len(articles)

        for i, article in enumerate(articles, start=1):
            totals.add(await self.upsert_article(article, ctx))
            report_progress(on_progress, i, total)

        logger.info(
            "articles_persisted",
            organization_id=ctx.organization_id,
            inserted=totals.articles_inserted,
            updated=totals.articles_updated,
            unchanged=totals.articles_unchanged,
            obligations_inserted=totals.obligations_inserted,
        )
        return totals

    # =========================================================================
    # Ingest jobs
    # =========================================================================

    async def create_job(
        self,
        job_id: str,
        organization_id: str,
        source: str,
        source_url: str | None = None,
    ) -> IngestJobStatusView:
        """Insert a job directly in the ``running`` state."""
        async with self._transaction("ingest_job", job_id) as session:
            job = IngestJob(
                id=job_id,
                organization_id=organization_id,
                source=source,
                source_url=source_url,
                status=IngestJobStatus.RUNNING.value,
                started_at=self._clock(),
            )
            session.add(job)

        return IngestJobStatusView.model_validate(job)

    async def finish_job(
        self,
        job_id: str,
        status: IngestJobStatus,
        log: str | None = None,
        error_message: str | None = None,
    ) -> IngestJobStatusView:
        """Move a job to a terminal state."""
        if not status.is_terminal:
            raise ValueError(f"{status.value} is not a terminal job status")

        async with self._transaction("ingest_job", job_id) as session:
            job = await session.get(IngestJob, job_id)
            if job is None:
                raise PersistenceError(
                    f"Ingest job {job_id} not found",
                    entity="ingest_job",
                    entity_id=job_id,
                )
            job.status = status.value
            job.finished_at = self._clock()
            job.log = log
            job.error_message = error_message

        return IngestJobStatusView.model_validate(job)

    async def get_job_status(
        self,
        job_id: str,
        organization_id: str | None = None,
    ) -> IngestJobStatusView | None:
        async with self._transaction("ingest_job", job_id) as session:
            query = select(IngestJob).where(IngestJob.id == job_id)
            if organization_id is not None:
                query = query.where(IngestJob.organization_id == organization_id)
            job = await session.scalar(query)
            return IngestJobStatusView.model_validate(job) if job is not None else None

    async def list_jobs(
        self,
        organization_id: str | None = None,
        limit: int = 10,
    ) -> list[IngestJobStatusView]:
        """Most recent jobs first."""
        async with self._transaction("ingest_job") as session:
            query = select(IngestJob).order_by(IngestJob.started_at.desc()).limit(limit)
            if organization_id is not None:
                query = query.where(IngestJob.organization_id == organization_id)
            jobs = await session.scalars(query)
            return [IngestJobStatusView.model_validate(job) for job in jobs]

    async def database_summary(self, organization_id: str | None = None) -> DatabaseSummary:
        """Row counts per table, optionally for one organization."""
        counts: dict[str, int] = {}

        async with self._transaction("summary") as session:
            for name, model in (
                ("regulations", Regulation),
                ("articles", Article),
                ("obligations", Obligation),
                ("ingest_jobs", IngestJob),
            ):
                query = select(func.count()).select_from(model)
                if organization_id is not None:
                    query = query.where(model.organization_id == organization_id)
                counts[name] = (await session.scalar(query)) or 0

        return DatabaseSummary(**counts)
