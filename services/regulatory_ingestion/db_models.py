"""
Ingestion Database Models
=========================

SQLAlchemy ORM tables for regulations, articles, obligations and ingest jobs.

Every content row carries its ``organization_id`` plus the ``ingest_job_id``
and ``ingest_timestamp`` of the run that last wrote it. Regulations own
their articles and articles own their obligations; ingest jobs are only
referenced, never owning.

Version: 0.1.0
"""

from datetime import UTC, date, datetime

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from services.regulatory_ingestion.models import IngestJobStatus, ObligationStatus
from shared.database import Base


def utcnow() -> datetime:
    return datetime.now(UTC)


class Regulation(Base):
    """A regulation ingested for one organization."""

    __tablename__ = "regulations"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    organization_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    full_title: Mapped[str] = mapped_column(Text, nullable=False)
    jurisdiction: Mapped[str | None] = mapped_column(String(100), nullable=True)
    effective_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    celex_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="active")

    # Provenance
    source_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    ingest_job_id: Mapped[str | None] = mapped_column(
        Text, ForeignKey("ingest_jobs.id"), nullable=True
    )
    ingest_timestamp: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_updated: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    articles: Mapped[list["Article"]] = relationship(
        "Article", back_populates="regulation", cascade="all, delete-orphan"
    )


class Article(Base):
    """An enriched article of a regulation."""

    __tablename__ = "articles"
    __table_args__ = (Index("ix_articles_org_regulation", "organization_id", "regulation_id"),)

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    organization_id: Mapped[str] = mapped_column(Text, nullable=False)
    regulation_id: Mapped[str] = mapped_column(
        Text, ForeignKey("regulations.id", ondelete="CASCADE"), nullable=False
    )
    article_number: Mapped[str] = mapped_column(String(100), nullable=False)
    section_title: Mapped[str | None] = mapped_column(Text, nullable=True)
    raw_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    risk_level: Mapped[str | None] = mapped_column(String(50), nullable=True)
    system_types: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    review_status: Mapped[str] = mapped_column(String(50), nullable=False, default="pending")

    # Provenance
    checksum: Mapped[str | None] = mapped_column(String(64), nullable=True)
    ingest_job_id: Mapped[str | None] = mapped_column(
        Text, ForeignKey("ingest_jobs.id"), nullable=True
    )
    ingest_timestamp: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    regulation: Mapped["Regulation"] = relationship("Regulation", back_populates="articles")
    obligations: Mapped[list["Obligation"]] = relationship(
        "Obligation", back_populates="article", cascade="all, delete-orphan"
    )


class Obligation(Base):
    """A compliance obligation derived from an article."""

    __tablename__ = "obligations"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    organization_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    article_id: Mapped[str] = mapped_column(
        Text, ForeignKey("articles.id", ondelete="CASCADE"), nullable=False
    )
    regulation_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=ObligationStatus.NOT_STARTED.value
    )
    source_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Provenance
    checksum: Mapped[str | None] = mapped_column(String(64), nullable=True)
    ingest_job_id: Mapped[str | None] = mapped_column(
        Text, ForeignKey("ingest_jobs.id"), nullable=True
    )
    ingest_timestamp: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    article: Mapped["Article"] = relationship("Article", back_populates="obligations")


class IngestJob(Base):
    """One pipeline run. Written twice (start, terminal state) and never deleted."""

    __tablename__ = "ingest_jobs"
    __table_args__ = (Index("ix_ingest_jobs_org_started", "organization_id", "started_at"),)

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    organization_id: Mapped[str] = mapped_column(Text, nullable=False)
    source: Mapped[str] = mapped_column(String(100), nullable=False)
    source_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=IngestJobStatus.PENDING.value
    )  # pending | running | succeeded | failed | partial
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    log: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
