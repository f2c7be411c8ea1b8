"""
Ingestion Data Model
====================

In-memory types passed between pipeline stages, plus the deterministic id and
checksum derivations the persistence layer relies on.

Version: 0.1.0
"""

import hashlib
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any

from shared.logging import get_logger


logger = get_logger(__name__)


_NON_ALNUM = re.compile(r"[^a-z0-9]")

ProgressCallback = Callable[[int, int], None]


class RiskLevel(str, Enum):
    """Risk classification assigned during enrichment."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class IngestJobStatus(str, Enum):
    """Lifecycle state of an ingest job."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    PARTIAL = "partial"

    @property
    def is_terminal(self) -> bool:
        return self in (
            IngestJobStatus.SUCCEEDED,
            IngestJobStatus.FAILED,
            IngestJobStatus.PARTIAL,
        )


class ObligationStatus(str, Enum):
    """Workflow status of a persisted obligation."""

    PENDING = "pending"
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLIANT = "compliant"
    NON_COMPLIANT = "non_compliant"


def normalize_article_number(number: str) -> str:
    """Lowercase and strip everything but ``[a-z0-9]`` (``"11 A"`` -> ``"11a"``)."""
    return _NON_ALNUM.sub("", number.lower())


def scoped_regulation_id(organization_id: str, regulation_key: str) -> str:
    """Tenant-scoped regulation id, e.g. ``finbank-eu-dora``."""
    return f"{organization_id}-{regulation_key}"


def derive_provision_id(regulation_id: str, number: str) -> str:
    """Stable provision id, e.g. ``("finbank-eu-dora", "11a")`` -> ``finbank-eu-dora-article-11a``."""
    return f"{regulation_id}-article-{normalize_article_number(number)}"


def derive_obligation_id(article_id: str, index: int) -> str:
    """
    Obligation id for the ``index``-th (0-based) obligation of an article.

    Identity depends on emission order: the same obligation reported at a
    different position gets a different id.
    """
    return f"OBL-{article_id}-{index + 1:03d}"


def derive_obligation_ids(article_id: str, obligations: list["ObligationDraft"]) -> list[str]:
    return [derive_obligation_id(article_id, i) for i in range(len(obligations))]


def compute_checksum(text: str | None) -> str:
    """SHA-256 hex digest of ``text`` (empty string when ``None``)."""
    return hashlib.sha256((text or "").encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class SourceDocument:
    """A fetched source document. Never persisted."""

    url: str
    raw_markup: str
    fetched_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class Provision:
    """A numbered article extracted from a source document, before enrichment."""

    id: str
    regulation_id: str
    number: str
    full_text: str
    section_title: str | None = None

    @classmethod
    def create(
        cls,
        regulation_id: str,
        number: str,
        full_text: str,
        section_title: str | None = None,
    ) -> "Provision":
        return cls(
            id=derive_provision_id(regulation_id, number),
            regulation_id=regulation_id,
            number=number,
            full_text=full_text,
            section_title=section_title or None,
        )

    @property
    def article_number(self) -> str:
        """Display form, e.g. ``Article 11a``."""
        return f"Article {self.number}"


@dataclass(frozen=True)
class ObligationDraft:
    """A compliance obligation proposed by the enrichment service."""

    title: str
    description: str

    @property
    def checksum(self) -> str:
        return compute_checksum(self.title + self.description)


@dataclass(frozen=True)
class EnrichedProvision:
    """A provision plus the enrichment service's analysis of it."""

    provision: Provision
    ai_summary: str
    risk_level: RiskLevel
    obligations: tuple[ObligationDraft, ...] = ()
    system_types: tuple[str, ...] = ()

    @property
    def id(self) -> str:
        return self.provision.id

    @property
    def regulation_id(self) -> str:
        return self.provision.regulation_id

    @property
    def number(self) -> str:
        return self.provision.number

    @property
    def article_number(self) -> str:
        return self.provision.article_number

    @property
    def section_title(self) -> str | None:
        return self.provision.section_title

    @property
    def full_text(self) -> str:
        return self.provision.full_text

    @property
    def checksum(self) -> str:
        """Checksum of the article text, falling back to the summary."""
        return compute_checksum(self.full_text or self.ai_summary)

    def obligation_ids(self, article_id: str | None = None) -> list[str]:
        return derive_obligation_ids(article_id or self.id, list(self.obligations))


@dataclass
class TokenUsage:
    """Accumulated enrichment token usage and estimated cost."""

    input_tokens: int = 0
    output_tokens: int = 0
    estimated_cost: float = 0.0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def add(self, other: "TokenUsage") -> None:
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.estimated_cost += other.estimated_cost

    def to_dict(self) -> dict[str, Any]:
        return {
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "estimatedCost": round(self.estimated_cost, 6),
        }


@dataclass(frozen=True)
class FailedProvision:
    """A provision whose enrichment failed, with the reason."""

    provision: Provision
    error: str


@dataclass
class BatchEnrichmentResult:
    """Outcome of enriching a list of provisions."""

    enriched: list[EnrichedProvision] = field(default_factory=list)
    failed: list[FailedProvision] = field(default_factory=list)
    total_usage: TokenUsage = field(default_factory=TokenUsage)

    @property
    def total(self) -> int:
        return len(self.enriched) + len(self.failed)

    def __iter__(self) -> Iterator[Any]:
        # Allows ``enriched, failed, usage = result``
        return iter((self.enriched, self.failed, self.total_usage))


@dataclass(frozen=True)
class RegulationRecord:
    """Regulation metadata to persist for a tenant."""

    id: str
    name: str
    full_title: str
    jurisdiction: str
    source_url: str
    effective_date: date | None = None
    celex_number: str | None = None


@dataclass
class IngestionStats:
    """Statistics for one regulation ingestion run."""

    regulation_id: str
    articles_found: int = 0
    articles_processed: int = 0
    articles_failed: int = 0
    obligations_generated: int = 0
    tokens_used: TokenUsage = field(default_factory=TokenUsage)
    duration_ms: float = 0.0

    @property
    def estimated_cost(self) -> float:
        return self.tokens_used.estimated_cost


def report_progress(on_progress: ProgressCallback | None, completed: int, total: int) -> None:
    """Invoke a progress callback; a failing callback is logged and ignored."""
    if on_progress is None:
        return
    try:
        on_progress(completed, total)
    except Exception as e:
        logger.warning("progress_callback_failed", error=str(e), completed=completed, total=total)
