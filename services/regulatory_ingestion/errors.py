"""
Ingestion Errors
================

Exception taxonomy for the ingestion pipeline.

Fetch and persistence errors propagate to the orchestrator, which turns them
into a failed job. Enrichment errors are per-article and are collected by the
batch enricher instead of being raised.

Version: 0.1.0
"""


class IngestionError(Exception):
    """Base class for ingestion pipeline errors."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.original_error = original_error


class FetchError(IngestionError):
    """Source document could not be retrieved (non-2xx or transport failure)."""

    def __init__(
        self,
        url: str,
        status: int | None,
        status_text: str,
        original_error: Exception | None = None,
    ) -> None:
        if status is None:
            message = f"Failed to fetch {url}: {status_text}"
        else:
            message = f"Failed to fetch {url}: {status} {status_text}"
        super().__init__(message, original_error)
        self.url = url
        self.status = status
        self.status_text = status_text


class EnrichmentError(IngestionError):
    """A single provision could not be enriched."""

    def __init__(
        self,
        message: str,
        provision_id: str | None = None,
        raw_text: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error)
        self.provision_id = provision_id
        self.raw_text = raw_text


class PersistenceError(IngestionError):
    """A relational store read or write failed."""

    def __init__(
        self,
        message: str,
        entity: str | None = None,
        entity_id: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error)
        self.entity = entity
        self.entity_id = entity_id


class JobOrchestrationError(IngestionError):
    """The ingest job itself could not be tracked or driven to a terminal state."""

    def __init__(
        self,
        message: str,
        job_id: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error)
        self.job_id = job_id
