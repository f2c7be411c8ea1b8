"""
Batch Enricher
==============

Drives the enrichment client over many provisions.

Provisions are processed in consecutive chunks of ``concurrency`` calls. Each
chunk runs concurrently and is fully collected before the next one starts,
with a fixed pause between chunks to stay under the service's rate limits.
A failed call is recorded against its provision and never cancels the other
calls in its chunk.

Version: 0.1.0
"""

import asyncio

from services.regulatory_ingestion.enrichment import EnrichmentClient, EnrichmentResult
from services.regulatory_ingestion.models import (
    BatchEnrichmentResult,
    FailedProvision,
    ProgressCallback,
    Provision,
    report_progress,
)
from shared.config import settings
from shared.logging import get_logger


logger = get_logger(__name__)


class BatchEnricher:
    """
    Chunked, rate-paced enrichment with per-item failure isolation.

    Features:
    - Bounded concurrency (chunk size)
    - Fixed inter-chunk delay
    - Input order preserved in both output lists
    - Aggregate token usage and cost
    """

    def __init__(
        self,
        client: EnrichmentClient,
        concurrency: int | None = None,
        inter_batch_delay_ms: int | None = None,
    ) -> None:
        """
        Initialize the batch enricher.

        Args:
            client: Enrichment client shared by every call
            concurrency: Calls in flight per chunk (default 3)
            inter_batch_delay_ms: Pause between chunks in milliseconds
        """
        self.client = client
        self.concurrency = (
            concurrency if concurrency is not None else settings.ingestion.concurrency
        )
        self.inter_batch_delay_ms = (
            inter_batch_delay_ms
            if inter_batch_delay_ms is not None
            else settings.ingestion.inter_batch_delay_ms
        )
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")

    async def enrich_all(
        self,
        provisions: list[Provision],
        context_name: str,
        on_progress: ProgressCallback | None = None,
    ) -> BatchEnrichmentResult:
        """
        Enrich every provision.

        Args:
            provisions: Provisions to enrich, in output order
            context_name: Regulation name passed to each call
            on_progress: Optional callback(completed, total), called once per chunk

        Returns:
            BatchEnrichmentResult. Never raises for per-item failures, even
            when every item fails.
        """
        result = BatchEnrichmentResult()
        total = len(provisions)

        if total == 0:
            return result

        delay = self.inter_batch_delay_ms / 1000

        for start in range(0, total, self.concurrency):
            chunk = provisions[start : start + self.concurrency]

            outcomes = await asyncio.gather(
                *(self.client.enrich(provision, context_name) for provision in chunk),
                return_exceptions=True,
            )

            # gather() keeps argument order, so outcomes line up with chunk
            for provision, outcome in zip(chunk, outcomes, strict=True):
                if isinstance(outcome, EnrichmentResult):
                    result.enriched.append(outcome.enriched)
                    result.total_usage.add(outcome.usage)
                elif isinstance(outcome, Exception):
                    logger.warning(
                        "provision_enrichment_failed",
                        provision_id=provision.id,
                        error=str(outcome),
                        error_type=type(outcome).__name__,
                    )
                    result.failed.append(
                        FailedProvision(provision=provision, error=str(outcome) or type(outcome).__name__)
                    )
                else:
                    # BaseException other than Exception, e.g. cancellation
                    raise outcome

            completed = min(start + self.concurrency, total)
            report_progress(on_progress, completed, total)

            if completed < total and delay > 0:
                await asyncio.sleep(delay)

        logger.info(
            "batch_enrichment_complete",
            context=context_name,
            total=total,
            enriched=len(result.enriched),
            failed=len(result.failed),
            input_tokens=result.total_usage.input_tokens,
            output_tokens=result.total_usage.output_tokens,
            estimated_cost=round(result.total_usage.estimated_cost, 6),
        )

        return result
