"""
Tests for Batch Enricher
========================

Tests for:
- Per-item failure isolation
- Order preservation
- Progress reporting
- Inter-chunk pacing

Version: 0.1.0
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from services.regulatory_ingestion.batch import BatchEnricher
from services.regulatory_ingestion.enrichment import EnrichmentClient
from services.regulatory_ingestion.errors import EnrichmentError
from shared.config import settings
from tests.fakes import ScriptedLLMProvider, article_number_of, enrichment_reply


def _every_third_fails(messages) -> str | Exception:
    number = int(article_number_of(messages).removeprefix("Article "))
    if number % 3 == 0:
        return EnrichmentError(f"boom {number}")
    return enrichment_reply(summary=f"S{number}")


@pytest.fixture
def provisions(make_provision):
    return [make_provision(number=str(i), text=f"Text {i}") for i in range(1, 11)]


class TestBatchEnricher:
    """Tests for BatchEnricher.enrich_all."""

    @pytest.mark.asyncio
    async def test_failures_are_isolated(self, provisions) -> None:
        enricher = BatchEnricher(
            EnrichmentClient(ScriptedLLMProvider(_every_third_fails)),
            concurrency=3,
            inter_batch_delay_ms=0,
        )

        result = await enricher.enrich_all(provisions, "DORA")

        assert [p.number for p in result.enriched] == ["1", "2", "4", "5", "7", "8", "10"]
        assert [f.provision.number for f in result.failed] == ["3", "6", "9"]
        assert result.total == len(provisions)
        assert "boom 3" in result.failed[0].error

    @pytest.mark.asyncio
    async def test_usage_aggregated_over_successes_only(self, provisions) -> None:
        enricher = BatchEnricher(
            EnrichmentClient(
                ScriptedLLMProvider(_every_third_fails, prompt_tokens=10, completion_tokens=5, cost=0.5)
            ),
            concurrency=3,
            inter_batch_delay_ms=0,
        )

        result = await enricher.enrich_all(provisions, "DORA")

        assert result.total_usage.input_tokens == 70
        assert result.total_usage.output_tokens == 35
        assert result.total_usage.estimated_cost == pytest.approx(3.5)

    @pytest.mark.asyncio
    async def test_order_preserved_when_calls_finish_out_of_order(self, provisions) -> None:
        client = EnrichmentClient(ScriptedLLMProvider(lambda _: enrichment_reply()))
        real_enrich = client.enrich

        async def slow_first(provision, context):
            # Earlier provisions in a chunk finish last
            await asyncio.sleep(0.01 * (3 - int(provision.number) % 3))
            return await real_enrich(provision, context)

        client.enrich = slow_first  # type: ignore[method-assign]
        enricher = BatchEnricher(client, concurrency=3, inter_batch_delay_ms=0)

        result = await enricher.enrich_all(provisions, "DORA")

        assert [p.id for p in result.enriched] == [p.id for p in provisions]

    @pytest.mark.asyncio
    async def test_progress_is_monotonic_and_ends_at_total(self, provisions) -> None:
        seen: list[tuple[int, int]] = []
        enricher = BatchEnricher(
            EnrichmentClient(ScriptedLLMProvider(_every_third_fails)),
            concurrency=3,
            inter_batch_delay_ms=0,
        )

        await enricher.enrich_all(provisions, "DORA", on_progress=lambda c, t: seen.append((c, t)))

        assert seen == [(3, 10), (6, 10), (9, 10), (10, 10)]

    @pytest.mark.asyncio
    async def test_progress_callback_errors_ignored(self, provisions) -> None:
        enricher = BatchEnricher(
            EnrichmentClient(ScriptedLLMProvider(lambda _: enrichment_reply())),
            concurrency=5,
            inter_batch_delay_ms=0,
        )

        def broken(completed: int, total: int) -> None:
            raise RuntimeError("display gone")

        result = await enricher.enrich_all(provisions, "DORA", on_progress=broken)

        assert len(result.enriched) == 10

    @pytest.mark.asyncio
    async def test_empty_input(self) -> None:
        client = AsyncMock(spec=EnrichmentClient)
        progress = []
        enricher = BatchEnricher(client, concurrency=3, inter_batch_delay_ms=0)

        result = await enricher.enrich_all([], "DORA", on_progress=lambda c, t: progress.append(c))

        assert result.enriched == []
        assert result.failed == []
        assert result.total_usage.total_tokens == 0
        client.enrich.assert_not_called()
        assert progress == []

    @pytest.mark.asyncio
    async def test_all_failing_does_not_raise(self, provisions) -> None:
        enricher = BatchEnricher(
            EnrichmentClient(ScriptedLLMProvider(lambda _: "garbage")),
            concurrency=4,
            inter_batch_delay_ms=0,
        )

        result = await enricher.enrich_all(provisions, "DORA")

        assert result.enriched == []
        assert len(result.failed) == 10

    @pytest.mark.asyncio
    async def test_delay_between_chunks_only(self, provisions) -> None:
        enricher = BatchEnricher(
            EnrichmentClient(ScriptedLLMProvider(lambda _: enrichment_reply())),
            concurrency=3,
            inter_batch_delay_ms=300,
        )

        with patch(
            "services.regulatory_ingestion.batch.asyncio.sleep", new_callable=AsyncMock
        ) as sleep:
            await enricher.enrich_all(provisions, "DORA")

        # 10 items in chunks of 3 -> 4 chunks, 3 gaps
        assert sleep.await_count == 3
        sleep.assert_awaited_with(0.3)

    @pytest.mark.asyncio
    async def test_in_flight_calls_bounded(self, provisions) -> None:
        in_flight = 0
        peak = 0
        client = EnrichmentClient(ScriptedLLMProvider(lambda _: enrichment_reply()))
        real_enrich = client.enrich

        async def tracked(provision, context):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0)
            try:
                return await real_enrich(provision, context)
            finally:
                in_flight -= 1

        client.enrich = tracked  # type: ignore[method-assign]
        enricher = BatchEnricher(client, concurrency=2, inter_batch_delay_ms=0)

        await enricher.enrich_all(provisions, "DORA")

        assert peak == 2

    @pytest.mark.parametrize("concurrency", [0, -1])
    def test_concurrency_must_be_positive(self, concurrency: int) -> None:
        with pytest.raises(ValueError):
            BatchEnricher(AsyncMock(spec=EnrichmentClient), concurrency=concurrency)

    def test_concurrency_defaults_from_settings(self) -> None:
        enricher = BatchEnricher(AsyncMock(spec=EnrichmentClient))

        assert enricher.concurrency == settings.ingestion.concurrency
