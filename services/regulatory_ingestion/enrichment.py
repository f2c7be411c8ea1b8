"""
Enrichment Client
=================

Sends one provision to the text-analysis service and turns the reply into an
`EnrichedProvision`.

Response parsing is split out into `parse_enrichment_response`, which returns
a tagged result instead of raising, so malformed model output is an ordinary
value callers branch on.

Version: 0.1.0
"""

import json
import re
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from services.regulatory_ingestion.errors import EnrichmentError
from services.regulatory_ingestion.models import (
    EnrichedProvision,
    ObligationDraft,
    Provision,
    RiskLevel,
    TokenUsage,
)
from shared.config import settings
from shared.llm import LLMMessage, LLMProvider
from shared.logging import get_logger


logger = get_logger(__name__)


SYSTEM_PROMPT = """You are an expert regulatory compliance analyst specializing in financial regulations, data protection, and AI governance. Your task is to analyze regulatory articles and provide:

1. A plain English summary (2-3 sentences) that a non-lawyer can understand
2. Risk level assessment (critical/high/medium/low) based on:
   - Critical: Direct requirements with severe penalties, tight deadlines, or fundamental obligations
   - High: Significant compliance burden, notable penalties, specific technical requirements
   - Medium: Standard compliance requirements, moderate complexity
   - Low: Informational, definitional, or minor procedural requirements
3. Specific compliance obligations that organizations must fulfill
4. System types this regulation primarily applies to (e.g., "Core Banking", "Payment Systems", "Customer Data", "AI/ML Systems", "Cloud Infrastructure")

Respond in valid JSON format only."""

RESPONSE_FORMAT = """{
  "summary": "Plain English summary here",
  "riskLevel": "critical|high|medium|low",
  "obligations": [
    {"title": "Short obligation title", "description": "Detailed description of what must be done"}
  ],
  "systemTypes": ["System Type 1", "System Type 2"]
}"""

_FENCE_OPEN = re.compile(r"^```[a-zA-Z]*\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")


class ObligationPayload(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""


class EnrichmentPayload(BaseModel):
    """Expected JSON shape of an enrichment reply."""

    model_config = ConfigDict(populate_by_name=True)

    summary: str = Field(min_length=1)
    risk_level: RiskLevel = Field(alias="riskLevel")
    obligations: list[ObligationPayload] = Field(default_factory=list)
    system_types: list[str] = Field(default_factory=list, alias="systemTypes")

    @field_validator("risk_level", mode="before")
    @classmethod
    def normalize_risk_level(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().lower()
        return v


@dataclass(frozen=True)
class ParsedEnrichment:
    """Successful parse."""

    payload: EnrichmentPayload


@dataclass(frozen=True)
class EnrichmentParseError:
    """Reply could not be read as an enrichment payload."""

    raw_text: str
    reason: str


EnrichmentParseResult = ParsedEnrichment | EnrichmentParseError


def strip_code_fences(text: str) -> str:
    """Remove a surrounding Markdown code fence (```json ... ```), if any."""
    text = text.strip()
    text = _FENCE_OPEN.sub("", text)
    text = _FENCE_CLOSE.sub("", text)
    return text.strip()


def parse_enrichment_response(text: str) -> EnrichmentParseResult:
    """
    Parse a model reply into an `EnrichmentPayload`.

    Tries the fence-stripped text first, then the outermost ``{...}`` span for
    replies that wrap the JSON in prose. Never raises.
    """
    candidate = strip_code_fences(text)
    if not candidate:
        return EnrichmentParseError(raw_text=text, reason="empty response")

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        start, end = candidate.find("{"), candidate.rfind("}")
        if start == -1 or end <= start:
            return EnrichmentParseError(raw_text=text, reason=f"invalid JSON: {e.msg}")
        try:
            data = json.loads(candidate[start : end + 1])
        except json.JSONDecodeError as inner:
            return EnrichmentParseError(raw_text=text, reason=f"invalid JSON: {inner.msg}")

    if not isinstance(data, dict):
        return EnrichmentParseError(raw_text=text, reason="expected a JSON object")

    try:
        payload = EnrichmentPayload.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        return EnrichmentParseError(raw_text=text, reason=f"unexpected shape: {fields}")

    return ParsedEnrichment(payload=payload)


@dataclass(frozen=True)
class EnrichmentResult:
    """An enriched provision and the tokens spent producing it."""

    enriched: EnrichedProvision
    usage: TokenUsage


class EnrichmentClient:
    """
    Wraps a single enrichment call to the LLM provider.

    The provider is injected so one instance can be shared across a run and
    replaced by a fake in tests.
    """

    def __init__(
        self,
        provider: LLMProvider,
        max_tokens: int | None = None,
    ) -> None:
        self._provider = provider
        self._max_tokens = max_tokens or settings.llm.claude.max_tokens

    @property
    def provider(self) -> LLMProvider:
        return self._provider

    def build_messages(self, provision: Provision, regulation_name: str) -> list[LLMMessage]:
        section = f"Section: {provision.section_title}\n" if provision.section_title else ""
        user_prompt = (
            f"Analyze this article from {regulation_name}:\n\n"
            f"Article Number: {provision.article_number}\n"
            f"{section}\n"
            f"Full Text:\n{provision.full_text}\n\n"
            f"Respond with JSON in this exact format:\n{RESPONSE_FORMAT}"
        )
        return [
            LLMMessage(role="system", content=SYSTEM_PROMPT),
            LLMMessage(role="user", content=user_prompt),
        ]

    async def enrich(self, provision: Provision, regulation_name: str) -> EnrichmentResult:
        """
        Enrich one provision.

        Args:
            provision: Provision to analyse
            regulation_name: Display name of the parent regulation, used as context

        Returns:
            EnrichmentResult

        Raises:
            EnrichmentError: If the service call fails, returns no text, or
                returns text that is not a valid enrichment payload
        """
        messages = self.build_messages(provision, regulation_name)

        try:
            response = await self._provider.complete(messages, max_tokens=self._max_tokens)
        except Exception as e:
            raise EnrichmentError(
                f"Enrichment request failed: {e}",
                provision_id=provision.id,
                original_error=e,
            ) from e

        if not response.content.strip():
            raise EnrichmentError(
                "No text response from enrichment service",
                provision_id=provision.id,
            )

        result = parse_enrichment_response(response.content)
        if isinstance(result, EnrichmentParseError):
            logger.warning(
                "enrichment_response_unparseable",
                provision_id=provision.id,
                reason=result.reason,
                preview=result.raw_text[:200],
            )
            raise EnrichmentError(
                f"Failed to parse enrichment response: {result.reason}",
                provision_id=provision.id,
                raw_text=result.raw_text,
            )

        payload = result.payload
        enriched = EnrichedProvision(
            provision=provision,
            ai_summary=payload.summary,
            risk_level=payload.risk_level,
            obligations=tuple(
                ObligationDraft(title=o.title, description=o.description)
                for o in payload.obligations
            ),
            system_types=tuple(payload.system_types),
        )
        usage = TokenUsage(
            input_tokens=response.usage.prompt_tokens,
            output_tokens=response.usage.completion_tokens,
            estimated_cost=response.usage.total_cost,
        )

        logger.debug(
            "provision_enriched",
            provision_id=provision.id,
            risk_level=enriched.risk_level.value,
            obligations=len(enriched.obligations),
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
        )
        return EnrichmentResult(enriched=enriched, usage=usage)
