"""
Regulation Sources
==================

Catalog of EUR-Lex regulations the pipeline knows how to ingest.

Version: 0.1.0
"""

from dataclasses import dataclass
from datetime import date


EURLEX_HTML_URL = "https://eur-lex.europa.eu/legal-content/EN/TXT/HTML/?uri=CELEX:{celex}"


@dataclass(frozen=True)
class RegulationSource:
    """A regulation published on EUR-Lex."""

    key: str
    id: str
    name: str
    full_title: str
    jurisdiction: str
    celex_number: str
    effective_date: date

    @property
    def source_url(self) -> str:
        return EURLEX_HTML_URL.format(celex=self.celex_number)


EUR_LEX_SOURCES: dict[str, RegulationSource] = {
    source.key: source
    for source in (
        RegulationSource(
            key="dora",
            id="dora",
            name="DORA",
            full_title="Digital Operational Resilience Act",
            jurisdiction="European Union",
            celex_number="32022R2554",
            effective_date=date(2025, 1, 17),
        ),
        RegulationSource(
            key="gdpr",
            id="gdpr",
            name="GDPR",
            full_title="General Data Protection Regulation",
            jurisdiction="European Union",
            celex_number="32016R0679",
            effective_date=date(2018, 5, 25),
        ),
        RegulationSource(
            key="ai-act",
            id="ai-act",
            name="AI Act",
            full_title="Artificial Intelligence Act",
            jurisdiction="European Union",
            celex_number="32024R1689",
            effective_date=date(2024, 8, 1),
        ),
        RegulationSource(
            key="mica",
            id="mica",
            name="MiCA",
            full_title="Markets in Crypto-Assets Regulation",
            jurisdiction="European Union",
            celex_number="32023R1114",
            effective_date=date(2024, 12, 30),
        ),
        RegulationSource(
            key="nis2",
            id="nis2",
            name="NIS2",
            full_title="Network and Information Security Directive 2",
            jurisdiction="European Union",
            celex_number="32022L2555",
            effective_date=date(2024, 10, 17),
        ),
        RegulationSource(
            key="psd2",
            id="psd2",
            name="PSD2",
            full_title="Payment Services Directive 2",
            jurisdiction="European Union",
            celex_number="32015L2366",
            effective_date=date(2018, 1, 13),
        ),
    )
}

# Accepted spellings on the command line
KEY_ALIASES = {"aiact": "ai-act", "ai_act": "ai-act"}


def resolve_regulation_key(key: str) -> RegulationSource | None:
    """Look up a catalog entry by key, tolerating case and ``aiact``-style aliases."""
    normalized = key.strip().lower()
    normalized = KEY_ALIASES.get(normalized, normalized)
    return EUR_LEX_SOURCES.get(normalized)


def list_available_regulations() -> list[RegulationSource]:
    return list(EUR_LEX_SOURCES.values())
