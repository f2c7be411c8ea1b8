"""
Cindral Services
================

Services for the Cindral regulatory compliance platform.

Services:
- regulatory_ingestion: EUR-Lex ingestion, LLM enrichment and persistence
"""

__all__ = [
    "regulatory_ingestion",
]
