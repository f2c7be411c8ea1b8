"""
Regulatory Ingestion Service
============================

Pulls regulations from EUR-Lex, splits them into articles, enriches each
article with an LLM (summary, risk level, obligations, system types) and
stores the result per organization.

Features:
- Polite HTML fetching of published regulations
- Article extraction with a container fallback
- Bounded-concurrency enrichment with per-article failure isolation
- Checksum-aware, idempotent persistence with job provenance
- CLI (``python -m services.regulatory_ingestion``) and read-only job API

Port: 8010
"""

__version__ = "0.1.0"
