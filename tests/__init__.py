"""
Cindral Ingestion Test Suite
============================

Test organization:
- tests/unit/                           - Shared library (config, logging, LLM provider)
- tests/services/regulatory_ingestion/  - Pipeline components, CLI and API

Run tests:
    pytest                                       # All tests
    pytest tests/unit                            # Shared library only
    pytest tests/services/regulatory_ingestion   # Pipeline only

Everything runs offline: HTTP goes through httpx.MockTransport, the LLM
through a scripted provider and the database through in-memory SQLite.
"""
