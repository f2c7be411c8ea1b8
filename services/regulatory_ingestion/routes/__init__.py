"""
Regulatory Ingestion Routes
===========================

API route handlers for the Regulatory Ingestion Service.

Routes:
- jobs: Read-only ingest job status
"""

from services.regulatory_ingestion.routes import jobs


__all__ = ["jobs"]
