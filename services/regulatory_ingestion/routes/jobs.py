"""
Ingest Job Routes
=================

Read-only API endpoints for ingest job status. Jobs are started from the CLI.

Every endpoint requires ``organization_id``; a tenant only ever sees its own
jobs. Cross-tenant listings are available from the CLI (``--status`` without
``--org``), not over HTTP.

Version: 0.1.0
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from services.regulatory_ingestion.persistence import (
    IngestJobStatusView,
    PersistenceGateway,
)
from shared.logging import get_logger


logger = get_logger(__name__)

router = APIRouter()


def get_gateway() -> PersistenceGateway:
    """Gateway dependency, overridable in tests."""
    return PersistenceGateway()


GatewayDep = Annotated[PersistenceGateway, Depends(get_gateway)]


@router.get("/jobs", response_model=list[IngestJobStatusView])
async def list_jobs(
    gateway: GatewayDep,
    organization_id: str = Query(..., description="Organization whose jobs to list"),
    limit: int = Query(default=10, ge=1, le=100),
) -> list[IngestJobStatusView]:
    """
    List an organization's recent ingest jobs, newest first.
    """
    return await gateway.list_jobs(organization_id, limit=limit)


@router.get("/jobs/{job_id}", response_model=IngestJobStatusView)
async def get_job(
    job_id: str,
    gateway: GatewayDep,
    organization_id: str = Query(..., description="Organization that owns the job"),
) -> IngestJobStatusView:
    """
    Get the status of a single ingest job.

    A job owned by another organization is reported as not found.
    """
    job = await gateway.get_job_status(job_id, organization_id)
    if job is None:
        logger.info("ingest_job_not_found", job_id=job_id, organization_id=organization_id)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Ingest job {job_id} not found",
        )
    return job
