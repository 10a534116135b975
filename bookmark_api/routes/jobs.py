"""
Lester v1 - Tag Job Routes

Read-only view of the tag job queue. Failed jobs are not retried
automatically; their attempt count is exposed here for an external policy.
"""

from uuid import UUID

from fastapi import APIRouter

from shared.errors import NotFoundError
from shared.models import TagJob

from ..db import get_store

router = APIRouter(prefix="/jobs", tags=["Jobs"])


@router.get("/summary", response_model=dict[str, int])
def job_summary():
    """Number of tag jobs per status."""
    return get_store().tag_job_summary()


@router.get("/{job_id}", response_model=TagJob)
def get_job(job_id: UUID):
    job = get_store().get_tag_job(job_id)
    if job is None:
        raise NotFoundError(f"tag job {job_id} not found")
    return job
