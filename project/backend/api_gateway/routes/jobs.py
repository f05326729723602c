"""
Job endpoints.

Job status polling.
"""

from fastapi import APIRouter, Depends, HTTPException, Path, status
from shared.logging import get_logger
from api_gateway.dependencies import get_job_store, verify_api_secret
from modules.composer.job_store import JobStore

logger = get_logger(__name__)

router = APIRouter()


@router.get("/jobs/{job_id}", dependencies=[Depends(verify_api_secret)])
async def get_job_status(
    job_id: str = Path(...),
    job_store: JobStore = Depends(get_job_store)
):
    """
    Get job status.

    Args:
        job_id: Job ID

    Returns:
        {jobId, status, stage, progress, error}
    """
    job = job_store.get(job_id)
    if job is None:
        logger.debug("Job not found", extra={"job_id": job_id})
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return job.to_status()
