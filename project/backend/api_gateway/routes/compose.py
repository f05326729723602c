"""
Composition endpoint.

Accepts a scene composition request and processes it in the background.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from shared.logging import get_logger
from shared.models.composition import CompositionRequest
from api_gateway.dependencies import get_job_store, verify_api_secret
from modules.composer.job_store import JobStore
from modules.composer.process import process

logger = get_logger(__name__)

router = APIRouter()


@router.post("/compose", dependencies=[Depends(verify_api_secret)])
async def compose_scene(
    body: CompositionRequest,
    background_tasks: BackgroundTasks,
    job_store: JobStore = Depends(get_job_store)
):
    """
    Start composing a scene and return immediately.

    The outcome is delivered to the request's webhook URL; progress can be
    polled at /jobs/{job_id} in the meantime.

    Args:
        body: Composition request
        background_tasks: FastAPI background task queue
        job_store: Job ledger

    Returns:
        {"jobId": ..., "status": "processing"}

    Raises:
        HTTPException: 400 when there are no shots, 409 when the job ID is
            still in progress
    """
    if not body.shots:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No shots provided")

    existing = job_store.get(body.job_id)
    if existing is not None and not existing.is_terminal:
        logger.warning(
            "Rejected duplicate composition job",
            extra={"job_id": body.job_id, "status": existing.status}
        )
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Job {body.job_id} is already {existing.status}"
        )

    # Register before responding so the first poll never 404s
    job_store.create(body.job_id)
    background_tasks.add_task(process, body, job_store)

    logger.info(
        "Composition job accepted",
        extra={
            "job_id": body.job_id,
            "project_id": body.project_id,
            "scene_id": body.scene_id,
            "shot_count": len(body.shots),
            "audio_track_count": len(body.audio_tracks),
        }
    )

    return {"jobId": body.job_id, "status": "processing"}
