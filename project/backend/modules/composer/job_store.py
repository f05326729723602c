"""
In-memory job ledger for composer module.

Holds one Job record per composition job for the lifetime of the process.
The store is created by the host (the API app) and passed to the
orchestrator; nothing else keeps mutable job state.
"""
from typing import Dict, Optional

from shared.logging import get_logger
from shared.models.job import Job, utc_now

logger = get_logger("composer.job_store")


class JobStore:
    """
    Registry of composition jobs keyed by job ID.

    Records are immutable pydantic models; update() swaps in a merged copy,
    so a Job returned by get() is a snapshot. All access happens on one
    event loop, and each job's updates come from its own pipeline in order,
    so no locking is needed.
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, Job] = {}

    def create(self, job_id: str) -> Job:
        """
        Initialize (or reset) the record for a job.

        Args:
            job_id: Job identifier

        Returns:
            Fresh Job with status "downloading" and progress 0
        """
        job = Job(job_id=job_id)
        self._jobs[job_id] = job
        logger.debug("Created job record", extra={"job_id": job_id})
        return job

    def update(self, job_id: str, **fields) -> Optional[Job]:
        """
        Merge fields (status, stage, progress, error) into a job record.

        Args:
            job_id: Job identifier
            **fields: Job fields to overwrite

        Returns:
            Updated Job, or None if the job is unknown
        """
        job = self._jobs.get(job_id)
        if job is None:
            logger.warning("Update for unknown job ignored", extra={"job_id": job_id, "fields": fields})
            return None

        data = dict(job)
        data.update(fields)
        data["updated_at"] = utc_now()
        updated = Job.model_validate(data)
        self._jobs[job_id] = updated
        return updated

    def get(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._jobs

    def __len__(self) -> int:
        return len(self._jobs)
