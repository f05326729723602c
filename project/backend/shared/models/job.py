"""
Job-related data models.

Defines the Job record kept in the composer's in-memory job ledger.
"""

from datetime import datetime, timezone
from typing import Literal, Optional
from pydantic import BaseModel, Field, field_serializer

JobStatus = Literal["downloading", "processing", "uploading", "completed", "failed"]

TERMINAL_STATUSES = ("completed", "failed")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Job(BaseModel):
    """Status record for one scene composition job."""

    job_id: str
    status: JobStatus = "downloading"
    stage: str = "Initializing..."
    progress: int = Field(default=0, ge=0, le=100, description="Progress percentage 0-100")
    error: Optional[str] = None
    started_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @field_serializer("started_at", "updated_at")
    def serialize_datetime(self, value: datetime) -> str:
        """Serialize datetime to ISO format string."""
        return value.isoformat()

    def to_status(self) -> dict:
        """Shape returned by the status polling endpoint."""
        return {
            "jobId": self.job_id,
            "status": self.status,
            "stage": self.stage,
            "progress": self.progress,
            "error": self.error,
        }
