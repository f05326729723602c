"""
Error hierarchy.

Exceptions shared by the composer pipeline and the API gateway.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for all composition pipeline errors."""

    def __init__(self, message: str, job_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.job_id = job_id


class ConfigError(PipelineError):
    """Raised when configuration is missing or invalid."""
    pass


class ValidationError(PipelineError):
    """Raised when a composition request is structurally invalid."""
    pass


class RetryableError(PipelineError):
    """
    Raised on transient I/O failures (download, upload).

    The composer never retries these itself; resubmitting the job is up to
    the caller.
    """
    pass


class CompositionError(PipelineError):
    """Raised when FFmpeg or ffprobe fails or produces unusable output."""
    pass
