"""
Data models for the scene composer.

This module exports all Pydantic models used across the service.
"""

from .job import Job, JobStatus
from .composition import (
    AudioTrack,
    CompositionRequest,
    CompositionResult,
    FadeType,
    Shot,
    active_audio_tracks,
    sorted_shots,
)

__all__ = [
    # Job models
    "Job",
    "JobStatus",
    # Composition models
    "AudioTrack",
    "CompositionRequest",
    "CompositionResult",
    "FadeType",
    "Shot",
    "active_audio_tracks",
    "sorted_shots",
]
