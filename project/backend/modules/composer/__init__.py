"""
Composer module.

Scene composition service core. Downloads a scene's shots and audio tracks,
renders them into one MP4 with FFmpeg, extracts a thumbnail, publishes both
to object storage and reports the outcome through a webhook.

Entry point: modules.composer.process.process(request, job_store).
"""

from modules.composer.job_store import JobStore

__all__ = ["JobStore"]
