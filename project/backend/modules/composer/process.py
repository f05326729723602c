"""
Main entry point for composer module.

Orchestrates scene composition: downloads shots and audio tracks, builds the
filter graph, encodes, extracts a thumbnail, uploads the artifacts and
notifies the caller's webhook.
"""
import asyncio
import shutil
import tempfile
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from shared.config import settings
from shared.errors import CompositionError, PipelineError, ValidationError
from shared.logging import get_logger, set_job_id
from shared.models.composition import (
    CompositionRequest,
    CompositionResult,
    active_audio_tracks,
    sorted_shots,
)
from shared.storage import StorageClient

from .config import (
    DOWNLOAD_PROGRESS_END,
    ENCODE_PROGRESS_END,
    ENCODE_PROGRESS_START,
    THUMBNAIL_CONTENT_TYPE,
    THUMBNAIL_PROGRESS,
    UPLOAD_PROGRESS_END,
    UPLOAD_PROGRESS_START,
    VIDEO_CONTENT_TYPE,
)
from .downloader import download_sources
from .encoder import encode_scene, scale_progress
from .filter_graph import build_filter_graph
from .job_store import JobStore
from .notifier import send_webhook
from .publisher import build_storage_key, publish_artifact
from .thumbnail import extract_thumbnail
from .utils import check_ffmpeg_available, get_media_duration_ms, probe_durations

logger = get_logger("composer.process")


@asynccontextmanager
async def temp_directory(prefix: str):
    """
    Context manager for temporary directory with automatic cleanup.

    Cleanup failures are logged and swallowed so they never replace the
    job's real outcome.

    Args:
        prefix: Prefix for temp directory name

    Yields:
        Path to temporary directory
    """
    temp_dir = Path(tempfile.mkdtemp(prefix=prefix, dir=settings.scratch_root))
    try:
        yield temp_dir
    finally:
        try:
            shutil.rmtree(temp_dir)
        except OSError as e:
            logger.warning(
                f"Failed to clean up scratch directory {temp_dir}: {e}",
                extra={"cleanup": True, "path": str(temp_dir)}
            )


def validate_request(request: CompositionRequest) -> None:
    """
    Reject structurally invalid requests before any I/O.

    Raises:
        ValidationError: If there are no shots, a shot has nothing left after
            trimming, or shot IDs repeat
    """
    if not request.shots:
        raise ValidationError("No shots provided", job_id=request.job_id)

    seen = set()
    for shot in request.shots:
        if shot.id in seen:
            raise ValidationError(f"Duplicate shot id '{shot.id}'", job_id=request.job_id)
        seen.add(shot.id)

        if shot.stored_duration_ms <= 0:
            raise ValidationError(
                f"Shot '{shot.id}' has no duration left after trimming "
                f"(duration {shot.duration_ms}ms, trim start {shot.trim_start_ms}ms, "
                f"trim end {shot.trim_end_ms}ms)",
                job_id=request.job_id
            )


def record_failure(job_store: JobStore, request: CompositionRequest, error: Exception) -> CompositionResult:
    """Mark the job failed in the ledger and build the failure result."""
    message = str(error) or type(error).__name__

    if isinstance(error, PipelineError):
        logger.error(
            f"Composition failed: {message}",
            exc_info=True,
            extra={"job_id": request.job_id, "error_type": type(error).__name__}
        )
    else:
        logger.error(
            f"Unexpected composition error: {message}",
            exc_info=True,
            extra={"job_id": request.job_id, "error_type": type(error).__name__}
        )

    job_store.update(request.job_id, status="failed", stage="Failed", error=message)
    return CompositionResult(job_id=request.job_id, status="failed", error=message)


async def compose_scene(
    request: CompositionRequest,
    job_store: JobStore,
    work_dir: Path,
    storage: Optional[StorageClient] = None
) -> CompositionResult:
    """
    Run the composition pipeline inside an existing scratch directory.

    Args:
        request: Validated composition request
        job_store: Job ledger receiving status and progress
        work_dir: Scratch directory owned by this job
        storage: Storage client (created on demand if not provided)

    Returns:
        Successful CompositionResult

    Raises:
        ValidationError, RetryableError, CompositionError: On any stage failure
    """
    job_id = request.job_id
    start_time = time.time()
    shot_count = len(sorted_shots(request))
    total_downloads = shot_count + len(active_audio_tracks(request))

    # Step 1: Download shots and audio tracks in parallel (0-20%)
    job_store.update(
        job_id,
        status="downloading",
        stage=f"Downloading files (0/{total_downloads})",
        progress=0
    )

    def on_download(done: int, total: int) -> None:
        job_store.update(
            job_id,
            stage=f"Downloading files ({done}/{total})",
            progress=round(done / total * DOWNLOAD_PROGRESS_END)
        )

    step_start = time.time()
    shot_paths, track_paths = await download_sources(request, work_dir, on_download)
    logger.info(
        f"Downloads complete in {time.time() - step_start:.2f}s",
        extra={"job_id": job_id, "shot_files": len(shot_paths), "audio_files": len(track_paths)}
    )

    # Step 2: Build the filter graph and encode (20-90%)
    job_store.update(job_id, status="processing", stage="Compositing video...", progress=ENCODE_PROGRESS_START)

    actual_durations = await probe_durations(shot_paths, job_id)
    graph = build_filter_graph(request, shot_paths, track_paths, actual_durations)

    last_progress = ENCODE_PROGRESS_START

    def on_encode_progress(percent: float) -> None:
        nonlocal last_progress
        mapped = scale_progress(percent, ENCODE_PROGRESS_START, ENCODE_PROGRESS_END)
        if mapped > last_progress:
            last_progress = mapped
            job_store.update(
                job_id,
                stage=f"Encoding video... {min(100, round(percent))}%",
                progress=mapped
            )

    step_start = time.time()
    output_path = await encode_scene(graph, work_dir / "output.mp4", job_id, on_encode_progress)
    logger.info(f"Encode complete in {time.time() - step_start:.2f}s", extra={"job_id": job_id})

    # Step 3: Thumbnail (90%)
    job_store.update(job_id, stage="Generating thumbnail...", progress=THUMBNAIL_PROGRESS)
    thumbnail_path = await extract_thumbnail(output_path, work_dir / "thumbnail.jpg", job_id)

    # Step 4: Upload video and thumbnail together (92-96%)
    job_store.update(job_id, status="uploading", stage="Uploading to cloud...", progress=UPLOAD_PROGRESS_START)

    storage = storage or StorageClient()
    timestamp = int(time.time() * 1000)  # milliseconds, unique URL per render
    video_key = build_storage_key(request.project_id, request.scene_id, "composite", timestamp, "mp4")
    thumbnail_key = build_storage_key(request.project_id, request.scene_id, "composite-thumb", timestamp, "jpg")

    video_url, thumbnail_url = await asyncio.gather(
        publish_artifact(storage, output_path, video_key, VIDEO_CONTENT_TYPE),
        publish_artifact(storage, thumbnail_path, thumbnail_key, THUMBNAIL_CONTENT_TYPE),
    )
    job_store.update(job_id, stage="Finalizing...", progress=UPLOAD_PROGRESS_END)

    # Step 5: Final duration
    duration_ms = await get_media_duration_ms(output_path)

    job_store.update(job_id, status="completed", stage="Complete!", progress=100)

    logger.info(
        f"Composition complete in {time.time() - start_time:.2f}s",
        extra={
            "job_id": job_id,
            "video_url": video_url,
            "thumbnail_url": thumbnail_url,
            "duration_ms": duration_ms,
        }
    )

    return CompositionResult(
        job_id=job_id,
        status="completed",
        video_url=video_url,
        thumbnail_url=thumbnail_url,
        duration_ms=duration_ms,
    )


async def process(
    request: CompositionRequest,
    job_store: JobStore,
    storage: Optional[StorageClient] = None
) -> CompositionResult:
    """
    Main composition function.

    Drives one request to a terminal state exactly once: the job ends
    "completed" or "failed" in the ledger, exactly one webhook is sent, and
    the scratch directory is gone when this returns. Never raises.

    Args:
        request: Composition request
        job_store: Job ledger receiving status and progress
        storage: Storage client (created on demand if not provided)

    Returns:
        The CompositionResult that was sent to the webhook
    """
    set_job_id(request.job_id)
    job_store.create(request.job_id)

    logger.info(
        "Starting composition",
        extra={
            "job_id": request.job_id,
            "project_id": request.project_id,
            "scene_id": request.scene_id,
            "shot_count": len(request.shots),
            "audio_track_count": len(request.audio_tracks),
        }
    )

    try:
        validate_request(request)

        if not check_ffmpeg_available():
            raise CompositionError(
                "FFmpeg not found. Please install FFmpeg:\n"
                "  macOS: brew install ffmpeg\n"
                "  Linux: apt-get install ffmpeg or yum install ffmpeg",
                job_id=request.job_id
            )

        async with temp_directory(f"compose-{request.job_id}-") as work_dir:
            try:
                result = await compose_scene(request, job_store, work_dir, storage)
            except Exception as e:
                result = record_failure(job_store, request, e)
            # Notify before the scratch directory goes away
            await send_webhook(request.webhook_url, result)

    except Exception as e:
        # Validation, missing FFmpeg or no scratch directory: nothing was fetched
        result = record_failure(job_store, request, e)
        await send_webhook(request.webhook_url, result)

    return result
