"""
Thumbnail extraction for composer module.

Grabs a single frame from the rendered scene.
"""
from pathlib import Path

from shared.errors import CompositionError
from shared.logging import get_logger
from .config import FFMPEG_BINARY, THUMBNAIL_OFFSET_SECONDS, THUMBNAIL_WIDTH
from .utils import run_ffmpeg_command

logger = get_logger("composer.thumbnail")


async def extract_thumbnail(video_path: Path, output_path: Path, job_id: str) -> Path:
    """
    Extract one JPEG frame 1s into the video, scaled to a fixed width.

    Args:
        video_path: Rendered scene video
        output_path: Destination JPEG
        job_id: Job ID for logging

    Returns:
        output_path

    Raises:
        CompositionError: If FFmpeg fails or no frame was written
    """
    ffmpeg_cmd = [
        FFMPEG_BINARY,
        "-hide_banner",
        "-y",
        "-ss", str(THUMBNAIL_OFFSET_SECONDS),  # Seek on the input side
        "-i", str(video_path),
        "-frames:v", "1",
        "-vf", f"scale={THUMBNAIL_WIDTH}:-1",  # Keep aspect ratio
        str(output_path)
    ]

    await run_ffmpeg_command(ffmpeg_cmd, job_id=job_id)

    if not output_path.exists() or output_path.stat().st_size == 0:
        raise CompositionError(
            f"Thumbnail not created (is the video shorter than {THUMBNAIL_OFFSET_SECONDS}s?)",
            job_id=job_id
        )

    logger.info("Thumbnail extracted", extra={"job_id": job_id, "path": str(output_path)})
    return output_path
