"""
Utility functions for composer module.

FFmpeg command execution, duration probing, and availability checks.
"""
import asyncio
import shutil
from pathlib import Path
from typing import List, Optional, Sequence

from shared.errors import CompositionError
from shared.logging import get_logger
from .config import FFMPEG_BINARY, FFPROBE_BINARY, FFPROBE_TIMEOUT

logger = get_logger("composer.utils")

# Keep this much of stderr in error messages; the full text goes to the log
STDERR_TAIL_CHARS = 2000


def check_ffmpeg_available() -> bool:
    """
    Check if FFmpeg and ffprobe are installed and available in PATH.

    Returns:
        True if both binaries are available, False otherwise
    """
    return shutil.which(FFMPEG_BINARY) is not None and shutil.which(FFPROBE_BINARY) is not None


def stderr_tail(stderr: str) -> str:
    """Last part of FFmpeg's stderr, where the actual error usually is."""
    stderr = stderr.strip()
    if len(stderr) <= STDERR_TAIL_CHARS:
        return stderr
    return "..." + stderr[-STDERR_TAIL_CHARS:]


async def run_ffmpeg_command(cmd: List[str], job_id: str) -> str:
    """
    Run an FFmpeg command to completion.

    Args:
        cmd: FFmpeg command as list of strings
        job_id: Job ID for logging

    Returns:
        Captured stdout

    Raises:
        CompositionError: If the process cannot start or exits non-zero
    """
    logger.info(
        f"Running FFmpeg command: {' '.join(cmd)}",
        extra={"job_id": job_id, "command": cmd}
    )

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )
    except OSError as e:
        raise CompositionError(f"Failed to start FFmpeg: {e}", job_id=job_id) from e

    stdout, stderr = await process.communicate()
    stdout_text = stdout.decode(errors="replace") if stdout else ""
    stderr_text = stderr.decode(errors="replace") if stderr else ""

    if process.returncode != 0:
        logger.error(
            f"FFmpeg command failed with exit code {process.returncode}",
            extra={"job_id": job_id, "command": cmd, "stdout": stdout_text, "stderr": stderr_text}
        )
        raise CompositionError(
            f"FFmpeg exited with code {process.returncode}: {stderr_tail(stderr_text) or 'Unknown FFmpeg error'}",
            job_id=job_id
        )

    return stdout_text


async def get_media_duration_ms(media_path: Path) -> int:
    """
    Get media duration in milliseconds using ffprobe.

    Args:
        media_path: Path to video or audio file

    Returns:
        Duration in whole milliseconds

    Raises:
        CompositionError: If ffprobe fails or reports no duration
    """
    cmd = [
        FFPROBE_BINARY,
        "-v", "error",
        "-show_entries", "format=duration",
        "-of", "default=noprint_wrappers=1:nokey=1",
        str(media_path)
    ]

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )
    except OSError as e:
        raise CompositionError(f"Failed to start ffprobe: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=FFPROBE_TIMEOUT)
    except asyncio.TimeoutError as e:
        process.kill()
        await process.wait()
        raise CompositionError(f"ffprobe timed out after {FFPROBE_TIMEOUT}s for {media_path.name}") from e

    if process.returncode != 0:
        error_msg = stderr.decode(errors="replace").strip() if stderr else "Unknown ffprobe error"
        raise CompositionError(f"ffprobe failed for {media_path.name}: {error_msg}")

    try:
        duration = float(stdout.decode().strip())
    except ValueError as e:
        raise CompositionError(f"ffprobe returned no duration for {media_path.name}") from e

    return round(duration * 1000)


async def probe_durations(paths: Sequence[Path], job_id: str) -> List[Optional[int]]:
    """
    Probe the decoded duration of each file concurrently.

    A failed probe yields None for that file instead of failing the batch;
    callers fall back to the declared duration.

    Args:
        paths: Media files to probe
        job_id: Job ID for logging

    Returns:
        Durations in milliseconds (or None), in the same order as paths
    """
    async def _probe(path: Path) -> Optional[int]:
        try:
            return await get_media_duration_ms(path)
        except CompositionError as e:
            logger.warning(
                f"Failed to probe duration of {path.name}, using declared duration: {e}",
                extra={"job_id": job_id, "path": str(path)}
            )
            return None

    durations = await asyncio.gather(*[_probe(path) for path in paths])

    logger.info(
        "Probed shot durations",
        extra={"job_id": job_id, "durations_ms": list(durations)}
    )

    return list(durations)
