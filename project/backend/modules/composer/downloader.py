"""
File download logic for composer module.

Streams shot videos and audio tracks from their URLs into the job's scratch
directory, all in parallel.
"""
import asyncio
from pathlib import Path, PurePosixPath
from typing import Callable, List, Optional, Tuple
from urllib.parse import urlparse

import httpx

from shared.config import settings
from shared.errors import RetryableError
from shared.logging import get_logger
from shared.models.composition import CompositionRequest, active_audio_tracks, sorted_shots

logger = get_logger("composer.downloader")

CHUNK_SIZE = 1024 * 1024  # 1MB


def file_extension(url: str, default: str) -> str:
    """
    Extension of the URL path (".mp4", ".wav"), or default when it has none.

    Args:
        url: Source URL (query string is ignored)
        default: Extension to use when the path has none, including the dot
    """
    suffix = PurePosixPath(urlparse(url).path).suffix
    return suffix.lower() if suffix else default


async def download_file(url: str, dest_path: Path, job_id: Optional[str] = None) -> Path:
    """
    Stream a URL to a local file.

    Args:
        url: Source URL
        dest_path: Local destination path
        job_id: Job ID for logging

    Returns:
        dest_path

    Raises:
        RetryableError: On HTTP error status or network failure
    """
    logger.info(
        f"Downloading {url[:100]}",
        extra={"job_id": job_id, "dest_path": str(dest_path)}
    )

    timeout = httpx.Timeout(settings.download_timeout_seconds, connect=30.0)
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            async with client.stream("GET", url) as response:
                if response.status_code >= 400:
                    raise RetryableError(
                        f"Failed to download: {response.status_code} {response.reason_phrase}",
                        job_id=job_id
                    )
                with open(dest_path, "wb") as f:
                    async for chunk in response.aiter_bytes(CHUNK_SIZE):
                        f.write(chunk)
    except RetryableError as e:
        logger.error(str(e), extra={"job_id": job_id, "url": url[:100]})
        raise
    except httpx.HTTPError as e:
        logger.error(
            f"Network error downloading file: {e}",
            extra={"job_id": job_id, "url": url[:100], "error_type": type(e).__name__}
        )
        raise RetryableError(f"Failed to download: {e}", job_id=job_id) from e

    logger.info(
        "Download complete",
        extra={"job_id": job_id, "dest_path": str(dest_path), "size": dest_path.stat().st_size}
    )
    return dest_path


async def download_sources(
    request: CompositionRequest,
    work_dir: Path,
    on_complete: Optional[Callable[[int, int], None]] = None
) -> Tuple[List[Path], List[Path]]:
    """
    Download every shot video and every non-muted audio track in parallel.

    Args:
        request: Composition request
        work_dir: Job scratch directory
        on_complete: Called as on_complete(done, total) after each finished download

    Returns:
        (shot paths in timeline order, track paths in request order of non-muted tracks)

    Raises:
        RetryableError: If any download fails
    """
    shots = sorted_shots(request)
    tracks = active_audio_tracks(request)
    total = len(shots) + len(tracks)
    done = 0

    async def _fetch(url: str, dest_path: Path) -> Path:
        nonlocal done
        path = await download_file(url, dest_path, job_id=request.job_id)
        done += 1
        if on_complete:
            on_complete(done, total)
        return path

    tasks = [
        asyncio.create_task(
            _fetch(shot.video_url, work_dir / f"shot-{i}{file_extension(shot.video_url, '.mp4')}")
        )
        for i, shot in enumerate(shots)
    ]
    tasks += [
        asyncio.create_task(
            _fetch(track.source_url, work_dir / f"audio-{i}{file_extension(track.source_url, '.mp3')}")
        )
        for i, track in enumerate(tracks)
    ]

    try:
        paths = await asyncio.gather(*tasks)
    except Exception:
        # Stop the remaining downloads before the scratch directory is removed
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    logger.info(
        f"Downloaded {len(shots)} shots and {len(tracks)} audio tracks",
        extra={"job_id": request.job_id, "shot_count": len(shots), "track_count": len(tracks)}
    )

    return list(paths[:len(shots)]), list(paths[len(shots):])
