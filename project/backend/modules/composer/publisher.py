"""
Artifact publishing for composer module.

Uploads rendered scene files to object storage.
"""
import asyncio
from pathlib import Path

from shared.config import settings
from shared.logging import get_logger
from shared.storage import StorageClient

logger = get_logger("composer.publisher")


def build_storage_key(project_id: str, scene_id: str, name: str, timestamp_ms: int, ext: str) -> str:
    """
    Build the object key for a rendered scene artifact.

    Args:
        project_id: Owning project ID
        scene_id: Scene ID
        name: Artifact name ("composite" or "composite-thumb")
        timestamp_ms: Render timestamp in milliseconds (keeps URLs unique per render)
        ext: File extension without the dot

    Returns:
        Key such as "projects/p1/scenes/s1/composite-1700000000000.mp4"
    """
    return f"projects/{project_id}/scenes/{scene_id}/{name}-{timestamp_ms}.{ext}"


async def publish_artifact(
    storage: StorageClient,
    local_path: Path,
    key: str,
    content_type: str
) -> str:
    """
    Upload a local file and return its public URL.

    Args:
        storage: Storage client
        local_path: File to upload
        key: Destination object key
        content_type: MIME type stored with the object

    Returns:
        Public URL of the uploaded object

    Raises:
        RetryableError: If the upload fails
    """
    file_data = await asyncio.to_thread(local_path.read_bytes)

    logger.info(
        f"Uploading {local_path.name} ({len(file_data) / 1024 / 1024:.2f} MB) to {key}",
        extra={"key": key, "content_type": content_type, "size": len(file_data)}
    )

    return await storage.upload_file(
        bucket=settings.storage_bucket,
        path=key,
        file_data=file_data,
        content_type=content_type
    )
