"""
Object storage for rendered scene artifacts.

Thin async wrapper over Supabase Storage: the supabase client is synchronous,
so every call is pushed to the default executor.
"""

import asyncio
import mimetypes
from typing import Any, Callable, Optional
from supabase import create_client
from shared.config import settings
from shared.errors import ConfigError, RetryableError
from shared.logging import get_logger

logger = get_logger("storage")


class StorageClient:
    """Uploads files to Supabase Storage and resolves their public URLs."""

    def __init__(self, public_base_url: Optional[str] = None):
        """
        Connect to Supabase Storage.

        Args:
            public_base_url: CDN origin placed in front of the bucket
                (defaults to PUBLIC_BASE_URL)

        Raises:
            ConfigError: If the Supabase client cannot be created
        """
        try:
            client = create_client(settings.supabase_url, settings.supabase_service_key)
        except Exception as e:
            raise ConfigError(f"Failed to initialize storage client: {str(e)}") from e

        self.client = client
        self.storage = client.storage
        self.public_base_url = public_base_url or settings.public_base_url

    async def _run(self, func: Callable[[], Any]) -> Any:
        """Run a blocking storage call without stalling the event loop."""
        return await asyncio.get_running_loop().run_in_executor(None, func)

    @staticmethod
    def guess_content_type(path: str) -> str:
        """MIME type for a key, falling back to application/octet-stream."""
        content_type, _ = mimetypes.guess_type(path)
        return content_type or "application/octet-stream"

    def public_url(self, bucket: str, path: str) -> str:
        """
        Stable public URL for an object.

        Uses the CDN origin when one is configured, otherwise Supabase's
        public object URL for the bucket.
        """
        if self.public_base_url:
            return f"{self.public_base_url}/{path}"
        return self.storage.from_(bucket).get_public_url(path)

    async def upload_file(
        self,
        bucket: str,
        path: str,
        file_data: bytes,
        content_type: Optional[str] = None
    ) -> str:
        """
        Store bytes under a key and return the object's public URL.

        Args:
            bucket: Bucket name
            path: Object key
            file_data: Object contents
            content_type: MIME type (guessed from the key when omitted)

        Returns:
            Public URL of the stored object

        Raises:
            RetryableError: If Supabase rejects the upload or is unreachable
        """
        content_type = content_type or self.guess_content_type(path)
        objects = self.storage.from_(bucket)

        try:
            await self._run(lambda: objects.upload(
                path=path,
                file=file_data,
                file_options={"content-type": content_type}
            ))
            url = await self._run(lambda: self.public_url(bucket, path))
        except Exception as e:
            logger.error(
                f"Upload to {bucket}/{path} failed: {str(e)}",
                extra={"bucket": bucket, "path": path, "error_type": type(e).__name__}
            )
            raise RetryableError(f"Failed to upload file: {str(e)}") from e

        logger.info(
            f"Uploaded {bucket}/{path}",
            extra={"bucket": bucket, "path": path, "size": len(file_data), "content_type": content_type}
        )
        return url
