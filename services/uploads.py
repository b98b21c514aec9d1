"""
Image hosting through Cloudinary.

The vision and assistant APIs take image URLs, so every upload is pushed to
Cloudinary first and the secure URL is passed on.
"""

import asyncio
import io
import logging
from functools import partial
from typing import List, Tuple

import cloudinary.uploader

from config import UPLOAD_TIMEOUT
from services.exceptions import UploadError

logger = logging.getLogger(__name__)


class ImageUploader:
    """Uploads raw file bytes and returns hosted URLs."""

    def __init__(self, timeout: int = UPLOAD_TIMEOUT):
        self.timeout = timeout

    def _upload_sync(self, data: bytes, filename: str) -> str:
        result = cloudinary.uploader.upload(
            io.BytesIO(data),
            resource_type="auto",
            timeout=self.timeout,
        )
        url = (result or {}).get("secure_url")
        if not url:
            raise ValueError("No result from Cloudinary upload")
        return url

    async def upload(self, data: bytes, filename: str = "upload") -> str:
        loop = asyncio.get_running_loop()
        try:
            url = await loop.run_in_executor(None, partial(self._upload_sync, data, filename))
        except Exception as e:
            logger.error(f"[UPLOAD] Cloudinary upload failed for {filename}: {e}")
            raise UploadError(f"Upload Error: {e}", cause=e)
        logger.info(f"[UPLOAD] {filename} -> {url[:50]}...")
        return url

    async def upload_many(self, files: List[Tuple[str, bytes]]) -> List[str]:
        """Upload (filename, bytes) pairs in order."""
        urls = []
        for i, (filename, data) in enumerate(files, start=1):
            logger.info(f"[UPLOAD] Processing file {i}/{len(files)}: {filename}")
            try:
                urls.append(await self.upload(data, filename))
            except UploadError as e:
                raise UploadError(f"Failed to upload image {i}: {e.cause or e}", cause=e.cause)
        return urls
