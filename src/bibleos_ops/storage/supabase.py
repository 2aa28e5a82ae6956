"""Supabase Storage backend.

Wraps one bucket of the Supabase Storage API via the supabase-py async
client.  The client is created lazily, guarded by an ``asyncio.Lock``
(same pattern as ``AsyncSupabaseAdapter``).

Usage:
    storage = SupabaseObjectStorage(url, service_key, bucket="company-backups")
    await storage.upload("c1/b1.json", payload)
    data = await storage.download("c1/b1.json")
"""

import asyncio
import logging

from supabase import AsyncClient, acreate_client

from bibleos_ops.errors import StorageError

logger = logging.getLogger(__name__)


class SupabaseObjectStorage:
    """Object storage backed by a Supabase Storage bucket.

    Args:
        url: Supabase project URL.
        key: Service-role key (bucket is private).
        bucket: Bucket name.
    """

    def __init__(self, url: str, key: str, bucket: str = "company-backups") -> None:
        self._url = url
        self._key = key
        self.bucket = bucket
        self._client: AsyncClient | None = None
        self._lock = asyncio.Lock()

    async def _get_client(self) -> AsyncClient:
        if self._client is None:
            async with self._lock:
                if self._client is None:
                    self._client = await acreate_client(self._url, self._key)
        return self._client

    async def upload(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/json",
        upsert: bool = True,
    ) -> str:
        client = await self._get_client()
        try:
            await client.storage.from_(self.bucket).upload(
                path,
                data,
                file_options={
                    "content-type": content_type,
                    "upsert": "true" if upsert else "false",
                },
            )
        except Exception as e:
            raise StorageError(f"Storage upload failed: {e}") from e
        logger.info("Uploaded %s to bucket %s (%d bytes)", path, self.bucket, len(data))
        return path

    async def download(self, path: str) -> bytes:
        client = await self._get_client()
        try:
            return await client.storage.from_(self.bucket).download(path)
        except Exception as e:
            raise StorageError(f"Failed to download backup file: {e}") from e

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
