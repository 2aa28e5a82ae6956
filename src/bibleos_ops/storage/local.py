"""Local filesystem object storage.

Stores artifacts under a root directory, mirroring the bucket layout.
Used for local development, restore drills and tests.
"""

import asyncio
import logging
from pathlib import Path

from bibleos_ops.errors import StorageError

logger = logging.getLogger(__name__)


class LocalObjectStorage:
    """Store objects as files below ``root``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if self.root != target and self.root not in target.parents:
            raise StorageError(f"Path escapes storage root: {path}")
        return target

    async def upload(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/json",
        upsert: bool = True,
    ) -> str:
        target = self._resolve(path)
        if target.exists() and not upsert:
            raise StorageError(f"Object already exists: {path}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(target.write_bytes, data)
        except OSError as e:
            raise StorageError(f"Storage upload failed: {e}") from e
        logger.info("Stored %s (%d bytes)", path, len(data))
        return path

    async def download(self, path: str) -> bytes:
        target = self._resolve(path)
        if not target.exists():
            raise StorageError(f"Object not found: {path}")
        try:
            return await asyncio.to_thread(target.read_bytes)
        except OSError as e:
            raise StorageError(f"Storage download failed: {e}") from e
