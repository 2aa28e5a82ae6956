"""Object storage protocol.

Backup artifacts are single JSON objects addressed by a path inside one
bucket (``{company_id}/{backup_id}.json``).  Implementations raise
``StorageError`` for any upload or download failure so the exporter can
flip the backup record to ``failed``.
"""

from typing import Protocol


class ObjectStorage(Protocol):
    """Minimal object store used for backup artifacts."""

    async def upload(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/json",
        upsert: bool = True,
    ) -> str:
        """Store ``data`` at ``path`` and return the stored path.

        With ``upsert=True`` an existing object is overwritten (retries of
        the same backup reuse its path).
        """
        ...

    async def download(self, path: str) -> bytes:
        """Return the bytes stored at ``path``."""
        ...
