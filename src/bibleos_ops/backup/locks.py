"""Per-tenant single-flight guard for backup and restore.

A restore running concurrently with a backup (or a second restore) of the
same tenant would interleave deletes and reads.  ``TenantLocks`` refuses
the second operation instead of queueing it.

The registry is process-local; it does not coordinate several workers.

Usage:
    from bibleos_ops.backup.locks import tenant_locks

    async with tenant_locks.hold(company_id, "restore"):
        ...
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from bibleos_ops.errors import TenantBusyError

logger = logging.getLogger(__name__)


class TenantLocks:
    """Registry of tenants with a running backup or restore."""

    def __init__(self) -> None:
        self._running: dict[str, str] = {}

    def running(self, company_id: str) -> str | None:
        """Operation currently holding ``company_id``, if any."""
        return self._running.get(company_id)

    @asynccontextmanager
    async def hold(self, company_id: str, operation: str) -> AsyncIterator[None]:
        """Hold the tenant for the duration of the block.

        Raises:
            TenantBusyError: If another operation already holds the tenant.
        """
        held_by = self._running.get(company_id)
        if held_by is not None:
            logger.warning(
                "Refusing %s for company %s: %s in progress", operation, company_id, held_by
            )
            raise TenantBusyError(company_id, held_by)

        # No await between the check and the claim, so this is atomic
        # on one event loop.
        self._running[company_id] = operation
        try:
            yield
        finally:
            del self._running[company_id]


# Default registry shared by the API and CLI within one process.
tenant_locks = TenantLocks()
