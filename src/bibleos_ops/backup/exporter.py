"""Backup exporter: snapshot one tenant into a JSON artifact.

Reads every tenant table in insert order (parents first, so parent ids
are known before the child tables that are scoped through them), uploads
the artifact to object storage and moves the ``company_backups`` record
through ``in_progress`` to ``completed`` or ``failed``.

Usage:
    from bibleos_ops.backup.exporter import export_backup, request_backup

    record = await request_backup(adapter, company_id, created_by=user_id)
    report = await export_backup(adapter, storage, record.id, company_id)
    print(report.total_records, report.failed_tables)
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any

from bibleos_ops.adapters.base import DatabaseClient
from bibleos_ops.backup.locks import TenantLocks, tenant_locks
from bibleos_ops.backup.models import (
    CURRENT_SCHEMA_VERSION,
    DEFAULT_ROW_LIMIT,
    BackupArtifact,
    BackupRecord,
    BackupReport,
    BackupStatus,
    TableDef,
    TableOutcome,
    TenantSchema,
    storage_path_for,
)
from bibleos_ops.backup.tables import TENANT_SCHEMA
from bibleos_ops.storage.base import ObjectStorage

logger = logging.getLogger(__name__)

BACKUPS_TABLE = "company_backups"


async def request_backup(
    adapter: DatabaseClient,
    company_id: str,
    created_by: str | None = None,
    backup_type: str = "manual",
) -> BackupRecord:
    """Create a ``pending`` backup record for ``company_id``.

    Returns:
        The inserted record; pass its ``id`` to ``export_backup``.
    """
    row = await adapter.insert(
        BACKUPS_TABLE,
        {
            "company_id": company_id,
            "status": BackupStatus.PENDING.value,
            "backup_type": backup_type,
            "created_by": created_by,
        },
    )
    return BackupRecord.model_validate(row)


async def export_backup(
    adapter: DatabaseClient,
    storage: ObjectStorage,
    backup_id: str,
    company_id: str,
    schema: TenantSchema = TENANT_SCHEMA,
    row_limit: int = DEFAULT_ROW_LIMIT,
    timeout: float | None = None,
    now: datetime | None = None,
    locks: TenantLocks | None = None,
) -> BackupReport:
    """Export one tenant's data and complete its backup record.

    Per-table read failures do not abort the backup; they are reported as
    ``failed`` outcomes and the table is left out of the artifact.  Fatal
    errors (upload failure, timeout, anything unexpected) mark the record
    ``failed`` and are re-raised.

    Args:
        adapter: Database adapter implementing ``DatabaseClient``.
        storage: Object storage receiving the artifact.
        backup_id: Id of an existing ``company_backups`` record.
        company_id: Tenant to export.
        schema: Tenant table catalogue.
        row_limit: Maximum rows read per table; a table that hits it is
            flagged ``truncated``.
        timeout: Overall time limit in seconds (``None`` for no limit).
        now: Clock override for ``created_at`` / ``completed_at``.
        locks: Tenant lock registry (defaults to the process registry).

    Returns:
        ``BackupReport`` with per-table outcomes.

    Raises:
        TenantBusyError: If a restore or backup of the tenant is running.
        StorageError: If the upload fails.
        TimeoutError: If ``timeout`` elapses.

    Example:
        report = await export_backup(adapter, storage, "b1", "c1", timeout=120)
    """
    locks = locks or tenant_locks
    record_filter = {"id": backup_id, "company_id": company_id}

    async with locks.hold(company_id, "backup"):
        try:
            async with asyncio.timeout(timeout):
                return await _run_export(
                    adapter, storage, backup_id, company_id, schema, row_limit, now
                )
        except Exception as e:
            if isinstance(e, TimeoutError):
                message = f"Backup timed out after {timeout}s"
            else:
                message = str(e) or type(e).__name__
            logger.error("Backup %s for company %s failed: %s", backup_id, company_id, message)
            await _mark_failed(adapter, record_filter, message)
            if isinstance(e, TimeoutError):
                raise TimeoutError(message) from e
            raise


async def _run_export(
    adapter: DatabaseClient,
    storage: ObjectStorage,
    backup_id: str,
    company_id: str,
    schema: TenantSchema,
    row_limit: int,
    now: datetime | None,
) -> BackupReport:
    record_filter = {"id": backup_id, "company_id": company_id}
    await adapter.update(
        BACKUPS_TABLE, {"status": BackupStatus.IN_PROGRESS.value}, record_filter
    )

    report = BackupReport(backup_id=backup_id, company_id=company_id)
    tables: dict[str, list[dict[str, Any]]] = {}
    # Ids per exported table; child tables without a tenant column are
    # read by these.
    parent_ids: dict[str, set[str]] = {}

    for table_def in schema.insert_order():
        rows, outcome = await _read_table(adapter, table_def, company_id, parent_ids, row_limit)
        report.outcomes.append(outcome)
        if not outcome.succeeded:
            continue
        tables[table_def.name] = rows
        if "id" in table_def.pk:
            parent_ids[table_def.name] = {str(r["id"]) for r in rows if r.get("id") is not None}

    created_at = (now or datetime.now(timezone.utc)).isoformat()
    artifact = BackupArtifact(
        version=CURRENT_SCHEMA_VERSION,
        company_id=company_id,
        created_at=created_at,
        tables=tables,
    )
    payload = json.dumps(artifact.model_dump(), default=str).encode("utf-8")

    path = storage_path_for(company_id, backup_id)
    await storage.upload(path, payload, content_type="application/json", upsert=True)
    report.storage_path = path
    report.file_size_bytes = len(payload)

    await adapter.update(
        BACKUPS_TABLE,
        {
            "status": BackupStatus.COMPLETED.value,
            "completed_at": now or datetime.now(timezone.utc),
            "storage_path": path,
            "file_size_bytes": len(payload),
            "metadata_json": report.metadata_json(),
        },
        record_filter,
    )
    logger.info(
        "Backup %s for company %s completed: %d records, %d bytes, %d failed tables",
        backup_id,
        company_id,
        report.total_records,
        len(payload),
        len(report.failed_tables),
    )
    return report


async def _read_table(
    adapter: DatabaseClient,
    table_def: TableDef,
    company_id: str,
    parent_ids: dict[str, set[str]],
    row_limit: int,
) -> tuple[list[dict], TableOutcome]:
    """Read one table for the tenant, never raising."""
    name = table_def.name
    parent = table_def.scope_parent
    if parent is not None and parent.table not in parent_ids:
        logger.warning("Skipping %s: parent %s not exported", name, parent.table)
        return [], TableOutcome(
            table=name, status="skipped", reason=f"parent {parent.table} not exported"
        )

    filters = table_def.scope_filters(company_id, parent_ids)
    if filters is None:
        logger.info("Skipping %s: no tenant scope", name)
        return [], TableOutcome(table=name, status="skipped", reason="no tenant scope")

    status = "ok"
    try:
        if table_def.sample_flag:
            try:
                rows = await _select_batches(
                    adapter, table_def, {**filters, "is_sample": False}, row_limit
                )
            except Exception as e:
                logger.warning("Sample filter failed on %s, retrying without it: %s", name, e)
                status = "fallback"
                rows = await _select_batches(adapter, table_def, filters, row_limit)
        else:
            rows = await _select_batches(adapter, table_def, filters, row_limit)
    except Exception as e:
        logger.warning("Skipping table %s: %s", name, e)
        return [], TableOutcome(table=name, status="failed", error=str(e))

    truncated = len(rows) >= row_limit
    if truncated:
        logger.warning("Table %s hit the row limit (%d); backup is truncated", name, row_limit)
    return rows, TableOutcome(table=name, status=status, rows=len(rows), truncated=truncated)


async def _select_batches(
    adapter: DatabaseClient,
    table_def: TableDef,
    filters: dict[str, Any],
    row_limit: int,
) -> list[dict]:
    """Select across parent id batches; ``row_limit`` applies to the total."""
    rows: list[dict] = []
    for batch in table_def.filter_batches(filters):
        remaining = row_limit - len(rows)
        if remaining <= 0:
            break
        rows.extend(await adapter.select(table_def.name, filters=batch, limit=remaining))
    return rows


async def _mark_failed(adapter: DatabaseClient, record_filter: dict[str, Any], message: str) -> None:
    """Best-effort status write; a failure here is logged, not raised."""
    try:
        await adapter.update(
            BACKUPS_TABLE,
            {"status": BackupStatus.FAILED.value, "error_message": message},
            record_filter,
        )
    except Exception as e:
        logger.error("Could not mark backup %s failed: %s", record_filter["id"], e)
