"""Backup restorer: replace one tenant's data with a backup artifact.

Restore runs in two phases over the same derived table order:

1. Delete the tenant's current rows, children before parents.
2. Upsert the artifact's rows, parents before children.

Everything that can reject the restore (record lookup, status, download,
version guard, artifact validation) happens before the first delete.
After that, per-table failures are recorded in the report and the
restore continues with the next table.

Usage:
    from bibleos_ops.backup.restorer import restore_backup

    report = await restore_backup(adapter, storage, backup_id, company_id)
    print(report.restored_counts)
"""

import logging
from datetime import datetime, timezone
from typing import Any, Literal

from bibleos_ops.adapters.base import DatabaseClient
from bibleos_ops.backup.exporter import BACKUPS_TABLE
from bibleos_ops.backup.locks import TenantLocks, tenant_locks
from bibleos_ops.backup.models import (
    CURRENT_SCHEMA_VERSION,
    BackupRecord,
    BackupStatus,
    RestoreReport,
    TableDef,
    TableOutcome,
    TenantSchema,
)
from bibleos_ops.backup.tables import TENANT_SCHEMA
from bibleos_ops.backup.validate import load_artifact, validate_artifact
from bibleos_ops.errors import (
    BackupNotCompletedError,
    BackupNotFoundError,
    BackupVersionError,
    InvalidArtifactError,
)
from bibleos_ops.storage.base import ObjectStorage

logger = logging.getLogger(__name__)

SamplePolicy = Literal["preserve", "purge"]

# Rows per upsert request
UPSERT_BATCH_SIZE = 500


async def load_backup_record(
    adapter: DatabaseClient, backup_id: str, company_id: str
) -> BackupRecord:
    """Fetch the backup record, scoped to the company.

    Raises:
        BackupNotFoundError: If no record matches both ids.
    """
    rows = await adapter.select(
        BACKUPS_TABLE, filters={"id": backup_id, "company_id": company_id}, limit=1
    )
    if not rows:
        raise BackupNotFoundError("Backup not found")
    return BackupRecord.model_validate(rows[0])


async def restore_backup(
    adapter: DatabaseClient,
    storage: ObjectStorage,
    backup_id: str,
    company_id: str,
    schema: TenantSchema = TENANT_SCHEMA,
    sample_policy: SamplePolicy = "preserve",
    restored_by: str | None = None,
    now: datetime | None = None,
    locks: TenantLocks | None = None,
) -> RestoreReport:
    """Restore a completed backup over the tenant's current data.

    The restore is idempotent: rows are upserted on their primary key, so
    running it twice leaves the same data.  Sample rows (``is_sample``)
    in the artifact are never restored.

    Args:
        adapter: Database adapter implementing ``DatabaseClient``.
        storage: Object storage holding the artifact.
        backup_id: Backup record id.
        company_id: Tenant being restored.
        schema: Tenant table catalogue.
        sample_policy: ``"preserve"`` keeps live rows flagged
            ``is_sample = true`` during the delete phase; ``"purge"``
            deletes them as well.
        restored_by: User id stamped on the record.
        now: Clock override for ``restored_at``.
        locks: Tenant lock registry (defaults to the process registry).

    Returns:
        ``RestoreReport`` with delete and restore outcomes per table.

    Raises:
        BackupNotFoundError: No record for ``backup_id`` in ``company_id``.
        BackupNotCompletedError: Record is not ``completed``.
        StorageError: The artifact could not be downloaded.
        BackupVersionError: Artifact version is newer than this code.
        InvalidArtifactError: Artifact is malformed or for another tenant.
        TenantBusyError: A backup or restore of the tenant is running.

    Example:
        report = await restore_backup(adapter, storage, "b1", "c1", restored_by="u1")
    """
    locks = locks or tenant_locks

    async with locks.hold(company_id, "restore"):
        record = await load_backup_record(adapter, backup_id, company_id)
        if record.status != BackupStatus.COMPLETED:
            raise BackupNotCompletedError("Backup is not in completed status")
        if not record.storage_path:
            raise InvalidArtifactError("Backup record has no storage path")

        artifact = load_artifact(await storage.download(record.storage_path))

        version = artifact.get("version")
        if isinstance(version, int) and version > CURRENT_SCHEMA_VERSION:
            raise BackupVersionError(version, CURRENT_SCHEMA_VERSION)

        validation = validate_artifact(artifact, schema, company_id=company_id)
        if not validation.valid:
            raise InvalidArtifactError(
                f"Invalid backup file: {'; '.join(validation.errors)}",
                errors=validation.errors,
            )

        report = RestoreReport(backup_id=backup_id, company_id=company_id)
        report.deleted = await _delete_phase(adapter, schema, company_id, sample_policy)
        report.restored = await _insert_phase(adapter, schema, artifact["tables"])

        stamp: dict[str, Any] = {"restored_at": now or datetime.now(timezone.utc)}
        if restored_by is not None:
            stamp["restored_by"] = restored_by
        await adapter.update(BACKUPS_TABLE, stamp, {"id": backup_id, "company_id": company_id})

    logger.info(
        "Restored backup %s for company %s: %d records across %d tables, %d failed tables",
        backup_id,
        company_id,
        sum(report.restored_counts.values()),
        len(report.restored_counts),
        len(report.failed_tables),
    )
    return report


# ---------------------------------------------------------------------------
# Delete phase
# ---------------------------------------------------------------------------


def _delete_filters(
    table_def: TableDef,
    company_id: str,
    parent_ids: dict[str, set[str]],
    sample_policy: SamplePolicy,
) -> dict[str, Any] | None:
    filters = table_def.scope_filters(company_id, parent_ids)
    if filters is not None and table_def.sample_flag and sample_policy == "preserve":
        filters["is_sample__neq"] = True
    return filters


async def _scope_parent_ids(
    adapter: DatabaseClient,
    schema: TenantSchema,
    company_id: str,
    sample_policy: SamplePolicy,
) -> dict[str, set[str]]:
    """Ids of the live rows that scope parent-scoped tables.

    Read up front because the delete phase removes a parent only after its
    children, and the children are found through these ids.  Preserved
    sample parents are excluded so their children are preserved too.  A
    parent that cannot be read is left out of the result.
    """
    targets = {t.scope_parent.table for t in schema.tables if t.scope_parent is not None}
    ids: dict[str, set[str]] = {}
    for table_def in schema.insert_order():
        if table_def.name not in targets:
            continue
        if table_def.scope_parent is not None and table_def.scope_parent.table not in ids:
            continue
        filters = _delete_filters(table_def, company_id, ids, sample_policy)
        if filters is None:
            continue
        found: set[str] = set()
        try:
            for batch in table_def.filter_batches(filters):
                rows = await adapter.select(table_def.name, columns="id", filters=batch)
                found.update(str(r["id"]) for r in rows)
        except Exception as e:
            logger.warning("Could not read %s ids for the delete phase: %s", table_def.name, e)
            continue
        ids[table_def.name] = found
    return ids


async def _delete_phase(
    adapter: DatabaseClient,
    schema: TenantSchema,
    company_id: str,
    sample_policy: SamplePolicy,
) -> list[TableOutcome]:
    outcomes: list[TableOutcome] = []
    parent_ids = await _scope_parent_ids(adapter, schema, company_id, sample_policy)

    for table_def in schema.delete_order():
        name = table_def.name
        parent = table_def.scope_parent
        if table_def.tenant_root or not table_def.restorable:
            outcomes.append(TableOutcome(table=name, status="skipped", reason="not restorable"))
            continue
        if parent is not None and parent.table not in parent_ids:
            logger.warning("Delete from %s skipped: %s ids unavailable", name, parent.table)
            outcomes.append(
                TableOutcome(table=name, status="failed", error=f"{parent.table} ids unavailable")
            )
            continue
        filters = _delete_filters(table_def, company_id, parent_ids, sample_policy)
        if filters is None:
            outcomes.append(TableOutcome(table=name, status="skipped", reason="no tenant scope"))
            continue
        try:
            for batch in table_def.filter_batches(filters):
                await adapter.delete(name, batch)
        except Exception as e:
            logger.warning("Delete from %s skipped: %s", name, e)
            outcomes.append(TableOutcome(table=name, status="failed", error=str(e)))
            continue
        outcomes.append(TableOutcome(table=name, status="ok"))
    return outcomes


# ---------------------------------------------------------------------------
# Insert phase
# ---------------------------------------------------------------------------


async def _insert_phase(
    adapter: DatabaseClient,
    schema: TenantSchema,
    tables: dict[str, list[dict[str, Any]]],
) -> list[TableOutcome]:
    outcomes: list[TableOutcome] = []

    for table_def in schema.insert_order():
        name = table_def.name
        if table_def.tenant_root or not table_def.restorable:
            outcomes.append(TableOutcome(table=name, status="skipped", reason="not restorable"))
            continue

        rows = [row for row in tables.get(name) or [] if not row.get("is_sample")]
        if not rows:
            outcomes.append(TableOutcome(table=name, status="skipped", reason="nothing to restore"))
            continue

        try:
            for start in range(0, len(rows), UPSERT_BATCH_SIZE):
                await adapter.upsert(
                    name,
                    rows[start:start + UPSERT_BATCH_SIZE],
                    on_conflict=table_def.conflict_target,
                )
        except Exception as e:
            logger.warning("Insert into %s failed: %s", name, e)
            outcomes.append(TableOutcome(table=name, status="failed", error=str(e)))
            continue
        outcomes.append(TableOutcome(table=name, status="ok", rows=len(rows)))
    return outcomes
