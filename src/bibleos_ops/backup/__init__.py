"""Tenant backup and restore.

Usage:
    from bibleos_ops.backup import export_backup, restore_backup, TENANT_SCHEMA
"""

from bibleos_ops.backup.exporter import export_backup, request_backup
from bibleos_ops.backup.locks import TenantLocks, tenant_locks
from bibleos_ops.backup.models import (
    CURRENT_SCHEMA_VERSION,
    BackupArtifact,
    BackupRecord,
    BackupReport,
    BackupStatus,
    ForeignKey,
    RestoreReport,
    TableDef,
    TableOutcome,
    TenantSchema,
    ValidationReport,
)
from bibleos_ops.backup.restorer import load_backup_record, restore_backup
from bibleos_ops.backup.tables import TENANT_SCHEMA
from bibleos_ops.backup.validate import load_artifact, validate_artifact

__all__ = [
    "CURRENT_SCHEMA_VERSION",
    "TENANT_SCHEMA",
    "BackupArtifact",
    "BackupRecord",
    "BackupReport",
    "BackupStatus",
    "ForeignKey",
    "RestoreReport",
    "TableDef",
    "TableOutcome",
    "TenantLocks",
    "TenantSchema",
    "ValidationReport",
    "export_backup",
    "load_artifact",
    "load_backup_record",
    "request_backup",
    "restore_backup",
    "tenant_locks",
    "validate_artifact",
]
