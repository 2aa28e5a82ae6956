"""Backup models: declarative tenant schema, records, artifacts and reports.

Each table declares how it is scoped to a tenant and which tables it
references.  Delete and insert order are derived from those references
by a topological sort, so there is a single source of truth instead of
two hand-synchronized lists.

Usage:
    from bibleos_ops.backup.models import ForeignKey, TableDef, TenantSchema

    schema = TenantSchema(tables=[
        TableDef(name="companies", tenant_root=True, tenant_column=None),
        TableDef(name="projects", sample_flag=True),
        TableDef(name="project_members", pk=["project_id", "user_id"],
                 tenant_column=None,
                 scope_parent=ForeignKey(table="projects", field="project_id")),
    ])
    schema.insert_order()   # companies, projects, project_members
    schema.delete_order()   # project_members, projects, companies
"""

import heapq
from collections.abc import Iterator
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from bibleos_ops.errors import SchemaCycleError

# Bump when the artifact layout changes; restore rejects newer artifacts.
CURRENT_SCHEMA_VERSION = 1

DEFAULT_ROW_LIMIT = 10_000

# Parent ids per `field__in` request; PostgREST sends filters in the URL.
SCOPE_BATCH_SIZE = 200


# ============================================================================
# Schema graph
# ============================================================================


class ForeignKey(BaseModel):
    """Reference from a column of this table to a parent table."""

    table: str                  # parent table name
    field: str                  # FK column in this table
    references: str = "id"      # referenced column in the parent


class TableDef(BaseModel):
    """Definition of a tenant-scoped table for backup/restore."""

    name: str
    pk: list[str] = Field(default_factory=lambda: ["id"])   # upsert conflict target
    tenant_column: str | None = "company_id"                # column holding the tenant id
    scope_parent: ForeignKey | None = None                  # scope through a parent's rows
    parents: list[ForeignKey] = Field(default_factory=list) # ordering-only references
    sample_flag: bool = False                               # table carries is_sample
    tenant_root: bool = False                               # the companies row itself
    restorable: bool = True                                 # False: backed up, never deleted/restored

    @property
    def conflict_target(self) -> str:
        return ",".join(self.pk)

    @property
    def is_scoped(self) -> bool:
        """Whether rows of this table can be attributed to one tenant."""
        return self.tenant_root or self.tenant_column is not None or self.scope_parent is not None

    def dependencies(self) -> set[str]:
        """Parent table names (self references excluded)."""
        refs = list(self.parents)
        if self.scope_parent is not None:
            refs.append(self.scope_parent)
        return {fk.table for fk in refs if fk.table != self.name}

    def scope_filters(
        self,
        company_id: str,
        parent_ids: dict[str, set[str]] | None = None,
    ) -> dict[str, Any] | None:
        """Filters restricting this table to one tenant.

        Args:
            company_id: Tenant id.
            parent_ids: Ids of the tenant's rows per already-read table,
                needed for ``scope_parent`` tables.

        Returns:
            Filter dict, or ``None`` when the table cannot be scoped and
            must not be queried at all.
        """
        if self.tenant_root:
            return {"id": company_id}
        if self.tenant_column is not None:
            return {self.tenant_column: company_id}
        if self.scope_parent is not None:
            ids = (parent_ids or {}).get(self.scope_parent.table, set())
            return {f"{self.scope_parent.field}__in": sorted(ids)}
        return None

    def filter_batches(
        self, filters: dict[str, Any], size: int | None = None
    ) -> Iterator[dict[str, Any]]:
        """Split scope filters into requests of at most ``size`` parent ids.

        Tables without a scope parent yield ``filters`` once; an empty
        parent id list yields nothing.
        """
        if self.scope_parent is None:
            yield filters
            return
        size = size or SCOPE_BATCH_SIZE
        key = f"{self.scope_parent.field}__in"
        ids = filters[key]
        for start in range(0, len(ids), size):
            yield {**filters, key: ids[start:start + size]}


class TenantSchema(BaseModel):
    """Declarative set of tenant tables; order is derived, not declared."""

    tables: list[TableDef]

    @model_validator(mode="after")
    def _check_tables(self) -> "TenantSchema":
        names = [t.name for t in self.tables]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise ValueError(f"Duplicate table definitions: {', '.join(sorted(duplicates))}")
        for t in self.tables:
            if t.scope_parent is not None and t.scope_parent.table not in names:
                raise ValueError(
                    f"{t.name} is scoped through unknown table {t.scope_parent.table}"
                )
        return self

    def get(self, name: str) -> TableDef | None:
        for t in self.tables:
            if t.name == name:
                return t
        return None

    def insert_order(self) -> list[TableDef]:
        """Parents before children (Kahn's algorithm).

        Ties are broken by declaration order so the result is stable.
        References to tables outside the schema are ignored.

        Raises:
            SchemaCycleError: If the references contain a cycle.
        """
        index = {t.name: i for i, t in enumerate(self.tables)}
        deps = {t.name: t.dependencies() & index.keys() for t in self.tables}
        children: dict[str, list[str]] = {name: [] for name in index}
        for name, parents in deps.items():
            for parent in parents:
                children[parent].append(name)

        remaining = {name: len(parents) for name, parents in deps.items()}
        ready = [(index[name], name) for name, n in remaining.items() if n == 0]
        heapq.heapify(ready)

        ordered: list[TableDef] = []
        while ready:
            _, name = heapq.heappop(ready)
            ordered.append(self.tables[index[name]])
            for child in children[name]:
                remaining[child] -= 1
                if remaining[child] == 0:
                    heapq.heappush(ready, (index[child], child))

        if len(ordered) != len(self.tables):
            placed = {t.name for t in ordered}
            raise SchemaCycleError([n for n in index if n not in placed])
        return ordered

    def delete_order(self) -> list[TableDef]:
        """Children before parents."""
        return list(reversed(self.insert_order()))


# ============================================================================
# Backup record and artifact
# ============================================================================


class BackupStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class BackupRecord(BaseModel):
    """Row of ``company_backups`` tracking one backup's lifecycle."""

    model_config = ConfigDict(extra="ignore")

    id: str
    company_id: str
    status: BackupStatus
    backup_type: str = "manual"
    storage_path: str | None = None
    file_size_bytes: int | None = None
    metadata_json: dict[str, Any] | None = None
    created_by: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None
    restored_at: datetime | None = None
    restored_by: str | None = None
    error_message: str | None = None


class BackupArtifact(BaseModel):
    """The JSON snapshot stored in object storage."""

    version: int
    company_id: str
    created_at: str
    tables: dict[str, list[dict[str, Any]]]


def storage_path_for(company_id: str, backup_id: str) -> str:
    """Object path of a backup artifact."""
    return f"{company_id}/{backup_id}.json"


# ============================================================================
# Per-table outcomes and reports
# ============================================================================


TableStatus = Literal["ok", "fallback", "skipped", "failed"]


class TableOutcome(BaseModel):
    """What happened to one table during export, delete or restore.

    ``skipped`` means the table was deliberately not touched (unscoped,
    tenant root, non-restorable, nothing to restore); ``failed`` means the
    database returned an error, kept in ``error``.
    """

    table: str
    status: TableStatus
    rows: int = 0
    truncated: bool = False
    error: str | None = None
    reason: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status in ("ok", "fallback")


class BackupReport(BaseModel):
    """Result of one export."""

    backup_id: str
    company_id: str
    storage_path: str | None = None
    file_size_bytes: int = 0
    outcomes: list[TableOutcome] = Field(default_factory=list)

    @property
    def table_counts(self) -> dict[str, int]:
        return {o.table: o.rows for o in self.outcomes if o.succeeded}

    @property
    def total_records(self) -> int:
        return sum(self.table_counts.values())

    @property
    def failed_tables(self) -> list[str]:
        return [o.table for o in self.outcomes if o.status == "failed"]

    def metadata_json(self) -> dict[str, Any]:
        """Metadata stored on the backup record."""
        counts = self.table_counts
        return {
            "tables": counts,
            "total_records": sum(counts.values()),
            "schema_version": CURRENT_SCHEMA_VERSION,
        }


class RestoreReport(BaseModel):
    """Result of one restore."""

    backup_id: str
    company_id: str
    deleted: list[TableOutcome] = Field(default_factory=list)
    restored: list[TableOutcome] = Field(default_factory=list)

    @property
    def restored_counts(self) -> dict[str, int]:
        return {o.table: o.rows for o in self.restored if o.status == "ok" and o.rows}

    @property
    def failed_tables(self) -> list[str]:
        return [o.table for o in self.deleted + self.restored if o.status == "failed"]


class ValidationReport(BaseModel):
    """Result of ``validate_artifact``."""

    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
