"""Backup artifact validation.

Checks a decoded artifact against the tenant schema before anything is
restored from it.  This is a pure function (no I/O) so the CLI can run it
on a local file and the restorer can run it on a downloaded one.

Usage:
    from bibleos_ops.backup.validate import load_artifact, validate_artifact

    artifact = load_artifact(path.read_bytes())
    report = validate_artifact(artifact, TENANT_SCHEMA, company_id="c1")
    if not report.valid:
        print(report.errors)
"""

import json
from typing import Any

from bibleos_ops.backup.models import CURRENT_SCHEMA_VERSION, TenantSchema, ValidationReport
from bibleos_ops.errors import InvalidArtifactError

REQUIRED_KEYS = ("version", "company_id", "created_at", "tables")


def load_artifact(data: bytes | str) -> dict[str, Any]:
    """Decode artifact JSON.

    Raises:
        InvalidArtifactError: If the data is not a JSON object.
    """
    try:
        artifact = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidArtifactError(f"Invalid backup JSON: {e}") from e
    if not isinstance(artifact, dict):
        raise InvalidArtifactError("Backup artifact must be a JSON object")
    return artifact


def validate_artifact(
    artifact: dict[str, Any],
    schema: TenantSchema,
    company_id: str | None = None,
) -> ValidationReport:
    """Validate artifact shape and tenant ownership.

    Errors make the artifact unusable for restore: missing keys, a
    non-integer or newer version, a ``tables`` value that is not a mapping
    of row lists, a tenant mismatch (artifact or row level), rows missing
    primary key columns.  Warnings are informational: unknown tables and
    rows flagged ``is_sample`` (dropped on restore).

    Args:
        artifact: Decoded artifact.
        schema: Tenant table catalogue.
        company_id: Expected tenant; ``None`` skips the ownership check of
            the artifact itself (rows are still checked against the
            artifact's own ``company_id``).

    Returns:
        ``ValidationReport``.
    """
    errors: list[str] = []
    warnings: list[str] = []

    for key in REQUIRED_KEYS:
        if key not in artifact:
            errors.append(f"Missing required key: {key}")
    if errors:
        return ValidationReport(valid=False, errors=errors, warnings=warnings)

    version = artifact["version"]
    if not isinstance(version, int) or isinstance(version, bool):
        errors.append(f"Backup version must be an integer, got {version!r}")
    elif version > CURRENT_SCHEMA_VERSION:
        errors.append(
            f"Backup version {version} is newer than current schema {CURRENT_SCHEMA_VERSION}"
        )

    owner = artifact["company_id"]
    if company_id is not None and owner != company_id:
        errors.append(f"Backup belongs to company {owner}, not {company_id}")

    tables = artifact["tables"]
    if not isinstance(tables, dict):
        errors.append("'tables' must be an object mapping table names to row lists")
        return ValidationReport(valid=False, errors=errors, warnings=warnings)

    for name, rows in tables.items():
        if not isinstance(rows, list):
            errors.append(f"{name}: rows must be a list")
            continue
        table_def = schema.get(name)
        if table_def is None:
            warnings.append(f"Unknown table in backup: {name}")
            continue

        samples = 0
        for i, row in enumerate(rows):
            if not isinstance(row, dict):
                errors.append(f"{name}[{i}]: row must be an object")
                continue
            missing = [c for c in table_def.pk if row.get(c) is None]
            if missing:
                errors.append(f"{name}[{i}]: missing primary key {', '.join(missing)}")
            tenant_column = "id" if table_def.tenant_root else table_def.tenant_column
            if tenant_column is not None and tenant_column in row and row[tenant_column] != owner:
                errors.append(f"{name}[{i}]: {tenant_column} does not match backup company")
            if row.get("is_sample"):
                samples += 1
        if samples:
            warnings.append(f"{name}: {samples} sample rows will be skipped on restore")

    return ValidationReport(valid=not errors, errors=errors, warnings=warnings)
