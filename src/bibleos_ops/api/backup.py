"""Backup and restore endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, Request

from bibleos_ops.adapters.base import DatabaseClient
from bibleos_ops.api.deps import get_db, get_object_storage, get_ops_config, read_body
from bibleos_ops.backup import export_backup, restore_backup
from bibleos_ops.config import OpsConfig
from bibleos_ops.errors import MissingFieldError
from bibleos_ops.storage import ObjectStorage

router = APIRouter(tags=["backup"])


def _require_ids(body: dict[str, Any]) -> tuple[str, str]:
    backup_id = body.get("backup_id")
    company_id = body.get("company_id")
    if not backup_id or not company_id:
        raise MissingFieldError("backup_id and company_id required")
    return str(backup_id), str(company_id)


@router.post("/create-backup")
async def create_backup(
    request: Request,
    adapter: DatabaseClient = Depends(get_db),
    storage: ObjectStorage = Depends(get_object_storage),
    config: OpsConfig = Depends(get_ops_config),
) -> dict[str, Any]:
    backup_id, company_id = _require_ids(await read_body(request))
    report = await export_backup(
        adapter,
        storage,
        backup_id,
        company_id,
        row_limit=config.backup.row_limit,
        timeout=config.backup.timeout_seconds,
    )
    return {
        "success": True,
        "backup_id": backup_id,
        "total_records": report.total_records,
        "failed_tables": report.failed_tables,
    }


@router.post("/restore-backup")
async def restore_backup_endpoint(
    request: Request,
    adapter: DatabaseClient = Depends(get_db),
    storage: ObjectStorage = Depends(get_object_storage),
) -> dict[str, Any]:
    body = await read_body(request)
    backup_id, company_id = _require_ids(body)
    report = await restore_backup(
        adapter, storage, backup_id, company_id, restored_by=body.get("restored_by")
    )
    return {
        "success": True,
        "backup_id": backup_id,
        "restored_counts": report.restored_counts,
        "failed_tables": report.failed_tables,
    }
