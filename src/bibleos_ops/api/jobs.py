"""Scheduled job endpoints: retention scan and reminders."""

from typing import Any

from fastapi import APIRouter, Depends, Header, Request

from bibleos_ops.api.deps import (
    flag,
    get_app_settings,
    get_db,
    get_mailer,
    get_ops_config,
    read_body,
    verify_secret,
)
from bibleos_ops.config import OpsConfig, Settings
from bibleos_ops.errors import MissingFieldError
from bibleos_ops.notifications import Mailer
from bibleos_ops.reminders import run_exit_survey_reminders, run_sop_review_reminders
from bibleos_ops.retention import scan_retention

router = APIRouter(tags=["jobs"])


@router.post("/exit-survey-retention")
async def exit_survey_retention(
    request: Request,
    x_scheduler_secret: str | None = Header(default=None),
    settings: Settings = Depends(get_app_settings),
    config: OpsConfig = Depends(get_ops_config),
) -> dict[str, Any]:
    verify_secret(settings.exit_survey_retention_secret, x_scheduler_secret)
    adapter = get_db(request)
    body = await read_body(request)
    scan = await scan_retention(
        adapter,
        company_id=body.get("company_id") or None,
        dry_run=flag(body, "dry_run", True),
        apply=flag(body, "apply", False),
        config=config.retention,
    )
    return {"success": True, **scan.model_dump(mode="json")}


@router.post("/sop-review-reminders")
async def sop_review_reminders(
    request: Request,
    x_scheduler_secret: str | None = Header(default=None),
    settings: Settings = Depends(get_app_settings),
    config: OpsConfig = Depends(get_ops_config),
) -> dict[str, Any]:
    verify_secret(settings.sop_review_scheduler_secret, x_scheduler_secret)
    adapter = get_db(request)
    body = await read_body(request)
    run = await run_sop_review_reminders(
        adapter, dry_run=flag(body, "dry_run", False), config=config.reminders
    )
    return {"success": True, **run.model_dump(exclude={"results"})}


@router.post("/exit-survey-reminders")
async def exit_survey_reminders(
    request: Request,
    x_scheduler_secret: str | None = Header(default=None),
    settings: Settings = Depends(get_app_settings),
    config: OpsConfig = Depends(get_ops_config),
) -> dict[str, Any]:
    verify_secret(settings.exit_survey_reminder_secret, x_scheduler_secret)
    body = await read_body(request)
    company_id = body.get("company_id")
    if not company_id:
        raise MissingFieldError("company_id is required")
    adapter = get_db(request)
    mailer: Mailer = get_mailer(request)
    run = await run_exit_survey_reminders(
        adapter,
        mailer,
        company_id,
        dry_run=flag(body, "dry_run", False),
        config=config.reminders,
        app_url=settings.app_url or None,
        email_from=settings.email_from,
    )
    return {"success": True, **run.model_dump(mode="json")}
