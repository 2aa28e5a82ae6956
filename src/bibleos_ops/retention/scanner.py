"""Exit-survey retention scanner.

Counts submissions and alerts that fall outside each company's retention
window.  The scanner is read-only: an ``apply`` request is acknowledged in
the result note but never deletes anything.

Retention settings are key/value rows in ``exit_survey_settings``:

    retention_mode               off | any other value enables scanning
    retention_submissions_days   positive integer, default 365
    retention_alerts_days        positive integer, default 180
    retention_exports_days       positive integer, default 30 (reported only)

Usage:
    from bibleos_ops.retention.scanner import scan_retention

    scan = await scan_retention(adapter, company_id="c1")
    for company in scan.companies:
        print(company.company_id, company.submissions_candidates)
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any

from bibleos_ops.adapters.base import DatabaseClient
from bibleos_ops.config.models import RetentionConfig
from bibleos_ops.retention.models import Capability, CompanyRetention, RetentionScan

logger = logging.getLogger(__name__)

SETTINGS_TABLE = "exit_survey_settings"
SETTING_KEYS = [
    "retention_mode",
    "retention_submissions_days",
    "retention_alerts_days",
    "retention_exports_days",
]

NOTE_MODE_OFF = "Retention mode is off"
NOTE_APPLY_DISABLED = (
    "Apply requested; destructive retention actions are intentionally disabled in this scaffold."
)
NOTE_DRY_RUN = "Dry-run candidate scan completed."

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def parse_positive_int(value: Any, default: int) -> int:
    """Parse a settings value as a positive integer.

    Leading digits are used (``"90 days"`` is 90); anything missing,
    unparsable or not positive gives ``default``.
    """
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value if value > 0 else default
    if isinstance(value, float):
        return int(value) if value >= 1 else default
    if not isinstance(value, str):
        return default
    match = _LEADING_INT.match(value)
    if match is None:
        return default
    parsed = int(match.group(1))
    return parsed if parsed > 0 else default


class RetentionScanner:
    """Read-only retention candidate scanner."""

    capability = Capability.READ_ONLY

    def __init__(self, adapter: DatabaseClient, config: RetentionConfig | None = None) -> None:
        self.adapter = adapter
        self.config = config or RetentionConfig()

    async def company_ids(self) -> list[str]:
        """Companies with a retention mode other than ``off``."""
        rows = await self.adapter.select(
            SETTINGS_TABLE,
            columns="company_id",
            filters={"key": "retention_mode", "value__not_null": True, "value__neq": "off"},
        )
        seen: dict[str, None] = {}
        for row in rows:
            if row.get("company_id"):
                seen[row["company_id"]] = None
        return list(seen)

    async def settings(self, company_id: str) -> dict[str, Any]:
        rows = await self.adapter.select(
            SETTINGS_TABLE,
            columns="key,value",
            filters={"company_id": company_id, "key__in": SETTING_KEYS},
        )
        return {row["key"]: row.get("value") for row in rows}

    async def scan_company(
        self,
        company_id: str,
        now: datetime,
        apply_effective: bool,
    ) -> CompanyRetention:
        settings = await self.settings(company_id)
        mode = settings.get("retention_mode") or "off"

        if mode == "off":
            return CompanyRetention(
                company_id=company_id,
                mode=mode,
                submissions_cutoff=now,
                alerts_cutoff=now,
                note=NOTE_MODE_OFF,
            )

        submissions_days = parse_positive_int(
            settings.get("retention_submissions_days"), self.config.submissions_days
        )
        alerts_days = parse_positive_int(
            settings.get("retention_alerts_days"), self.config.alerts_days
        )
        exports_days = parse_positive_int(
            settings.get("retention_exports_days"), self.config.exports_days
        )
        submissions_cutoff = now - timedelta(days=submissions_days)
        alerts_cutoff = now - timedelta(days=alerts_days)

        submissions = await self.adapter.count(
            "exit_survey_submissions",
            filters={"company_id": company_id, "submitted_at__lte": submissions_cutoff},
        )
        alerts = await self.adapter.count(
            "exit_survey_alerts",
            filters={"company_id": company_id, "created_at__lte": alerts_cutoff},
        )

        return CompanyRetention(
            company_id=company_id,
            mode=mode,
            submissions_cutoff=submissions_cutoff,
            alerts_cutoff=alerts_cutoff,
            submissions_days=submissions_days,
            alerts_days=alerts_days,
            exports_days=exports_days,
            submissions_candidates=submissions,
            alerts_candidates=alerts,
            applied=False,
            note=NOTE_APPLY_DISABLED if apply_effective else NOTE_DRY_RUN,
        )

    async def scan(
        self,
        company_id: str | None = None,
        dry_run: bool = True,
        apply: bool = False,
        now: datetime | None = None,
    ) -> RetentionScan:
        now = now or datetime.now(timezone.utc)
        company_ids = [company_id] if company_id else await self.company_ids()
        apply_effective = apply and not dry_run

        result = RetentionScan(dry_run=dry_run, apply_requested=apply)
        for cid in company_ids:
            company = await self.scan_company(cid, now, apply_effective)
            logger.info(
                "Retention scan %s (mode=%s): %d submissions, %d alerts",
                cid,
                company.mode,
                company.submissions_candidates,
                company.alerts_candidates,
            )
            result.companies.append(company)
        return result


async def scan_retention(
    adapter: DatabaseClient,
    company_id: str | None = None,
    dry_run: bool = True,
    apply: bool = False,
    now: datetime | None = None,
    config: RetentionConfig | None = None,
) -> RetentionScan:
    """Count retention candidates for one company or every enabled company.

    Args:
        adapter: Database adapter implementing ``DatabaseClient``.
        company_id: Scan only this company; ``None`` scans every company
            whose retention mode is not ``off``.
        dry_run: Echoed in the result.
        apply: Echoed in the result; never deletes.
        now: Clock override.
        config: Default retention windows.

    Returns:
        ``RetentionScan``; every company has ``applied = False``.
    """
    scanner = RetentionScanner(adapter, config)
    return await scanner.scan(company_id=company_id, dry_run=dry_run, apply=apply, now=now)
