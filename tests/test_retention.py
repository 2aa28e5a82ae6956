"""Tests for the read-only retention scanner."""

from datetime import timedelta

import pytest

from bibleos_ops.config.models import RetentionConfig
from bibleos_ops.retention import Capability, RetentionScanner, parse_positive_int, scan_retention
from bibleos_ops.retention.scanner import NOTE_APPLY_DISABLED, NOTE_DRY_RUN, NOTE_MODE_OFF

from conftest import NOW, InMemoryDatabase


def settings_rows(company_id: str, **values) -> list[dict]:
    return [{"company_id": company_id, "key": k, "value": v} for k, v in values.items()]


def retention_db() -> InMemoryDatabase:
    """c1 enabled with 90-day submissions, c2 off, c3 enabled with defaults."""
    return InMemoryDatabase(
        {
            "exit_survey_settings": (
                settings_rows(
                    "c1",
                    retention_mode="scheduled",
                    retention_submissions_days="90",
                    retention_alerts_days="not a number",
                )
                + settings_rows("c2", retention_mode="off")
                + settings_rows("c3", retention_mode="manual")
                + [{"company_id": "c4", "key": "retention_mode", "value": None}]
            ),
            "exit_survey_submissions": [
                {"id": "s1", "company_id": "c1", "submitted_at": NOW - timedelta(days=120)},
                {"id": "s2", "company_id": "c1", "submitted_at": NOW - timedelta(days=90)},
                {"id": "s3", "company_id": "c1", "submitted_at": NOW - timedelta(days=10)},
                {"id": "s4", "company_id": "c2", "submitted_at": NOW - timedelta(days=900)},
                {"id": "s5", "company_id": "c3", "submitted_at": NOW - timedelta(days=400)},
            ],
            "exit_survey_alerts": [
                {"id": "a1", "company_id": "c1", "created_at": NOW - timedelta(days=200)},
                {"id": "a2", "company_id": "c1", "created_at": NOW - timedelta(days=20)},
            ],
        }
    )


class TestParsePositiveInt:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("90", 90),
            ("90 days", 90),
            (" 45", 45),
            (30, 30),
            (12.9, 12),
            ("0", 365),
            ("-5", 365),
            ("abc", 365),
            ("", 365),
            (None, 365),
            (True, 365),
            (0, 365),
        ],
    )
    def test_values(self, value, expected):
        assert parse_positive_int(value, 365) == expected


class TestScanner:
    """Test candidate counting and the notes attached to each company."""

    async def test_enabled_companies_only(self):
        scan = await scan_retention(retention_db(), now=NOW)
        assert [c.company_id for c in scan.companies] == ["c1", "c3"]

    async def test_counts_use_company_windows(self):
        scan = await scan_retention(retention_db(), company_id="c1", now=NOW)
        c1 = scan.companies[0]

        assert c1.submissions_days == 90
        assert c1.alerts_days == 180
        assert c1.exports_days == 30
        assert c1.submissions_cutoff == NOW - timedelta(days=90)
        # s2 sits exactly on the cutoff and counts
        assert c1.submissions_candidates == 2
        assert c1.alerts_candidates == 1

    async def test_defaults_from_config(self):
        config = RetentionConfig(submissions_days=300)
        scan = await scan_retention(retention_db(), company_id="c3", now=NOW, config=config)
        c3 = scan.companies[0]

        assert c3.submissions_days == 300
        assert c3.submissions_candidates == 1

    async def test_mode_off(self):
        scan = await scan_retention(retention_db(), company_id="c2", now=NOW)
        c2 = scan.companies[0]

        assert c2.mode == "off"
        assert c2.note == NOTE_MODE_OFF
        assert c2.submissions_candidates == 0
        assert c2.submissions_days is None

    async def test_missing_settings_is_off(self):
        scan = await scan_retention(retention_db(), company_id="unknown", now=NOW)
        assert scan.companies[0].note == NOTE_MODE_OFF

    async def test_dry_run_note(self):
        scan = await scan_retention(retention_db(), company_id="c1", now=NOW)
        assert scan.dry_run is True
        assert scan.companies[0].note == NOTE_DRY_RUN

    async def test_apply_is_acknowledged_not_performed(self):
        db = retention_db()
        before = {name: list(rows) for name, rows in db.tables.items()}

        scan = await scan_retention(db, company_id="c1", dry_run=False, apply=True, now=NOW)

        assert scan.apply_requested is True
        assert scan.companies[0].note == NOTE_APPLY_DISABLED
        assert scan.companies[0].applied is False
        assert db.tables == before
        assert {op for op, _ in db.calls} <= {"select", "count"}

    async def test_apply_with_dry_run_stays_dry(self):
        scan = await scan_retention(retention_db(), company_id="c1", dry_run=True, apply=True, now=NOW)
        assert scan.companies[0].note == NOTE_DRY_RUN

    def test_capability_is_read_only(self):
        assert RetentionScanner.capability == Capability.READ_ONLY
