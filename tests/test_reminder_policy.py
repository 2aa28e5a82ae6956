"""Tests for the pure reminder decision functions."""

from datetime import datetime, timedelta, timezone

import pytest

from bibleos_ops.config.models import ReminderConfig
from bibleos_ops.reminders.policy import (
    ReminderAction,
    ReminderState,
    cooldown_elapsed,
    days_until,
    decide_alert_action,
    decide_sop_action,
    parse_timestamp,
)

from conftest import NOW

COOLDOWN = timedelta(hours=48)
SECOND = timedelta(seconds=1)


class TestParseTimestamp:
    def test_iso_with_offset(self):
        assert parse_timestamp("2026-03-01T12:00:00+00:00") == NOW

    def test_naive_is_utc(self):
        assert parse_timestamp("2026-03-01T12:00:00") == NOW

    def test_zulu_suffix(self):
        assert parse_timestamp("2026-03-01T12:00:00Z") == NOW

    def test_datetime_passthrough(self):
        naive = datetime(2026, 3, 1, 12, 0)
        assert parse_timestamp(naive) == NOW
        assert parse_timestamp(NOW) is NOW

    def test_empty(self):
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None


class TestCooldown:
    """The cooldown boundary is inclusive."""

    def test_never_sent(self):
        assert cooldown_elapsed(ReminderState(), NOW, COOLDOWN)

    def test_one_second_early(self):
        state = ReminderState(last_sent_at=NOW - COOLDOWN + SECOND)
        assert not cooldown_elapsed(state, NOW, COOLDOWN)

    def test_exactly_elapsed(self):
        state = ReminderState(last_sent_at=NOW - COOLDOWN)
        assert cooldown_elapsed(state, NOW, COOLDOWN)

    def test_one_second_late(self):
        state = ReminderState(last_sent_at=NOW - COOLDOWN - SECOND)
        assert cooldown_elapsed(state, NOW, COOLDOWN)


class TestDaysUntil:
    @pytest.mark.parametrize(
        ("delta", "expected"),
        [
            (timedelta(days=30), 30),
            (timedelta(days=29, hours=23), 29),
            (timedelta(hours=5), 0),
            (timedelta(hours=-1), -1),
            (timedelta(days=-30), -30),
        ],
    )
    def test_rounds_down(self, delta, expected):
        assert days_until(NOW + delta, NOW) == expected


class TestDecideSopAction:
    """Test decide_sop_action() for each window."""

    @pytest.fixture
    def config(self) -> ReminderConfig:
        return ReminderConfig()

    def test_remind_inside_lead_window(self, config):
        assert decide_sop_action(30, ReminderState(), NOW, config) == ReminderAction.REMIND
        assert decide_sop_action(1, ReminderState(), NOW, config) == ReminderAction.REMIND

    def test_outside_lead_window(self, config):
        assert decide_sop_action(31, ReminderState(), NOW, config) == ReminderAction.NONE

    def test_remind_only_once(self, config):
        state = ReminderState(last_sent_at=NOW - timedelta(days=5))
        assert decide_sop_action(10, state, NOW, config) == ReminderAction.NONE

    def test_due_today_after_cooldown(self, config):
        state = ReminderState(last_sent_at=NOW - COOLDOWN)
        assert decide_sop_action(0, state, NOW, config) == ReminderAction.DUE_TODAY

    def test_due_today_inside_cooldown(self, config):
        state = ReminderState(last_sent_at=NOW - COOLDOWN + SECOND)
        assert decide_sop_action(0, state, NOW, config) == ReminderAction.NONE

    def test_due_today_never_reminded(self, config):
        assert decide_sop_action(0, ReminderState(), NOW, config) == ReminderAction.NONE

    def test_escalate_at_threshold(self, config):
        assert decide_sop_action(-30, ReminderState(), NOW, config) == ReminderAction.ESCALATE
        assert decide_sop_action(-29, ReminderState(), NOW, config) == ReminderAction.NONE

    def test_escalate_once(self, config):
        state = ReminderState(escalated_at=NOW - timedelta(days=1))
        assert decide_sop_action(-45, state, NOW, config) == ReminderAction.NONE

    def test_custom_windows(self):
        config = ReminderConfig(lead_days=7, escalation_days=3)
        assert decide_sop_action(10, ReminderState(), NOW, config) == ReminderAction.NONE
        assert decide_sop_action(-3, ReminderState(), NOW, config) == ReminderAction.ESCALATE


class TestDecideAlertAction:
    @pytest.fixture
    def config(self) -> ReminderConfig:
        return ReminderConfig()

    def test_too_young(self, config):
        created = NOW - timedelta(hours=48) + SECOND
        assert decide_alert_action(created, ReminderState(), NOW, config) == ReminderAction.NONE

    def test_old_enough(self, config):
        created = NOW - timedelta(hours=48)
        assert decide_alert_action(created, ReminderState(), NOW, config) == ReminderAction.REMIND

    def test_cooldown_blocks(self, config):
        state = ReminderState(last_sent_at=NOW - timedelta(hours=47))
        created = NOW - timedelta(days=10)
        assert decide_alert_action(created, state, NOW, config) == ReminderAction.NONE
