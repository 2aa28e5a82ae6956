"""Reminder state and decision policy.

Each trackable entity (an SOP, an exit-survey alert) has a
``ReminderState`` computed once from its markers.  The decision functions
below are pure: given the state and the clock they say what to send, and
the schedulers do the I/O.

    fresh ──remind──> reminded ──due_today──> reminded ──escalate──> escalated

``cooldown_elapsed`` is the only idempotency guard: no entity is reminded
twice inside one cooldown window, however often the scheduler runs.
"""

import math
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from bibleos_ops.config.models import ReminderConfig


class ReminderAction(str, Enum):
    NONE = "none"
    REMIND = "remind"
    DUE_TODAY = "due_today"
    ESCALATE = "escalate"


class ReminderState(BaseModel):
    """Reminder markers of one entity."""

    last_sent_at: datetime | None = None
    escalated_at: datetime | None = None


class AlertReminderResult(BaseModel):
    """Outcome for one exit-survey alert."""

    reminded: bool = False
    recipient: str | None = None
    reason: str | None = None
    error: str | None = None


class ReminderRun(BaseModel):
    """Counters for one scheduler invocation."""

    processed: int = 0
    dry_run: bool = False
    reminder_candidates: int = 0
    escalation_candidates: int = 0
    reminders_created: int = 0
    escalations_created: int = 0
    failures: int = 0
    results: dict[str, AlertReminderResult] = Field(default_factory=dict)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a timestamp column value; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def cooldown_elapsed(state: ReminderState, now: datetime, cooldown: timedelta) -> bool:
    """Whether a new reminder may be sent."""
    if state.last_sent_at is None:
        return True
    return now - state.last_sent_at >= cooldown


def days_until(due_at: datetime, now: datetime) -> int:
    """Whole days until ``due_at``, rounded down (negative when overdue)."""
    return math.floor((due_at - now) / timedelta(days=1))


def decide_sop_action(
    days: int,
    state: ReminderState,
    now: datetime,
    config: ReminderConfig,
) -> ReminderAction:
    """Decide the SOP review action for ``days`` until the review date.

    - ``REMIND``: review within the lead window and never reminded.
    - ``DUE_TODAY``: review is today, already reminded, cooldown elapsed.
    - ``ESCALATE``: overdue by the escalation threshold, never escalated.
    """
    if 0 < days <= config.lead_days and state.last_sent_at is None:
        return ReminderAction.REMIND
    if days == 0 and state.last_sent_at is not None:
        if cooldown_elapsed(state, now, timedelta(hours=config.cooldown_hours)):
            return ReminderAction.DUE_TODAY
        return ReminderAction.NONE
    if days <= -config.escalation_days and state.escalated_at is None:
        return ReminderAction.ESCALATE
    return ReminderAction.NONE


def decide_alert_action(
    created_at: datetime,
    state: ReminderState,
    now: datetime,
    config: ReminderConfig,
) -> ReminderAction:
    """Decide whether an unresolved exit-survey alert gets a reminder."""
    if now - created_at < timedelta(hours=config.alert_min_age_hours):
        return ReminderAction.NONE
    if not cooldown_elapsed(state, now, timedelta(hours=config.cooldown_hours)):
        return ReminderAction.NONE
    return ReminderAction.REMIND
