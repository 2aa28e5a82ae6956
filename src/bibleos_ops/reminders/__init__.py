"""Reminder schedulers: SOP reviews and exit-survey follow-ups."""

from bibleos_ops.reminders.exit_survey import run_exit_survey_reminders
from bibleos_ops.reminders.policy import (
    AlertReminderResult,
    ReminderAction,
    ReminderRun,
    ReminderState,
    cooldown_elapsed,
    decide_alert_action,
    decide_sop_action,
)
from bibleos_ops.reminders.sop import run_sop_review_reminders

__all__ = [
    "AlertReminderResult",
    "ReminderAction",
    "ReminderRun",
    "ReminderState",
    "cooldown_elapsed",
    "decide_alert_action",
    "decide_sop_action",
    "run_exit_survey_reminders",
    "run_sop_review_reminders",
]
