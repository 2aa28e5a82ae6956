"""Exit-survey follow-up reminder scheduler.

Emails the question owner (or, failing that, the company admin) about
unresolved alerts older than 48 hours, at most once per cooldown window.
The durable marker is a system-authored comment on the alert; the latest
one per alert is the alert's ``ReminderState``.
"""

import html
import logging
from datetime import datetime, timezone
from typing import Any

from bibleos_ops.adapters.base import DatabaseClient
from bibleos_ops.config.models import ReminderConfig
from bibleos_ops.errors import MailerError
from bibleos_ops.notifications.mailer import Mailer
from bibleos_ops.reminders.policy import (
    AlertReminderResult,
    ReminderAction,
    ReminderRun,
    ReminderState,
    decide_alert_action,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

COMMENTS_TABLE = "exit_survey_alert_comments"
SYSTEM_AUTHOR = "System"
SUBJECT = "Reminder: Exit Survey Follow-Up Needed"
DEFAULT_EMAIL_FROM = "Honey Lake Clinic <noreply@honeylake.clinic>"


async def company_admin_email(adapter: DatabaseClient, company_id: str) -> str | None:
    """Email of the first company admin, if any."""
    members = await adapter.select(
        "memberships",
        columns="user_id",
        filters={"company_id": company_id, "role": "company_admin"},
        limit=1,
    )
    if not members or not members[0].get("user_id"):
        return None
    profiles = await adapter.select(
        "profiles", columns="email", filters={"user_id": members[0]["user_id"]}, limit=1
    )
    return profiles[0].get("email") if profiles else None


async def _by_id(adapter: DatabaseClient, table: str, columns: str, ids: set[str]) -> dict[str, dict]:
    if not ids:
        return {}
    rows = await adapter.select(table, columns=columns, filters={"id__in": sorted(ids)})
    return {r["id"]: r for r in rows}


async def reminder_states(adapter: DatabaseClient, alert_ids: list[str]) -> dict[str, ReminderState]:
    """Latest system reminder per alert, in one query."""
    if not alert_ids:
        return {}
    rows = await adapter.select(
        COMMENTS_TABLE,
        columns="alert_id,created_at",
        filters={"alert_id__in": alert_ids, "author_id__is": None, "author_name": SYSTEM_AUTHOR},
        order_by="-created_at",
    )
    states: dict[str, ReminderState] = {}
    for row in rows:
        if row["alert_id"] not in states:
            states[row["alert_id"]] = ReminderState(last_sent_at=parse_timestamp(row["created_at"]))
    return states


def patient_name(submission: dict[str, Any] | None) -> str:
    if not submission:
        return "Anonymous"
    first = submission.get("patient_first_name") or ""
    last = submission.get("patient_last_name") or ""
    return f"{first} {last}".strip() or "Anonymous"


def render_reminder(
    alert: dict[str, Any],
    question: dict[str, Any] | None,
    submission: dict[str, Any] | None,
    app_url: str | None,
) -> str:
    """HTML body of the reminder email."""
    link = f"{app_url.rstrip('/')}/app/exit-survey/submissions/{alert['submission_id']}" if app_url else "#"
    question_text = (question or {}).get("text") or "Question"
    return (
        '<div style="font-family: -apple-system, BlinkMacSystemFont, \'Segoe UI\', Roboto, Arial, sans-serif; color:#111;">'
        f'<h2 style="margin:0 0 8px;">{SUBJECT}</h2>'
        f'<p style="margin:0 0 12px;">Question: <strong>{html.escape(question_text)}</strong></p>'
        f'<p style="margin:0 0 12px;">Score: <strong>{html.escape(str(alert.get("score")))}</strong></p>'
        f'<p style="margin:0 0 12px;">Patient: <strong>{html.escape(patient_name(submission))}</strong></p>'
        f'<a href="{html.escape(link, quote=True)}" style="color:#0f766e;">View response</a>'
        '<p style="margin-top:16px; font-size:12px; color:#6b7280;">'
        "This reminder repeats every 48 to 72 hours until the task is marked complete by an admin.</p>"
        "</div>"
    )


async def run_exit_survey_reminders(
    adapter: DatabaseClient,
    mailer: Mailer,
    company_id: str,
    dry_run: bool = False,
    now: datetime | None = None,
    config: ReminderConfig | None = None,
    app_url: str | None = None,
    email_from: str = DEFAULT_EMAIL_FROM,
) -> ReminderRun:
    """Send follow-up reminders for a company's unresolved alerts.

    Args:
        adapter: Database adapter implementing ``DatabaseClient``.
        mailer: Email sender.
        company_id: Company whose alerts are scanned.
        dry_run: Decide and count without sending or writing markers.
        now: Clock override.
        config: Alert age and cooldown windows.
        app_url: Base URL for the "View response" link.
        email_from: Sender address.

    Returns:
        ``ReminderRun`` with one ``results`` entry per scanned alert.
        An email failure is recorded for that alert only and no marker is
        written, so the next run retries it.
    """
    now = now or datetime.now(timezone.utc)
    config = config or ReminderConfig()

    alerts = await adapter.select(
        "exit_survey_alerts",
        columns="id,question_id,submission_id,score,created_at",
        filters={"company_id": company_id, "status__neq": "resolved"},
    )
    run = ReminderRun(processed=len(alerts), dry_run=dry_run)
    if not alerts:
        return run

    questions = await _by_id(
        adapter, "exit_survey_questions", "id,text,owner_email,owner_name",
        {a["question_id"] for a in alerts if a.get("question_id")},
    )
    submissions = await _by_id(
        adapter, "exit_survey_submissions", "id,patient_first_name,patient_last_name,submitted_at",
        {a["submission_id"] for a in alerts if a.get("submission_id")},
    )
    states = await reminder_states(adapter, [a["id"] for a in alerts])
    admin_email = await company_admin_email(adapter, company_id)

    for alert in alerts:
        alert_id = alert["id"]
        question = questions.get(alert.get("question_id"))
        recipient = (question or {}).get("owner_email") or admin_email
        state = states.get(alert_id, ReminderState())

        action = decide_alert_action(parse_timestamp(alert["created_at"]), state, now, config)
        if action != ReminderAction.REMIND:
            run.results[alert_id] = AlertReminderResult(reason="not_due")
            continue
        if not recipient:
            run.results[alert_id] = AlertReminderResult(reason="no_recipient")
            continue

        run.reminder_candidates += 1
        if dry_run:
            run.results[alert_id] = AlertReminderResult(recipient=recipient, reason="dry_run")
            continue

        body = render_reminder(alert, question, submissions.get(alert.get("submission_id")), app_url)
        try:
            await mailer.send(recipient, SUBJECT, body, email_from)
        except MailerError as e:
            logger.error("Reminder email for alert %s failed: %s", alert_id, e)
            run.failures += 1
            run.results[alert_id] = AlertReminderResult(
                recipient=recipient, reason="email_failed", error=str(e)
            )
            continue

        await adapter.insert(
            COMMENTS_TABLE,
            {
                "alert_id": alert_id,
                "comment": f"[Reminder] Follow-up reminder sent to {recipient} at {now.isoformat()}",
                "author_id": None,
                "author_name": SYSTEM_AUTHOR,
                "created_at": now,
            },
        )
        run.reminders_created += 1
        run.results[alert_id] = AlertReminderResult(reminded=True, recipient=recipient)
        logger.info("Sent follow-up reminder for alert %s to %s", alert_id, recipient)

    return run
