"""SOP review reminder scheduler.

Scans active SOPs with a review date and writes in-app notifications:

- 30 days ahead: "SOP Review Due Soon" to the owner.
- On the review date: "SOP Review Due Today" to the owner.
- 30 days overdue: "SOP Review Overdue" to every department manager
  and the owner, and the SOP is flagged ``review_due``.

The markers are columns on ``sops`` (``review_reminder_sent_at``,
``overdue_reminder_sent_at``).
"""

import logging
from datetime import datetime, timezone
from typing import Any

from bibleos_ops.adapters.base import DatabaseClient
from bibleos_ops.config.models import ReminderConfig
from bibleos_ops.reminders.policy import (
    ReminderAction,
    ReminderRun,
    ReminderState,
    days_until,
    decide_sop_action,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

SOP_COLUMNS = (
    "id,company_id,department_id,title,next_review_at,"
    "review_reminder_sent_at,overdue_reminder_sent_at,created_by"
)
NOTIFICATIONS_TABLE = "in_app_notifications"


async def department_managers(adapter: DatabaseClient, department_id: str | None) -> list[str]:
    if not department_id:
        return []
    rows = await adapter.select(
        "department_members",
        columns="user_id",
        filters={"department_id": department_id, "role": "manager"},
    )
    return [r["user_id"] for r in rows if r.get("user_id")]


def escalation_recipients(managers: list[str], owner: str | None) -> list[str]:
    """Managers plus the owner, each once, in first-seen order."""
    recipients = list(managers)
    if owner:
        recipients.append(owner)
    return list(dict.fromkeys(recipients))


async def _notify(
    adapter: DatabaseClient,
    sop: dict[str, Any],
    user_id: str,
    type_: str,
    title: str,
    message: str,
    metadata: dict[str, Any],
) -> None:
    await adapter.insert(
        NOTIFICATIONS_TABLE,
        {
            "company_id": sop["company_id"],
            "user_id": user_id,
            "type": type_,
            "title": title,
            "message": message,
            "entity_type": "sop",
            "entity_id": sop["id"],
            "metadata": metadata,
        },
    )


async def run_sop_review_reminders(
    adapter: DatabaseClient,
    dry_run: bool = False,
    now: datetime | None = None,
    config: ReminderConfig | None = None,
) -> ReminderRun:
    """Send due SOP review reminders and escalations.

    Args:
        adapter: Database adapter implementing ``DatabaseClient``.
        dry_run: Count candidates without writing anything.
        now: Clock override.
        config: Lead, escalation and cooldown windows.

    Returns:
        ``ReminderRun`` counters.  A failure writing one SOP's
        notifications is logged and counted in ``failures``; the run
        continues with the next SOP.
    """
    now = now or datetime.now(timezone.utc)
    config = config or ReminderConfig()

    sops = await adapter.select(
        "sops",
        columns=SOP_COLUMNS,
        filters={"is_archived": False, "status": "active", "next_review_at__not_null": True},
    )
    run = ReminderRun(processed=len(sops), dry_run=dry_run)

    for sop in sops:
        days = days_until(parse_timestamp(sop["next_review_at"]), now)
        state = ReminderState(
            last_sent_at=parse_timestamp(sop.get("review_reminder_sent_at")),
            escalated_at=parse_timestamp(sop.get("overdue_reminder_sent_at")),
        )
        action = decide_sop_action(days, state, now, config)
        owner = sop.get("created_by")

        if action in (ReminderAction.REMIND, ReminderAction.DUE_TODAY):
            if not owner:
                continue
            run.reminder_candidates += 1
        elif action == ReminderAction.ESCALATE:
            run.escalation_candidates += 1
        else:
            continue
        if dry_run:
            continue

        try:
            if action == ReminderAction.ESCALATE:
                recipients = escalation_recipients(
                    await department_managers(adapter, sop.get("department_id")), owner
                )
                for user_id in recipients:
                    await _notify(
                        adapter, sop, user_id,
                        "sop_review_overdue",
                        "SOP Review Overdue",
                        f'"{sop["title"]}" is {abs(days)} days overdue for review. '
                        "Immediate action required.",
                        {"days_overdue": abs(days), "reminder_type": "escalation"},
                    )
                await adapter.update(
                    "sops",
                    {"overdue_reminder_sent_at": now, "status": "review_due"},
                    {"id": sop["id"]},
                )
                run.escalations_created += 1
                logger.info("Escalated overdue SOP %s to %d recipients", sop["id"], len(recipients))
            elif action == ReminderAction.REMIND:
                await _notify(
                    adapter, sop, owner,
                    "sop_review_reminder",
                    "SOP Review Due Soon",
                    f'"{sop["title"]}" is due for review in {days} days.',
                    {"days_until_review": days, "reminder_type": "30_day"},
                )
                await adapter.update("sops", {"review_reminder_sent_at": now}, {"id": sop["id"]})
                run.reminders_created += 1
                logger.info("Sent review reminder for SOP %s", sop["id"])
            else:
                await _notify(
                    adapter, sop, owner,
                    "sop_review_due",
                    "SOP Review Due Today",
                    f'"{sop["title"]}" is due for review today.',
                    {"reminder_type": "due_date"},
                )
                await adapter.update("sops", {"review_reminder_sent_at": now}, {"id": sop["id"]})
                run.reminders_created += 1
                logger.info("Sent due-date reminder for SOP %s", sop["id"])
        except Exception as e:
            logger.error("Reminder for SOP %s failed: %s", sop["id"], e)
            run.failures += 1

    logger.info(
        "Processed %d SOPs: %d reminders, %d escalations (dry_run=%s)",
        run.processed,
        run.reminders_created,
        run.escalations_created,
        dry_run,
    )
    return run
