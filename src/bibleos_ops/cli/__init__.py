"""CLI for tenant backup/restore and the scheduled ops jobs.

Usage:
    bibleos-ops tables
    bibleos-ops backup --company <uuid>
    bibleos-ops restore --company <uuid> --backup-id <uuid> --yes
    bibleos-ops validate backups/<uuid>.json --company <uuid>
    bibleos-ops retention-scan --company <uuid>
    bibleos-ops sop-reminders --dry-run
    bibleos-ops exit-survey-reminders --company <uuid>
    bibleos-ops serve --port 8000

Commands:
    tables                 - Show the derived backup (insert) and delete order
    backup                 - Export one tenant to object storage
    restore                - Restore a completed backup over a tenant
    validate               - Validate a local backup artifact
    retention-scan         - Count retention candidates (read-only)
    sop-reminders          - Send SOP review reminders and escalations
    exit-survey-reminders  - Send exit-survey follow-up reminder emails
    serve                  - Run the HTTP API
"""

import argparse
import asyncio
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from bibleos_ops import factory
from bibleos_ops.backup import (
    TENANT_SCHEMA,
    export_backup,
    load_artifact,
    request_backup,
    restore_backup,
    validate_artifact,
)
from bibleos_ops.config import OpsConfig, Settings, get_settings, load_ops_config
from bibleos_ops.errors import InvalidArtifactError, OpsError
from bibleos_ops.logging_setup import configure_logging
from bibleos_ops.reminders import run_exit_survey_reminders, run_sop_review_reminders
from bibleos_ops.retention import scan_retention

console = Console()


# ============================================================================
# Helpers
# ============================================================================


def _settings(args: argparse.Namespace) -> Settings:
    settings = get_settings()
    if args.config:
        settings = settings.model_copy(update={"ops_config_path": args.config})
    return settings


def _ops_config(settings: Settings) -> OpsConfig:
    try:
        return load_ops_config(settings.ops_config_path)
    except FileNotFoundError:
        return OpsConfig()


def _print_outcomes(title: str, outcomes) -> None:
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Table", style="dim")
    table.add_column("Status")
    table.add_column("Rows", justify="right")
    table.add_column("Note")

    styles = {"ok": "green", "fallback": "yellow", "skipped": "dim", "failed": "red"}
    for o in outcomes:
        note = o.error or o.reason or ("[yellow]truncated[/yellow]" if o.truncated else "")
        table.add_row(o.table, f"[{styles[o.status]}]{o.status}[/{styles[o.status]}]", str(o.rows), note)
    console.print(table)


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_backup(args: argparse.Namespace) -> int:
    settings = _settings(args)
    config = _ops_config(settings)
    adapter = factory.get_adapter(settings, profile_name=args.profile)
    storage = factory.get_storage(settings)
    try:
        backup_id = args.backup_id
        if backup_id is None:
            record = await request_backup(adapter, args.company, backup_type="manual")
            backup_id = record.id
        console.print(f"Backing up company [bold cyan]{args.company}[/bold cyan] ({backup_id})")

        report = await export_backup(
            adapter,
            storage,
            backup_id,
            args.company,
            row_limit=config.backup.row_limit,
            timeout=config.backup.timeout_seconds,
        )
    finally:
        await adapter.close()

    _print_outcomes("Backup", report.outcomes)
    console.print(
        f"\n[bold green]v[/bold green] {report.total_records} records, "
        f"{report.file_size_bytes} bytes -> {report.storage_path}"
    )
    if report.failed_tables:
        console.print(f"[yellow]Failed tables: {', '.join(report.failed_tables)}[/yellow]")
        return 1
    return 0


async def _async_restore(args: argparse.Namespace) -> int:
    settings = _settings(args)
    adapter = factory.get_adapter(settings, profile_name=args.profile)
    storage = factory.get_storage(settings)
    try:
        report = await restore_backup(
            adapter,
            storage,
            args.backup_id,
            args.company,
            sample_policy="purge" if args.purge_samples else "preserve",
        )
    finally:
        await adapter.close()

    _print_outcomes("Restore", report.restored)
    total = sum(report.restored_counts.values())
    if report.failed_tables:
        console.print(
            f"\n[yellow]Restore completed with failures: {', '.join(report.failed_tables)}[/yellow]"
        )
        return 1
    console.print(f"\n[bold green]v[/bold green] Restored {total} records")
    return 0


async def _async_retention(args: argparse.Namespace) -> int:
    settings = _settings(args)
    config = _ops_config(settings)
    adapter = factory.get_adapter(settings, profile_name=args.profile)
    try:
        scan = await scan_retention(
            adapter,
            company_id=args.company,
            dry_run=not args.no_dry_run,
            apply=args.apply,
            config=config.retention,
        )
    finally:
        await adapter.close()

    table = Table(title="Retention Candidates", show_header=True, header_style="bold")
    table.add_column("Company", style="dim")
    table.add_column("Mode")
    table.add_column("Submissions", justify="right")
    table.add_column("Alerts", justify="right")
    table.add_column("Note")
    for c in scan.companies:
        table.add_row(
            c.company_id, c.mode, str(c.submissions_candidates), str(c.alerts_candidates), c.note or ""
        )
    console.print(table)
    return 0


async def _async_sop_reminders(args: argparse.Namespace) -> int:
    settings = _settings(args)
    config = _ops_config(settings)
    adapter = factory.get_adapter(settings, profile_name=args.profile)
    try:
        run = await run_sop_review_reminders(adapter, dry_run=args.dry_run, config=config.reminders)
    finally:
        await adapter.close()

    console.print(
        f"Processed {run.processed} SOPs: "
        f"{run.reminder_candidates} reminder candidates, "
        f"{run.escalation_candidates} escalation candidates"
    )
    if not args.dry_run:
        console.print(
            f"Created {run.reminders_created} reminders and {run.escalations_created} escalations"
        )
    return 1 if run.failures else 0


async def _async_exit_survey_reminders(args: argparse.Namespace) -> int:
    settings = _settings(args)
    config = _ops_config(settings)
    adapter = factory.get_adapter(settings, profile_name=args.profile)
    mailer = factory.get_mailer(settings)
    try:
        run = await run_exit_survey_reminders(
            adapter,
            mailer,
            args.company,
            dry_run=args.dry_run,
            config=config.reminders,
            app_url=settings.app_url or None,
            email_from=settings.email_from,
        )
    finally:
        await adapter.close()

    table = Table(title="Exit Survey Reminders", show_header=True, header_style="bold")
    table.add_column("Alert", style="dim")
    table.add_column("Recipient")
    table.add_column("Result")
    for alert_id, result in run.results.items():
        outcome = "[green]reminded[/green]" if result.reminded else (result.reason or "")
        table.add_row(alert_id, result.recipient or "", outcome)
    console.print(table)
    return 1 if run.failures else 0


# ============================================================================
# Sync command wrappers
# ============================================================================


def _run(coro) -> int:
    try:
        return asyncio.run(coro)
    except OpsError as e:
        console.print(f"\n[bold red]x[/bold red] {e.message}")
        return 1
    except TimeoutError as e:
        console.print(f"\n[bold red]x[/bold red] {e or 'Timed out'}")
        return 1


def cmd_tables(args: argparse.Namespace) -> int:
    """Show derived insert and delete order.

    Reads only the table catalogue -- no database calls.
    """
    table = Table(title="Tenant Tables (insert order)", show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Table")
    table.add_column("Scope")
    table.add_column("Conflict")
    table.add_column("Flags")

    for i, t in enumerate(TENANT_SCHEMA.insert_order(), start=1):
        if t.tenant_root:
            scope = "id"
        elif t.tenant_column:
            scope = t.tenant_column
        elif t.scope_parent:
            scope = f"{t.scope_parent.field} -> {t.scope_parent.table}"
        else:
            scope = "[yellow]unscoped[/yellow]"
        flags = []
        if t.sample_flag:
            flags.append("sample")
        if not t.restorable or t.tenant_root:
            flags.append("backup-only")
        table.add_row(str(i), t.name, scope, t.conflict_target, ", ".join(flags))

    console.print(table)
    return 0


def cmd_backup(args: argparse.Namespace) -> int:
    return _run(_async_backup(args))


def cmd_restore(args: argparse.Namespace) -> int:
    # Confirm unless --yes flag
    if not args.yes:
        console.print(
            f"[yellow]This replaces all data of company {args.company} "
            f"with backup {args.backup_id}.[/yellow]"
        )
        response = input("Continue? [y/N] ")
        if response.lower() not in ["y", "yes"]:
            console.print("Cancelled.")
            return 0
    return _run(_async_restore(args))


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate a local artifact file."""
    path = Path(args.path)
    console.print(f"Validating: {path}")
    try:
        artifact = load_artifact(path.read_bytes())
    except FileNotFoundError:
        console.print(f"\n[red]Backup file not found: {path}[/red]")
        return 1
    except InvalidArtifactError as e:
        console.print(f"\n[red]{e.message}[/red]")
        return 1

    report = validate_artifact(artifact, TENANT_SCHEMA, company_id=args.company)
    for error in report.errors:
        console.print(f"  [red]-[/red] {error}")
    for warning in report.warnings:
        console.print(f"  [yellow]-[/yellow] {warning}")

    if report.valid:
        console.print("\n[bold green]v[/bold green] Backup is valid")
        return 0
    console.print(f"\n[bold red]x[/bold red] Backup is invalid ({len(report.errors)} errors)")
    return 1


def cmd_retention_scan(args: argparse.Namespace) -> int:
    return _run(_async_retention(args))


def cmd_sop_reminders(args: argparse.Namespace) -> int:
    return _run(_async_sop_reminders(args))


def cmd_exit_survey_reminders(args: argparse.Namespace) -> int:
    return _run(_async_exit_survey_reminders(args))


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from bibleos_ops.api import create_app

    configure_logging(args.log_level, rich=False)
    uvicorn.run(create_app(settings=_settings(args)), host=args.host, port=args.port)
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="bibleos-ops",
        description="BibleOS tenant backup/restore, retention and reminder jobs",
    )
    parser.add_argument("--profile", default=None, help="Database profile from ops.toml")
    parser.add_argument("--config", default=None, help="Path to ops.toml")
    parser.add_argument("--log-level", default="INFO", help="Log level (default: INFO)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_tables = subparsers.add_parser("tables", help="Show derived table order")
    p_tables.set_defaults(func=cmd_tables)

    p_backup = subparsers.add_parser("backup", help="Export one tenant")
    p_backup.add_argument("--company", required=True, help="Company id")
    p_backup.add_argument(
        "--backup-id",
        default=None,
        help="Existing backup record id (a new pending record is created when omitted)",
    )
    p_backup.set_defaults(func=cmd_backup)

    p_restore = subparsers.add_parser("restore", help="Restore a completed backup")
    p_restore.add_argument("--company", required=True, help="Company id")
    p_restore.add_argument("--backup-id", required=True, help="Backup record id")
    p_restore.add_argument(
        "--purge-samples",
        action="store_true",
        help="Also delete live sample rows (kept by default)",
    )
    p_restore.add_argument("--yes", "-y", action="store_true", help="Skip confirmation")
    p_restore.set_defaults(func=cmd_restore)

    p_validate = subparsers.add_parser("validate", help="Validate a local backup file")
    p_validate.add_argument("path", help="Path to backup JSON")
    p_validate.add_argument("--company", default=None, help="Expected company id")
    p_validate.set_defaults(func=cmd_validate)

    p_retention = subparsers.add_parser("retention-scan", help="Count retention candidates")
    p_retention.add_argument("--company", default=None, help="Only this company")
    p_retention.add_argument("--apply", action="store_true", help="Request apply (never deletes)")
    p_retention.add_argument("--no-dry-run", action="store_true", help="Mark the scan as non-dry-run")
    p_retention.set_defaults(func=cmd_retention_scan)

    p_sop = subparsers.add_parser("sop-reminders", help="Send SOP review reminders")
    p_sop.add_argument("--dry-run", action="store_true", help="Count candidates only")
    p_sop.set_defaults(func=cmd_sop_reminders)

    p_exit = subparsers.add_parser("exit-survey-reminders", help="Send exit-survey reminders")
    p_exit.add_argument("--company", required=True, help="Company id")
    p_exit.add_argument("--dry-run", action="store_true", help="Decide without sending")
    p_exit.set_defaults(func=cmd_exit_survey_reminders)

    p_serve = subparsers.add_parser("serve", help="Run the HTTP API")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)
    p_serve.set_defaults(func=cmd_serve)

    args = parser.parse_args(argv)
    if args.command != "serve":
        configure_logging(args.log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
