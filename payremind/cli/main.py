"""Main CLI entry point for payremind."""

from __future__ import annotations

import json
import time
from datetime import datetime, time as dt_time

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from payremind import __version__
from payremind.exceptions import (
    NotificationNotFoundError,
    OrderNotFoundError,
    PayRemindError,
    ValidationError,
)
from payremind.notifications.application.service import NotificationService
from payremind.notifications.domain.enums import Channel, DeliveryStatus, NotificationType
from payremind.notifications.domain.value_objects import LogFilters, PassSummary
from payremind.notifications.factory import build_notification_service, build_scheduler
from payremind.notifications.metrics import start_metrics_server
from payremind.utils.async_bridge import run_async
from payremind.utils.config import get_settings
from payremind.utils.logging import configure_logging, get_logger

app = typer.Typer(
    name="payremind",
    help="💸 Payment reminder scheduling & dispatch",
    rich_markup_mode="rich",
    no_args_is_help=True,
)
console = Console()
logger = get_logger(__name__)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold blue]payremind[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    """Track outstanding payments and send due / overdue reminders."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.json_logs, settings.dev_mode)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def get_service() -> NotificationService:
    """Build the notification service from current settings."""
    try:
        return build_notification_service(get_settings())
    except PayRemindError as e:
        _error(e)
        raise typer.Exit(1)


def _parse_datetime(value: str | None, field: str, end_of_day: bool = False) -> datetime | None:
    """Parse an ISO date or datetime. A bare date expands to the whole day."""
    if value is None:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as e:
        raise ValidationError(
            f"Invalid date for {field}: {value}", field=field, value=value, original_error=e
        ) from e
    if end_of_day and len(value) == 10:
        parsed = datetime.combine(parsed.date(), dt_time.max)
    return parsed


def _error(message: object) -> None:
    console.print(f"[red]✗ {escape(str(message))}[/]")


def _status_style(status: DeliveryStatus) -> str:
    return "red" if status is DeliveryStatus.FAILED else "green"


def _add_pass_row(table: Table, label: str, summary: PassSummary) -> None:
    table.add_row(
        label,
        str(summary.selected),
        str(summary.skipped),
        str(summary.dispatched),
        f"[red]{summary.failed}[/]" if summary.failed else "0",
        f"[yellow]{summary.log_failures}[/]" if summary.log_failures else "0",
        "[red]yes[/]" if summary.aborted else "no",
    )


# ============================================================================
# COMMAND 1: run-now
# ============================================================================


@app.command(name="run-now")
def run_now() -> None:
    """▶️  Run the due and overdue passes immediately.

    Examples:
        payremind run-now
    """
    scheduler = build_scheduler(get_settings(), get_service())
    summary = scheduler.run_now()
    if summary is None:
        console.print("[red]✗ Reminder run failed, see logs[/]")
        raise typer.Exit(1)

    table = Table(title="📬 Reminder Run", show_header=True)
    table.add_column("Pass", style="cyan")
    table.add_column("Selected", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Dispatched", justify="right", style="bold")
    table.add_column("Failed", justify="right")
    table.add_column("Not logged", justify="right")
    table.add_column("Aborted", justify="center")

    _add_pass_row(table, "Due", summary.due)
    _add_pass_row(table, "Overdue", summary.overdue)
    console.print(table)
    console.print(f"\n[green]✅ Dispatched {summary.dispatched} reminders[/]")


# ============================================================================
# COMMAND 2: send
# ============================================================================


@app.command()
def send(
    order_id: str = typer.Argument(..., help="Order ID"),
    notification_type: NotificationType = typer.Option(
        NotificationType.DUE_REMINDER, "--type", "-t", help="Reminder type"
    ),
    channel: Channel = typer.Option(Channel.EMAIL, "--channel", "-c", help="Delivery channel"),
) -> None:
    """📧 Send one reminder now, ignoring the daily limits.

    Examples:
        payremind send 1001
        payremind send 1001 --type overdue_reminder --channel whatsapp
    """
    service = get_service()
    try:
        service.get_order(order_id)
    except OrderNotFoundError:
        console.print(f"[red]✗ Order {order_id} not found[/]")
        raise typer.Exit(1)
    except PayRemindError as e:
        _error(e)
        raise typer.Exit(1)

    record = run_async(service.send_manual_reminder(order_id, notification_type, channel))
    if record is None:
        console.print(
            f"[yellow]⚠ Nothing sent: notification settings missing or {channel} disabled[/]"
        )
        raise typer.Exit(1)

    style = _status_style(record.status)
    console.print(f"[{style}]{record.status}[/] {record.type} via {record.channel} ({record.id})")
    if record.error:
        console.print(f"[red]Error: {escape(record.error)}[/]")


# ============================================================================
# COMMAND 3: retry
# ============================================================================


@app.command()
def retry(
    notification_id: str = typer.Argument(..., help="ID of a failed notification"),
) -> None:
    """🔁 Re-send a failed notification with its original type and channel.

    Examples:
        payremind retry notif_1718000000000_a1b2c3d4e
    """
    service = get_service()
    try:
        record = run_async(service.retry_failed(notification_id))
    except NotificationNotFoundError as e:
        _error(e)
        raise typer.Exit(1)

    if record is None:
        console.print(
            "[yellow]⚠ Nothing sent: order, settings or channel no longer available[/]"
        )
        raise typer.Exit(1)

    style = _status_style(record.status)
    console.print(f"[{style}]{record.status}[/] retry recorded as {record.id}")


# ============================================================================
# COMMAND 4: stats
# ============================================================================


@app.command()
def stats() -> None:
    """📊 Outstanding totals and today's reminder activity."""
    settings = get_settings()
    result = get_service().get_notification_stats()

    table = Table(title="📊 Reminder Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="bold")

    table.add_row("Total due", f"{settings.currency_symbol}{result.total_due:.2f}")
    table.add_row("Total overdue", f"[red]{settings.currency_symbol}{result.total_overdue:.2f}[/]")
    table.add_row("Reminders sent today", str(result.reminders_sent_today))
    table.add_row("Upcoming reminders", str(result.upcoming_reminders))
    console.print(table)


# ============================================================================
# COMMAND 5: logs
# ============================================================================


@app.command()
def logs(
    date_from: str | None = typer.Option(None, "--from", help="Earliest timestamp (ISO)"),
    date_to: str | None = typer.Option(None, "--to", help="Latest timestamp (ISO), inclusive"),
    notification_type: NotificationType | None = typer.Option(None, "--type", "-t"),
    channel: Channel | None = typer.Option(None, "--channel", "-c"),
    status: DeliveryStatus | None = typer.Option(None, "--status", "-s"),
    limit: int = typer.Option(50, "--limit", "-l", help="Maximum number of records to show"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
) -> None:
    """📜 Notification history across all orders, newest first.

    Examples:
        payremind logs --type overdue_reminder --status failed
        payremind logs --from 2024-06-01 --to 2024-06-30 --json
    """
    try:
        filters = LogFilters(
            date_from=_parse_datetime(date_from, "date_from"),
            date_to=_parse_datetime(date_to, "date_to", end_of_day=True),
            type=notification_type,
            channel=channel,
            status=status,
        )
    except ValidationError as e:
        _error(e.message)
        raise typer.Exit(1)

    entries = get_service().get_all_notification_logs(filters)[:limit]

    if as_json:
        console.print_json(json.dumps([entry.to_dict() for entry in entries]))
        return

    if not entries:
        console.print("[yellow]No notifications found matching the criteria[/yellow]")
        return

    table = Table(title=f"Notification Log ({len(entries)} records)")
    table.add_column("Timestamp", style="cyan", width=19)
    table.add_column("Order", style="bold")
    table.add_column("Customer")
    table.add_column("Type")
    table.add_column("Channel")
    table.add_column("Status")
    table.add_column("ID", style="dim")

    for entry in entries:
        record = entry.record
        table.add_row(
            entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            entry.order_number or entry.order_id,
            entry.customer_name or "-",
            str(record.type),
            str(record.channel),
            f"[{_status_style(record.status)}]{record.status}[/]",
            record.id,
        )

    console.print(table)


# ============================================================================
# COMMAND 6: status
# ============================================================================


@app.command()
def status() -> None:
    """⏰ Configured schedule and next run time.

    Reads configuration only: a scheduler started by `payremind serve` runs in
    its own process and is not queried.
    """
    settings = get_settings()
    scheduler = build_scheduler(settings, get_service())

    target = f"{settings.scheduler_hour:02d}:{settings.scheduler_minute:02d}"
    console.print("[bold]Configured schedule[/]")
    console.print(f"Target time: [bold]{target}[/] {settings.timezone}")
    console.print(f"Next run: [cyan]{scheduler.get_next_run_time().isoformat()}[/]")


# ============================================================================
# COMMAND 7: serve
# ============================================================================


@app.command()
def serve() -> None:
    """🚀 Start the scheduler and block until interrupted."""
    settings = get_settings()
    if settings.metrics_enabled:
        start_metrics_server(settings.metrics_port)

    scheduler = build_scheduler(settings, get_service())
    scheduler.start()
    console.print(
        f"[green]✅ Scheduler running[/], next run at {scheduler.get_next_run_time().isoformat()}"
    )
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("\n[dim]Stopping scheduler...[/]")
    finally:
        scheduler.stop()


# ============================================================================
# COMMAND 8: init-settings
# ============================================================================


@app.command(name="init-settings")
def init_settings(
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing settings"),
) -> None:
    """🛠️  Write the default notification settings and templates."""
    settings = get_settings()
    try:
        written = get_service().initialize_settings(force=force)
    except PayRemindError as e:
        _error(e)
        raise typer.Exit(1)

    if written:
        path = settings.notification_settings_path
        console.print(f"[green]✅ Default settings written to {path}[/]")
    else:
        console.print("[yellow]Settings already exist, use --force to overwrite[/]")


if __name__ == "__main__":
    app()
