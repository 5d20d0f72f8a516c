"""
CLI Commands for Scheduled Tasks.

These commands can be run manually or via cron jobs when the in-process
scheduler is disabled:

# Gift card delivery (run daily at midnight)
0 8 * * * cd /app && flask scheduled send-deliveries

# Expiry reminders (run daily at 9 AM)
0 9 * * * cd /app && flask scheduled send-reminders --days=7
"""

import click
from flask.cli import with_appcontext
from ..services.container import get_services
from ..utils.scheduler import get_next_run_times


@click.group('scheduled')
def scheduled_cli():
    """Scheduled task commands."""
    pass


@scheduled_cli.command('send-deliveries')
@click.option('--date', 'day', type=click.DateTime(formats=['%Y-%m-%d']), help='Delivery date (default: today)')
@click.option('--dry-run', is_flag=True, help='List cards without sending')
@with_appcontext
def send_deliveries(day, dry_run):
    """
    Email digital gift cards whose delivery date is today.

    Run this daily.
    """
    result = get_services().scheduled.send_scheduled_deliveries(
        today=day.date() if day else None,
        dry_run=dry_run
    )

    click.echo(f"\n{'[DRY RUN] ' if dry_run else ''}Gift card delivery for {result['date']}:")
    click.echo(f"  Due: {result['processed']} cards")
    if dry_run:
        for detail in result['details'][:20]:
            click.echo(f"    {detail['code']} -> {detail['recipient_email']}")
        return

    click.echo(f"  Sent: {result['sent']}")
    if result['failed']:
        click.echo(f"  Failed: {result['failed']}")
        for detail in result['details'][:5]:
            click.echo(f"    - {detail['code']}: {detail['error']}")


@scheduled_cli.command('send-reminders')
@click.option('--date', 'day', type=click.DateTime(formats=['%Y-%m-%d']), help='Start of window (default: today)')
@click.option('--days', type=int, help='Days ahead to check (default: reminder setting)')
@click.option('--dry-run', is_flag=True, help='List cards without sending')
@with_appcontext
def send_reminders(day, days, dry_run):
    """
    Send expiry reminders for cards expiring within N days.

    Run this daily.
    """
    result = get_services().scheduled.send_expiry_reminders(
        today=day.date() if day else None,
        days_before=days,
        dry_run=dry_run
    )

    click.echo(
        f"\n{'[DRY RUN] ' if dry_run else ''}Cards expiring "
        f"{result['window_start']} to {result['window_end']}: {result['processed']}"
    )
    if dry_run:
        for detail in result['details'][:20]:
            click.echo(f"    {detail['code']}: ${detail['balance']:.2f} expires {detail['expiration_date']}")
        return

    click.echo(f"  Reminders sent: {result['sent']}")
    if result['failed']:
        click.echo(f"  Failed: {result['failed']}")


@scheduled_cli.command('next-runs')
@with_appcontext
def next_runs():
    """Show when the background jobs run next."""
    runs = get_next_run_times()
    if not runs:
        click.echo("Scheduler is not running in this process")
        return

    for job_id, job in runs.items():
        click.echo(f"  {job['name']} ({job_id}): {job['next_run']}")


def init_app(app):
    """Register CLI commands with the Flask app."""
    app.cli.add_command(scheduled_cli)
