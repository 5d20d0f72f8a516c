"""
CLI Commands for gift card administration.

Usage:
    flask gift-cards issue --balance 50 --recipient-email jane@example.com
    flask gift-cards show ABCDEF1234
    flask gift-cards update ABCDEF1234 --balance 25 --expiration-date 2026-12-31
    flask gift-cards delete ABCDEF1234 --yes
    flask gift-cards consolidate
    flask gift-cards export-csv --output exports/gift-cards.csv
    flask gift-cards import-csv gift-cards.csv --offset 0 --batch-size 100
    flask gift-cards complete-order 1042
    flask gift-cards logging disable
    flask gift-cards activity --limit 20
"""
import os
from datetime import datetime

import click
from flask import current_app
from flask.cli import with_appcontext
from ..services.container import get_services


def _echo_result(result):
    if result['success']:
        click.echo(result['message'])
    else:
        click.echo(f"Error: {result['message']}", err=True)


@click.group('gift-cards')
def gift_cards_cli():
    """Gift card ledger commands."""
    pass


@gift_cards_cli.command('issue')
@click.option('--balance', required=True, help='Starting balance')
@click.option('--recipient-email', required=True, help='Recipient email')
@click.option('--sender-name', default='', help='Name shown as sender')
@click.option('--sender-email', default='', help='Sender email')
@click.option('--message', default='', help='Personal message')
@click.option('--type', 'gift_card_type', type=click.Choice(['digital', 'physical']), default='digital')
@click.option('--delivery-date', help='YYYY-MM-DD (default: today)')
@click.option('--expiration-date', help='YYYY-MM-DD (default: no expiry)')
@with_appcontext
def issue(balance, recipient_email, sender_name, sender_email, message, gift_card_type,
          delivery_date, expiration_date):
    """Issue a gift card."""
    result = get_services().admin.issue(
        balance=balance,
        recipient_email=recipient_email,
        sender_name=sender_name,
        sender_email=sender_email,
        message=message,
        gift_card_type=gift_card_type,
        delivery_date=delivery_date,
        expiration_date=expiration_date,
    )
    _echo_result(result)
    if result['success']:
        card = result['gift_card']
        click.echo(f"  Code: {card['code']}")
        click.echo(f"  Balance: ${card['balance']:.2f}")
        if card['user_id']:
            click.echo(f"  Owner: user {card['user_id']}")


@gift_cards_cli.command('show')
@click.argument('code')
@with_appcontext
def show(code):
    """Show one gift card."""
    result = get_services().admin.get_card_data(code)
    if not result['success']:
        _echo_result(result)
        return

    for key, value in result['gift_card'].items():
        click.echo(f"  {key}: {value if value not in (None, '') else '-'}")


@gift_cards_cli.command('update')
@click.argument('code')
@click.option('--balance', required=True, help='New balance')
@click.option('--expiration-date', help="YYYY-MM-DD, or 'none' to remove the expiry")
@click.option('--recipient-email', help='New recipient email')
@click.option('--sender-name', help='New sender name')
@click.option('--message', help='New message')
@with_appcontext
def update(code, balance, expiration_date, recipient_email, sender_name, message):
    """Edit a gift card."""
    changes = {
        'recipient_email': recipient_email,
        'sender_name': sender_name,
        'message': message,
    }
    if expiration_date is not None:
        changes['expiration_date'] = None if expiration_date.lower() == 'none' else expiration_date

    _echo_result(get_services().admin.update_card(code, balance, **changes))


@gift_cards_cli.command('delete')
@click.argument('code')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def delete(code, yes):
    """Delete a gift card."""
    if not yes:
        click.confirm(f"Delete gift card {code}?", abort=True)
    _echo_result(get_services().admin.delete_card(code))


@gift_cards_cli.command('consolidate')
@with_appcontext
def consolidate():
    """Attach ownerless gift cards to accounts with a matching email."""
    result = get_services().association.consolidate()

    click.echo(f"\nProcessed: {result['processed']} cards")
    click.echo(f"Updated: {result['updated']} cards")
    if result['errors']:
        click.echo(f"Errors: {len(result['errors'])}")
        for error in result['errors'][:10]:
            click.echo(f"  - {error}")


@gift_cards_cli.command('associate')
@click.argument('user_id', type=int)
@with_appcontext
def associate(user_id):
    """Attach cards sent to a newly registered user's email."""
    from ..utils.exceptions import NotFoundError

    try:
        count = get_services().association.associate_on_registration(user_id)
    except NotFoundError as e:
        click.echo(f"Error: {e.message}", err=True)
        return
    click.echo(f"Associated {count} gift card(s) with user {user_id}")


@gift_cards_cli.command('export-csv')
@click.option('--output', type=click.Path(dir_okay=False), help='Output file (default: export dir)')
@click.option('--batch-size', type=int, default=0, help='Export in batches of N rows')
@with_appcontext
def export_csv(output, batch_size):
    """Export the ledger to CSV."""
    services = get_services()
    if not output:
        output = os.path.join(
            current_app.config['GIFT_CARD_EXPORT_DIR'],
            f"gift-cards-{datetime.utcnow().strftime('%Y-%m-%d')}.csv"
        )

    if batch_size > 0:
        offset = 0
        while True:
            result = services.csv.export_batch(output, offset=offset, batch_size=batch_size)
            offset = result['next_offset']
            click.echo(f"  Exported {offset} rows...")
            if result['complete']:
                break
        click.echo(f"Exported {offset} gift cards to {output}")
        return

    directory = os.path.dirname(output)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(output, 'w', newline='', encoding='utf-8') as f:
        count = services.csv.export_csv(f)
    click.echo(f"Exported {count} gift cards to {output}")


@gift_cards_cli.command('import-csv')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--offset', type=int, default=0, help='Data rows to skip (batched import)')
@click.option('--batch-size', type=int, default=0, help='Import only N rows from offset')
@with_appcontext
def import_csv(path, offset, batch_size):
    """Import gift cards from CSV."""
    services = get_services()
    with open(path, newline='', encoding='utf-8') as f:
        if batch_size > 0:
            result = services.csv.import_batch(f, offset=offset, batch_size=batch_size)
        else:
            result = services.csv.import_csv(f)

    click.echo(f"\nImported: {result['imported']}")
    click.echo(f"Skipped (duplicate codes): {result['skipped']}")
    if result['errors']:
        click.echo(f"Errors: {len(result['errors'])}")
        for error in result['errors'][:20]:
            click.echo(f"  Row {error['row']} ({error['code']}): {error['error']}")
    if 'next_offset' in result:
        state = 'complete' if result['complete'] else f"continue with --offset {result['next_offset']}"
        click.echo(f"Batch {state}")


@gift_cards_cli.command('complete-order')
@click.argument('order_id')
@with_appcontext
def complete_order(order_id):
    """Deduct an order's committed gift card discount (runs once per order)."""
    result = get_services().redemption.complete_order(order_id)
    if result is None:
        click.echo(f"Nothing to deduct for order {order_id}")
        return

    for deduction in result.deductions:
        click.echo(f"  {deduction.code}: -${deduction.amount:.2f}")
    click.echo(f"Deducted ${result.deducted:.2f} of ${result.requested:.2f}")
    if result.shortfall > 0:
        click.echo(f"Shortfall: ${result.shortfall:.2f}")


@gift_cards_cli.group('logging')
def logging_cli():
    """Activity logging toggle.

    Running app processes pick up a change within
    GIFT_CARD_OPTIONS_REFRESH_SECONDS.
    """
    pass


@logging_cli.command('enable')
@with_appcontext
def logging_enable():
    get_services().settings_service.set_logging_enabled(True)
    click.echo("Gift card activity logging enabled")


@logging_cli.command('disable')
@with_appcontext
def logging_disable():
    get_services().settings_service.set_logging_enabled(False)
    click.echo("Gift card activity logging disabled")


@logging_cli.command('status')
@with_appcontext
def logging_status():
    enabled = get_services().settings_service.is_logging_enabled()
    click.echo(f"Gift card activity logging is {'enabled' if enabled else 'disabled'}")


@gift_cards_cli.command('activity')
@click.option('--limit', type=int, default=50, help='Entries to show')
@with_appcontext
def activity(limit):
    """Show the most recent activity entries."""
    result = get_services().admin.list_activity(limit)
    if not result['enabled']:
        click.echo("(activity logging is currently disabled)")

    for entry in result['activities']:
        amount = f"${entry['amount']:.2f}" if entry['amount'] is not None else '-'
        click.echo(
            f"  {entry['action_date']}  {entry['action_type']:<26} "
            f"{entry['code'] or '-':<12} {amount:>10}  user={entry['user_id'] or '-'}"
        )


def init_app(app):
    """Register CLI commands with the Flask app."""
    app.cli.add_command(gift_cards_cli)
