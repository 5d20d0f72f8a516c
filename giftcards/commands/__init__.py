"""
CLI Commands for the gift card ledger.

Provides Flask CLI commands for scheduled tasks and administration.

Usage:
    flask gift-cards issue --balance 50 --recipient-email jane@example.com
    flask gift-cards consolidate              # Attach ownerless cards to accounts
    flask gift-cards export-csv               # Export the ledger
    flask gift-cards import-csv cards.csv     # Import cards
    flask gift-cards logging disable          # Turn activity logging off

    flask scheduled send-deliveries           # Send cards due today
    flask scheduled send-reminders --days 7   # Send expiry reminders
"""
from .gift_cards import init_app as init_gift_card_commands
from .scheduled import init_app as init_scheduled_commands


def init_app(app):
    """Register all CLI commands with the Flask app."""
    init_gift_card_commands(app)
    init_scheduled_commands(app)
