"""
Shared fixtures for the gift card ledger tests.

Each test gets a fresh app on the testing config (in-memory SQLite) with a
recording notification dispatcher and an in-memory account directory, so no
email is sent and no host users table is needed.
"""
import pytest
from datetime import datetime, date
from decimal import Decimal

from giftcards import create_app
from giftcards.extensions import db
from giftcards.services.association_service import AccountDirectory
from giftcards.services.notification_service import NotificationDispatcher
from giftcards.utils.exceptions import NotificationError


class RecordingDispatcher(NotificationDispatcher):
    """Collects events instead of sending them."""

    def __init__(self):
        self.issued = []
        self.expiring = []
        self.fail = False

    def on_issued(self, gift_card):
        if self.fail:
            raise NotificationError('SMTP unavailable')
        self.issued.append(gift_card)
        return {'success': True}

    def on_expiring_soon(self, gift_card):
        if self.fail:
            raise NotificationError('SMTP unavailable')
        self.expiring.append(gift_card)
        return {'success': True}


class FakeAccountDirectory(AccountDirectory):
    """Email <-> user id lookups backed by a dict."""

    def __init__(self):
        self.users = {}

    def add(self, user_id, email):
        self.users[user_id] = email

    def find_user_id_by_email(self, email):
        if not email:
            return None
        for user_id, user_email in self.users.items():
            if user_email.lower() == email.strip().lower():
                return user_id
        return None

    def get_email(self, user_id):
        return self.users.get(user_id)


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def accounts():
    return FakeAccountDirectory()


@pytest.fixture
def app(dispatcher, accounts):
    """Create application for testing."""
    app = create_app('testing', dispatcher=dispatcher, accounts=accounts)

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def services(app):
    from giftcards.services.container import get_services
    return get_services(app)


@pytest.fixture
def make_card(app):
    """
    Insert a gift card directly and return its code.

    Usage: make_card('CARD000001', '30.00', user_id=7, issued_date=datetime(...))
    """
    def _make_card(code, balance, **fields):
        from giftcards.services.container import get_services

        card = {
            'code': code,
            'balance': Decimal(str(balance)),
            'recipient_email': fields.pop('recipient_email', f'{code.lower()}@example.com'),
            'issued_date': fields.pop('issued_date', datetime(2025, 1, 1, 12, 0, 0)),
            'delivery_date': fields.pop('delivery_date', date(2025, 1, 1)),
            'gift_card_type': fields.pop('gift_card_type', 'digital'),
        }
        card.update(fields)
        with app.app_context():
            return get_services(app).store.insert(card)

    return _make_card
