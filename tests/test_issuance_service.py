"""
Tests for IssuanceService and CodeGenerator.

Covers:
- Code format and collision handling
- Validation before any write
- Owner lookup by recipient email
- Issued notification timing (digital, due today)
- Order line item issuance
"""
import pytest
from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import MagicMock


class TestCodeGenerator:
    """Tests for code generation."""

    def test_code_format(self):
        """Test codes are uppercase alphanumeric of the configured length."""
        from giftcards.services.code_generator import CodeGenerator, CODE_ALPHABET

        generator = CodeGenerator(exists=lambda code: False, length=12)
        code = generator.generate_unique_code()

        assert len(code) == 12
        assert all(ch in CODE_ALPHABET for ch in code)

    def test_collision_retries(self):
        """Test a colliding code is regenerated."""
        from giftcards.services.code_generator import CodeGenerator

        exists = MagicMock(side_effect=[True, True, False])
        generator = CodeGenerator(exists=exists)

        generator.generate_unique_code()

        assert exists.call_count == 3

    def test_gives_up_after_max_attempts(self):
        """Test exhaustion raises StoreWriteError."""
        from giftcards.services.code_generator import CodeGenerator
        from giftcards.utils.exceptions import StoreWriteError

        exists = MagicMock(return_value=True)
        generator = CodeGenerator(exists=exists, max_attempts=4)

        with pytest.raises(StoreWriteError):
            generator.generate_unique_code()
        assert exists.call_count == 4


class TestIssueCard:
    """Tests for issue_card."""

    def test_issue_digital_card_due_today(self, app, services, dispatcher):
        """Test a digital card due today is stored, logged and delivered."""
        with app.app_context():
            from giftcards.models import GiftCardActivity

            card = services.issuance.issue_card(
                balance='50',
                recipient_email='jane@example.com',
                sender_name='Sam',
                message='Enjoy!',
            )

            assert card.balance == Decimal('50.00')
            assert card.delivery_date == date.today()
            assert services.store.exists(card.code)

            entry = GiftCardActivity.query.filter_by(action_type='created').one()
            assert entry.code == card.code
            assert entry.amount == Decimal('50.00')

        assert [c.code for c in dispatcher.issued] == [card.code]

    def test_owner_set_from_recipient_email(self, app, services, accounts):
        """Test the owner is the account registered with the recipient email."""
        accounts.add(7, 'jane@example.com')

        with app.app_context():
            card = services.issuance.issue_card(balance='20', recipient_email='JANE@example.com')

            assert card.user_id == 7
            assert services.redemption.query_eligible_balance(7) == Decimal('20.00')

    def test_future_delivery_not_notified(self, app, services, dispatcher):
        """Test a card scheduled for a later day is left for the delivery job."""
        with app.app_context():
            services.issuance.issue_card(
                balance='20',
                recipient_email='jane@example.com',
                delivery_date=date.today() + timedelta(days=3),
            )

        assert dispatcher.issued == []

    def test_physical_card_not_notified(self, app, services, dispatcher):
        """Test physical cards are never emailed."""
        with app.app_context():
            services.issuance.issue_card(
                balance='20',
                recipient_email='jane@example.com',
                gift_card_type='physical',
            )

        assert dispatcher.issued == []

    def test_notification_failure_keeps_card(self, app, services, dispatcher):
        """Test a failing dispatcher does not undo issuance."""
        dispatcher.fail = True

        with app.app_context():
            card = services.issuance.issue_card(balance='20', recipient_email='jane@example.com')

            assert services.store.get_by_code(card.code).balance == Decimal('20.00')

    @pytest.mark.parametrize('balance', ['0', '-5', 'abc'])
    def test_invalid_balance(self, app, services, balance):
        """Test zero, negative and non-numeric balances are rejected."""
        with app.app_context():
            from giftcards.utils.exceptions import ValidationError

            with pytest.raises(ValidationError):
                services.issuance.issue_card(balance=balance, recipient_email='jane@example.com')

            assert services.store.count() == 0

    def test_invalid_email(self, app, services):
        """Test a malformed recipient email is rejected."""
        with app.app_context():
            from giftcards.utils.exceptions import ValidationError

            with pytest.raises(ValidationError) as exc_info:
                services.issuance.issue_card(balance='10', recipient_email='not-an-email')

            assert exc_info.value.field == 'recipient_email'

    def test_duplicate_at_insert_regenerates(self, app, services, make_card):
        """Test a code taken between generation and insert is replaced."""
        make_card('TAKEN00001', '5.00')
        services.code_generator.generate_unique_code = MagicMock(side_effect=['TAKEN00001', 'FRESH00001'])

        with app.app_context():
            card = services.issuance.issue_card(balance='10', recipient_email='jane@example.com')

            assert card.code == 'FRESH00001'
            assert services.store.get_by_code('TAKEN00001').balance == Decimal('5.00')

    def test_many_issuances_get_distinct_codes(self, app, services):
        """Test every issued card gets its own code, even from a crowded code space."""
        # 36**2 possible codes, so collisions happen along the way
        services.code_generator.length = 2

        with app.app_context():
            from giftcards.models import GiftCard

            codes = [
                services.issuance.issue_card(balance='1', recipient_email=f'buyer{i}@example.com').code
                for i in range(100)
            ]

            assert len(set(codes)) == 100
            assert GiftCard.query.count() == 100
            assert all(len(code) == 2 for code in codes)


class TestIssueForOrderItem:
    """Tests for cards bought at checkout."""

    def test_expiration_follows_validity_days(self, app, services):
        """Test the card expires validity_days after delivery."""
        delivery = date.today() + timedelta(days=2)

        with app.app_context():
            card = services.issuance.issue_for_order_item(
                order_id=5001,
                amount='75',
                recipient_email='friend@example.com',
                billing_email='buyer@example.com',
                sender_name='Buyer',
                delivery_date=delivery.isoformat(),
            )

            assert card.delivery_date == delivery
            assert card.expiration_date == delivery + timedelta(days=365)
            assert card.sender_email == 'buyer@example.com'

    def test_validity_days_setting(self, app, services):
        """Test a changed validity period applies to new cards."""
        services.settings.validity_days = 30

        with app.app_context():
            card = services.issuance.issue_for_order_item(
                order_id=5002,
                amount='10',
                recipient_email='friend@example.com',
            )

            assert card.expiration_date == date.today() + timedelta(days=30)
