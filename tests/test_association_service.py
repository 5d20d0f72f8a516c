"""
Tests for AssociationService.

Covers:
- Bulk consolidation by recipient email
- Idempotence of consolidation
- Registration-time association
"""
import pytest
from decimal import Decimal


class TestConsolidate:
    """Tests for the bulk consolidation pass."""

    def test_assigns_matching_cards(self, app, services, accounts, make_card):
        """Test ownerless cards are matched to accounts by recipient email."""
        accounts.add(7, 'jane@example.com')
        make_card('MATCH00001', '25.00', recipient_email='Jane@Example.com')
        make_card('NOMATCH001', '25.00', recipient_email='nobody@example.com')

        with app.app_context():
            result = services.association.consolidate()

            assert result['processed'] == 2
            assert result['updated'] == 1
            assert result['errors'] == []
            assert services.store.get_by_code('MATCH00001').user_id == 7
            assert services.store.get_by_code('NOMATCH001').user_id is None

    def test_second_run_changes_nothing(self, app, services, accounts, make_card):
        """Test running consolidation twice updates nothing the second time."""
        accounts.add(7, 'jane@example.com')
        make_card('IDEMPOT001', '25.00', recipient_email='jane@example.com')

        with app.app_context():
            from giftcards.models import GiftCardActivity

            first = services.association.consolidate()
            second = services.association.consolidate()

            assert first['updated'] == 1
            assert second['updated'] == 0
            assert GiftCardActivity.query.filter_by(action_type='associated_with_user').count() == 1

    def test_owned_cards_are_not_reassigned(self, app, services, accounts, make_card):
        """Test a card that already has an owner keeps it."""
        accounts.add(7, 'jane@example.com')
        make_card('OWNED00001', '25.00', recipient_email='jane@example.com', user_id=3)

        with app.app_context():
            result = services.association.consolidate()

            assert result['processed'] == 0
            assert services.store.get_by_code('OWNED00001').user_id == 3

    def test_lookup_failure_is_collected(self, app, services, accounts, make_card):
        """Test one failing lookup is reported and the pass carries on."""
        from sqlalchemy.exc import OperationalError

        accounts.add(7, 'jane@example.com')
        make_card('BROKEN0001', '25.00', recipient_email='broken@example.com')
        make_card('WORKING001', '25.00', recipient_email='jane@example.com')

        real_lookup = accounts.find_user_id_by_email

        def flaky_lookup(email):
            if email == 'broken@example.com':
                raise OperationalError('SELECT', {}, Exception('users table locked'))
            return real_lookup(email)

        accounts.find_user_id_by_email = flaky_lookup

        with app.app_context():
            result = services.association.consolidate()

            assert result['updated'] == 1
            assert len(result['errors']) == 1
            assert 'BROKEN0001' in result['errors'][0]
            assert services.store.get_by_code('WORKING001').user_id == 7


class TestAssociateOnRegistration:
    """Tests for association at account registration."""

    def test_assigns_cards_for_new_user(self, app, services, accounts, make_card):
        """Test a new user receives every ownerless card sent to their email."""
        make_card('REGISTER01', '10.00', recipient_email='sam@example.com')
        make_card('REGISTER02', '15.00', recipient_email='SAM@example.com')
        make_card('REGISTER03', '20.00', recipient_email='other@example.com')
        accounts.add(11, 'sam@example.com')

        with app.app_context():
            count = services.association.associate_on_registration(11)

            assert count == 2
            assert services.store.sum_active_balance(11) == Decimal('25.00')
            assert services.store.get_by_code('REGISTER03').user_id is None

    def test_unknown_user(self, app, services):
        """Test an unknown user raises NotFoundError."""
        with app.app_context():
            from giftcards.utils.exceptions import NotFoundError

            with pytest.raises(NotFoundError):
                services.association.associate_on_registration(404)
