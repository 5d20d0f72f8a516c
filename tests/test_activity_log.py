"""
Tests for ActivityLog and the persisted logging toggle.
"""
import pytest
from decimal import Decimal
from unittest.mock import patch

from sqlalchemy.exc import OperationalError


class TestActivityLog:
    """Tests for recording activity."""

    def test_record_entry(self, app, services):
        """Test an entry is written with its amount and user."""
        with app.app_context():
            from giftcards.models import GiftCardActivity

            assert services.activity_log.used('ABCDEF1234', Decimal('12.34'), 7) is True

            entry = GiftCardActivity.query.one()
            assert entry.action_type == 'used'
            assert entry.code == 'ABCDEF1234'
            assert entry.amount == Decimal('12.34')
            assert entry.user_id == 7
            assert entry.action_date is not None

    def test_bulk_entries_have_no_code(self, app, services):
        """Test CSV entries carry the row count as amount."""
        with app.app_context():
            from giftcards.models import GiftCardActivity

            services.activity_log.import_csv(42)

            entry = GiftCardActivity.query.one()
            assert entry.action_type == 'import_csv'
            assert entry.code is None
            assert entry.amount == Decimal('42.00')

    def test_disabled_writes_nothing(self, app, services):
        """Test no entries are written while logging is disabled."""
        services.settings.enable_logging = False

        with app.app_context():
            from giftcards.models import GiftCardActivity

            assert services.activity_log.created('ABCDEF1234', Decimal('50.00')) is False
            assert GiftCardActivity.query.count() == 0

    def test_write_failure_is_contained(self, app, services, make_card):
        """Test a failed log write returns False and leaves the ledger mutation in place."""
        make_card('LOGFAIL001', '50.00', user_id=7)

        with app.app_context():
            from giftcards.extensions import db
            from giftcards.models import GiftCardActivity

            services.store.deduct('LOGFAIL001', Decimal('20.00'))

            disk_full = OperationalError('INSERT', {}, Exception('disk full'))
            with patch('sqlalchemy.orm.scoped_session.commit', side_effect=disk_full):
                assert services.activity_log.used('LOGFAIL001', Decimal('20.00'), 7) is False

            assert services.store.get_by_code('LOGFAIL001').balance == Decimal('30.00')
            assert GiftCardActivity.query.count() == 0

    def test_recent_newest_first(self, app, services):
        """Test recent() lists the newest entries first."""
        with app.app_context():
            services.activity_log.created('FIRST00001', Decimal('10.00'))
            services.activity_log.deleted('FIRST00001')

            entries = services.activity_log.recent(limit=10)

            assert [e.action_type for e in entries] == ['deleted', 'created']


class TestLoggingToggle:
    """Tests for the persisted enable_logging option."""

    def test_toggle_is_persisted(self, app, services):
        """Test disabling logging is stored and applied immediately."""
        with app.app_context():
            services.settings_service.set_logging_enabled(False)

            assert services.activity_log.enabled is False
            assert services.settings_service.get_option('enable_logging') is False

            services.settings_service.set_logging_enabled(True)
            assert services.activity_log.enabled is True

    def test_persisted_option_overrides_config(self, app, services):
        """Test load_persisted applies stored options over config defaults."""
        with app.app_context():
            from giftcards.extensions import db
            from giftcards.models import GiftCardOption

            db.session.add(GiftCardOption(name='enable_logging', value=False))
            db.session.commit()

            services.settings_service.current(refresh=True)

            assert services.settings.enable_logging is False

    def test_toggle_from_another_process_applies_after_refresh(self, app, services):
        """Test a toggle persisted elsewhere reaches a running app once its cached options lapse."""
        with app.app_context():
            from giftcards.extensions import cache, db
            from giftcards.models import GiftCardActivity, GiftCardOption

            assert services.activity_log.used('ABCDEF1234', Decimal('1.00')) is True

            # Written without going through this process's settings
            db.session.add(GiftCardOption(name='enable_logging', value=False))
            db.session.commit()

            assert services.activity_log.used('ABCDEF1234', Decimal('2.00')) is True

            cache.clear()

            assert services.activity_log.used('ABCDEF1234', Decimal('3.00')) is False
            assert services.settings.enable_logging is False
            assert GiftCardActivity.query.count() == 2

    def test_unknown_option(self, app, services):
        """Test unknown option names are rejected."""
        with app.app_context():
            with pytest.raises(KeyError):
                services.settings_service.set_option('delete_everything', True)
