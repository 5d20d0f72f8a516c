"""
Tests for money, date and config helpers.
"""
import pytest
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import patch

from giftcards.utils.dates import parse_date, parse_datetime
from giftcards.utils.money import min_money, to_money


class TestMoney:
    """Tests for currency helpers."""

    def test_to_money_rounds_to_cents(self):
        assert to_money('10.005') == Decimal('10.01')
        assert to_money(0.1) == Decimal('0.10')
        assert to_money(None) == Decimal('0.00')

    def test_to_money_rejects_garbage(self):
        with pytest.raises(ValueError):
            to_money('ten')
        with pytest.raises(ValueError):
            to_money('NaN')

    def test_min_money_floors_at_zero(self):
        assert min_money('5', '3.50', '10') == Decimal('3.50')
        assert min_money('-1', '3.50') == Decimal('0.00')


class TestDates:
    """Tests for date parsing."""

    def test_parse_date(self):
        assert parse_date('2026-12-31') == date(2026, 12, 31)
        assert parse_date('2026-12-31 08:30:00') == date(2026, 12, 31)
        assert parse_date(datetime(2026, 1, 2, 3, 4)) == date(2026, 1, 2)

    @pytest.mark.parametrize('value', [None, '', '0000-00-00', '0000-00-00 00:00:00'])
    def test_empty_dates(self, value):
        assert parse_date(value) is None
        assert parse_datetime(value) is None

    def test_parse_datetime_keeps_time(self):
        assert parse_datetime('2025-01-01T10:15:30') == datetime(2025, 1, 1, 10, 15, 30)

    def test_invalid_date(self):
        with pytest.raises(ValueError):
            parse_date('31/12/2026')


class TestConfig:
    """Tests for startup validation."""

    def test_production_requires_database_url(self):
        from giftcards.config import ProductionConfig, validate_config
        from giftcards.utils.exceptions import ConfigurationError

        with patch.object(ProductionConfig, '_db_url', ''):
            with pytest.raises(ConfigurationError):
                validate_config('production')

    def test_production_rejects_sqlite(self):
        from giftcards.config import ProductionConfig, validate_config
        from giftcards.utils.exceptions import ConfigurationError

        with patch.object(ProductionConfig, '_db_url', 'sqlite:///ledger.db'):
            with pytest.raises(ConfigurationError):
                validate_config('production')

    def test_settings_from_config(self):
        from giftcards.config import TestingConfig
        from giftcards.services.settings_service import GiftCardSettings

        config = {k: getattr(TestingConfig, k) for k in dir(TestingConfig) if k.isupper()}
        settings = GiftCardSettings.from_config(config)

        assert settings.validity_days == 365
        assert settings.redeem_expired is True
        assert settings.code_length == 10
