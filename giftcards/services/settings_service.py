"""
Gift card settings.

GiftCardSettings is the single configuration object handed to the ledger
services at construction. It is built from app.config and then overlaid with
any persisted gift_card_options rows, so an admin toggle survives restarts
without an environment change.
"""
import logging
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import cache, db
from ..models.option import GiftCardOption

logger = logging.getLogger(__name__)

# Option name -> settings attribute
PERSISTED_OPTIONS = {
    'enable_logging': 'enable_logging',
    'validity_days': 'validity_days',
    'reminder_days_before_expiry': 'reminder_days_before_expiry',
    'attach_pdf': 'attach_pdf',
}

OPTIONS_CACHE_KEY = 'gift_card_options'


@dataclass
class GiftCardSettings:
    """Runtime options shared by the ledger services."""
    enable_logging: bool = True
    validity_days: int = 365
    reminder_days_before_expiry: int = 7
    attach_pdf: bool = False
    redeem_expired: bool = True
    code_length: int = 10
    code_max_attempts: int = 10
    from_email: str = 'giftcards@example.com'
    shop_name: str = 'Our Store'

    @classmethod
    def from_config(cls, config) -> 'GiftCardSettings':
        """Build settings from a Flask config mapping."""
        return cls(
            enable_logging=bool(config.get('GIFT_CARDS_ENABLE_LOGGING', True)),
            validity_days=int(config.get('GIFT_CARD_VALIDITY_DAYS', 365)),
            reminder_days_before_expiry=int(config.get('GIFT_CARD_REMINDER_DAYS_BEFORE_EXPIRY', 7)),
            attach_pdf=bool(config.get('GIFT_CARD_ATTACH_PDF', False)),
            redeem_expired=bool(config.get('GIFT_CARD_REDEEM_EXPIRED', True)),
            code_length=int(config.get('GIFT_CARD_CODE_LENGTH', 10)),
            code_max_attempts=int(config.get('GIFT_CARD_CODE_MAX_ATTEMPTS', 10)),
            from_email=config.get('GIFT_CARD_FROM_EMAIL', 'giftcards@example.com'),
            shop_name=config.get('SHOP_NAME', 'Our Store'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


class SettingsService:
    """
    Reads and writes persisted options and keeps the live settings object
    in step, so services holding a reference see changes immediately.
    """

    def __init__(self, settings: GiftCardSettings, refresh_seconds: int = 60):
        self.settings = settings
        self.refresh_seconds = refresh_seconds

    def get_option(self, name: str, default: Any = None) -> Any:
        option = GiftCardOption.query.filter_by(name=name).first()
        return option.value if option else default

    def set_option(self, name: str, value: Any) -> None:
        """
        Persist an option and apply it to the live settings.

        Raises:
            KeyError: If the option name is unknown
            SQLAlchemyError: If the write fails (session is rolled back)
        """
        if name not in PERSISTED_OPTIONS:
            raise KeyError(f"Unknown gift card option: {name}")

        try:
            option = GiftCardOption.query.filter_by(name=name).first()
            if option:
                option.value = value
            else:
                db.session.add(GiftCardOption(name=name, value=value))
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

        cache.delete(OPTIONS_CACHE_KEY)
        setattr(self.settings, PERSISTED_OPTIONS[name], value)
        logger.info(f"Gift card option {name} set to {value!r}")

    def _read_persisted(self) -> Optional[Dict[str, Any]]:
        try:
            options = GiftCardOption.query.filter(
                GiftCardOption.name.in_(list(PERSISTED_OPTIONS))
            ).all()
        except SQLAlchemyError as e:
            # Table not migrated yet; config defaults stay in force
            db.session.rollback()
            logger.debug(f"Persisted gift card options unavailable: {e}")
            return None
        return {option.name: option.value for option in options if option.value is not None}

    def _apply(self, options: Dict[str, Any]) -> GiftCardSettings:
        for name, value in options.items():
            setattr(self.settings, PERSISTED_OPTIONS[name], value)
        return self.settings

    def load_persisted(self) -> GiftCardSettings:
        """Overlay persisted options onto the live settings."""
        options = self._read_persisted()
        if options is None:
            return self.settings
        if self.refresh_seconds > 0:
            cache.set(OPTIONS_CACHE_KEY, options, timeout=self.refresh_seconds)
        return self._apply(options)

    def refresh(self) -> GiftCardSettings:
        """
        Pick up options persisted by another process (a CLI toggle, say).

        The database is read at most once per ``refresh_seconds``; in between
        the cached options are reapplied.
        """
        options = cache.get(OPTIONS_CACHE_KEY)
        if options is None:
            return self.load_persisted()
        return self._apply(options)

    def is_logging_enabled(self) -> bool:
        return bool(self.refresh().enable_logging)

    def set_logging_enabled(self, enabled: bool) -> None:
        self.set_option('enable_logging', bool(enabled))

    def current(self, refresh: bool = False) -> GiftCardSettings:
        if refresh:
            self.load_persisted()
        return self.settings
