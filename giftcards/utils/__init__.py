"""
Utility modules for the gift card ledger.
"""
from .logging_config import setup_logging
from .money import to_money, min_money
from .dates import parse_date, parse_datetime
from .exceptions import (
    GiftCardError,
    NotFoundError,
    GiftCardNotFoundError,
    ValidationError,
    DuplicateCodeError,
    StoreWriteError,
    NotificationError,
    ConfigurationError
)
