"""
Gift card ledger services.
"""
from .container import GiftCardServices, build_services, get_services, init_services
from .ledger_store import LedgerStore
from .redemption_service import DeductionResult, OrderGateway, RedemptionEngine, RedemptionState
from .notification_service import (
    EmailNotificationDispatcher,
    LoggingNotificationDispatcher,
    NotificationDispatcher,
)
from .association_service import AccountDirectory
from .settings_service import GiftCardSettings

__all__ = [
    'GiftCardServices',
    'build_services',
    'get_services',
    'init_services',
    'LedgerStore',
    'RedemptionEngine',
    'RedemptionState',
    'DeductionResult',
    'OrderGateway',
    'NotificationDispatcher',
    'EmailNotificationDispatcher',
    'LoggingNotificationDispatcher',
    'AccountDirectory',
    'GiftCardSettings',
]
