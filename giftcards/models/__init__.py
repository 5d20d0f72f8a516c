"""
Database models for the gift card ledger.
Gift cards, the activity audit trail, order redemptions and options.
"""
from .gift_card import GiftCard, GiftCardType, GiftCardSnapshot
from .activity import GiftCardActivity, ActivityType
from .redemption import GiftCardRedemption
from .option import GiftCardOption

__all__ = [
    # Ledger
    'GiftCard',
    'GiftCardType',
    'GiftCardSnapshot',
    # Audit trail
    'GiftCardActivity',
    'ActivityType',
    # Orders
    'GiftCardRedemption',
    # Settings
    'GiftCardOption',
]
