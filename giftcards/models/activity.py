"""
Gift card activity log model - append-only audit trail.
"""
from datetime import datetime
from enum import Enum
from typing import Dict, Any
from ..extensions import db


class ActivityType(str, Enum):
    """Ledger actions recorded in gift_card_activities."""
    CREATED = 'created'
    USED = 'used'
    BALANCE_ADJUSTED = 'balance_adjusted'
    EXPIRATION_UPDATED = 'expiration_updated'
    DELETED = 'deleted'
    EXPIRATION_REMINDER_SENT = 'expiration_reminder_sent'
    ASSOCIATED_WITH_USER = 'associated_with_user'
    IMPORT_CSV = 'import_csv'
    EXPORT_CSV = 'export_csv'


class GiftCardActivity(db.Model):
    """
    One audit entry per ledger-affecting action.

    Rows are never updated or deleted by normal operation. ``code`` is NULL
    for bulk actions (CSV import/export), where ``amount`` holds the row count.
    """
    __tablename__ = 'gift_card_activities'

    id = db.Column(db.Integer, primary_key=True)
    action_type = db.Column(db.String(30), nullable=False)  # ActivityType
    code = db.Column(db.String(255), nullable=True, index=True)
    amount = db.Column(db.Numeric(10, 2), nullable=True)
    user_id = db.Column(db.BigInteger().with_variant(db.Integer, 'sqlite'), nullable=True)
    action_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize activity entry to dictionary."""
        return {
            'id': self.id,
            'action_type': self.action_type,
            'code': self.code,
            'amount': float(self.amount) if self.amount is not None else None,
            'user_id': self.user_id,
            'action_date': self.action_date.isoformat() if self.action_date else None,
        }

    def __repr__(self):
        return f'<GiftCardActivity {self.action_type} {self.code}>'
