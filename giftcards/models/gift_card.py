"""
Gift card ledger model.

The gift_cards table is the single source of truth for balances. Only the
LedgerStore writes to it; everything else reads GiftCardSnapshot values.
"""
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Dict, Any
from ..extensions import db
from ..utils.money import to_money


class GiftCardType(str, Enum):
    """How the card reaches its recipient."""
    DIGITAL = 'digital'     # Emailed on/after delivery_date
    PHYSICAL = 'physical'   # Shipped; never emailed


@dataclass(frozen=True)
class GiftCardSnapshot:
    """
    Read-only view of a gift card handed to notification dispatchers.

    Dispatchers must not reach back into the ledger; everything they need to
    render an email or PDF is here.
    """
    code: str
    balance: Decimal
    sender_name: Optional[str] = None
    sender_email: Optional[str] = None
    recipient_email: Optional[str] = None
    message: Optional[str] = None
    gift_card_type: str = GiftCardType.DIGITAL.value
    issued_date: Optional[datetime] = None
    delivery_date: Optional[date] = None
    expiration_date: Optional[date] = None
    user_id: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self.balance > 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize snapshot to dictionary (dates as ISO strings)."""
        return {
            'code': self.code,
            'balance': float(self.balance),
            'expiration_date': self.expiration_date.isoformat() if self.expiration_date else '',
            'sender_name': self.sender_name,
            'sender_email': self.sender_email,
            'recipient_email': self.recipient_email,
            'message': self.message,
            'issued_date': self.issued_date.isoformat() if self.issued_date else None,
            'delivery_date': self.delivery_date.isoformat() if self.delivery_date else '',
            'gift_card_type': self.gift_card_type,
            'user_id': self.user_id,
            'is_active': self.is_active,
        }


class GiftCard(db.Model):
    """
    A balance-bearing, uniquely coded value instrument.

    A card is active while balance > 0. Expiry never zeroes the balance; it
    only drives reminder emails.
    """
    __tablename__ = 'gift_cards'

    id = db.Column(db.Integer, primary_key=True)

    # Redemption code - uppercase alphanumeric, immutable once issued
    code = db.Column(db.String(255), nullable=False, unique=True)

    # Value
    balance = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal('0.00'))
    expiration_date = db.Column(db.Date, nullable=True)

    # Descriptive metadata
    sender_name = db.Column(db.String(100))
    sender_email = db.Column(db.String(100))
    recipient_email = db.Column(db.String(100), index=True)
    message = db.Column(db.Text)
    gift_card_type = db.Column(db.String(50), default=GiftCardType.DIGITAL.value)

    # Lifecycle dates
    issued_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    delivery_date = db.Column(db.Date, nullable=True)

    # Owner account on the host platform (NULL until matched by email)
    user_id = db.Column(db.BigInteger().with_variant(db.Integer, 'sqlite'), nullable=True, index=True)

    __table_args__ = (
        db.CheckConstraint('balance >= 0', name='balance_non_negative'),
        db.Index('ix_gift_cards_user_issued', 'user_id', 'issued_date'),
        db.Index('ix_gift_cards_expiration_date', 'expiration_date'),
    )

    @property
    def is_active(self) -> bool:
        return self.balance is not None and Decimal(self.balance) > 0

    def is_expired(self, today: Optional[date] = None) -> bool:
        if not self.expiration_date:
            return False
        return self.expiration_date < (today or date.today())

    def to_snapshot(self) -> GiftCardSnapshot:
        """Freeze the current row into a dispatcher-safe value."""
        return GiftCardSnapshot(
            code=self.code,
            balance=to_money(self.balance),
            sender_name=self.sender_name,
            sender_email=self.sender_email,
            recipient_email=self.recipient_email,
            message=self.message,
            gift_card_type=self.gift_card_type or GiftCardType.DIGITAL.value,
            issued_date=self.issued_date,
            delivery_date=self.delivery_date,
            expiration_date=self.expiration_date,
            user_id=self.user_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize gift card to dictionary."""
        data = self.to_snapshot().to_dict()
        data['id'] = self.id
        return data

    def __repr__(self):
        return f'<GiftCard {self.code} balance={self.balance}>'
