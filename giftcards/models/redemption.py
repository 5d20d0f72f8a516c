"""
Order-side record of a committed gift card discount.
"""
from datetime import datetime
from decimal import Decimal
from typing import Dict, Any
from ..extensions import db


class GiftCardRedemption(db.Model):
    """
    The gift card discount carried by one order.

    The unique order_id makes commit_order exactly-once; deducted_at makes the
    completion-time FIFO deduction exactly-once even when the host fires its
    "order completed" event more than once.
    """
    __tablename__ = 'gift_card_redemptions'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(100), nullable=False, unique=True)
    user_id = db.Column(db.BigInteger().with_variant(db.Integer, 'sqlite'), nullable=True, index=True)

    # Amount discounted on the order at checkout
    discount_amount = db.Column(db.Numeric(10, 2), nullable=False)
    # Amount actually taken from cards (can be lower if balances moved)
    deducted_amount = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal('0.00'))

    committed_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    deducted_at = db.Column(db.DateTime, nullable=True)

    @property
    def is_deducted(self) -> bool:
        return self.deducted_at is not None

    @property
    def shortfall(self) -> Decimal:
        return Decimal(self.discount_amount or 0) - Decimal(self.deducted_amount or 0)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize redemption to dictionary."""
        return {
            'id': self.id,
            'order_id': self.order_id,
            'user_id': self.user_id,
            'discount_amount': float(self.discount_amount or 0),
            'deducted_amount': float(self.deducted_amount or 0),
            'committed_at': self.committed_at.isoformat() if self.committed_at else None,
            'deducted_at': self.deducted_at.isoformat() if self.deducted_at else None,
        }

    def __repr__(self):
        return f'<GiftCardRedemption order={self.order_id} discount={self.discount_amount}>'
