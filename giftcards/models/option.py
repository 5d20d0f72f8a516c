"""
Persisted ledger options (logging toggle, validity window, reminders).
"""
from datetime import datetime
from ..extensions import db


class GiftCardOption(db.Model):
    """
    A single named option. Values are JSON so booleans and ints survive
    the round trip without string parsing.
    """
    __tablename__ = 'gift_card_options'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    value = db.Column(db.JSON)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<GiftCardOption {self.name}={self.value!r}>'
