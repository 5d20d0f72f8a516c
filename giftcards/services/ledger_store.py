"""
Ledger Store - the only writer of gift_cards rows.

Balance writes are linearizable per card: the row is read under
SELECT ... FOR UPDATE and then written with a compare-and-swap on the prior
balance. On backends without row locks (SQLite) the CAS alone rejects a lost
update and the write is retried from a fresh read.

Every read hands back GiftCardSnapshot values, never live ORM rows.
"""
import logging
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models.gift_card import GiftCard, GiftCardSnapshot, GiftCardType
from ..utils.exceptions import (
    DuplicateCodeError,
    GiftCardNotFoundError,
    StoreWriteError,
    ValidationError,
)
from ..utils.money import ZERO, to_money

logger = logging.getLogger(__name__)

# Columns an admin edit may touch besides balance
EDITABLE_FIELDS = (
    'expiration_date',
    'sender_name',
    'sender_email',
    'recipient_email',
    'message',
    'delivery_date',
    'gift_card_type',
    'user_id',
)


class LedgerStore:
    """
    CRUD and balance-mutation primitives over the gift_cards table.

    Each mutating call is its own transaction and is committed before it
    returns, so activity logging and notifications never share its fate.
    """

    def __init__(self, max_cas_retries: int = 5):
        self.max_cas_retries = max_cas_retries

    # ==================== Writes ====================

    def insert(self, card: Union[Dict[str, Any], GiftCard]) -> str:
        """
        Insert a new gift card.

        Args:
            card: Column values (dict) or an unsaved GiftCard

        Returns:
            The stored code

        Raises:
            ValidationError: Missing code or negative balance
            DuplicateCodeError: The code is already in the ledger
            StoreWriteError: Any other persistence failure
        """
        if isinstance(card, dict):
            card = GiftCard(**card)

        if not card.code:
            raise ValidationError("Gift card code is required", field='code')
        card.balance = to_money(card.balance)
        if card.balance < ZERO:
            raise ValidationError("Balance cannot be negative", field='balance')
        if not card.gift_card_type:
            card.gift_card_type = GiftCardType.DIGITAL.value

        try:
            db.session.add(card)
            db.session.commit()
        except IntegrityError as e:
            db.session.rollback()
            if self.exists(card.code):
                raise DuplicateCodeError(card.code)
            raise StoreWriteError(f"Failed to insert gift card {card.code}", e)
        except SQLAlchemyError as e:
            db.session.rollback()
            raise StoreWriteError(f"Failed to insert gift card {card.code}", e)

        return card.code

    def update_balance(self, code: str, new_balance, expected_balance=None) -> bool:
        """
        Set a card's balance atomically.

        Args:
            code: Gift card code
            new_balance: Balance to store (must be >= 0)
            expected_balance: If given, only write when the current balance
                still equals it

        Returns:
            False if expected_balance no longer matched, True otherwise

        Raises:
            ValidationError: Negative balance
            GiftCardNotFoundError: Unknown code
            StoreWriteError: Persistence failure or CAS retries exhausted
        """
        new_balance = to_money(new_balance)
        if new_balance < ZERO:
            raise ValidationError("Balance cannot be negative", field='balance')
        expected = to_money(expected_balance) if expected_balance is not None else None

        def decide(prior: Decimal) -> Optional[Decimal]:
            if expected is not None and prior != expected:
                return None
            return new_balance

        _, written = self._swap_balance(code, decide)
        return written is not None

    def deduct(self, code: str, amount) -> Decimal:
        """
        Take up to ``amount`` from a card, flooring the balance at zero.

        Returns:
            The amount actually deducted (0.00 if the card was empty)
        """
        amount = to_money(amount)
        if amount <= ZERO:
            return ZERO

        prior, written = self._swap_balance(code, lambda prior: max(prior - amount, ZERO))
        return prior - written

    def set_owner(self, code: str, user_id: Optional[int], only_if_unowned: bool = False) -> bool:
        """
        Assign (or clear) the owner account of a card.

        Args:
            only_if_unowned: Skip cards that already have an owner

        Returns:
            True if the row changed hands, False if the guard skipped it
        """
        stmt = update(GiftCard).where(GiftCard.code == code)
        if only_if_unowned:
            stmt = stmt.where(GiftCard.user_id.is_(None))

        try:
            result = db.session.execute(
                stmt.values(user_id=user_id).execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                db.session.rollback()
                if not self.exists(code):
                    raise GiftCardNotFoundError(code)
                return False
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise StoreWriteError(f"Failed to set owner on gift card {code}", e)

        return True

    def update_details(self, code: str, **fields) -> GiftCardSnapshot:
        """
        Update descriptive columns (never the code or balance).

        Raises:
            ValidationError: Unknown column
            GiftCardNotFoundError: Unknown code
        """
        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot edit gift card fields: {', '.join(sorted(unknown))}")

        card = GiftCard.query.filter_by(code=code).first()
        if not card:
            raise GiftCardNotFoundError(code)

        try:
            for name, value in fields.items():
                setattr(card, name, value)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise StoreWriteError(f"Failed to update gift card {code}", e)

        return card.to_snapshot()

    def update_card(self, code: str, new_balance, **fields) -> GiftCardSnapshot:
        """
        Set the balance and descriptive columns in one commit.

        Used by admin edits, where the balance is overwritten outright rather
        than derived from the current value. Either every change is stored
        or none is.

        Raises:
            ValidationError: Negative balance or unknown column
            GiftCardNotFoundError: Unknown code
            StoreWriteError: Persistence failure
        """
        new_balance = to_money(new_balance)
        if new_balance < ZERO:
            raise ValidationError("Balance cannot be negative", field='balance')
        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot edit gift card fields: {', '.join(sorted(unknown))}")

        try:
            card = GiftCard.query.filter_by(code=code).with_for_update().populate_existing().first()
            if not card:
                db.session.rollback()
                raise GiftCardNotFoundError(code)

            card.balance = new_balance
            for name, value in fields.items():
                setattr(card, name, value)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise StoreWriteError(f"Failed to update gift card {code}", e)

        return card.to_snapshot()

    def delete(self, code: str) -> GiftCardSnapshot:
        """
        Remove a card from the ledger.

        Returns:
            Snapshot of the deleted card
        """
        card = GiftCard.query.filter_by(code=code).first()
        if not card:
            raise GiftCardNotFoundError(code)

        snapshot = card.to_snapshot()
        try:
            db.session.delete(card)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise StoreWriteError(f"Failed to delete gift card {code}", e)

        return snapshot

    # ==================== Reads ====================

    def find_by_code(self, code: Optional[str]) -> Optional[GiftCardSnapshot]:
        if not code:
            return None
        card = GiftCard.query.filter_by(code=code.strip()).first()
        return card.to_snapshot() if card else None

    def get_by_code(self, code: str) -> GiftCardSnapshot:
        """Raises GiftCardNotFoundError for an unknown code."""
        snapshot = self.find_by_code(code)
        if snapshot is None:
            raise GiftCardNotFoundError(code)
        return snapshot

    def exists(self, code: str) -> bool:
        return db.session.query(GiftCard.id).filter_by(code=code).first() is not None

    def list_by_owner(
        self,
        user_id: int,
        active_only: bool = True,
        usable_on: Optional[date] = None,
    ) -> List[GiftCardSnapshot]:
        """
        Cards owned by a user, oldest issue first (FIFO order).

        Args:
            active_only: Only cards with balance > 0
            usable_on: If given, leave out cards that expired before this day
        """
        query = self._owned(user_id, active_only, usable_on)
        query = query.order_by(GiftCard.issued_date.asc(), GiftCard.id.asc())
        return [card.to_snapshot() for card in query.all()]

    def sum_active_balance(self, user_id: int, usable_on: Optional[date] = None) -> Decimal:
        total = self._owned(user_id, True, usable_on).with_entities(
            func.coalesce(func.sum(GiftCard.balance), 0)
        ).scalar()
        return to_money(total)

    def list_expiring_between(self, start: date, end: date, active_only: bool = False) -> List[GiftCardSnapshot]:
        """Cards whose expiration_date falls in [start, end]."""
        query = GiftCard.query.filter(
            GiftCard.expiration_date.isnot(None),
            GiftCard.expiration_date >= start,
            GiftCard.expiration_date <= end,
        )
        if active_only:
            query = query.filter(GiftCard.balance > 0)
        return [card.to_snapshot() for card in query.order_by(GiftCard.expiration_date, GiftCard.id).all()]

    def list_deliverable_on(self, day: date, gift_card_type: str = GiftCardType.DIGITAL.value) -> List[GiftCardSnapshot]:
        """Cards delivered on ``day``. Cards issued that same day were already sent at issuance."""
        query = GiftCard.query.filter(
            GiftCard.delivery_date == day,
            GiftCard.issued_date < datetime.combine(day, time.min),
            GiftCard.gift_card_type == gift_card_type,
        ).order_by(GiftCard.id)
        return [card.to_snapshot() for card in query.all()]

    def list_unowned_with_recipient(self) -> List[GiftCardSnapshot]:
        query = GiftCard.query.filter(
            GiftCard.user_id.is_(None),
            GiftCard.recipient_email.isnot(None),
            GiftCard.recipient_email != '',
        ).order_by(GiftCard.id)
        return [card.to_snapshot() for card in query.all()]

    def list_unowned_for_email(self, email: str) -> List[GiftCardSnapshot]:
        if not email:
            return []
        query = GiftCard.query.filter(
            GiftCard.user_id.is_(None),
            func.lower(GiftCard.recipient_email) == email.strip().lower(),
        ).order_by(GiftCard.issued_date, GiftCard.id)
        return [card.to_snapshot() for card in query.all()]

    def fetch_batch(self, offset: int, limit: int) -> List[GiftCardSnapshot]:
        query = GiftCard.query.order_by(GiftCard.id).offset(offset).limit(limit)
        return [card.to_snapshot() for card in query.all()]

    def count(self) -> int:
        return GiftCard.query.count()

    # ==================== Internals ====================

    def _owned(self, user_id: int, active_only: bool, usable_on: Optional[date]):
        query = GiftCard.query.filter(GiftCard.user_id == user_id)
        if active_only:
            query = query.filter(GiftCard.balance > 0)
        if usable_on is not None:
            query = query.filter(or_(
                GiftCard.expiration_date.is_(None),
                GiftCard.expiration_date >= usable_on,
            ))
        return query

    def _swap_balance(
        self,
        code: str,
        decide: Callable[[Decimal], Optional[Decimal]],
    ) -> Tuple[Decimal, Optional[Decimal]]:
        """
        Lock, read, decide and compare-and-swap a balance.

        ``decide`` maps the prior balance to the new one, or None to abort.

        Returns:
            (prior balance, written balance or None if aborted)
        """
        for attempt in range(1, self.max_cas_retries + 1):
            try:
                card = (
                    GiftCard.query.filter_by(code=code)
                    .with_for_update()
                    .populate_existing()
                    .first()
                )
                if not card:
                    db.session.rollback()
                    raise GiftCardNotFoundError(code)

                prior = to_money(card.balance)
                new_balance = decide(prior)
                if new_balance is None or new_balance == prior:
                    db.session.rollback()
                    return prior, new_balance

                result = db.session.execute(
                    update(GiftCard)
                    .where(GiftCard.code == code, GiftCard.balance == prior)
                    .values(balance=new_balance)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 1:
                    db.session.commit()
                    return prior, new_balance

                db.session.rollback()
            except SQLAlchemyError as e:
                db.session.rollback()
                raise StoreWriteError(f"Failed to update balance of gift card {code}", e)

            logger.warning(
                f"Gift card {code} balance changed concurrently, retry {attempt}/{self.max_cas_retries}"
            )

        raise StoreWriteError(
            f"Gift card {code} balance kept changing; gave up after {self.max_cas_retries} attempts"
        )
