"""
Redemption Engine - checkout discount and order-completion deduction.

Checkout state per session:

    NO_GIFT_CARD -> BALANCE_QUERIED -> DISCOUNT_HELD -> DISCOUNT_COMMITTED
                                                     |-> DISCOUNT_ABANDONED

Nothing is reserved while a discount is held. The ledger is only touched
when the order completes, oldest card first. If balances moved in between,
the order keeps its discount and the shortfall is logged.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, MutableMapping, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models.redemption import GiftCardRedemption
from ..utils.exceptions import GiftCardNotFoundError, StoreWriteError
from ..utils.money import ZERO, min_money, to_money
from .activity_log import ActivityLog
from .ledger_store import LedgerStore
from .settings_service import GiftCardSettings

logger = logging.getLogger(__name__)

# Checkout session keys
REQUESTED_KEY = 'apply_gift_card_balance'
DISCOUNT_KEY = 'gift_card_discount_amount'
STATE_KEY = 'gift_card_state'


class RedemptionState(str, Enum):
    """Where a checkout session is in the gift card flow."""
    NO_GIFT_CARD = 'no_gift_card'
    BALANCE_QUERIED = 'balance_queried'
    DISCOUNT_HELD = 'discount_held'
    DISCOUNT_COMMITTED = 'discount_committed'
    DISCOUNT_ABANDONED = 'discount_abandoned'


@dataclass
class CardDeduction:
    code: str
    amount: Decimal


@dataclass
class DeductionResult:
    """Outcome of one FIFO deduction pass."""
    requested: Decimal
    order_id: Optional[str] = None
    deductions: List[CardDeduction] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def deducted(self) -> Decimal:
        return sum((d.amount for d in self.deductions), ZERO)

    @property
    def shortfall(self) -> Decimal:
        return max(self.requested - self.deducted, ZERO)

    def to_dict(self):
        return {
            'order_id': self.order_id,
            'requested': float(self.requested),
            'deducted': float(self.deducted),
            'shortfall': float(self.shortfall),
            'deductions': [{'code': d.code, 'amount': float(d.amount)} for d in self.deductions],
            'errors': self.errors,
        }


class OrderGateway:
    """
    Host order collaborator. The default does nothing; the host registers one
    that writes the committed discount onto its own order metadata.
    """

    def set_applied_discount(self, order_id: str, amount: Decimal) -> None:
        pass


class RedemptionEngine:
    """
    Applies gift card balances to checkouts.

    Args:
        store: Ledger store
        activity_log: Audit trail for ``used`` entries
        settings: Live settings (``redeem_expired`` decides whether expired
            cards still count toward the balance)
        order_gateway: Optional host order collaborator
    """

    def __init__(
        self,
        store: LedgerStore,
        activity_log: ActivityLog,
        settings: GiftCardSettings,
        order_gateway: Optional[OrderGateway] = None,
    ):
        self.store = store
        self.activity_log = activity_log
        self.settings = settings
        self.order_gateway = order_gateway or OrderGateway()

    def _usable_on(self) -> Optional[date]:
        return None if self.settings.redeem_expired else date.today()

    # ==================== Checkout ====================

    def query_eligible_balance(self, user_id: Optional[int]) -> Decimal:
        """Total of the user's active card balances. Read-only, no reservation."""
        if not user_id:
            return ZERO
        return self.store.sum_active_balance(user_id, usable_on=self._usable_on())

    @staticmethod
    def compute_discount(requested, eligible, subtotal) -> Decimal:
        """min(requested, eligible, subtotal), never below zero."""
        return min_money(requested, eligible, subtotal)

    def state(self, session: MutableMapping) -> RedemptionState:
        return RedemptionState(session.get(STATE_KEY, RedemptionState.NO_GIFT_CARD.value))

    def request_amount(self, session: MutableMapping, amount) -> Decimal:
        """Remember how much of their balance the shopper asked to use."""
        requested = to_money(amount)
        if requested <= ZERO:
            session.pop(REQUESTED_KEY, None)
            return ZERO
        session[REQUESTED_KEY] = str(requested)
        return requested

    def hold_discount(self, session: MutableMapping, discount) -> Decimal:
        """Store the granted discount on the session. The ledger is untouched."""
        discount = to_money(discount)
        if discount <= ZERO:
            session.pop(DISCOUNT_KEY, None)
            session[STATE_KEY] = RedemptionState.BALANCE_QUERIED.value
            return ZERO
        session[DISCOUNT_KEY] = str(discount)
        session[STATE_KEY] = RedemptionState.DISCOUNT_HELD.value
        return discount

    def held_discount(self, session: MutableMapping) -> Decimal:
        try:
            return to_money(session.get(DISCOUNT_KEY))
        except ValueError:
            return ZERO

    def apply_to_cart(
        self,
        session: MutableMapping,
        user_id: Optional[int],
        cart_subtotal,
        requested=None,
    ) -> Decimal:
        """
        Work out and hold the cart-level gift card discount.

        Args:
            session: Checkout session mapping
            user_id: Shopper account (None for guests)
            cart_subtotal: Cart total before the gift card
            requested: Amount asked for; defaults to the amount stored on the
                session, then to the whole eligible balance

        Returns:
            The discount to apply as a negative cart fee (0.00 when none)
        """
        if not user_id:
            self.hold_discount(session, ZERO)
            return ZERO

        try:
            eligible = self.query_eligible_balance(user_id)
        except SQLAlchemyError as e:
            # Checkout must go on without the discount
            db.session.rollback()
            logger.error(f"Gift card balance lookup failed for user {user_id}: {e}")
            self.hold_discount(session, ZERO)
            return ZERO

        session[STATE_KEY] = RedemptionState.BALANCE_QUERIED.value

        if requested is None:
            requested = session.get(REQUESTED_KEY) or eligible
        try:
            discount = self.compute_discount(requested, eligible, cart_subtotal)
        except ValueError:
            logger.warning(f"Ignoring invalid gift card amount {requested!r} for user {user_id}")
            discount = ZERO

        return self.hold_discount(session, discount)

    def abandon(self, session: MutableMapping) -> None:
        """Drop any held discount. No ledger effect."""
        session.pop(REQUESTED_KEY, None)
        session.pop(DISCOUNT_KEY, None)
        session[STATE_KEY] = RedemptionState.DISCOUNT_ABANDONED.value

    # ==================== Orders ====================

    def commit_order(self, order_id, user_id: Optional[int], discount) -> bool:
        """
        Persist the discount on the order, exactly once.

        Returns:
            True on the first commit, False if the order already carries a
            committed gift card discount (or the discount is zero)
        """
        order_id = str(order_id)
        discount = to_money(discount)
        if discount <= ZERO:
            return False

        if GiftCardRedemption.query.filter_by(order_id=order_id).first():
            logger.info(f"Gift card discount already committed for order {order_id}")
            return False

        try:
            db.session.add(GiftCardRedemption(
                order_id=order_id,
                user_id=user_id,
                discount_amount=discount,
            ))
            db.session.commit()
        except IntegrityError:
            # Lost the race to a duplicate completion event
            db.session.rollback()
            logger.info(f"Gift card discount already committed for order {order_id}")
            return False
        except SQLAlchemyError as e:
            db.session.rollback()
            raise StoreWriteError(f"Failed to commit gift card discount for order {order_id}", e)

        try:
            self.order_gateway.set_applied_discount(order_id, discount)
        except Exception as e:
            logger.warning(f"Could not mirror gift card discount onto order {order_id}: {e}")

        logger.info(f"Committed gift card discount {discount} for order {order_id}")
        return True

    def commit_from_session(self, session: MutableMapping, order_id, user_id: Optional[int]) -> bool:
        """Commit whatever discount the session holds and clear it."""
        discount = self.held_discount(session)
        committed = self.commit_order(order_id, user_id, discount) if discount > ZERO else False
        session.pop(REQUESTED_KEY, None)
        session.pop(DISCOUNT_KEY, None)
        if committed:
            session[STATE_KEY] = RedemptionState.DISCOUNT_COMMITTED.value
        else:
            session.pop(STATE_KEY, None)
        return committed

    def complete_order(self, order_id) -> Optional[DeductionResult]:
        """
        Order-completed hook: deduct the committed discount from the ledger.

        Safe to call repeatedly; only the first call deducts.

        Returns:
            DeductionResult, or None if there is nothing (left) to deduct
        """
        order_id = str(order_id)
        redemption = GiftCardRedemption.query.filter_by(order_id=order_id).first()
        if not redemption:
            return None
        user_id = redemption.user_id
        discount = to_money(redemption.discount_amount)

        try:
            claimed = db.session.execute(
                update(GiftCardRedemption)
                .where(
                    GiftCardRedemption.order_id == order_id,
                    GiftCardRedemption.deducted_at.is_(None),
                )
                .values(deducted_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                db.session.rollback()
                logger.info(f"Gift card deduction already done for order {order_id}")
                return None
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise StoreWriteError(f"Failed to claim gift card deduction for order {order_id}", e)

        result = self.apply_fifo_deduction(user_id, discount, order_id=order_id)

        try:
            GiftCardRedemption.query.filter_by(order_id=order_id).update(
                {'deducted_amount': result.deducted}, synchronize_session=False
            )
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to record deducted amount for order {order_id}: {e}")

        return result

    def apply_fifo_deduction(self, user_id: Optional[int], total_discount, order_id=None) -> DeductionResult:
        """
        Deduct ``total_discount`` across the user's cards, oldest first.

        Each card touched gets one ``used`` activity entry. A shortfall
        (balances moved since checkout) is logged and otherwise absorbed.
        """
        total = to_money(total_discount)
        result = DeductionResult(requested=total, order_id=str(order_id) if order_id is not None else None)
        if total <= ZERO:
            return result
        if not user_id:
            logger.warning(f"Gift card discount {total} on order {order_id} has no owner to deduct from")
            return result

        remaining = total
        for card in self.store.list_by_owner(user_id, active_only=True, usable_on=self._usable_on()):
            if remaining <= ZERO:
                break
            try:
                taken = self.store.deduct(card.code, remaining)
            except (GiftCardNotFoundError, StoreWriteError) as e:
                logger.error(f"Gift card {card.code} deduction failed for order {order_id}: {e.message}")
                result.errors.append(f"{card.code}: {e.message}")
                continue

            if taken <= ZERO:
                continue
            remaining -= taken
            result.deductions.append(CardDeduction(code=card.code, amount=taken))
            self.activity_log.used(card.code, taken, user_id)

        if remaining > ZERO:
            logger.warning(
                f"Gift card shortfall of {remaining} on order {order_id} for user {user_id}: "
                f"balances changed after checkout"
            )

        return result
