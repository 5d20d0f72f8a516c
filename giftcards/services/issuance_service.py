"""
Issuance Service - the single card-creation path.

Used by admin issuance and by checkout completion of gift card line items:

    validate -> generate code -> insert (regenerate on duplicate)
    -> owner from recipient email -> log created
    -> notify if digital and due today or earlier
"""
import logging
import re
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models.gift_card import GiftCardSnapshot, GiftCardType
from ..utils.dates import parse_date
from ..utils.exceptions import DuplicateCodeError, StoreWriteError, ValidationError
from ..utils.money import ZERO, to_money
from .activity_log import ActivityLog
from .association_service import AccountDirectory
from .code_generator import CodeGenerator
from .ledger_store import LedgerStore
from .notification_service import NotificationDispatcher, notify
from .settings_service import GiftCardSettings

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email.strip()) is not None


class IssuanceService:
    """Creates gift cards and fires the issued notification when due."""

    def __init__(
        self,
        store: LedgerStore,
        code_generator: CodeGenerator,
        activity_log: ActivityLog,
        accounts: AccountDirectory,
        dispatcher: NotificationDispatcher,
        settings: GiftCardSettings,
    ):
        self.store = store
        self.code_generator = code_generator
        self.activity_log = activity_log
        self.accounts = accounts
        self.dispatcher = dispatcher
        self.settings = settings

    def issue_card(
        self,
        balance,
        recipient_email: str,
        sender_name: Optional[str] = None,
        sender_email: Optional[str] = None,
        message: Optional[str] = None,
        gift_card_type: str = GiftCardType.DIGITAL.value,
        delivery_date=None,
        expiration_date=None,
    ) -> GiftCardSnapshot:
        """
        Issue a new gift card.

        Args:
            balance: Starting balance (must be > 0)
            recipient_email: Where the card goes; also used to find the owner
            delivery_date: Defaults to today
            expiration_date: None for no expiry

        Returns:
            Snapshot of the stored card

        Raises:
            ValidationError: Bad input, nothing written
            StoreWriteError: Could not store the card
        """
        try:
            balance = to_money(balance)
        except ValueError:
            raise ValidationError("Balance must be a number", field='balance')
        if balance <= ZERO:
            raise ValidationError("Balance must be greater than zero", field='balance')

        if not is_valid_email(recipient_email):
            raise ValidationError("A valid recipient email is required", field='recipient_email')
        recipient_email = recipient_email.strip()

        try:
            gift_card_type = GiftCardType(gift_card_type or GiftCardType.DIGITAL.value).value
        except ValueError:
            raise ValidationError(f"Unknown gift card type: {gift_card_type}", field='gift_card_type')

        try:
            delivery = parse_date(delivery_date) or date.today()
            expiration = parse_date(expiration_date)
        except ValueError as e:
            raise ValidationError(f"Invalid date: {e}")

        owner_id = self._find_owner(recipient_email)

        card = {
            'balance': balance,
            'sender_name': sender_name or '',
            'sender_email': sender_email or '',
            'recipient_email': recipient_email,
            'message': message or '',
            'gift_card_type': gift_card_type,
            'delivery_date': delivery,
            'expiration_date': expiration,
            'user_id': owner_id,
        }
        code = self._insert_with_fresh_code(card)
        snapshot = self.store.get_by_code(code)

        self.activity_log.created(code, balance, owner_id)
        logger.info(f"Issued gift card {code} for {balance} to {recipient_email}")

        if snapshot.gift_card_type == GiftCardType.DIGITAL.value and delivery <= date.today():
            notify(self.dispatcher, 'on_issued', snapshot)

        return snapshot

    def issue_for_order_item(
        self,
        order_id,
        amount,
        recipient_email: str,
        billing_email: Optional[str] = None,
        sender_name: Optional[str] = None,
        message: Optional[str] = None,
        gift_card_type: str = GiftCardType.DIGITAL.value,
        delivery_date=None,
    ) -> GiftCardSnapshot:
        """
        Issue the card bought as a gift card line item on a completed order.

        The card expires validity_days after its delivery date and records
        the order's billing email as the sender.
        """
        try:
            delivery = parse_date(delivery_date) or date.today()
        except ValueError as e:
            raise ValidationError(f"Invalid delivery date: {e}", field='delivery_date')
        expiration = delivery + timedelta(days=int(self.settings.validity_days))

        logger.info(f"Issuing gift card for order {order_id}, expires {expiration.isoformat()}")
        return self.issue_card(
            balance=amount,
            recipient_email=recipient_email,
            sender_name=sender_name,
            sender_email=billing_email,
            message=message,
            gift_card_type=gift_card_type,
            delivery_date=delivery,
            expiration_date=expiration,
        )

    def _find_owner(self, email: str) -> Optional[int]:
        try:
            return self.accounts.find_user_id_by_email(email)
        except SQLAlchemyError as e:
            # The card can still be claimed later by consolidation
            db.session.rollback()
            logger.warning(f"Account lookup failed for {email}: {e}")
            return None

    def _insert_with_fresh_code(self, card: dict) -> str:
        attempts = self.code_generator.max_attempts
        for attempt in range(1, attempts + 1):
            code = self.code_generator.generate_unique_code()
            try:
                return self.store.insert(dict(card, code=code))
            except DuplicateCodeError:
                logger.warning(f"Gift card code {code} taken at insert, attempt {attempt}/{attempts}")

        raise StoreWriteError(f"Could not store gift card with a unique code after {attempts} attempts")
