"""
Admin operations on individual gift cards.

Every method returns a {'success', 'message', ...} dict so the calling admin
layer never has to catch ledger exceptions. Permission checks belong to the
caller; ``actor_id`` is only recorded on the activity entries.
"""
import logging
from typing import Any, Dict, Optional

from ..utils.dates import parse_date
from ..utils.exceptions import GiftCardError, GiftCardNotFoundError, ValidationError
from ..utils.money import ZERO, to_money
from .activity_log import ActivityLog
from .issuance_service import IssuanceService, is_valid_email
from .ledger_store import LedgerStore

logger = logging.getLogger(__name__)

# Distinguishes "leave expiration alone" from "clear expiration"
_UNSET = object()


def _failure(error: GiftCardError) -> Dict[str, Any]:
    return {'success': False, 'message': error.message, 'error_code': error.code}


class AdminService:
    """Issue, inspect, edit and delete gift cards."""

    def __init__(self, store: LedgerStore, issuance: IssuanceService, activity_log: ActivityLog):
        self.store = store
        self.issuance = issuance
        self.activity_log = activity_log

    def issue(
        self,
        balance,
        recipient_email: str,
        sender_name: Optional[str] = None,
        sender_email: Optional[str] = None,
        message: Optional[str] = None,
        gift_card_type: str = 'digital',
        delivery_date=None,
        expiration_date=None,
    ) -> Dict[str, Any]:
        """Manually issue a card (sender_email is normally the admin's email)."""
        try:
            snapshot = self.issuance.issue_card(
                balance=balance,
                recipient_email=recipient_email,
                sender_name=sender_name,
                sender_email=sender_email,
                message=message,
                gift_card_type=gift_card_type,
                delivery_date=delivery_date,
                expiration_date=expiration_date,
            )
        except ValidationError as e:
            return {
                'success': False,
                'message': f"Invalid input. {e.message}",
                'error_code': e.code,
            }
        except GiftCardError as e:
            logger.error(f"Admin gift card issuance failed: {e.message}")
            return _failure(e)

        return {
            'success': True,
            'message': 'Gift card issued successfully!',
            'gift_card': snapshot.to_dict(),
        }

    def get_card_data(self, code: str) -> Dict[str, Any]:
        """Card fields for the edit form; dates as YYYY-MM-DD or ''."""
        if not code or not code.strip():
            return {'success': False, 'message': 'Invalid gift card code.', 'error_code': 'INVALID_CODE'}

        try:
            snapshot = self.store.get_by_code(code.strip())
        except GiftCardNotFoundError as e:
            return _failure(e)

        return {'success': True, 'message': '', 'gift_card': snapshot.to_dict()}

    def update_card(
        self,
        code: str,
        balance,
        expiration_date=_UNSET,
        recipient_email: Optional[str] = None,
        sender_name: Optional[str] = None,
        message: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Edit a card.

        ``balance_adjusted`` is always logged with the new balance;
        ``expiration_updated`` only when the expiration date actually changed.

        Args:
            expiration_date: New date, or None/'' to remove the expiry;
                omit to leave it unchanged
        """
        if not code or not code.strip():
            return {'success': False, 'message': 'Invalid gift card code.', 'error_code': 'INVALID_CODE'}
        code = code.strip()

        try:
            new_balance = to_money(balance)
        except ValueError:
            return _failure(ValidationError("Balance must be a number.", field='balance'))
        if new_balance < ZERO:
            return _failure(ValidationError("Balance cannot be negative.", field='balance'))

        if recipient_email and not is_valid_email(recipient_email):
            return _failure(ValidationError("Invalid recipient email.", field='recipient_email'))

        try:
            current = self.store.get_by_code(code)

            details = {}
            expiration_changed = False
            if expiration_date is not _UNSET:
                new_expiration = parse_date(expiration_date)
                expiration_changed = new_expiration != current.expiration_date
                if expiration_changed:
                    details['expiration_date'] = new_expiration
            if recipient_email is not None:
                details['recipient_email'] = recipient_email.strip()
            if sender_name is not None:
                details['sender_name'] = sender_name
            if message is not None:
                details['message'] = message

            self.store.update_card(code, new_balance, **details)
        except ValueError as e:
            return _failure(ValidationError(f"Invalid expiration date: {e}", field='expiration_date'))
        except GiftCardError as e:
            logger.error(f"Failed to update gift card {code}: {e.message}")
            return _failure(e)

        self.activity_log.balance_adjusted(code, new_balance, actor_id)
        if expiration_changed:
            self.activity_log.expiration_updated(code, actor_id)

        return {'success': True, 'message': 'Gift card updated successfully.'}

    def delete_card(self, code: str, actor_id: Optional[int] = None) -> Dict[str, Any]:
        if not code or not code.strip():
            return {'success': False, 'message': 'Invalid gift card code.', 'error_code': 'INVALID_CODE'}
        code = code.strip()

        try:
            self.store.delete(code)
        except GiftCardError as e:
            return _failure(e)

        self.activity_log.deleted(code, actor_id)
        logger.info(f"Gift card {code} deleted by {actor_id or 'system'}")
        return {'success': True, 'message': 'Gift card deleted successfully.'}

    def list_activity(self, limit: int = 50) -> Dict[str, Any]:
        entries = self.activity_log.recent(limit)
        return {
            'success': True,
            'enabled': self.activity_log.enabled,
            'activities': [entry.to_dict() for entry in entries],
        }
