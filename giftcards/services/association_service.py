"""
Association Resolver - attaches ownerless gift cards to accounts by email.

Runs at registration (one user) and as a bulk consolidation pass over the
whole ledger. Both only ever claim cards whose owner is still NULL, so
running them again changes nothing.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy import column, func, select, table
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..utils.exceptions import GiftCardError, NotFoundError
from .activity_log import ActivityLog
from .ledger_store import LedgerStore

logger = logging.getLogger(__name__)


class AccountDirectory:
    """Host account lookup used to match recipient emails."""

    def find_user_id_by_email(self, email: str) -> Optional[int]:
        raise NotImplementedError

    def get_email(self, user_id: int) -> Optional[str]:
        raise NotImplementedError


class SqlAccountDirectory(AccountDirectory):
    """
    Reads the host platform's users table directly.

    Args:
        table_name: Users table (GIFT_CARD_USERS_TABLE)
        id_column: Primary key column
        email_column: Email column
    """

    def __init__(self, table_name: str = 'users', id_column: str = 'id', email_column: str = 'email'):
        self.users = table(table_name, column(id_column), column(email_column))
        self.id_column = self.users.c[id_column]
        self.email_column = self.users.c[email_column]

    def find_user_id_by_email(self, email: str) -> Optional[int]:
        if not email:
            return None
        stmt = select(self.id_column).where(
            func.lower(self.email_column) == email.strip().lower()
        ).limit(1)
        return db.session.execute(stmt).scalar()

    def get_email(self, user_id: int) -> Optional[str]:
        stmt = select(self.email_column).where(self.id_column == user_id).limit(1)
        return db.session.execute(stmt).scalar()


class AssociationService:
    """Links gift cards to the accounts of their recipients."""

    def __init__(self, store: LedgerStore, activity_log: ActivityLog, accounts: AccountDirectory):
        self.store = store
        self.activity_log = activity_log
        self.accounts = accounts

    def associate_on_registration(self, user_id: int) -> int:
        """
        Give a newly registered user every ownerless card sent to their email.

        Returns:
            Number of cards assigned

        Raises:
            NotFoundError: If the user or their email cannot be found
        """
        email = self.accounts.get_email(user_id)
        if not email:
            raise NotFoundError("User", user_id)

        assigned = 0
        for card in self.store.list_unowned_for_email(email):
            if self.store.set_owner(card.code, user_id, only_if_unowned=True):
                assigned += 1
                self.activity_log.associated_with_user(card.code, user_id)

        if assigned:
            logger.info(f"Associated {assigned} gift card(s) with user {user_id}")
        return assigned

    def consolidate(self) -> Dict[str, Any]:
        """
        Match every ownerless card that has a recipient email to an account.

        Per-card failures are collected and the pass carries on.

        Returns:
            Dict with processed, updated and errors
        """
        results = {
            'processed': 0,
            'updated': 0,
            'errors': [],
        }

        try:
            cards = self.store.list_unowned_with_recipient()
        except SQLAlchemyError as e:
            db.session.rollback()
            results['errors'].append(f"Database error: {e}")
            return results

        results['processed'] = len(cards)

        for card in cards:
            try:
                user_id = self.accounts.find_user_id_by_email(card.recipient_email)
                if not user_id:
                    continue
                if self.store.set_owner(card.code, user_id, only_if_unowned=True):
                    results['updated'] += 1
                    self.activity_log.associated_with_user(card.code, user_id)
            except GiftCardError as e:
                results['errors'].append(
                    f"Failed to update gift card {card.code} for {card.recipient_email}: {e.message}"
                )
            except SQLAlchemyError as e:
                db.session.rollback()
                results['errors'].append(
                    f"Failed to look up account for gift card {card.code} ({card.recipient_email}): {e}"
                )

        logger.info(
            f"Gift card consolidation: {results['processed']} processed, "
            f"{results['updated']} updated, {len(results['errors'])} errors"
        )
        return results
