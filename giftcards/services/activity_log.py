"""
Activity Log - best-effort audit trail of ledger mutations.

Entries are written in their own commit after the ledger mutation they
describe has already been committed. A failed log write is rolled back on
its own and reported, never raised.
"""
import logging
from typing import List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models.activity import ActivityType, GiftCardActivity
from ..utils.money import to_money
from .settings_service import GiftCardSettings, SettingsService

logger = logging.getLogger(__name__)


class ActivityLog:
    """
    Append-only activity recorder.

    Args:
        settings: Live settings; ``enable_logging`` is read on every call so
            a toggle takes effect without rebuilding the service.
        settings_service: If given, persisted options are refreshed before
            each check so a toggle made by another process is picked up.
    """

    def __init__(self, settings: GiftCardSettings, settings_service: Optional[SettingsService] = None):
        self.settings = settings
        self.settings_service = settings_service

    @property
    def enabled(self) -> bool:
        if self.settings_service is not None:
            self.settings_service.refresh()
        return bool(self.settings.enable_logging)

    def record(
        self,
        action_type: Union[ActivityType, str],
        code: Optional[str] = None,
        amount=None,
        user_id: Optional[int] = None,
    ) -> bool:
        """
        Append one activity entry.

        Returns:
            True if written, False if logging is disabled or the write failed
        """
        if not self.enabled:
            return False

        action = ActivityType(action_type).value

        try:
            entry = GiftCardActivity(
                action_type=action,
                code=code,
                amount=to_money(amount) if amount is not None else None,
                user_id=user_id,
            )
            db.session.add(entry)
            db.session.commit()
            return True
        except (SQLAlchemyError, ValueError) as e:
            db.session.rollback()
            logger.warning(f"Failed to record gift card activity {action} for {code}: {e}")
            return False

    # Named helpers for the ledger actions

    def created(self, code: str, balance, user_id: Optional[int] = None) -> bool:
        return self.record(ActivityType.CREATED, code, balance, user_id)

    def used(self, code: str, amount, user_id: Optional[int] = None) -> bool:
        return self.record(ActivityType.USED, code, amount, user_id)

    def balance_adjusted(self, code: str, new_balance, user_id: Optional[int] = None) -> bool:
        return self.record(ActivityType.BALANCE_ADJUSTED, code, new_balance, user_id)

    def expiration_updated(self, code: str, user_id: Optional[int] = None) -> bool:
        return self.record(ActivityType.EXPIRATION_UPDATED, code, None, user_id)

    def deleted(self, code: str, user_id: Optional[int] = None) -> bool:
        return self.record(ActivityType.DELETED, code, None, user_id)

    def expiration_reminder_sent(self, code: str, user_id: Optional[int] = None) -> bool:
        return self.record(ActivityType.EXPIRATION_REMINDER_SENT, code, None, user_id)

    def associated_with_user(self, code: str, user_id: int) -> bool:
        return self.record(ActivityType.ASSOCIATED_WITH_USER, code, None, user_id)

    def import_csv(self, count: int, user_id: Optional[int] = None) -> bool:
        return self.record(ActivityType.IMPORT_CSV, None, count, user_id)

    def export_csv(self, count: int, user_id: Optional[int] = None) -> bool:
        return self.record(ActivityType.EXPORT_CSV, None, count, user_id)

    def recent(self, limit: int = 50) -> List[GiftCardActivity]:
        """Newest entries first, for the admin activity view."""
        return (
            GiftCardActivity.query
            .order_by(GiftCardActivity.action_date.desc(), GiftCardActivity.id.desc())
            .limit(limit)
            .all()
        )
