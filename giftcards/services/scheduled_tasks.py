"""
Scheduled gift card tasks.

Handles:
- Delivery of digital cards whose delivery date is today
- Expiry reminder emails for cards expiring within the reminder window

Run daily by the background scheduler, or by hand through
`flask scheduled send-deliveries` / `flask scheduled send-reminders`.
"""
import logging
from datetime import date, timedelta
from typing import Any, Dict, Optional

from ..models.gift_card import GiftCardType
from .activity_log import ActivityLog
from .ledger_store import LedgerStore
from .notification_service import NotificationDispatcher, notify
from .settings_service import GiftCardSettings

logger = logging.getLogger(__name__)


class ScheduledTasksService:
    """
    Daily delivery and reminder passes over the ledger.
    """

    def __init__(
        self,
        store: LedgerStore,
        activity_log: ActivityLog,
        dispatcher: NotificationDispatcher,
        settings: GiftCardSettings,
    ):
        self.store = store
        self.activity_log = activity_log
        self.dispatcher = dispatcher
        self.settings = settings

    # ==================== DELIVERY ====================

    def send_scheduled_deliveries(self, today: Optional[date] = None, dry_run: bool = False) -> Dict[str, Any]:
        """
        Send the issued email for digital cards scheduled for today.

        Args:
            today: Delivery day to process (defaults to today)
            dry_run: If True, list the cards without sending

        Returns:
            Summary with processed, sent, failed and details
        """
        today = today or date.today()
        results = {
            'date': today.isoformat(),
            'processed': 0,
            'sent': 0,
            'failed': 0,
            'dry_run': dry_run,
            'details': [],
        }

        for card in self.store.list_deliverable_on(today, GiftCardType.DIGITAL.value):
            results['processed'] += 1
            if dry_run:
                results['details'].append({'code': card.code, 'recipient_email': card.recipient_email})
                continue

            if notify(self.dispatcher, 'on_issued', card):
                results['sent'] += 1
            else:
                results['failed'] += 1
                results['details'].append({'code': card.code, 'error': 'Delivery failed'})

        self._log_scheduled_task('gift_card_delivery', results)
        return results

    # ==================== EXPIRY REMINDERS ====================

    def send_expiry_reminders(
        self,
        today: Optional[date] = None,
        days_before: Optional[int] = None,
        dry_run: bool = False,
    ) -> Dict[str, Any]:
        """
        Remind holders of cards expiring between today and today + days_before.

        Each reminder is logged as ``expiration_reminder_sent`` before the
        email goes out. Cards with no balance left are not reminded.

        Returns:
            Summary with processed, sent, failed and details
        """
        today = today or date.today()
        if days_before is None:
            days_before = int(self.settings.reminder_days_before_expiry)
        window_end = today + timedelta(days=days_before)

        results = {
            'window_start': today.isoformat(),
            'window_end': window_end.isoformat(),
            'processed': 0,
            'sent': 0,
            'failed': 0,
            'dry_run': dry_run,
            'details': [],
        }

        for card in self.store.list_expiring_between(today, window_end, active_only=True):
            results['processed'] += 1
            if dry_run:
                results['details'].append({
                    'code': card.code,
                    'expiration_date': card.expiration_date.isoformat(),
                    'balance': float(card.balance),
                })
                continue

            self.activity_log.expiration_reminder_sent(card.code, card.user_id)
            if notify(self.dispatcher, 'on_expiring_soon', card):
                results['sent'] += 1
            else:
                results['failed'] += 1
                results['details'].append({'code': card.code, 'error': 'Reminder failed'})

        self._log_scheduled_task('gift_card_expiry_reminders', results)
        return results

    def _log_scheduled_task(self, task_name: str, results: Dict):
        logger.info(
            f"[ScheduledTask] {task_name}: processed={results.get('processed', 0)}, "
            f"sent={results.get('sent', 0)}, failed={results.get('failed', 0)}"
            f"{' (dry run)' if results.get('dry_run') else ''}"
        )
