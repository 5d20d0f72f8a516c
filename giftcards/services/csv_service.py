"""
CSV import/export of the gift card ledger.

Rows are positional, header first:

    code, balance, expiration_date, sender_name, sender_email,
    recipient_email, message, issued_date, delivery_date, gift_card_type,
    user_id

Batched variants are driven by a caller-supplied offset so each batch can be
retried on its own. Imported cards keep their codes and are not notified.
"""
import csv
import logging
import os
from itertools import islice
from typing import Any, Dict, IO, List, Optional

from ..models.gift_card import GiftCardSnapshot, GiftCardType
from ..utils.dates import parse_date, parse_datetime
from ..utils.exceptions import DuplicateCodeError, GiftCardError, ValidationError
from ..utils.money import ZERO, to_money
from .activity_log import ActivityLog
from .ledger_store import LedgerStore

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    'code',
    'balance',
    'expiration_date',
    'sender_name',
    'sender_email',
    'recipient_email',
    'message',
    'issued_date',
    'delivery_date',
    'gift_card_type',
    'user_id',
]

EXPORT_PAGE_SIZE = 500


def snapshot_to_row(card: GiftCardSnapshot) -> List[str]:
    return [
        card.code,
        f"{card.balance:.2f}",
        card.expiration_date.isoformat() if card.expiration_date else '',
        card.sender_name or '',
        card.sender_email or '',
        card.recipient_email or '',
        card.message or '',
        card.issued_date.strftime('%Y-%m-%d %H:%M:%S') if card.issued_date else '',
        card.delivery_date.isoformat() if card.delivery_date else '',
        card.gift_card_type or '',
        str(card.user_id) if card.user_id else '',
    ]


def row_to_card(row: List[str]) -> Dict[str, Any]:
    """
    Parse one positional CSV row into insertable column values.

    Raises:
        ValidationError: Missing code, bad number/date, negative balance
    """
    values = [cell.strip() for cell in row] + [''] * (len(CSV_COLUMNS) - len(row))
    data = dict(zip(CSV_COLUMNS, values))

    if not data['code']:
        raise ValidationError("Missing gift card code", field='code')

    try:
        balance = to_money(data['balance'])
    except ValueError:
        raise ValidationError(f"Invalid balance: {data['balance']}", field='balance')
    if balance < ZERO:
        raise ValidationError("Balance cannot be negative", field='balance')

    try:
        expiration_date = parse_date(data['expiration_date'])
        delivery_date = parse_date(data['delivery_date'])
        issued_date = parse_datetime(data['issued_date'])
    except ValueError as e:
        raise ValidationError(f"Invalid date: {e}")

    try:
        user_id = int(data['user_id']) if data['user_id'] else None
    except ValueError:
        raise ValidationError(f"Invalid user_id: {data['user_id']}", field='user_id')

    gift_card_type = data['gift_card_type'] or GiftCardType.DIGITAL.value
    if gift_card_type not in (t.value for t in GiftCardType):
        raise ValidationError(f"Unknown gift card type: {gift_card_type}", field='gift_card_type')

    card = {
        'code': data['code'],
        'balance': balance,
        'expiration_date': expiration_date,
        'sender_name': data['sender_name'],
        'sender_email': data['sender_email'],
        'recipient_email': data['recipient_email'],
        'message': data['message'],
        'delivery_date': delivery_date,
        'gift_card_type': gift_card_type,
        # Exports from the old plugin wrote 0 for "no owner"
        'user_id': user_id or None,
    }
    if issued_date:
        card['issued_date'] = issued_date
    return card


class CSVTransferService:
    """Bulk and batched CSV transfer over the ledger store."""

    def __init__(self, store: LedgerStore, activity_log: ActivityLog):
        self.store = store
        self.activity_log = activity_log

    # ==================== Export ====================

    def export_csv(self, stream: IO[str], actor_id: Optional[int] = None) -> int:
        """
        Write the whole ledger to ``stream``.

        Returns:
            Number of cards exported
        """
        writer = csv.writer(stream)
        writer.writerow(CSV_COLUMNS)

        count = 0
        offset = 0
        while True:
            cards = self.store.fetch_batch(offset, EXPORT_PAGE_SIZE)
            for card in cards:
                writer.writerow(snapshot_to_row(card))
            count += len(cards)
            if len(cards) < EXPORT_PAGE_SIZE:
                break
            offset += EXPORT_PAGE_SIZE

        self.activity_log.export_csv(count, actor_id)
        logger.info(f"Exported {count} gift cards to CSV")
        return count

    def export_batch(
        self,
        path: str,
        offset: int = 0,
        batch_size: int = 100,
        actor_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Append one batch of cards to the export file at ``path``.

        Offset 0 truncates the file and writes the header.

        Returns:
            Dict with complete, exported, next_offset and path
        """
        cards = self.store.fetch_batch(offset, batch_size)

        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(path, 'w' if offset == 0 else 'a', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            if offset == 0:
                writer.writerow(CSV_COLUMNS)
            for card in cards:
                writer.writerow(snapshot_to_row(card))

        complete = len(cards) < batch_size
        if complete:
            self.activity_log.export_csv(offset + len(cards), actor_id)
            logger.info(f"Batched gift card export complete: {offset + len(cards)} cards in {path}")

        return {
            'complete': complete,
            'exported': len(cards),
            'next_offset': offset + len(cards),
            'path': path,
        }

    # ==================== Import ====================

    def _import_rows(self, rows, first_row_number: int) -> Dict[str, Any]:
        imported = 0
        skipped = 0
        errors = []
        read = 0

        for i, row in enumerate(rows, start=first_row_number):
            read += 1
            if not any(cell.strip() for cell in row):
                continue

            try:
                card = row_to_card(row)
                self.store.insert(card)
                imported += 1
            except DuplicateCodeError as e:
                skipped += 1
                errors.append({'row': i, 'code': e.gift_card_code, 'error': 'Duplicate code'})
            except GiftCardError as e:
                errors.append({'row': i, 'code': row[0] if row else '', 'error': e.message})

        return {'imported': imported, 'skipped': skipped, 'errors': errors, 'read': read}

    def import_csv(self, stream: IO[str], actor_id: Optional[int] = None) -> Dict[str, Any]:
        """
        Import every row after the header.

        Invalid rows and duplicate codes are reported and skipped.

        Returns:
            Dict with imported, skipped and errors
        """
        reader = csv.reader(stream)
        next(reader, None)  # header

        results = self._import_rows(reader, first_row_number=2)
        self.activity_log.import_csv(results['imported'], actor_id)

        logger.info(
            f"Gift card CSV import: {results['imported']} imported, "
            f"{results['skipped']} skipped, {len(results['errors'])} errors"
        )
        return {
            'imported': results['imported'],
            'skipped': results['skipped'],
            'errors': results['errors'],
        }

    def import_batch(
        self,
        stream: IO[str],
        offset: int = 0,
        batch_size: int = 100,
        actor_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Import ``batch_size`` data rows starting ``offset`` rows after the header.

        Returns:
            Dict with complete, imported, skipped, errors and next_offset
        """
        reader = csv.reader(stream)
        next(reader, None)  # header
        rows = islice(reader, offset, offset + batch_size)

        results = self._import_rows(rows, first_row_number=offset + 2)
        self.activity_log.import_csv(results['imported'], actor_id)

        return {
            'complete': results['read'] < batch_size,
            'imported': results['imported'],
            'skipped': results['skipped'],
            'errors': results['errors'],
            'next_offset': offset + results['read'],
        }
