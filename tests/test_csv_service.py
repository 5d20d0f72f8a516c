"""
Tests for CSV import/export.

Covers:
- Full export and re-import into an empty ledger
- Duplicate and invalid rows
- Batched export to file and batched import by offset
"""
import csv
import io
from datetime import date
from decimal import Decimal


HEADER = ','.join([
    'code', 'balance', 'expiration_date', 'sender_name', 'sender_email',
    'recipient_email', 'message', 'issued_date', 'delivery_date', 'gift_card_type', 'user_id',
])


def _csv(*rows):
    return io.StringIO('\n'.join((HEADER,) + rows) + '\n')


class TestExport:
    """Tests for exporting."""

    def test_export_rows(self, app, services, make_card):
        """Test every card is written after the header."""
        make_card('EXPORT0001', '30.00', user_id=7, expiration_date=date(2026, 12, 31))
        make_card('EXPORT0002', '5.50')

        with app.app_context():
            from giftcards.models import GiftCardActivity

            stream = io.StringIO()
            count = services.csv.export_csv(stream)

            rows = list(csv.reader(io.StringIO(stream.getvalue())))
            assert count == 2
            assert rows[0] == HEADER.split(',')
            assert rows[1][0] == 'EXPORT0001'
            assert rows[1][1] == '30.00'
            assert rows[1][2] == '2026-12-31'
            assert rows[1][10] == '7'
            assert rows[2][2] == ''
            assert rows[2][10] == ''

            entry = GiftCardActivity.query.filter_by(action_type='export_csv').one()
            assert entry.amount == Decimal('2.00')

    def test_export_then_import_restores_ledger(self, app, services, make_card):
        """Test an export imports back with the same codes and balances."""
        make_card('ROUNDTRIP1', '30.00', user_id=7)
        make_card('ROUNDTRIP2', '12.34', message='Hi, there')

        with app.app_context():
            stream = io.StringIO()
            services.csv.export_csv(stream)
            services.store.delete('ROUNDTRIP1')
            services.store.delete('ROUNDTRIP2')

            result = services.csv.import_csv(io.StringIO(stream.getvalue()))

            assert result['imported'] == 2
            assert services.store.get_by_code('ROUNDTRIP1').user_id == 7
            restored = services.store.get_by_code('ROUNDTRIP2')
            assert restored.balance == Decimal('12.34')
            assert restored.message == 'Hi, there'

    def test_export_batch(self, app, services, make_card, tmp_path):
        """Test batched export appends to one file until complete."""
        for i in range(5):
            make_card(f'BATCH0000{i}', '10.00')
        path = str(tmp_path / 'exports' / 'cards.csv')

        with app.app_context():
            first = services.csv.export_batch(path, offset=0, batch_size=3)
            second = services.csv.export_batch(path, offset=first['next_offset'], batch_size=3)

        assert first['complete'] is False
        assert first['next_offset'] == 3
        assert second['complete'] is True
        assert second['next_offset'] == 5

        with open(path, newline='', encoding='utf-8') as f:
            rows = list(csv.reader(f))
        assert len(rows) == 6
        assert [row[0] for row in rows[1:]] == [f'BATCH0000{i}' for i in range(5)]


class TestImport:
    """Tests for importing."""

    def test_import_keeps_codes_and_does_not_notify(self, app, services, dispatcher):
        """Test imported cards keep their codes and no email is sent."""
        stream = _csv(
            'IMPORT0001,25.00,2026-12-31,Sam,sam@example.com,jane@example.com,Enjoy,'
            '2025-01-01 10:00:00,2025-01-01,digital,0',
        )

        with app.app_context():
            result = services.csv.import_csv(stream)

            card = services.store.get_by_code('IMPORT0001')
            assert result == {'imported': 1, 'skipped': 0, 'errors': []}
            assert card.balance == Decimal('25.00')
            assert card.expiration_date == date(2026, 12, 31)
            assert card.user_id is None

        assert dispatcher.issued == []

    def test_duplicate_codes_skipped(self, app, services, make_card):
        """Test rows whose code exists are skipped and the stored card is untouched."""
        make_card('EXISTING01', '10.00')
        stream = _csv(
            'EXISTING01,99.00,,,,,,,,digital,',
            'NEWCARD001,15.00,,,,,,,,digital,',
        )

        with app.app_context():
            result = services.csv.import_csv(stream)

            assert result['imported'] == 1
            assert result['skipped'] == 1
            assert result['errors'] == [{'row': 2, 'code': 'EXISTING01', 'error': 'Duplicate code'}]
            assert services.store.get_by_code('EXISTING01').balance == Decimal('10.00')

    def test_invalid_rows_reported(self, app, services):
        """Test bad rows are reported with their row number and the rest import."""
        stream = _csv(
            ',10.00,,,,,,,,digital,',
            'BADBALANCE,ten,,,,,,,,digital,',
            'BADDATE001,10.00,31/12/2026,,,,,,,digital,',
            'GOODROW001,10.00,,,,,,,,,',
        )

        with app.app_context():
            result = services.csv.import_csv(stream)

            assert result['imported'] == 1
            assert [e['row'] for e in result['errors']] == [2, 3, 4]
            assert services.store.get_by_code('GOODROW001').gift_card_type == 'digital'

    def test_zero_dates_are_empty(self, app, services):
        """Test 0000-00-00 dates import as no date."""
        stream = _csv('ZERODATE01,10.00,0000-00-00,,,,,0000-00-00 00:00:00,0000-00-00,physical,')

        with app.app_context():
            services.csv.import_csv(stream)

            card = services.store.get_by_code('ZERODATE01')
            assert card.expiration_date is None
            assert card.delivery_date is None
            assert card.issued_date is not None

    def test_import_batch_by_offset(self, app, services):
        """Test batched import walks the file by offset."""
        rows = [f'OFFSET000{i},10.00,,,,,,,,digital,' for i in range(5)]

        with app.app_context():
            first = services.csv.import_batch(_csv(*rows), offset=0, batch_size=2)
            second = services.csv.import_batch(_csv(*rows), offset=first['next_offset'], batch_size=2)
            third = services.csv.import_batch(_csv(*rows), offset=second['next_offset'], batch_size=2)

            assert (first['imported'], first['complete'], first['next_offset']) == (2, False, 2)
            assert (second['imported'], second['complete'], second['next_offset']) == (2, False, 4)
            assert (third['imported'], third['complete'], third['next_offset']) == (1, True, 5)
            assert services.store.count() == 5
