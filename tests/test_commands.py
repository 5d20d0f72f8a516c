"""
Tests for the flask gift-cards and flask scheduled CLI groups.
"""
from datetime import date
from decimal import Decimal


class TestGiftCardCommands:
    """Tests for the gift-cards group."""

    def test_issue(self, app, services):
        """Test issuing from the command line."""
        runner = app.test_cli_runner()

        result = runner.invoke(args=[
            'gift-cards', 'issue', '--balance', '25', '--recipient-email', 'jane@example.com',
        ])

        assert result.exit_code == 0
        assert 'Gift card issued successfully!' in result.output
        with app.app_context():
            assert services.store.count() == 1

    def test_update_and_show(self, app, services, make_card):
        """Test editing and then showing a card."""
        make_card('CLIUPDATE1', '50.00')
        runner = app.test_cli_runner()

        update = runner.invoke(args=[
            'gift-cards', 'update', 'CLIUPDATE1', '--balance', '20', '--expiration-date', '2026-12-31',
        ])
        show = runner.invoke(args=['gift-cards', 'show', 'CLIUPDATE1'])

        assert 'Gift card updated successfully.' in update.output
        assert 'expiration_date: 2026-12-31' in show.output
        with app.app_context():
            assert services.store.get_by_code('CLIUPDATE1').balance == Decimal('20.00')

    def test_delete_requires_confirmation(self, app, services, make_card):
        """Test delete asks first and --yes skips the prompt."""
        make_card('CLIDELETE1', '10.00')
        runner = app.test_cli_runner()

        declined = runner.invoke(args=['gift-cards', 'delete', 'CLIDELETE1'], input='n\n')
        with app.app_context():
            assert services.store.exists('CLIDELETE1')

        runner.invoke(args=['gift-cards', 'delete', 'CLIDELETE1', '--yes'])
        with app.app_context():
            assert not services.store.exists('CLIDELETE1')

        assert declined.exit_code != 0

    def test_consolidate(self, app, accounts, make_card):
        """Test the consolidation summary."""
        accounts.add(7, 'jane@example.com')
        make_card('CLICONSOL1', '10.00', recipient_email='jane@example.com')
        runner = app.test_cli_runner()

        result = runner.invoke(args=['gift-cards', 'consolidate'])

        assert 'Processed: 1 cards' in result.output
        assert 'Updated: 1 cards' in result.output

    def test_export_and_import(self, app, services, make_card, tmp_path):
        """Test exporting to a file and importing it into an empty ledger."""
        make_card('CLIEXPORT1', '10.00')
        make_card('CLIEXPORT2', '20.00')
        path = tmp_path / 'cards.csv'
        runner = app.test_cli_runner()

        export = runner.invoke(args=['gift-cards', 'export-csv', '--output', str(path), '--batch-size', '1'])
        assert 'Exported 2 gift cards' in export.output

        with app.app_context():
            services.store.delete('CLIEXPORT1')

        imported = runner.invoke(args=['gift-cards', 'import-csv', str(path)])

        assert 'Imported: 1' in imported.output
        assert 'Skipped (duplicate codes): 1' in imported.output

    def test_complete_order(self, app, services, make_card):
        """Test the order completion command deducts once."""
        make_card('CLIORDER01', '100.00', user_id=7)
        with app.app_context():
            services.redemption.commit_order('9001', 7, Decimal('60.00'))
        runner = app.test_cli_runner()

        first = runner.invoke(args=['gift-cards', 'complete-order', '9001'])
        second = runner.invoke(args=['gift-cards', 'complete-order', '9001'])

        assert 'Deducted $60.00 of $60.00' in first.output
        assert 'Nothing to deduct for order 9001' in second.output

    def test_logging_toggle(self, app, services):
        """Test disabling and checking activity logging."""
        runner = app.test_cli_runner()

        runner.invoke(args=['gift-cards', 'logging', 'disable'])
        status = runner.invoke(args=['gift-cards', 'logging', 'status'])

        assert 'disabled' in status.output
        assert services.settings.enable_logging is False


class TestScheduledCommands:
    """Tests for the scheduled group."""

    def test_send_deliveries_dry_run(self, app, dispatcher, make_card):
        """Test the dry run lists due cards without sending."""
        make_card('CLIDELIVR1', '10.00', delivery_date=date(2026, 3, 10))
        runner = app.test_cli_runner()

        result = runner.invoke(args=['scheduled', 'send-deliveries', '--date', '2026-03-10', '--dry-run'])

        assert '[DRY RUN]' in result.output
        assert 'CLIDELIVR1' in result.output
        assert dispatcher.issued == []

    def test_send_reminders(self, app, dispatcher, make_card):
        """Test reminders are sent for the given window."""
        make_card('CLIREMIND1', '10.00', expiration_date=date(2026, 3, 12))
        runner = app.test_cli_runner()

        result = runner.invoke(args=['scheduled', 'send-reminders', '--date', '2026-03-10', '--days', '7'])

        assert 'Reminders sent: 1' in result.output
        assert [c.code for c in dispatcher.expiring] == ['CLIREMIND1']

    def test_next_runs_without_scheduler(self, app):
        """Test next-runs reports when the scheduler is off."""
        runner = app.test_cli_runner()

        result = runner.invoke(args=['scheduled', 'next-runs'])

        assert 'Scheduler is not running' in result.output
