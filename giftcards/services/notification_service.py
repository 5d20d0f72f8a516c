"""
Notification dispatchers for gift card events.

The ledger emits two events with a read-only GiftCardSnapshot:
- on_issued: a digital card reached its delivery date
- on_expiring_soon: a card is inside the reminder window

EmailNotificationDispatcher sends them through SendGrid, optionally with a
printable PDF. LoggingNotificationDispatcher is used when SendGrid is not
configured. Dispatcher failures are contained by notify(); they never reach
the ledger mutation that triggered them.

Configuration:
- SENDGRID_API_KEY: SendGrid API key
- GIFT_CARD_FROM_EMAIL / SHOP_NAME: sender identity
- gift_card_options.attach_pdf: attach the PDF to delivery emails
"""
import base64
import html
import logging
from datetime import date
from typing import Any, Dict, Optional

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import (
    Attachment,
    Content,
    Disposition,
    Email,
    FileContent,
    FileName,
    FileType,
    Mail,
    To,
)

from ..models.gift_card import GiftCardSnapshot
from ..utils.exceptions import NotificationError
from .pdf_generator import GiftCardPDFGenerator
from .settings_service import GiftCardSettings

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Receiver of ledger events. Implementations own all rendering/delivery."""

    def on_issued(self, gift_card: GiftCardSnapshot) -> Dict[str, Any]:
        raise NotImplementedError

    def on_expiring_soon(self, gift_card: GiftCardSnapshot) -> Dict[str, Any]:
        raise NotImplementedError


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Writes events to the log instead of sending email."""

    def on_issued(self, gift_card: GiftCardSnapshot) -> Dict[str, Any]:
        logger.info(
            f"Gift card {gift_card.code} ({gift_card.balance}) ready for {gift_card.recipient_email}"
        )
        return {'success': True, 'skipped': True, 'reason': 'Email delivery not configured'}

    def on_expiring_soon(self, gift_card: GiftCardSnapshot) -> Dict[str, Any]:
        logger.info(
            f"Gift card {gift_card.code} expires {gift_card.expiration_date} "
            f"with {gift_card.balance} left ({gift_card.recipient_email})"
        )
        return {'success': True, 'skipped': True, 'reason': 'Email delivery not configured'}


class EmailNotificationDispatcher(NotificationDispatcher):
    """
    Sends gift card emails via SendGrid.
    """

    DEFAULT_TEMPLATES = {
        'gift_card_issued': {
            'subject': 'You have received a gift card from {sender_name}',
            'text': '''You have received a gift card!

Hello! You've received a gift card worth {amount} from {sender_name}.

{message_line}Redeem your gift card with code: {code}

{expiry_line}
{shop_name}
''',
            'html': '''
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
    <h2>You have received a gift card!</h2>
    <p>Hello! You've received a gift card worth <strong>{amount}</strong> from {sender_name}.</p>
    {message_html}
    <div style="background: #f5f5f5; padding: 20px; border-radius: 8px; margin: 20px 0;">
        <p style="font-size: 20px; font-family: monospace;"><strong>{code}</strong></p>
    </div>
    <p>{expiry_line}</p>
    <p>{shop_name}</p>
</div>
'''
        },
        'gift_card_expiring': {
            'subject': 'Your gift card {code} is about to expire',
            'text': '''Hello! Your gift card with code {code} will expire in {days_remaining} days on {expiration_date}.

Current Balance: {amount}

Don't let this balance go to waste! Use your gift card before it expires.

This is an automated reminder. Please do not reply to this email.

{shop_name}
''',
            'html': '''
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
    <h2>Your gift card is about to expire</h2>
    <p>Hello! Your gift card with code <strong>{code}</strong> will expire in {days_remaining} days on {expiration_date}.</p>
    <p><strong>Current Balance:</strong> {amount}</p>
    <p>Don't let this balance go to waste! Use your gift card before it expires.</p>
    <p style="color: #888;">This is an automated reminder. Please do not reply to this email.</p>
    <p>{shop_name}</p>
</div>
'''
        },
    }

    def __init__(self, api_key: str, settings: GiftCardSettings, currency_symbol: str = '$'):
        self.api_key = api_key
        self.settings = settings
        self.currency_symbol = currency_symbol

    def _get_client(self) -> SendGridAPIClient:
        return SendGridAPIClient(self.api_key)

    def _format_amount(self, amount) -> str:
        return f"{self.currency_symbol}{amount:.2f}"

    def _render_template(
        self,
        template_key: str,
        data: Dict[str, Any],
        html_markup: Optional[Dict[str, str]] = None,
    ) -> Dict[str, str]:
        """
        Fill a template. Values are escaped for the HTML body; ``html_markup``
        holds fragments that are already safe markup.
        """
        template = self.DEFAULT_TEMPLATES[template_key]
        html_data = {key: html.escape(str(value)) for key, value in data.items()}
        html_data.update(html_markup or {})
        return {
            'subject': template['subject'].format(**data),
            'text': template['text'].format(**data),
            'html': template['html'].format(**html_data),
        }

    def _build_pdf(self, gift_card: GiftCardSnapshot) -> Optional[Attachment]:
        """PDF attachment, or None if rendering failed (email still goes out)."""
        try:
            generator = GiftCardPDFGenerator(gift_card, self.settings.shop_name, self.currency_symbol)
            pdf_bytes = generator.generate()
        except Exception as e:
            logger.warning(f"Gift card PDF generation failed for {gift_card.code}, sending without it: {e}")
            return None

        return Attachment(
            FileContent(base64.b64encode(pdf_bytes).decode()),
            FileName(generator.filename()),
            FileType('application/pdf'),
            Disposition('attachment'),
        )

    def _send_email(
        self,
        to_email: str,
        rendered: Dict[str, str],
        attachment: Optional[Attachment] = None,
    ) -> Dict[str, Any]:
        """
        Send an email via SendGrid.

        Raises:
            NotificationError: On any delivery failure
        """
        try:
            message = Mail(
                from_email=Email(self.settings.from_email, self.settings.shop_name),
                to_emails=To(to_email),
                subject=rendered['subject'],
                plain_text_content=Content("text/plain", rendered['text']),
                html_content=Content("text/html", rendered['html'])
            )
            if attachment is not None:
                message.attachment = attachment

            response = self._get_client().send(message)
        except Exception as e:
            raise NotificationError(f"Failed to send email to {to_email}: {e}", e)

        if response.status_code not in (200, 202):
            raise NotificationError(f"SendGrid error for {to_email}: status {response.status_code}")

        logger.info(f"Email sent to {to_email}: {rendered['subject']}")
        return {'success': True, 'status_code': response.status_code, 'attachment': attachment is not None}

    def on_issued(self, gift_card: GiftCardSnapshot) -> Dict[str, Any]:
        if not gift_card.recipient_email:
            return {'success': False, 'skipped': True, 'reason': 'No recipient email'}

        expiry_line = ''
        if gift_card.expiration_date:
            expiry_line = f"This gift card will expire on: {gift_card.expiration_date.strftime('%B %d, %Y')}"

        message_html = ''
        if gift_card.message:
            message_html = "<p><em>&ldquo;{}&rdquo;</em></p>".format(
                html.escape(gift_card.message).replace("\r\n", "\n").replace("\n", "<br />\n")
            )

        rendered = self._render_template('gift_card_issued', {
            'code': gift_card.code,
            'amount': self._format_amount(gift_card.balance),
            'sender_name': gift_card.sender_name or self.settings.shop_name,
            'message_line': f"Message: {gift_card.message}\n\n" if gift_card.message else '',
            'expiry_line': expiry_line,
            'shop_name': self.settings.shop_name,
        }, html_markup={'message_html': message_html})

        attachment = self._build_pdf(gift_card) if self.settings.attach_pdf else None
        return self._send_email(gift_card.recipient_email, rendered, attachment)

    def on_expiring_soon(self, gift_card: GiftCardSnapshot) -> Dict[str, Any]:
        if not gift_card.recipient_email:
            return {'success': False, 'skipped': True, 'reason': 'No recipient email'}

        days_remaining = 0
        expiration = ''
        if gift_card.expiration_date:
            days_remaining = max((gift_card.expiration_date - date.today()).days, 0)
            expiration = gift_card.expiration_date.strftime('%B %d, %Y')

        rendered = self._render_template('gift_card_expiring', {
            'code': gift_card.code,
            'amount': self._format_amount(gift_card.balance),
            'days_remaining': days_remaining,
            'expiration_date': expiration,
            'shop_name': self.settings.shop_name,
        })
        return self._send_email(gift_card.recipient_email, rendered)


def build_dispatcher(config, settings: GiftCardSettings) -> NotificationDispatcher:
    """SendGrid dispatcher when an API key is configured, logging otherwise."""
    api_key = config.get('SENDGRID_API_KEY')
    if api_key:
        return EmailNotificationDispatcher(api_key, settings)
    return LoggingNotificationDispatcher()


def notify(dispatcher: NotificationDispatcher, event: str, gift_card: GiftCardSnapshot) -> bool:
    """
    Deliver one event, containing any dispatcher failure.

    Returns:
        True if the dispatcher reported success
    """
    try:
        result = getattr(dispatcher, event)(gift_card)
    except NotificationError as e:
        logger.error(f"Gift card {event} notification failed for {gift_card.code}: {e.message}")
        return False
    except Exception as e:
        logger.error(f"Gift card {event} dispatcher error for {gift_card.code}: {e}")
        return False

    if isinstance(result, dict):
        return bool(result.get('success'))
    return True
