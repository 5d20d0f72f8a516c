"""
Printable gift card PDF, attached to the delivery email when enabled.
"""
from io import BytesIO

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import cm
from reportlab.pdfgen import canvas

from ..models.gift_card import GiftCardSnapshot


class GiftCardPDFGenerator:
    """Renders one gift card onto a single A4 page."""

    def __init__(self, gift_card: GiftCardSnapshot, shop_name: str = '', currency_symbol: str = '$'):
        self.gift_card = gift_card
        self.shop_name = shop_name
        self.currency_symbol = currency_symbol
        self.buffer = BytesIO()
        self.canvas = canvas.Canvas(self.buffer, pagesize=A4)
        self.width, self.height = A4

    def generate(self) -> bytes:
        """Return the PDF document as bytes."""
        self.canvas.setTitle(f"Gift Card #{self.gift_card.code}")
        if self.shop_name:
            self.canvas.setAuthor(self.shop_name)

        self._render_header()
        self._render_value()
        self._render_message()
        self._render_details()

        self.canvas.showPage()
        self.canvas.save()
        return self.buffer.getvalue()

    def filename(self) -> str:
        return f"gift-card-{self.gift_card.code}.pdf"

    def _render_header(self) -> None:
        y_pos = self.height - 3 * cm
        if self.shop_name:
            self.canvas.setFont("Helvetica", 12)
            self.canvas.drawString(2 * cm, y_pos, self.shop_name)
            y_pos -= 1 * cm

        self.canvas.setFont("Helvetica-Bold", 28)
        self.canvas.drawString(2 * cm, y_pos, "Gift Card")

    def _render_value(self) -> None:
        self.canvas.setFont("Helvetica-Bold", 36)
        self.canvas.setFillColorRGB(0.30, 0.69, 0.31)
        self.canvas.drawString(
            2 * cm, self.height - 6.5 * cm, f"{self.currency_symbol}{self.gift_card.balance:.2f}"
        )

        self.canvas.setFillColorRGB(0, 0, 0)
        self.canvas.setFont("Courier-Bold", 24)
        self.canvas.drawString(2 * cm, self.height - 8.5 * cm, self.gift_card.code)

    def _render_message(self) -> None:
        if not self.gift_card.message:
            return
        self.canvas.setFont("Helvetica-Oblique", 12)
        y_pos = self.height - 10.5 * cm
        for line in self.gift_card.message.splitlines()[:10]:
            self.canvas.drawString(2 * cm, y_pos, line[:90])
            y_pos -= 0.6 * cm

    def _render_details(self) -> None:
        y_pos = 8 * cm
        self.canvas.setFont("Helvetica", 11)
        self.canvas.drawString(2 * cm, y_pos, f"From: {self.gift_card.sender_name or ''}")
        self.canvas.drawString(2 * cm, y_pos - 0.7 * cm, f"To: {self.gift_card.recipient_email or ''}")
        if self.gift_card.expiration_date:
            self.canvas.drawString(
                2 * cm, y_pos - 1.4 * cm,
                f"Expires: {self.gift_card.expiration_date.strftime('%B %d, %Y')}"
            )
