"""
Result checker voucher cards.

Renders one business-card sized PDF page (252 x 144 pt) per voucher.
"""

import logging
from io import BytesIO

from django.utils import timezone
from reportlab.lib.colors import HexColor
from reportlab.pdfgen import canvas as pdfcanvas

logger = logging.getLogger('core.transactions')

CARD_WIDTH = 252
CARD_HEIGHT = 144
MARGIN = 10
SITE_NAME = 'www.resellershubprogh.com'


def render_result_checker_pdf(vouchers, reference, purchased_at=None):
    """
    Build the voucher PDF for a result checker order.

    Args:
        vouchers: ResultChecker rows, one card each
        reference: Order reference printed in the footer
        purchased_at: Purchase time for the footer (defaults to now)

    Returns:
        bytes
    """
    vouchers = list(vouchers)
    first = vouchers[0] if vouchers else None
    checker_type = first.type.upper() if first else ''
    checker_year = first.year if first else ''
    purchased = timezone.localtime(purchased_at or timezone.now()).strftime('%d/%m/%Y')

    buf = BytesIO()
    c = pdfcanvas.Canvas(buf, pagesize=(CARD_WIDTH, CARD_HEIGHT))
    c.setTitle(f"{checker_type} Result Checker {checker_year}")
    c.setAuthor('resellershubprogh.com')

    center = CARD_WIDTH / 2
    for index, voucher in enumerate(vouchers):
        # Origin is bottom-left; y values count down from the top edge
        c.setStrokeColor(HexColor('#000000'))
        c.roundRect(2, 2, CARD_WIDTH - 4, CARD_HEIGHT - 4, 3)

        c.setFillColor(HexColor('#000000'))
        c.setFont('Helvetica-Bold', 10)
        c.drawCentredString(center, CARD_HEIGHT - 18, 'RESELLERS HUB PRO')

        c.setFillColor(HexColor('#333333'))
        c.setFont('Helvetica', 7)
        c.drawCentredString(center, CARD_HEIGHT - 29, f"{voucher.type.upper()} {voucher.year} RESULT CHECKER")

        if len(vouchers) > 1:
            c.setFillColor(HexColor('#666666'))
            c.setFont('Helvetica', 6)
            c.drawCentredString(center, CARD_HEIGHT - 38, f"Card {index + 1} of {len(vouchers)}")

        c.setStrokeColor(HexColor('#cccccc'))
        c.line(MARGIN, CARD_HEIGHT - 42, CARD_WIDTH - MARGIN, CARD_HEIGHT - 42)

        _labelled(c, CARD_HEIGHT - 60, 'SERIAL NUMBER: ', voucher.serial_number)
        _labelled(c, CARD_HEIGHT - 74, 'PIN: ', voucher.pin)

        c.setStrokeColor(HexColor('#cccccc'))
        c.line(MARGIN, 21, CARD_WIDTH - MARGIN, 21)
        c.setFillColor(HexColor('#666666'))
        c.setFont('Helvetica', 5)
        c.drawCentredString(center, 13, f"Ref: {reference} | {purchased}")
        c.setFillColor(HexColor('#999999'))
        c.drawCentredString(center, 6, SITE_NAME)

        c.showPage()

    c.save()
    logger.info(f"Voucher PDF rendered: ref={reference}, cards={len(vouchers)}")
    return buf.getvalue()


def _labelled(c, y, label, value):
    c.setFont('Helvetica-Bold', 7)
    c.setFillColor(HexColor('#666666'))
    c.drawString(MARGIN, y, label)
    c.setFillColor(HexColor('#000000'))
    c.drawString(MARGIN + c.stringWidth(label, 'Helvetica-Bold', 7), y, value)
