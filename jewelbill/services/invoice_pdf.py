"""
Tax invoice PDF rendering (reportlab canvas).

The layout is absolute: each block is drawn at a vertical offset measured
from the top of the page, and the offset is advanced by the block's height.
Offsets are converted to reportlab's bottom-left origin only when drawing.
"""
import logging
import time
from io import BytesIO
from typing import Any, Dict, List, Optional, Tuple

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas

from jewelbill.exceptions import InvoiceRenderError
from jewelbill.models import Bill
from jewelbill.services.invoice_view import build_invoice_view

logger = logging.getLogger(__name__)

MARGIN = 30
COLUMN_WIDTHS = [85, 45, 55, 55, 60, 55, 50, 40, 85]
TABLE_HEADERS = [
    'Product Description', 'Purity', 'Net Weight (g)', 'Gross Weight (g)',
    'Product Price', 'Making Charges', 'Discount', 'Tax', 'Total Amount'
]
HEADER_ROW_HEIGHT = 35
ROW_HEIGHT = 25
TOTAL_ROW_HEIGHT = 20
LOGO_SIZE = 60
SUMMARY_HEIGHT = 190
FOOTER_HEIGHT = 52

GOLD = colors.HexColor('#D4AF37')
ROW_SHADE = colors.HexColor('#F8F8F8')
TOTAL_SHADE = colors.HexColor('#E5E5E5')


class InvoicePdfRenderer:
    """
    Draws one invoice view onto an A4 canvas.

    After render(), `blocks` holds (name, page, y) for every block drawn,
    where y is the block's top offset from the top edge of its page.
    """

    def __init__(self, view: Dict[str, Any]):
        self.view = view
        self.page_width, self.page_height = A4
        self.content_width = self.page_width - 2 * MARGIN
        self.y = 0
        self.page = 1
        self.blocks: List[Tuple[str, int, float]] = []
        self.logo_drawn = False
        self._buffer = BytesIO()
        self.c = canvas.Canvas(self._buffer, pagesize=A4, invariant=1)

    # Coordinate helpers

    def _pdf_y(self, y):
        """Top-down offset to reportlab's bottom-up coordinate."""
        return self.page_height - y

    def _text(self, x, y, value, font='Helvetica', size=9, color=colors.black, align='left', width=None):
        self.c.setFont(font, size)
        self.c.setFillColor(color)
        baseline = self._pdf_y(y + size)
        if align == 'center':
            self.c.drawCentredString(x + (width or 0) / 2, baseline, value)
        elif align == 'right':
            self.c.drawRightString(x + (width or 0), baseline, value)
        else:
            self.c.drawString(x, baseline, value)

    def _rect(self, x, y, w, h, fill=None, stroke=colors.black, line_width=1):
        self.c.setLineWidth(line_width)
        self.c.setStrokeColor(stroke)
        if fill is not None:
            self.c.setFillColor(fill)
        self.c.rect(x, self._pdf_y(y + h), w, h, stroke=1, fill=1 if fill is not None else 0)

    def _mark(self, name):
        self.blocks.append((name, self.page, self.y))

    def _fits(self, height):
        return self.y + height <= self.page_height - MARGIN

    def _new_page(self):
        self.c.showPage()
        self.page += 1
        self.y = MARGIN + 20

    # Blocks

    def draw_letterhead(self):
        self.y = 50
        self._mark('letterhead')
        business = self.view['business']
        logo_path = business.get('logo_path')
        if logo_path:
            try:
                logo = ImageReader(logo_path)
                self.c.drawImage(
                    logo, (self.page_width - LOGO_SIZE) / 2, self._pdf_y(self.y + LOGO_SIZE),
                    width=LOGO_SIZE, height=LOGO_SIZE, preserveAspectRatio=True, mask='auto'
                )
                self.logo_drawn = True
                self.y += LOGO_SIZE + 20
            except Exception as e:
                logger.warning(f"[PDF] Logo {logo_path} unavailable, using text header: {e}")
        if not self.logo_drawn:
            heading = (business.get('short_name') or business.get('name') or '').upper()
            self._text(0, self.y, heading, 'Helvetica-Bold', 16, align='center', width=self.page_width)
            self.y += 25

        self._text(self.page_width - 120, 50, 'CUSTOMER COPY', size=10)
        self._text(self.page_width - 140, 65, f"Date: {self.view['created_at']}", size=9)
        self.y += 20

    def draw_invoice_header(self):
        self._mark('invoice_header')
        self._rect(MARGIN, self.y, self.content_width, 25)
        self._text(MARGIN + 5, self.y + 7, 'TAX INVOICE', 'Helvetica-Bold', 14)
        self._text(MARGIN, self.y + 9, f"Invoice No: {self.view['bill_number']}", size=9,
                   align='right', width=self.content_width - 5)
        self.y += 35

    def draw_parties(self):
        self._mark('parties')
        business = self.view['business']
        customer = self.view['customer']
        top = self.y
        column_width = self.content_width / 2 - 10

        self._text(MARGIN + 5, top, (business.get('name') or '').upper(), 'Helvetica-Bold', 10)
        lines = list(business.get('address_lines') or [])
        if business.get('phone'):
            lines.append(f"Phone: {business['phone']}")
        if business.get('gstin'):
            lines.append(f"GSTIN: {business['gstin']}")
        if business.get('state_code'):
            lines.append(f"State Code: {business['state_code']}")
        if business.get('email'):
            lines.append(f"Email: {business['email']}")
        left_bottom = top + 15
        for line in lines:
            self._text(MARGIN + 5, left_bottom, line)
            left_bottom += 13

        right_x = MARGIN + column_width + 20
        self._text(right_x, top, 'CUSTOMER DETAILS:', 'Helvetica-Bold', 10)
        self._text(right_x, top + 15, f"Name: {customer['name']}")
        self._text(right_x, top + 28, f"Phone: {customer['phone']}")
        self._text(right_x, top + 41, f"Email: {customer['email']}")
        self._text(right_x, top + 54, 'Address:')
        right_bottom = top + 67
        for line in simpleSplit(customer['address'], 'Helvetica', 9, column_width - 10):
            self._text(right_x, right_bottom, line)
            right_bottom += 12

        self.y = max(top + 120, left_bottom + 10, right_bottom + 10)

    def draw_table_header(self):
        self._mark('table_header')
        self._rect(MARGIN, self.y, self.content_width, HEADER_ROW_HEIGHT, fill=GOLD)
        x = MARGIN
        for header, width in zip(TABLE_HEADERS, COLUMN_WIDTHS):
            wrapped = simpleSplit(header, 'Helvetica-Bold', 8, width - 4)
            line_y = self.y + 8
            for line in wrapped[:2]:
                self._text(x, line_y, line, 'Helvetica-Bold', 8, colors.white, 'center', width)
                line_y += 10
            x += width
        self.y += HEADER_ROW_HEIGHT

    def draw_item_rows(self):
        self._mark('items')
        tax_label = self.view['tax_label']
        for index, item in enumerate(self.view['items']):
            if not self._fits(ROW_HEIGHT):
                self._new_page()
                self.draw_table_header()
            shade = ROW_SHADE if index % 2 == 1 else None
            self._rect(MARGIN, self.y, self.content_width, ROW_HEIGHT, fill=shade)
            tax = item['tax'] if self.view['is_domestic'] else item['vat']
            cells = [
                (item['name'], 'left'),
                (item['purity'], 'center'),
                (item['net_weight'], 'center'),
                (item['gross_weight'], 'center'),
                (item['unit_price'], 'right'),
                (item['making_charges'], 'right'),
                (item['discount'], 'right'),
                (tax, 'right'),
                (item['total'], 'right'),
            ]
            x = MARGIN
            for (value, align), width in zip(cells, COLUMN_WIDTHS):
                lines = simpleSplit(str(value), 'Helvetica', 7, width - 6) or ['']
                line_y = self.y + (8 if len(lines) == 1 else 4)
                for line in lines[:2]:
                    self._text(x + 3, line_y, line, size=7, align=align, width=width - 6)
                    line_y += 9
                x += width
            self.y += ROW_HEIGHT
        logger.debug(f"[PDF] Drew {len(self.view['items'])} rows ({tax_label})")

    def draw_total_row(self):
        if not self._fits(TOTAL_ROW_HEIGHT):
            self._new_page()
        self._mark('total_row')
        self._rect(MARGIN, self.y, self.content_width, TOTAL_ROW_HEIGHT, fill=TOTAL_SHADE)
        self._text(MARGIN + 5, self.y + 6, 'Total', 'Helvetica-Bold', 8)
        self._text(MARGIN + COLUMN_WIDTHS[0], self.y + 6, str(self.view['total_quantity']),
                   'Helvetica-Bold', 8, align='center', width=COLUMN_WIDTHS[1])
        self._text(MARGIN, self.y + 6, self.view['totals']['total'], 'Helvetica-Bold', 8,
                   align='right', width=self.content_width - 5)
        self.y += TOTAL_ROW_HEIGHT + 10

    def draw_summary(self):
        if not self._fits(SUMMARY_HEIGHT):
            self._new_page()
        self._mark('summary')
        totals = self.view['totals']
        self.y += 10
        self._text(MARGIN, self.y, 'PAYMENT & BILLING SUMMARY', 'Helvetica-Bold', 9,
                   align='center', width=self.content_width)
        self.y += 25

        left = [
            ('Total Qty Purchased:', str(self.view['total_quantity'])),
            ('Payment Mode:', self.view['payment_method']),
            ('Total Amount Paid:', totals['paid_amount']),
        ]
        for offset, (label, value) in enumerate(left):
            self._text(MARGIN + 5, self.y + offset * 15, label, 'Helvetica-Bold', 8)
            self._text(MARGIN + 150, self.y + offset * 15, value, size=8)

        tax_label = f"{self.view['tax_label']} ({self.view['tax_percent']}%):"
        right = [
            ('Product Total Value:', totals['subtotal']),
            ('Making Charges:', totals['making_charges']),
            ('Discount Applied:', totals['discount']),
            (tax_label, totals['tax']),
        ]
        if self.view['is_domestic']:
            right.append(('  SGST:', totals['sgst']))
            right.append(('  CGST:', totals['cgst']))
        right.append(('Net Invoice Value:', totals['total']))

        right_x = MARGIN + 300
        for offset, (label, value) in enumerate(right):
            self._text(right_x, self.y + offset * 15, label, 'Helvetica-Bold', 8)
            self._text(right_x + 120, self.y + offset * 15, value, size=8)
        self.y += max(len(left), len(right)) * 15 + 15

        self._mark('amount_in_words')
        self._text(MARGIN + 5, self.y, 'Amount in Words:', 'Helvetica-Bold', 8)
        words = simpleSplit(self.view['amount_in_words'], 'Helvetica', 8, self.content_width - 105)
        for line in words:
            self._text(MARGIN + 100, self.y, line, size=8)
            self.y += 11
        self.y += 19

    def draw_grand_total(self):
        if not self._fits(45):
            self._new_page()
        self._mark('grand_total')
        self._rect(MARGIN, self.y, self.content_width, 35, fill=colors.black, stroke=GOLD, line_width=2)
        self._text(MARGIN + 15, self.y + 11, 'TOTAL AMOUNT TO BE PAID:', 'Helvetica-Bold', 11, GOLD)
        self._text(MARGIN, self.y + 11, self.view['totals']['total'], 'Helvetica-Bold', 12, GOLD,
                   align='right', width=self.content_width - 15)
        self.y += 45

    def draw_footer(self):
        if not self._fits(20 + FOOTER_HEIGHT):
            self._new_page()
        self.y = max(self.y + 20, self.page_height - 100)
        self._mark('footer')
        business = self.view['business']
        contact = ' | '.join(part for part in (
            f"Phone: {business['phone']}" if business.get('phone') else '',
            f"Email: {business['email']}" if business.get('email') else '',
            f"GSTIN: {business['gstin']}" if business.get('gstin') else '',
        ) if part)
        lines = [
            (business.get('name') or '').upper(),
            ', '.join(business.get('address_lines') or []),
            contact,
        ]
        for offset, line in enumerate(lines):
            self._text(MARGIN, self.y + offset * 12, line, size=7, align='center', width=self.content_width)
        self._text(MARGIN, self.y + 40, 'Thank you for your business!', size=7,
                   align='center', width=self.content_width)
        self.y += FOOTER_HEIGHT

    def render(self) -> BytesIO:
        business = self.view['business']
        self.c.setTitle(f"Tax Invoice {self.view['bill_number']}")
        self.c.setAuthor(business.get('name') or '')
        self.c.setSubject('Tax Invoice')

        self.draw_letterhead()
        self.draw_invoice_header()
        self.draw_parties()
        self.draw_table_header()
        self.draw_item_rows()
        self.draw_total_row()
        self.draw_summary()
        self.draw_grand_total()
        self.draw_footer()

        self.c.showPage()
        self.c.save()
        self._buffer.seek(0)
        return self._buffer


def render_invoice_pdf(bill: Bill, business: Optional[Dict[str, Any]] = None) -> BytesIO:
    """
    Render a persisted bill as a PDF tax invoice.

    Args:
        bill: Persisted bill with items
        business: Letterhead details (defaults to app config)

    Returns:
        BytesIO: PDF content, positioned at the start

    Raises:
        InvoiceRenderError: malformed bill or drawing failure
    """
    from jewelbill.blueprints.metrics import invoice_pdf_render_seconds

    started = time.perf_counter()
    view = build_invoice_view(bill, business, for_pdf=True)
    try:
        buffer = InvoicePdfRenderer(view).render()
    except InvoiceRenderError:
        raise
    except Exception as e:
        logger.error(f"[PDF] Failed to render {bill.bill_number}: {e}")
        raise InvoiceRenderError(f"Failed to render invoice {bill.bill_number}")
    invoice_pdf_render_seconds.observe(time.perf_counter() - started)
    logger.info(f"[PDF] Rendered {bill.bill_number}")
    return buffer


def pdf_filename(bill: Bill) -> str:
    """Download name from the customer name and bill number, e.g. Asha_Rao_PJ_20250819-005.pdf."""
    from werkzeug.utils import secure_filename
    return secure_filename(f"{bill.customer_name}_{bill.bill_number}.pdf") or 'invoice.pdf'
