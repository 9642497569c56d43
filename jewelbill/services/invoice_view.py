"""
Invoice view: the formatted, read-only picture of a persisted bill.

Both the HTML preview and the PDF renderer draw from this view. It only
formats frozen fields; nothing here recomputes charges or tax from rates.
"""
from decimal import Decimal
from typing import Dict, Any, Optional

from flask import current_app

from jewelbill.exceptions import InvoiceRenderError
from jewelbill.models import Bill, Currency
from jewelbill.utils.formatters import (
    CURRENCY_SYMBOLS, PDF_CURRENCY_PREFIXES, format_money, format_weight, datetime_in
)
from jewelbill.utils.number_words import amount_in_words


def business_info_from_config(config=None) -> Dict[str, Any]:
    """Letterhead details from app config."""
    config = config or current_app.config
    return {
        'name': config.get('BUSINESS_NAME', ''),
        'short_name': config.get('BUSINESS_SHORT_NAME', ''),
        'address_lines': list(config.get('BUSINESS_ADDRESS_LINES', [])),
        'phone': config.get('BUSINESS_PHONE', ''),
        'email': config.get('BUSINESS_EMAIL', ''),
        'gstin': config.get('BUSINESS_GSTIN', ''),
        'state_code': config.get('BUSINESS_STATE_CODE', ''),
        'logo_path': config.get('INVOICE_LOGO_PATH') or None,
    }


def _require(bill: Bill):
    if bill is None:
        raise InvoiceRenderError('Cannot render a missing bill')
    if not (bill.customer_name or '').strip():
        raise InvoiceRenderError(f'Bill {bill.bill_number} has no customer name')
    if not bill.bill_number:
        raise InvoiceRenderError('Bill has no bill number')
    try:
        Currency.parse(bill.currency)
    except ValueError as e:
        raise InvoiceRenderError(str(e))
    if bill.total is None or bill.subtotal is None:
        raise InvoiceRenderError(f'Bill {bill.bill_number} is missing its totals')


def build_invoice_view(bill: Bill, business: Optional[Dict[str, Any]] = None, for_pdf: bool = False) -> Dict[str, Any]:
    """
    Build the invoice view for a persisted bill.

    Args:
        bill: Persisted bill (with items loaded)
        business: Letterhead details (defaults to app config)
        for_pdf: Use plain-text currency prefixes (core PDF fonts lack ₹)

    Raises:
        InvoiceRenderError: the bill is malformed (e.g. no customer name)
    """
    _require(bill)
    currency = bill.currency_code
    business = business if business is not None else business_info_from_config()
    prefix = PDF_CURRENCY_PREFIXES[currency] if for_pdf else CURRENCY_SYMBOLS[currency]

    def money(value):
        return format_money(value, currency, prefix)

    items = []
    for item in bill.items:
        items.append({
            'name': item.product_name,
            'purity': item.purity or '-',
            'quantity': item.quantity,
            'gross_weight': format_weight(item.gross_weight),
            'net_weight': format_weight(item.net_weight),
            'unit_price': money(item.unit_price(currency)),
            'making_charges': money(item.making_charges),
            'discount': money(item.discount),
            'sgst': money(item.sgst),
            'cgst': money(item.cgst),
            'vat': money(item.vat),
            'tax': money(item.tax_amount),
            'total': money(item.total),
        })

    tax_label = currency.tax_label
    return {
        'business': business,
        'bill_number': bill.bill_number,
        'created_at': datetime_in(bill.created_at),
        'currency': currency.value,
        'is_domestic': currency.is_domestic,
        'tax_label': tax_label,
        'tax_percent': format(Decimal(bill.tax_percent or 0).normalize(), 'f'),
        'customer': {
            'name': bill.customer_name,
            'phone': bill.customer_phone or 'N/A',
            'email': bill.customer_email or 'N/A',
            'address': bill.customer_address or 'N/A',
        },
        'items': items,
        'item_count': len(items),
        'total_quantity': bill.total_quantity,
        'total_gross_weight': format_weight(sum(i.gross_weight or 0 for i in bill.items)),
        'total_net_weight': format_weight(sum(i.net_weight or 0 for i in bill.items)),
        'payment_method': bill.payment_method or 'CASH',
        'totals': {
            'subtotal': money(bill.subtotal),
            'making_charges': money(bill.making_charges),
            'discount': money(bill.discount),
            'tax': money(bill.tax_amount),
            'sgst': money(bill.sgst_total),
            'cgst': money(bill.cgst_total),
            'total': money(bill.total),
            'paid_amount': money(bill.paid_amount),
        },
        'amount_in_words': amount_in_words(bill.total, currency),
    }
