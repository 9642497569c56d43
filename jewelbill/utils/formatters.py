"""
Formatting utilities for invoices and templates.
Money in rupees (Indian digit grouping) and Bahraini dinars (3 decimals).
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import date, datetime, timedelta, timezone
from typing import Union, Optional

from jewelbill.models import Currency

Number = Union[int, float, Decimal, str, None]

# Symbols used on screen; the PDF uses plain-text prefixes (core fonts lack ₹)
CURRENCY_SYMBOLS = {
    Currency.INR: '₹',
    Currency.BHD: 'BD',
}

PDF_CURRENCY_PREFIXES = {
    Currency.INR: 'Rs.',
    Currency.BHD: 'BD',
}

# Indian Standard Time has no DST
INVOICE_TZ = timezone(timedelta(hours=5, minutes=30), 'IST')


CURRENCY_NAMES = {
    Currency.INR: 'Indian Rupees',
    Currency.BHD: 'Bahrain Dinar',
}


def _to_decimal(value: Number) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return None


def group_indian(integer_part: str) -> str:
    """
    Group digits the Indian way: last three, then pairs.

    Examples:
        group_indian("1234567") -> "12,34,567"
        group_indian("999") -> "999"
    """
    if len(integer_part) <= 3:
        return integer_part
    head, tail = integer_part[:-3], integer_part[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ','.join(pairs + [tail])


def format_amount(value: Number, currency: Currency, max_decimals: int = 2) -> str:
    """
    Format an amount without a currency prefix.

    INR: Indian grouping, between 0 and max_decimals decimals (trailing
    zeros dropped). BHD: exactly 3 decimals, no separators.

    Examples:
        format_amount(23072, Currency.INR) -> "23,072"
        format_amount(336.5, Currency.INR) -> "336.5"
        format_amount(1234567.5, Currency.INR, max_decimals=0) -> "12,34,568"
        format_amount(12.3456, Currency.BHD) -> "12.346"
    """
    num = _to_decimal(value)
    if num is None:
        return "-"

    if currency is Currency.BHD:
        return format(num.quantize(Decimal('0.001'), rounding=ROUND_HALF_UP), 'f')

    num = num.quantize(Decimal(1).scaleb(-max_decimals), rounding=ROUND_HALF_UP)
    sign = "-" if num < 0 else ""
    num_str = format(abs(num), 'f')

    if '.' in num_str:
        integer_part, decimal_part = num_str.split('.')
        decimal_part = decimal_part.rstrip('0')
    else:
        integer_part, decimal_part = num_str, ""

    integer_formatted = group_indian(integer_part)
    if decimal_part:
        return f"{sign}{integer_formatted}.{decimal_part}"
    return f"{sign}{integer_formatted}"


def format_price(value: Number, currency: Currency) -> str:
    """
    Storefront price label: symbol plus amount, rupees without decimals.

    Examples:
        format_price(1234567.5, Currency.INR) -> "₹ 12,34,568"
        format_price(12.3456, Currency.BHD) -> "BD 12.346"
    """
    max_decimals = 0 if currency is Currency.INR else 3
    return f"{CURRENCY_SYMBOLS[currency]} {format_amount(value, currency, max_decimals)}"


def format_money(value: Number, currency: Currency, prefix: Optional[str] = None) -> str:
    """Invoice money label (0-2 decimals INR, 3 decimals BHD)."""
    if prefix is None:
        prefix = CURRENCY_SYMBOLS[currency]
    return f"{prefix} {format_amount(value, currency)}"


def format_weight(value: Number) -> str:
    """Weight in grams with 3 decimals, e.g. "5.250"."""
    num = _to_decimal(value)
    if num is None:
        return "-"
    return format(num.quantize(Decimal('0.001'), rounding=ROUND_HALF_UP), 'f')


def date_in(value: Union[date, datetime, None]) -> str:
    """
    Date as DD/MM/YYYY.

    Examples:
        date_in(date(2025, 8, 19)) -> "19/08/2025"
    """
    if value is None:
        return "-"
    if isinstance(value, datetime):
        value = _local(value).date()
    if not isinstance(value, date):
        return "-"
    return value.strftime("%d/%m/%Y")


def _local(value: datetime) -> datetime:
    """Aware datetimes are shown in IST; naive ones are already local time."""
    if value.tzinfo is None:
        return value
    return value.astimezone(INVOICE_TZ)


def datetime_in(value: Union[datetime, None]) -> str:
    """Datetime as DD/MM/YYYY HH:MM:SS, in IST when the value is aware."""
    if value is None or not isinstance(value, datetime):
        return "-"
    return _local(value).strftime("%d/%m/%Y %H:%M:%S")
