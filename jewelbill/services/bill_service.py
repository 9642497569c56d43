"""
Bill service: request validation, computation, persistence and reads.

Totals are always recomputed here from the catalog and the submitted rates.
When the client also sends totals they are checked against the computed
ones and a disagreement is rejected as an integrity error.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, selectinload

from jewelbill.exceptions import BillIntegrityError, NotFoundError, ValidationError
from jewelbill.models import Bill, BillItem, Currency, Product, normalize_payment_method
from jewelbill.services.bill_number_service import generate_bill_number
from jewelbill.services.billing_calculator import (
    ChargeRates, ProductSnapshot, LineItem, BillTotals,
    aggregate_bill, calculate_line_item, round_money, to_decimal, validate_percent
)

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
PHONE_PATTERN = re.compile(r'^\+?[0-9 ()-]{6,20}$')

# Client-submitted totals that are verified when present
VERIFIED_TOTALS = ('subtotal', 'makingCharges', 'gst', 'vat', 'total')


@dataclass
class BillRequest:
    """A validated bill request (everything except the product lookups)."""
    customer_name: str
    customer_email: str
    customer_phone: str
    customer_address: str
    currency: Currency
    rates: ChargeRates
    items: List[Dict[str, Any]]
    discount: Decimal
    payment_method: str
    paid_amount: Optional[Decimal] = None
    client_totals: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ComputedBill:
    request: BillRequest
    lines: List[LineItem]
    totals: BillTotals

    def to_dict(self):
        """Preview payload (same keys as a persisted bill, minus id/number)."""
        currency = self.totals.currency
        payload = {
            'customerName': self.request.customer_name,
            'customerEmail': self.request.customer_email,
            'customerPhone': self.request.customer_phone,
            'customerAddress': self.request.customer_address,
            'currency': currency.value,
            'makingChargePercent': format(self.request.rates.making_charge_percent.normalize(), 'f'),
            'taxPercent': format(self.request.rates.tax_percent(currency).normalize(), 'f'),
            'taxLabel': currency.tax_label,
            'paymentMethod': self.request.payment_method,
            'items': [
                {
                    'productId': line.product.product_id,
                    'productName': line.product.name,
                    'purity': line.product.purity,
                    'quantity': line.quantity,
                    'unitPrice': format(round_money(line.unit_price, currency), 'f'),
                    'itemSubtotal': format(line.item_subtotal, 'f'),
                    'makingCharges': format(line.making_charges, 'f'),
                    'sgst': format(round_money(line.tax.sgst, currency), 'f'),
                    'cgst': format(round_money(line.tax.cgst, currency), 'f'),
                    'vat': format(round_money(line.tax.vat, currency), 'f'),
                    'discount': format(line.discount, 'f'),
                    'total': format(round_money(line.total, currency), 'f'),
                }
                for line in self.lines
            ],
        }
        payload.update(self.totals.as_strings())
        return payload


def _text(data, key, errors, required=True, max_length=255):
    value = data.get(key)
    if value is None:
        value = ''
    if not isinstance(value, str):
        errors[key] = 'Must be text'
        return ''
    value = value.strip()
    if required and not value:
        errors[key] = 'This field is required'
    elif len(value) > max_length:
        errors[key] = f'Must be at most {max_length} characters'
    return value


def _percent(data, key, default, errors):
    raw = data.get(key)
    if raw is None or raw == '':
        raw = default
    try:
        return validate_percent(raw, key)
    except ValidationError as e:
        errors.update(e.errors)
        return Decimal('0')


def parse_bill_request(data: Dict[str, Any], config) -> BillRequest:
    """
    Validate a bill request body (camelCase JSON).

    Collects every field problem before raising, so the caller sees all of
    them at once.

    Raises:
        ValidationError: with a field -> message map
    """
    if not isinstance(data, dict):
        raise ValidationError({'__all__': 'Request body must be a JSON object'})

    errors: Dict[str, str] = {}

    customer_name = _text(data, 'customerName', errors)
    customer_phone = _text(data, 'customerPhone', errors, max_length=50)
    if customer_phone and 'customerPhone' not in errors and not PHONE_PATTERN.match(customer_phone):
        errors['customerPhone'] = 'Invalid phone number'
    customer_email = _text(data, 'customerEmail', errors, required=False)
    if customer_email and 'customerEmail' not in errors and not EMAIL_PATTERN.match(customer_email):
        errors['customerEmail'] = 'Invalid email address'
    customer_address = _text(data, 'customerAddress', errors, required=False, max_length=1000)

    currency = Currency.INR
    try:
        currency = Currency.parse(data.get('currency') or Currency.INR.value)
    except ValueError as e:
        errors['currency'] = str(e)

    rates = ChargeRates(
        making_charge_percent=_percent(data, 'makingChargePercent', config['DEFAULT_MAKING_CHARGE_PERCENT'], errors),
        gst_percent=_percent(data, 'gstPercent', config['DEFAULT_GST_PERCENT'], errors),
        vat_percent=_percent(data, 'vatPercent', config['DEFAULT_VAT_PERCENT'], errors),
    )

    items = data.get('items')
    if not isinstance(items, list) or not items:
        errors['items'] = 'Select at least one product'
        items = []
    else:
        for index, item in enumerate(items):
            if not isinstance(item, dict) or not item.get('productId'):
                errors[f'items[{index}].productId'] = 'Product is required'

    discount = Decimal('0')
    if data.get('discount') not in (None, ''):
        try:
            discount = to_decimal(data['discount'], 'discount')
            if discount < 0:
                errors['discount'] = 'Discount cannot be negative'
        except ValidationError as e:
            errors.update(e.errors)

    payment_method = 'CASH'
    try:
        payment_method = normalize_payment_method(data.get('paymentMethod'))
    except ValueError as e:
        errors['paymentMethod'] = str(e)

    paid_amount = None
    if data.get('paidAmount') not in (None, ''):
        try:
            paid_amount = to_decimal(data['paidAmount'], 'paidAmount')
        except ValidationError as e:
            errors.update(e.errors)

    client_totals = {key: data[key] for key in VERIFIED_TOTALS if data.get(key) not in (None, '')}

    if errors:
        raise ValidationError(errors)

    return BillRequest(
        customer_name=customer_name,
        customer_email=customer_email,
        customer_phone=customer_phone,
        customer_address=customer_address,
        currency=currency,
        rates=rates,
        items=items,
        discount=discount,
        payment_method=payment_method,
        paid_amount=paid_amount,
        client_totals=client_totals,
    )


def _load_products(session: Session, items: List[Dict[str, Any]]) -> Dict[str, Product]:
    ids = {str(item['productId']) for item in items}
    products = session.query(Product).filter(Product.id.in_(ids)).all()
    return {product.id: product for product in products}


def calculate_bill(session: Session, request: BillRequest) -> ComputedBill:
    """
    Compute every line and the aggregate for a validated request.

    Raises:
        ValidationError: unknown/inactive product, bad quantity, missing price
    """
    products = _load_products(session, request.items)
    errors: Dict[str, str] = {}
    lines: List[LineItem] = []

    for index, item in enumerate(request.items):
        prefix = f'items[{index}].'
        product = products.get(str(item['productId']))
        if product is None or not product.is_active:
            errors[f'{prefix}productId'] = 'Product not found or inactive'
            continue
        try:
            lines.append(calculate_line_item(
                ProductSnapshot.from_product(product),
                item.get('quantity', 1),
                request.currency,
                request.rates,
                field_prefix=prefix
            ))
        except ValidationError as e:
            errors.update(e.errors)

    if errors:
        raise ValidationError(errors)

    totals = aggregate_bill(lines, request.currency, request.discount, request.paid_amount)
    return ComputedBill(request=request, lines=lines, totals=totals)


def verify_client_totals(computed: ComputedBill) -> None:
    """
    Compare client-submitted totals with the server computation.

    Raises:
        BillIntegrityError: listing each mismatched field
    """
    currency = computed.totals.currency
    expected = computed.totals.as_strings()
    mismatches = {}
    for key, submitted in computed.request.client_totals.items():
        try:
            value = round_money(to_decimal(submitted, key), currency)
        except ValidationError:
            mismatches[key] = {'submitted': str(submitted), 'computed': expected[key]}
            continue
        if value != Decimal(expected[key]):
            mismatches[key] = {'submitted': format(value, 'f'), 'computed': expected[key]}
    if mismatches:
        raise BillIntegrityError(mismatches)


def _build_bill(computed: ComputedBill, bill_number: str, created_at: datetime) -> Bill:
    request = computed.request
    totals = computed.totals
    currency = totals.currency

    bill = Bill(
        bill_number=bill_number,
        customer_name=request.customer_name,
        customer_email=request.customer_email,
        customer_phone=request.customer_phone,
        customer_address=request.customer_address,
        currency=currency.value,
        making_charge_percent=request.rates.making_charge_percent,
        tax_percent=request.rates.tax_percent(currency),
        subtotal=totals.subtotal,
        making_charges=totals.making_charges,
        gst=totals.gst,
        vat=totals.vat,
        discount=totals.discount,
        total=totals.total,
        paid_amount=totals.paid_amount,
        payment_method=request.payment_method,
        created_at=created_at,
    )
    for position, line in enumerate(computed.lines):
        bill.items.append(BillItem(
            position=position,
            product_id=line.product.product_id,
            product_name=line.product.name,
            purity=line.product.purity,
            quantity=line.quantity,
            price_inr=line.product.price_inr,
            price_bhd=line.product.price_bhd,
            gross_weight=line.product.gross_weight,
            net_weight=line.product.net_weight,
            making_charges=line.making_charges,
            discount=line.discount,
            sgst=line.tax.sgst,
            cgst=line.tax.cgst,
            vat=line.tax.vat,
            total=line.total,
        ))
    return bill


def preview_bill(session: Session, data: Dict[str, Any], config) -> ComputedBill:
    """Validate and compute a bill without storing it."""
    computed = calculate_bill(session, parse_bill_request(data, config))
    verify_client_totals(computed)
    return computed


def create_bill(session: Session, data: Dict[str, Any], config) -> Bill:
    """
    Validate, compute, number and store a bill.

    The bill number and the bill row are written in the same transaction.

    Returns:
        Bill: the persisted bill with id and bill number

    Raises:
        ValidationError: malformed request (400)
        BillIntegrityError: client totals disagree with the computation (422)
    """
    computed = preview_bill(session, data, config)

    try:
        now = datetime.now()
        bill_number = generate_bill_number(session, now.date(), config.get('BILL_NUMBER_PREFIX', 'PJ'))
        bill = _build_bill(computed, bill_number, now)
        session.add(bill)
        session.commit()
    except Exception:
        session.rollback()
        raise

    from jewelbill.blueprints.metrics import bills_created_total
    bills_created_total.labels(currency=bill.currency).inc()
    logger.info(f"[BILL] Created {bill.bill_number} ({bill.currency} {bill.total}) for {bill.customer_name}")
    return bill


def _bill_query(session: Session):
    return session.query(Bill).options(selectinload(Bill.items))


def get_bill(session: Session, bill_id: str) -> Bill:
    """Raises NotFoundError when the id is unknown."""
    bill = _bill_query(session).filter(Bill.id == str(bill_id)).first()
    if not bill:
        raise NotFoundError(f'Bill {bill_id} not found')
    return bill


def get_bill_by_number(session: Session, bill_number: str) -> Bill:
    """Raises NotFoundError when the number is unknown."""
    bill = _bill_query(session).filter(Bill.bill_number == bill_number).first()
    if not bill:
        raise NotFoundError(f'Bill {bill_number} not found')
    return bill


def list_bills(session: Session) -> List[Bill]:
    """All bills, newest first."""
    return _bill_query(session).order_by(Bill.created_at.desc(), Bill.bill_number.desc()).all()


def search_bills(session: Session, term: str) -> List[Bill]:
    """Bills whose customer name contains the term (case-insensitive)."""
    term = (term or '').strip()
    if not term:
        return list_bills(session)
    escaped = term.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return _bill_query(session).filter(
        Bill.customer_name.ilike(f'%{escaped}%', escape='\\')
    ).order_by(Bill.created_at.desc(), Bill.bill_number.desc()).all()


def parse_date(value: str, field_name: str) -> date:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError({field_name: 'Date must be YYYY-MM-DD'}, message='Invalid date range')


def bills_by_date_range(session: Session, start: date, end: date) -> List[Bill]:
    """Bills created between start and end, both days inclusive."""
    if end < start:
        raise ValidationError({'endDate': 'End date must not be before start date'}, message='Invalid date range')
    start_at = datetime.combine(start, time.min)
    end_before = datetime.combine(end + timedelta(days=1), time.min)
    return _bill_query(session).filter(
        Bill.created_at >= start_at,
        Bill.created_at < end_before
    ).order_by(Bill.created_at.desc(), Bill.bill_number.desc()).all()
