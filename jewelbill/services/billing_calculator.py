"""
Bill computation: line-item calculator and bill aggregator.

Pure functions over Decimal. Every component is rounded (ROUND_HALF_UP) to
the currency precision before it takes part in a sum, so the persisted line
totals, the aggregate and both renderers agree to the last digit.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP, InvalidOperation
from typing import Optional, Sequence, Union

from jewelbill.exceptions import ValidationError
from jewelbill.models import Currency

HUNDRED = Decimal('100')
ZERO = Decimal('0')
GST_SPLIT_QUANTUM = Decimal('0.01')

# Money columns are Numeric(14, 3); larger amounts cannot be stored
MAX_AMOUNT = Decimal('99999999999')
MAX_QUANTITY = 9999


def to_decimal(value, field='value') -> Decimal:
    """Parse a number given as str/int/Decimal. Floats go through str()."""
    if isinstance(value, bool):
        raise ValidationError({field: 'Must be a number'})
    try:
        if isinstance(value, float):
            value = str(value)
        result = Decimal(value) if not isinstance(value, Decimal) else value
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError({field: 'Must be a number'})
    if not result.is_finite():
        raise ValidationError({field: 'Must be a finite number'})
    if abs(result) > MAX_AMOUNT:
        raise ValidationError({field: f'Must not exceed {MAX_AMOUNT}'})
    return result


def round_money(amount, currency: Currency, field='amount') -> Decimal:
    """Round to the currency's displayed precision (2 INR, 3 BHD)."""
    try:
        return Decimal(amount).quantize(currency.quantum, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError({field: 'Amount is out of range'})


def _check_storable(field, *amounts) -> None:
    if any(abs(amount) > MAX_AMOUNT for amount in amounts):
        raise ValidationError({field: f'Amount is too large (maximum {MAX_AMOUNT})'})


def money_str(amount, currency: Currency) -> str:
    """Fixed-point string at the currency precision, e.g. '23072.00'."""
    return format(round_money(amount, currency), 'f')


@dataclass(frozen=True)
class GstTax:
    """Domestic GST, split into state and central halves."""
    sgst: Decimal
    cgst: Decimal
    label = 'GST'

    @property
    def amount(self):
        return self.sgst + self.cgst

    @property
    def vat(self):
        return ZERO


@dataclass(frozen=True)
class VatTax:
    """Gulf VAT, a single amount."""
    amount: Decimal
    label = 'VAT'

    @property
    def sgst(self):
        return ZERO

    @property
    def cgst(self):
        return ZERO

    @property
    def vat(self):
        return self.amount


Tax = Union[GstTax, VatTax]


def split_gst(gst: Decimal) -> GstTax:
    """
    Split a GST amount into SGST and CGST.

    CGST is half the GST rounded down to the paisa; SGST takes the rest, so
    the odd paisa lands on SGST and SGST + CGST == GST exactly.
    """
    cgst = (gst / 2).quantize(GST_SPLIT_QUANTUM, rounding=ROUND_DOWN)
    return GstTax(sgst=gst - cgst, cgst=cgst)


@dataclass(frozen=True)
class ChargeRates:
    """Bill-level percentages applied to every line."""
    making_charge_percent: Decimal
    gst_percent: Decimal
    vat_percent: Decimal

    def tax_percent(self, currency: Currency) -> Decimal:
        return self.gst_percent if currency.is_domestic else self.vat_percent


@dataclass(frozen=True)
class ProductSnapshot:
    """The product fields billing copies at sale time."""
    product_id: str
    name: str
    price_inr: Optional[Decimal]
    price_bhd: Optional[Decimal]
    gross_weight: Decimal = ZERO
    net_weight: Decimal = ZERO
    purity: Optional[str] = None

    @classmethod
    def from_product(cls, product):
        return cls(
            product_id=str(product.id),
            name=product.name,
            price_inr=product.price_inr,
            price_bhd=product.price_bhd,
            gross_weight=product.gross_weight or ZERO,
            net_weight=product.net_weight or ZERO,
            purity=product.purity,
        )

    def price_for(self, currency: Currency) -> Optional[Decimal]:
        return self.price_bhd if currency is Currency.BHD else self.price_inr


@dataclass(frozen=True)
class LineItem:
    """A computed bill line, ready to be frozen into a BillItem."""
    product: ProductSnapshot
    currency: Currency
    quantity: int
    unit_price: Decimal
    item_subtotal: Decimal
    making_charges: Decimal
    tax: Tax
    discount: Decimal
    total: Decimal


@dataclass(frozen=True)
class BillTotals:
    """Aggregated bill money fields."""
    currency: Currency
    subtotal: Decimal
    making_charges: Decimal
    gst: Decimal
    vat: Decimal
    discount: Decimal
    total: Decimal
    paid_amount: Decimal

    @property
    def tax(self):
        return self.vat if self.currency is Currency.BHD else self.gst

    def as_strings(self):
        return {
            'subtotal': money_str(self.subtotal, self.currency),
            'makingCharges': money_str(self.making_charges, self.currency),
            'gst': money_str(self.gst, self.currency),
            'vat': money_str(self.vat, self.currency),
            'discount': money_str(self.discount, self.currency),
            'total': money_str(self.total, self.currency),
            'paidAmount': money_str(self.paid_amount, self.currency),
        }


def validate_quantity(quantity, field='quantity') -> int:
    """Quantity must be a whole number between 1 and MAX_QUANTITY."""
    if isinstance(quantity, bool):
        raise ValidationError({field: 'Quantity must be a whole number'})
    if isinstance(quantity, str) and quantity.strip().isdigit():
        quantity = int(quantity.strip())
    if not isinstance(quantity, int):
        raise ValidationError({field: 'Quantity must be a whole number'})
    if quantity < 1:
        raise ValidationError({field: 'Quantity must be at least 1'})
    if quantity > MAX_QUANTITY:
        raise ValidationError({field: f'Quantity cannot exceed {MAX_QUANTITY}'})
    return quantity


def validate_percent(value, field) -> Decimal:
    percent = to_decimal(value, field)
    if percent < 0 or percent > HUNDRED:
        raise ValidationError({field: 'Percentage must be between 0 and 100'})
    return percent


def calculate_line_item(
    product: ProductSnapshot,
    quantity: int,
    currency: Currency,
    rates: ChargeRates,
    discount: Decimal = ZERO,
    field_prefix: str = ''
) -> LineItem:
    """
    Compute one bill line.

    Raises:
        ValidationError: quantity < 1, or the product has no price in the
            bill currency (never defaulted to zero).
    """
    quantity = validate_quantity(quantity, f'{field_prefix}quantity')

    unit_price = product.price_for(currency)
    if unit_price is None:
        raise ValidationError({
            f'{field_prefix}productId': f'Product "{product.name}" has no {currency.value} price'
        })
    unit_price = to_decimal(unit_price, f'{field_prefix}price')
    if unit_price < 0:
        raise ValidationError({f'{field_prefix}price': 'Price cannot be negative'})

    discount = round_money(to_decimal(discount, f'{field_prefix}discount'), currency)
    if discount < 0:
        raise ValidationError({f'{field_prefix}discount': 'Discount cannot be negative'})

    item_subtotal = round_money(unit_price * quantity, currency)
    making_charges = round_money(item_subtotal * rates.making_charge_percent / HUNDRED, currency)
    tax_base = item_subtotal + making_charges
    tax_amount = round_money(tax_base * rates.tax_percent(currency) / HUNDRED, currency)

    if currency.is_domestic:
        tax = split_gst(tax_amount)
    else:
        tax = VatTax(amount=tax_amount)

    total = item_subtotal + making_charges + tax.amount - discount
    _check_storable(f'{field_prefix}quantity', item_subtotal, making_charges, tax.amount, total)

    return LineItem(
        product=product,
        currency=currency,
        quantity=quantity,
        unit_price=unit_price,
        item_subtotal=item_subtotal,
        making_charges=making_charges,
        tax=tax,
        discount=discount,
        total=total,
    )


def aggregate_bill(
    items: Sequence[LineItem],
    currency: Currency,
    discount: Decimal = ZERO,
    paid_amount: Optional[Decimal] = None
) -> BillTotals:
    """
    Sum line items into bill totals.

    total == sum(line.total) - discount. paid_amount defaults to the total.
    """
    if not items:
        raise ValidationError({'items': 'Select at least one product'})
    for index, item in enumerate(items):
        if item.currency is not currency:
            raise ValidationError({f'items[{index}]': 'All items must use the bill currency'})

    discount = round_money(to_decimal(discount, 'discount'), currency)
    if discount < 0:
        raise ValidationError({'discount': 'Discount cannot be negative'})

    subtotal = sum((item.item_subtotal for item in items), ZERO)
    making_charges = sum((item.making_charges for item in items), ZERO)
    tax = sum((item.tax.amount for item in items), ZERO)
    lines_total = sum((item.total for item in items), ZERO)
    _check_storable('items', subtotal, making_charges, tax, lines_total)

    if discount > lines_total:
        raise ValidationError({'discount': 'Discount cannot exceed the bill amount'})
    total = lines_total - discount

    if paid_amount is None:
        paid = total
    else:
        paid = round_money(to_decimal(paid_amount, 'paidAmount'), currency)
        if paid < 0 or paid > total:
            raise ValidationError({'paidAmount': 'Paid amount must be between 0 and the bill total'})

    return BillTotals(
        currency=currency,
        subtotal=round_money(subtotal, currency),
        making_charges=round_money(making_charges, currency),
        gst=round_money(tax if currency.is_domestic else ZERO, currency),
        vat=round_money(ZERO if currency.is_domestic else tax, currency),
        discount=discount,
        total=round_money(total, currency),
        paid_amount=paid,
    )
