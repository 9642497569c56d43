"""Models package - exports all SQLAlchemy models."""
from jewelbill.models.product import Product
from jewelbill.models.bill import Bill, Currency, PaymentMethod, normalize_payment_method
from jewelbill.models.bill_item import BillItem
from jewelbill.models.bill_sequence import BillSequence
from jewelbill.models.metal_rate import MetalRate, Metal, Market

__all__ = [
    'Product',
    'Bill', 'BillItem', 'BillSequence', 'Currency', 'PaymentMethod', 'normalize_payment_method',
    'MetalRate', 'Metal', 'Market',
]
