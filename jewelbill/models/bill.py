"""Bill model (frozen tax invoice)."""
import enum
import uuid
from decimal import Decimal
from sqlalchemy import Column, String, Text, Numeric, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from jewelbill.database import Base


class Currency(str, enum.Enum):
    """Supported bill currencies."""
    INR = 'INR'
    BHD = 'BHD'

    @property
    def places(self):
        """Displayed decimal places (2 for rupees, 3 for dinars/fils)."""
        return 3 if self is Currency.BHD else 2

    @property
    def quantum(self):
        return Decimal(1).scaleb(-self.places)

    @property
    def tax_label(self):
        return 'VAT' if self is Currency.BHD else 'GST'

    @property
    def is_domestic(self):
        return self is Currency.INR

    @classmethod
    def parse(cls, value):
        """Return the Currency for a code, raising ValueError if unsupported."""
        if isinstance(value, Currency):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        raise ValueError(f"Unsupported currency: {value!r}. Must be 'INR' or 'BHD'.")


class PaymentMethod(enum.Enum):
    """Payment method enum."""
    CASH = "CASH"
    CARD = "CARD"
    UPI = "UPI"
    BANK_TRANSFER = "BANK_TRANSFER"
    STRIPE = "STRIPE"


def normalize_payment_method(value) -> str:
    """
    Normalize payment method value to string for DB storage.

    Args:
        value: Can be None, PaymentMethod enum, or string

    Returns:
        str: one of the PaymentMethod values

    Raises:
        ValueError: If value is invalid
    """
    # Default to CASH if None
    if value is None or value == '':
        return PaymentMethod.CASH.value

    if isinstance(value, PaymentMethod):
        return value.value

    normalized = str(value).upper().strip().replace(' ', '_')
    if normalized in PaymentMethod.__members__:
        return normalized

    allowed = ', '.join(PaymentMethod.__members__)
    raise ValueError(f"Invalid payment method: {value}. Must be one of {allowed}.")


class Bill(Base):
    """
    Bill (tax invoice).

    Every money column is computed once at creation and frozen. Corrections
    are made by issuing a new bill; there is no update path.
    """

    __tablename__ = 'bill'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    bill_number = Column(String(64), nullable=False, unique=True, index=True)
    customer_name = Column(String(255), nullable=False, index=True)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=False)
    customer_address = Column(Text, nullable=False)
    currency = Column(String(3), nullable=False, default=Currency.INR.value)
    making_charge_percent = Column(Numeric(6, 3), nullable=False, default=0)
    tax_percent = Column(Numeric(6, 3), nullable=False, default=0)
    subtotal = Column(Numeric(14, 3), nullable=False)
    making_charges = Column(Numeric(14, 3), nullable=False)
    gst = Column(Numeric(14, 3), nullable=False, default=0)
    vat = Column(Numeric(14, 3), nullable=False, default=0)
    discount = Column(Numeric(14, 3), nullable=False, default=0)
    total = Column(Numeric(14, 3), nullable=False)
    paid_amount = Column(Numeric(14, 3), nullable=False)
    payment_method = Column(String(20), nullable=False, default=PaymentMethod.CASH.value)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)

    # Relationships
    items = relationship(
        'BillItem',
        back_populates='bill',
        cascade='all, delete-orphan',
        order_by='BillItem.position'
    )

    def __repr__(self):
        return f"<Bill(id={self.id}, number='{self.bill_number}', total={self.total})>"

    @property
    def currency_code(self):
        return Currency.parse(self.currency)

    @property
    def tax_amount(self):
        """
        Tax carried by the bill, read by currency rather than by column name.

        Older BHD bills stored VAT in the gst column; those are still read
        correctly because the gst column is used when vat is zero.
        """
        if self.currency_code is Currency.BHD:
            vat = self.vat or Decimal('0')
            return vat if vat != 0 else (self.gst or Decimal('0'))
        return self.gst or Decimal('0')

    @property
    def sgst_total(self):
        return sum((item.sgst or Decimal('0') for item in self.items), Decimal('0'))

    @property
    def cgst_total(self):
        return sum((item.cgst or Decimal('0') for item in self.items), Decimal('0'))

    @property
    def total_quantity(self):
        return sum(item.quantity for item in self.items)

    def to_dict(self):
        """Convert to dictionary for JSON serialization (camelCase wire format)."""
        currency = self.currency_code

        def money(value):
            return format(Decimal(value or 0).quantize(currency.quantum), 'f')

        return {
            'id': self.id,
            'billNumber': self.bill_number,
            'customerName': self.customer_name,
            'customerEmail': self.customer_email,
            'customerPhone': self.customer_phone,
            'customerAddress': self.customer_address,
            'currency': currency.value,
            'makingChargePercent': format(Decimal(self.making_charge_percent or 0).normalize(), 'f'),
            'taxPercent': format(Decimal(self.tax_percent or 0).normalize(), 'f'),
            'taxLabel': currency.tax_label,
            'subtotal': money(self.subtotal),
            'makingCharges': money(self.making_charges),
            'gst': money(self.gst),
            'vat': money(self.vat),
            'discount': money(self.discount),
            'total': money(self.total),
            'paidAmount': money(self.paid_amount),
            'paymentMethod': self.payment_method,
            'items': [item.to_dict(currency) for item in self.items],
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }
