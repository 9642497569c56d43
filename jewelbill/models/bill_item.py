"""BillItem model for bill line items."""
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from jewelbill.database import Base


class BillItem(Base):
    """
    Bill Item (line of a tax invoice).

    Stores a snapshot of the product at the time of billing so historical
    bills stay readable even if the product is later renamed or deleted.
    Not addressable on its own; always read through its bill.
    """

    __tablename__ = 'bill_item'

    id = Column(Integer, primary_key=True, autoincrement=True)
    bill_id = Column(String(36), ForeignKey('bill.id'), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    product_id = Column(String(36), nullable=False)
    product_name = Column(String(255), nullable=False)
    purity = Column(String(20), nullable=True)
    quantity = Column(Integer, nullable=False)
    price_inr = Column(Numeric(12, 2), nullable=True)
    price_bhd = Column(Numeric(12, 3), nullable=True)
    gross_weight = Column(Numeric(10, 3), nullable=False, default=0)
    net_weight = Column(Numeric(10, 3), nullable=False, default=0)
    making_charges = Column(Numeric(14, 3), nullable=False)
    discount = Column(Numeric(14, 3), nullable=False, default=0)
    sgst = Column(Numeric(14, 3), nullable=False, default=0)
    cgst = Column(Numeric(14, 3), nullable=False, default=0)
    vat = Column(Numeric(14, 3), nullable=False, default=0)
    total = Column(Numeric(14, 3), nullable=False)

    # Relationships
    bill = relationship('Bill', back_populates='items')

    def __repr__(self):
        return f"<BillItem(id={self.id}, bill_id={self.bill_id}, product='{self.product_name}', qty={self.quantity}, total={self.total})>"

    def unit_price(self, currency):
        """Frozen unit price in the bill's currency."""
        return self.price_bhd if currency.value == 'BHD' else self.price_inr

    @property
    def tax_amount(self):
        return (self.sgst or Decimal('0')) + (self.cgst or Decimal('0')) + (self.vat or Decimal('0'))

    def to_dict(self, currency):
        def money(value, quantum=currency.quantum):
            return format(Decimal(value or 0).quantize(quantum), 'f')

        return {
            'productId': self.product_id,
            'productName': self.product_name,
            'purity': self.purity,
            'quantity': self.quantity,
            'priceInr': money(self.price_inr, Decimal('0.01')) if self.price_inr is not None else None,
            'priceBhd': money(self.price_bhd, Decimal('0.001')) if self.price_bhd is not None else None,
            'grossWeight': money(self.gross_weight, Decimal('0.001')),
            'netWeight': money(self.net_weight, Decimal('0.001')),
            'makingCharges': money(self.making_charges),
            'discount': money(self.discount),
            'sgst': money(self.sgst),
            'cgst': money(self.cgst),
            'vat': money(self.vat),
            'total': money(self.total),
        }
