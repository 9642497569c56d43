"""Product model (catalog, read-only for billing)."""
import uuid
from sqlalchemy import Column, String, Text, Boolean, Integer, Numeric, DateTime
from sqlalchemy.sql import func
from jewelbill.database import Base


class Product(Base):
    """Product model."""

    __tablename__ = 'product'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default='')
    category = Column(String(64), nullable=False)
    sub_category = Column(String(64), nullable=True)
    material = Column(String(32), nullable=True, default='GOLD_22K')
    purity = Column(String(20), nullable=True)  # e.g. "22K", "925", "PT950"
    # A product may not be offered in one of the markets
    price_inr = Column(Numeric(12, 2), nullable=True)
    price_bhd = Column(Numeric(12, 3), nullable=True)
    gross_weight = Column(Numeric(10, 3), nullable=False, default=0)
    net_weight = Column(Numeric(10, 3), nullable=False, default=0)
    stock = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    is_featured = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}')>"
