"""Metal rate model (per-gram commodity prices by market)."""
import enum
import uuid
from sqlalchemy import Column, String, Numeric, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from jewelbill.database import Base


class Metal(enum.Enum):
    GOLD = "GOLD"
    SILVER = "SILVER"


class Market(enum.Enum):
    INDIA = "INDIA"
    BAHRAIN = "BAHRAIN"


class MetalRate(Base):
    """
    Metal Rate.

    One row per (metal, purity, market); refreshes overwrite the row in place.
    """

    __tablename__ = 'metal_rate'
    __table_args__ = (
        UniqueConstraint('metal', 'purity', 'market', name='uq_metal_rate_metal_purity_market'),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    metal = Column(String(10), nullable=False)
    purity = Column(String(10), nullable=False)  # 24K, 22K, 18K for gold, PURE for silver
    market = Column(String(10), nullable=False)
    price_per_gram_inr = Column(Numeric(12, 2), nullable=False)
    price_per_gram_bhd = Column(Numeric(12, 3), nullable=False)
    price_per_gram_usd = Column(Numeric(12, 2), nullable=False)
    source = Column(String(64), nullable=False)
    last_updated = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<MetalRate({self.metal} {self.purity} {self.market}: INR {self.price_per_gram_inr})>"

    def to_dict(self):
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'metal': self.metal,
            'purity': self.purity,
            'market': self.market,
            'pricePerGramInr': format(self.price_per_gram_inr, 'f'),
            'pricePerGramBhd': format(self.price_per_gram_bhd, 'f'),
            'pricePerGramUsd': format(self.price_per_gram_usd, 'f'),
            'source': self.source,
            'lastUpdated': self.last_updated.isoformat() if self.last_updated else None,
        }
