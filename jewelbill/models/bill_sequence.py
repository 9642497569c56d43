"""Per-day bill number counter."""
from sqlalchemy import Column, Date, Integer
from jewelbill.database import Base


class BillSequence(Base):
    """
    Bill Sequence (one row per calendar day).

    last_value is incremented with a single UPDATE so two concurrent bill
    creations serialize on the row lock instead of reading the same count.
    """

    __tablename__ = 'bill_sequence'

    day = Column(Date, primary_key=True)
    last_value = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<BillSequence(day={self.day}, last_value={self.last_value})>"
