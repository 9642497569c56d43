"""Bill number generation (PJ/YYYYMMDD-NNN)."""
import logging
from datetime import date, datetime, time, timedelta

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from jewelbill.database import dialect_insert
from jewelbill.models import Bill, BillSequence

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = 'PJ'


def format_bill_number(day: date, sequence: int, prefix: str = DEFAULT_PREFIX) -> str:
    """Format a bill number, e.g. PJ/20250819-005."""
    return f"{prefix}/{day.strftime('%Y%m%d')}-{str(sequence).zfill(3)}"


def _bills_created_on(session: Session, day: date) -> int:
    start = datetime.combine(day, time.min)
    end = start + timedelta(days=1)
    return session.query(func.count(Bill.id)).filter(
        Bill.created_at >= start,
        Bill.created_at < end
    ).scalar() or 0


def next_bill_sequence(session: Session, day: date) -> int:
    """
    Atomically take the next sequence value for a day.

    The first time a day is seen its counter is seeded with the number of
    bills already stored for that day. The increment is a single UPDATE, so
    concurrent callers serialize on the row lock until their transaction ends.
    Must run inside the caller's transaction; the caller commits.
    """
    insert = dialect_insert(session)
    seed = _bills_created_on(session, day)
    session.execute(
        insert(BillSequence)
        .values(day=day, last_value=seed)
        .on_conflict_do_nothing(index_elements=['day'])
    )
    session.execute(
        update(BillSequence)
        .where(BillSequence.day == day)
        .values(last_value=BillSequence.last_value + 1)
    )
    value = session.execute(
        select(BillSequence.last_value).where(BillSequence.day == day)
    ).scalar_one()
    logger.debug(f"[BILL] Sequence for {day.isoformat()} advanced to {value}")
    return value


def generate_bill_number(session: Session, day: date, prefix: str = DEFAULT_PREFIX) -> str:
    """Generate the next unique bill number for the given day."""
    return format_bill_number(day, next_bill_sequence(session, day), prefix)
