from __future__ import annotations

from datetime import datetime
from calendar import timegm

from sqlalchemy.orm import Session

from ..core.config import settings
from ..models import ReferenceSequence


def next_in_series(db: Session, series_key: str) -> int:
    """Reserve and return the next sequence value for ``series_key``.

    Runs inside the caller's transaction; the row lock is held until it
    commits so two writers never draw the same value.
    """
    row = (
        db.query(ReferenceSequence)
        .filter(ReferenceSequence.series_key == series_key)
        .with_for_update()
        .first()
    )
    if row is None:
        row = ReferenceSequence(series_key=series_key, current_seq=0)
        db.add(row)
        db.flush()
    row.current_seq = int(row.current_seq or 0) + 1
    db.flush()
    return row.current_seq


def allocate_booking_reference(db: Session, created_at: datetime) -> str:
    prefix = settings.BOOKING_REFERENCE_PREFIX
    series_key = f"{prefix}-{created_at.year}"
    seq = next_in_series(db, series_key)
    return f"{series_key}-{seq:03d}"


def allocate_receipt_number(db: Session, issued_at: datetime) -> str:
    """``RCP-<unix-timestamp>-<seq>`` where seq counts receipts in that second."""
    ts = timegm(issued_at.utctimetuple())
    series_key = f"{settings.RECEIPT_PREFIX}-{ts}"
    seq = next_in_series(db, series_key)
    return f"{series_key}-{seq:03d}"
