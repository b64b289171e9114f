import enum

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from .types import CaseInsensitiveEnum


class QuoteStatus(str, enum.Enum):
    ACTIVE = "active"
    SUPERSEDED = "superseded"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Quote(BaseModel):
    """Itemized price proposal for a booking.

    Quotes are versioned per booking and never deleted: sending a revised
    quote marks the previous active one ``superseded``. Once ``accepted``
    the row is frozen.
    """

    __tablename__ = "quotes"
    __table_args__ = (UniqueConstraint("booking_id", "version", name="uq_quotes_booking_version"),)

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    version = Column(Integer, nullable=False)
    vendor_id = Column(String(32), ForeignKey("vendors.id"), nullable=False)
    # Ordered [{"name", "unit_price", "quantity", "description"}], minor units
    line_items = Column(JSON, nullable=False)
    total_amount = Column(BigInteger, nullable=False)
    currency = Column(String(3), nullable=False, default="PHP")
    status = Column(
        CaseInsensitiveEnum(QuoteStatus, name="quotestatus"),
        nullable=False,
        default=QuoteStatus.ACTIVE,
        index=True,
    )
    notes = Column(Text, nullable=True)
    superseded_at = Column(DateTime, nullable=True)
    accepted_at = Column(DateTime, nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    booking = relationship("Booking", back_populates="quotes")

    @property
    def is_active(self) -> bool:
        return self.status == QuoteStatus.ACTIVE

    @property
    def is_frozen(self) -> bool:
        return self.status == QuoteStatus.ACCEPTED
