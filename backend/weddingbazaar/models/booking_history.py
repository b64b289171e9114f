from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .base import BaseModel, utcnow
from .booking_status import LEGACY_STATUS_ALIASES, ActorRole, BookingStatus
from .types import CaseInsensitiveEnum


_STATUS_TYPE = CaseInsensitiveEnum(BookingStatus, name="bookingstatus", aliases=LEGACY_STATUS_ALIASES)


class BookingStatusHistory(BaseModel):
    """Append-only audit trail of a booking's transitions and annotations."""

    __tablename__ = "booking_status_history"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    # "transition" or "note"
    kind = Column(String(16), nullable=False, default="transition")
    from_status = Column(_STATUS_TYPE, nullable=True)
    to_status = Column(_STATUS_TYPE, nullable=False)
    actor_role = Column(CaseInsensitiveEnum(ActorRole, name="actorrole"), nullable=False)
    actor_id = Column(String(64), nullable=True)
    message = Column(Text, nullable=True)
    reason = Column(Text, nullable=True)
    occurred_at = Column(DateTime, nullable=False, default=utcnow)

    booking = relationship("Booking", back_populates="history")
