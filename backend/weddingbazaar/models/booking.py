from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from .booking_status import LEGACY_STATUS_ALIASES, STATE_META, ActorRole, BookingStatus
from .types import CaseInsensitiveEnum


class Booking(BaseModel):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    # User-facing WB-<year>-<seq>, assigned once at creation
    reference = Column(String(32), unique=True, nullable=False, index=True)
    client_id = Column(String(64), nullable=False, index=True)
    vendor_id = Column(String(32), ForeignKey("vendors.id"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)

    event_date = Column(DateTime, nullable=True, index=True)
    location = Column(String, nullable=True)
    guest_count = Column(Integer, nullable=True)

    status = Column(
        CaseInsensitiveEnum(BookingStatus, name="bookingstatus", aliases=LEGACY_STATUS_ALIASES),
        nullable=False,
        default=BookingStatus.INQUIRY,
        index=True,
    )
    status_reason = Column(Text, nullable=True)
    status_changed_at = Column(DateTime, nullable=True)
    last_activity_at = Column(DateTime, nullable=True)
    quote_sent_at = Column(DateTime, nullable=True)
    quote_accepted_at = Column(DateTime, nullable=True)
    downpayment_confirmed_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    # Money in minor units (centavos)
    currency = Column(String(3), nullable=False, default="PHP")
    total_amount = Column(BigInteger, nullable=True)
    total_paid = Column(BigInteger, nullable=False, default=0)
    remaining_balance = Column(BigInteger, nullable=True)
    downpayment_amount = Column(BigInteger, nullable=True)
    payment_progress = Column(Integer, nullable=False, default=0)

    # Two-sided completion
    vendor_completed = Column(Boolean, nullable=False, default=False)
    vendor_completed_at = Column(DateTime, nullable=True)
    client_completed = Column(Boolean, nullable=False, default=False)
    client_completed_at = Column(DateTime, nullable=True)
    completion_notes = Column(Text, nullable=True)

    version_id = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    vendor = relationship("Vendor")
    service = relationship("Service", back_populates="bookings")
    history = relationship(
        "BookingStatusHistory",
        back_populates="booking",
        order_by="BookingStatusHistory.id",
    )
    quotes = relationship("Quote", back_populates="booking", order_by="Quote.version")
    payments = relationship("Payment", back_populates="booking", order_by="Payment.id")
    receipts = relationship("Receipt", back_populates="booking", order_by="Receipt.id")

    @property
    def progress_percentage(self) -> int:
        return STATE_META[BookingStatus(self.status)].progress

    @property
    def next_action(self) -> str:
        return STATE_META[BookingStatus(self.status)].next_action

    @property
    def next_action_by(self) -> ActorRole:
        return STATE_META[BookingStatus(self.status)].next_action_by

    @property
    def active_quote(self):
        for quote in reversed(self.quotes or []):
            if quote.is_active:
                return quote
        return None
