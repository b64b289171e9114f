import enum

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from .base import BaseModel, utcnow
from .types import CaseInsensitiveEnum


class PaymentType(str, enum.Enum):
    DEPOSIT = "deposit"
    BALANCE = "balance"
    FULL = "full"
    REFUND = "refund"


class Payment(BaseModel):
    """One committed monetary transaction against a booking. Never mutated."""

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    # Positive minor units; refunds are subtracted by type, not by sign
    amount = Column(BigInteger, nullable=False)
    currency = Column(String(3), nullable=False, default="PHP")
    payment_method = Column(String(32), nullable=False)
    payment_type = Column(CaseInsensitiveEnum(PaymentType, name="paymenttype"), nullable=False)
    # Gateway transaction id; the idempotency key for webhook retries
    external_ref = Column(String(200), unique=True, nullable=False, index=True)
    refund_of_id = Column(Integer, ForeignKey("payments.id"), nullable=True, index=True)
    paid_at = Column(DateTime, nullable=False, default=utcnow)

    booking = relationship("Booking", back_populates="payments")
    refund_of = relationship("Payment", remote_side=[id])
    receipt = relationship("Receipt", back_populates="payment", uselist=False)
