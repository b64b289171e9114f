from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from .base import BaseModel
from .payment import PaymentType
from .types import CaseInsensitiveEnum


class Receipt(BaseModel):
    """Client-facing snapshot of one payment, frozen at issuance."""

    __tablename__ = "receipts"

    id = Column(Integer, primary_key=True, index=True)
    receipt_number = Column(String(40), unique=True, nullable=False, index=True)
    payment_id = Column(Integer, ForeignKey("payments.id"), unique=True, nullable=False)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    payment_type = Column(CaseInsensitiveEnum(PaymentType, name="paymenttype"), nullable=False)
    amount = Column(BigInteger, nullable=False)
    currency = Column(String(3), nullable=False)
    payment_method = Column(String(32), nullable=False)
    total_paid = Column(BigInteger, nullable=False)
    remaining_balance = Column(BigInteger, nullable=True)
    issued_at = Column(DateTime, nullable=False)

    payment = relationship("Payment", back_populates="receipt")
    booking = relationship("Booking", back_populates="receipts")
