from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .base import BaseModel


class Service(BaseModel):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    # Listings without a vendor are rejected at creation time
    vendor_id = Column(
        String(32),
        ForeignKey("vendors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = Column(String, index=True, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=True, index=True)
    # Starting price in minor units
    base_price = Column(BigInteger, nullable=True)
    currency = Column(String(3), nullable=False, default="PHP")
    # Soft delete: deleted listings keep their bookings but stop counting
    # toward the vendor's plan quota.
    deleted_at = Column(DateTime, nullable=True, index=True)

    vendor = relationship("Vendor", back_populates="services")
    bookings = relationship("Booking", back_populates="service")
