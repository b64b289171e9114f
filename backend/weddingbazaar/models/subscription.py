import enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from .base import BaseModel
from .types import CaseInsensitiveEnum


class PlanTier(str, enum.Enum):
    """Subscription tiers, lowest first."""

    FREE = "free"
    BASIC = "basic"
    PREMIUM = "premium"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class Subscription(BaseModel):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    vendor_id = Column(
        String(32), ForeignKey("vendors.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tier = Column(CaseInsensitiveEnum(PlanTier, name="plantier"), nullable=False)
    status = Column(
        CaseInsensitiveEnum(SubscriptionStatus, name="subscriptionstatus"),
        nullable=False,
        default=SubscriptionStatus.ACTIVE,
        index=True,
    )
    starts_at = Column(DateTime, nullable=False)
    # NULL means open-ended
    expires_at = Column(DateTime, nullable=True)

    vendor = relationship("Vendor", back_populates="subscriptions")
