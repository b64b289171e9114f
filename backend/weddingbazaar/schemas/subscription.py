from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from ..models.subscription import PlanTier, SubscriptionStatus


class ServiceQuotaResponse(BaseModel):
    allowed: bool
    tier: PlanTier
    max_services: Optional[int] = None
    current: int
    remaining: Optional[int] = None
    plan_version: str


class SubscriptionCreate(BaseModel):
    tier: PlanTier
    expires_at: Optional[datetime] = None


class SubscriptionResponse(BaseModel):
    id: int
    vendor_id: str
    tier: PlanTier
    status: SubscriptionStatus
    starts_at: datetime
    expires_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
