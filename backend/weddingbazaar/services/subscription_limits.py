from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models
from ..core.config import PlanLimitTable, settings
from ..models.base import utcnow
from ..models.subscription import PlanTier, SubscriptionStatus
from ..utils.errors import QuotaExceeded
from .identity_resolver import IdentityResolver, VendorRef

logger = logging.getLogger(__name__)


@dataclass
class ServiceQuota:
    allowed: bool
    tier: PlanTier
    max_services: Optional[int]
    current: int
    # None when the tier is unlimited
    remaining: Optional[int]
    plan_version: str


def active_subscription(
    db: Session, vendor_id: str, now: Optional[datetime] = None
) -> Optional[models.Subscription]:
    """Return the vendor's live subscription, ignoring ones past ``expires_at``."""
    now = now or utcnow()
    return (
        db.query(models.Subscription)
        .filter(
            models.Subscription.vendor_id == vendor_id,
            models.Subscription.status == SubscriptionStatus.ACTIVE,
            (models.Subscription.expires_at.is_(None)) | (models.Subscription.expires_at > now),
        )
        .order_by(models.Subscription.starts_at.desc(), models.Subscription.id.desc())
        .first()
    )


class SubscriptionLimitEnforcer:
    """Gate service-listing creation by the vendor's plan quota.

    The plan-limit table is injected so environments and tests can run with
    their own limits; it defaults to the configured table.
    """

    def __init__(
        self,
        db: Session,
        limits: Optional[PlanLimitTable] = None,
        resolver: Optional[IdentityResolver] = None,
    ) -> None:
        self.db = db
        self.limits = limits or settings.plan_limits
        self.resolver = resolver or IdentityResolver(db)

    def current_tier(self, vendor_id: str) -> PlanTier:
        sub = active_subscription(self.db, vendor_id)
        if sub is None:
            return PlanTier.FREE
        return PlanTier(sub.tier)

    def count_services(self, vendor_id: str) -> int:
        return (
            self.db.query(func.count(models.Service.id))
            .filter(
                models.Service.vendor_id == vendor_id,
                models.Service.deleted_at.is_(None),
            )
            .scalar()
            or 0
        )

    def can_create_service(self, vendor_ref: VendorRef) -> ServiceQuota:
        vendor_id = self.resolver.canonicalize(vendor_ref)
        tier = self.current_tier(vendor_id)
        max_services = self.limits.limit_for(tier.value)
        current = self.count_services(vendor_id)
        if max_services is None:
            return ServiceQuota(True, tier, None, current, None, self.limits.version)
        # Over-quota vendors keep their listings; they just cannot add more
        remaining = max(max_services - current, 0)
        return ServiceQuota(
            current < max_services, tier, max_services, current, remaining, self.limits.version
        )

    def assert_can_create_service(self, vendor_ref: VendorRef) -> ServiceQuota:
        quota = self.can_create_service(vendor_ref)
        if not quota.allowed:
            logger.info(
                "Service quota reached tier=%s max=%s current=%s",
                quota.tier.value,
                quota.max_services,
                quota.current,
            )
            raise QuotaExceeded(quota.tier, quota.max_services, quota.current)
        return quota
