import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from .. import models
from ..database import atomic
from ..models.base import utcnow
from ..models.subscription import PlanTier, SubscriptionStatus
from ..services.identity_resolver import IdentityResolver, VendorRef
from ..services.subscription_limits import active_subscription

logger = logging.getLogger(__name__)


def get_active(
    db: Session, vendor_ref: VendorRef, now: Optional[datetime] = None
) -> Optional[models.Subscription]:
    vendor_id = IdentityResolver(db).canonicalize(vendor_ref)
    return active_subscription(db, vendor_id, now=now)


def activate(
    db: Session,
    vendor_ref: VendorRef,
    tier: PlanTier,
    expires_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> models.Subscription:
    """Put the vendor on ``tier``, expiring whatever was active before.

    At most one subscription per vendor is ``active`` afterwards.
    """
    now = now or utcnow()
    with atomic(db):
        vendor_id = IdentityResolver(db).canonicalize(vendor_ref)
        previous = (
            db.query(models.Subscription)
            .filter(
                models.Subscription.vendor_id == vendor_id,
                models.Subscription.status == SubscriptionStatus.ACTIVE,
            )
            .with_for_update()
            .all()
        )
        for sub in previous:
            sub.status = SubscriptionStatus.EXPIRED
            if sub.expires_at is None or sub.expires_at > now:
                sub.expires_at = now
        subscription = models.Subscription(
            vendor_id=vendor_id,
            tier=PlanTier(tier),
            status=SubscriptionStatus.ACTIVE,
            starts_at=now,
            expires_at=expires_at,
        )
        db.add(subscription)
    db.refresh(subscription)
    logger.info("subscription_activated vendor=%s tier=%s", vendor_id, subscription.tier.value)
    return subscription


def expire_lapsed_subscriptions(db: Session, now: Optional[datetime] = None) -> int:
    """Mark active subscriptions whose window has closed as expired."""
    now = now or utcnow()
    with atomic(db):
        lapsed = (
            db.query(models.Subscription)
            .filter(
                models.Subscription.status == SubscriptionStatus.ACTIVE,
                models.Subscription.expires_at.isnot(None),
                models.Subscription.expires_at <= now,
            )
            .all()
        )
        for sub in lapsed:
            sub.status = SubscriptionStatus.EXPIRED
    if lapsed:
        logger.info("subscriptions_expired count=%s", len(lapsed))
    return len(lapsed)
