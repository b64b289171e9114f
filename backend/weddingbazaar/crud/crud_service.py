import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from .. import models, schemas
from ..core.config import PlanLimitTable, settings
from ..database import atomic
from ..models.base import utcnow
from ..services.identity_resolver import IdentityResolver, VendorRef
from ..services.subscription_limits import SubscriptionLimitEnforcer
from ..utils.errors import ServiceNotFound
from ..utils.money import to_minor

logger = logging.getLogger(__name__)


def get_service(db: Session, service_id: int) -> Optional[models.Service]:
    return db.get(models.Service, service_id)


def list_vendor_services(db: Session, vendor_id: str, include_deleted: bool = False) -> List[models.Service]:
    query = db.query(models.Service).filter(models.Service.vendor_id == vendor_id)
    if not include_deleted:
        query = query.filter(models.Service.deleted_at.is_(None))
    return query.order_by(models.Service.id).all()


def create_service(
    db: Session,
    vendor_ref: VendorRef,
    service_in: schemas.ServiceCreate,
    limits: Optional[PlanLimitTable] = None,
) -> models.Service:
    """Create a listing for the vendor once the plan quota allows it.

    A listing must belong to a known vendor; unresolvable references are
    refused rather than stored without an owner.
    """
    resolver = IdentityResolver(db)
    with atomic(db):
        vendor_id = resolver.canonicalize(vendor_ref)
        # Serialise concurrent creates for one vendor so the count stays honest
        db.query(models.Vendor).filter(models.Vendor.id == vendor_id).with_for_update().first()
        SubscriptionLimitEnforcer(db, limits=limits, resolver=resolver).assert_can_create_service(vendor_id)
        service = models.Service(
            vendor_id=vendor_id,
            title=service_in.title,
            description=service_in.description,
            category=service_in.category,
            base_price=to_minor(service_in.base_price) if service_in.base_price is not None else None,
            currency=(service_in.currency or settings.DEFAULT_CURRENCY).upper(),
        )
        db.add(service)
    db.refresh(service)
    logger.info("service_created id=%s vendor=%s", service.id, vendor_id)
    return service


def soft_delete_service(db: Session, service_id: int) -> models.Service:
    service = get_service(db, service_id)
    if service is None:
        raise ServiceNotFound(service_id)
    if service.deleted_at is None:
        with atomic(db):
            service.deleted_at = utcnow()
        db.refresh(service)
    return service
