import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..crud import crud_service, crud_subscription
from ..core.config import settings
from ..database import atomic
from ..models.booking_status import ActorRole
from ..services.identity_resolver import IdentityResolver
from ..services.subscription_limits import SubscriptionLimitEnforcer
from ..services.wallet import get_wallet
from ..utils.errors import UnauthorizedActor
from .dependencies import Actor, get_current_actor, get_db, require_role

router = APIRouter(tags=["vendors"])
logger = logging.getLogger(__name__)


def _ensure_vendor_or_staff(resolver: IdentityResolver, actor: Actor, vendor_id: str, action: str) -> None:
    if actor.role in (ActorRole.ADMIN, ActorRole.SYSTEM):
        return
    if actor.role == ActorRole.VENDOR:
        own = resolver.find(actor.id)
        if own is not None and own.id == vendor_id:
            return
    raise UnauthorizedActor(actor.role, action)


def _vendor_response(resolver: IdentityResolver, vendor: models.Vendor) -> dict:
    return {
        "id": vendor.id,
        "business_name": vendor.business_name,
        "legacy_code": vendor.legacy_code,
        "profile_id": vendor.profile_id,
        "display_reference": resolver.display_reference(vendor.id),
    }


@router.get("/vendors/{vendor_ref}", response_model=schemas.VendorResponse)
def read_vendor(vendor_ref: str, db: Session = Depends(get_db)):
    resolver = IdentityResolver(db)
    return _vendor_response(resolver, resolver.resolve(vendor_ref))


@router.post("/vendors/{vendor_ref}/link", response_model=schemas.VendorResponse)
def link_vendor_identity(
    vendor_ref: str,
    body: schemas.VendorLink,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    require_role(actor, ActorRole.ADMIN, ActorRole.SYSTEM, action="link vendor identities")
    resolver = IdentityResolver(db)
    with atomic(db):
        vendor = resolver.link(vendor_ref, legacy_code=body.legacy_code, profile_id=body.profile_id)
    db.refresh(vendor)
    return _vendor_response(resolver, vendor)


@router.get("/vendors/{vendor_ref}/services", response_model=List[schemas.ServiceResponse])
def list_services(vendor_ref: str, db: Session = Depends(get_db)):
    vendor_id = IdentityResolver(db).canonicalize(vendor_ref)
    return crud_service.list_vendor_services(db, vendor_id)


@router.post(
    "/vendors/{vendor_ref}/services",
    response_model=schemas.ServiceResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_service(
    vendor_ref: str,
    service_in: schemas.ServiceCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    resolver = IdentityResolver(db)
    vendor_id = resolver.canonicalize(vendor_ref)
    _ensure_vendor_or_staff(resolver, actor, vendor_id, "create services for this vendor")
    return crud_service.create_service(db, vendor_id, service_in)


@router.delete("/services/{service_id}", response_model=schemas.ServiceResponse)
def delete_service(
    service_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    service = crud_service.get_service(db, service_id)
    if service is not None:
        _ensure_vendor_or_staff(IdentityResolver(db), actor, service.vendor_id, "delete this service")
    return crud_service.soft_delete_service(db, service_id)


@router.get("/vendors/{vendor_ref}/service-quota", response_model=schemas.ServiceQuotaResponse)
def read_service_quota(vendor_ref: str, db: Session = Depends(get_db)):
    return SubscriptionLimitEnforcer(db).can_create_service(vendor_ref)


@router.post(
    "/vendors/{vendor_ref}/subscription",
    response_model=schemas.SubscriptionResponse,
    status_code=status.HTTP_201_CREATED,
)
def activate_subscription(
    vendor_ref: str,
    body: schemas.SubscriptionCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    require_role(actor, ActorRole.ADMIN, ActorRole.SYSTEM, action="change vendor subscriptions")
    return crud_subscription.activate(db, vendor_ref, body.tier, expires_at=body.expires_at)


@router.get("/vendors/{vendor_ref}/wallet", response_model=schemas.WalletResponse)
def read_wallet(
    vendor_ref: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Payout balance and earnings history credited from completed bookings."""
    resolver = IdentityResolver(db)
    vendor_id = resolver.canonicalize(vendor_ref)
    _ensure_vendor_or_staff(resolver, actor, vendor_id, "view this wallet")
    wallet = get_wallet(db, vendor_id)
    if wallet is None:
        return {
            "vendor_id": vendor_id,
            "currency": settings.DEFAULT_CURRENCY,
            "total_earnings": 0,
            "available_balance": 0,
            "pending_balance": 0,
            "withdrawn_amount": 0,
            "transactions": [],
        }
    return wallet
