import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import atomic
from ..models.base import utcnow
from ..models.booking_status import ActorRole, BookingStatus
from ..services.identity_resolver import IdentityResolver
from ..utils.errors import BookingNotFound, LedgerError, ServiceNotFound
from ..utils.references import allocate_booking_reference

logger = logging.getLogger(__name__)


def get_booking(db: Session, booking_id: int) -> Optional[models.Booking]:
    return db.query(models.Booking).filter(models.Booking.id == booking_id).first()


def get_booking_or_404(db: Session, booking_id: int) -> models.Booking:
    booking = get_booking(db, booking_id)
    if booking is None:
        raise BookingNotFound(booking_id)
    return booking


def get_booking_for_update(db: Session, booking_id: int) -> models.Booking:
    """Load a booking with a row lock held until the transaction ends.

    All ledger-mutating operations on one booking go through here so their
    read-validate-write sequences never interleave.
    """
    booking = (
        db.query(models.Booking)
        .filter(models.Booking.id == booking_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if booking is None:
        raise BookingNotFound(booking_id)
    return booking


def get_bookings_by_client(
    db: Session, client_id: str, skip: int = 0, limit: int = 100
) -> List[models.Booking]:
    return (
        db.query(models.Booking)
        .filter(models.Booking.client_id == client_id)
        .order_by(models.Booking.created_at.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def create_booking(
    db: Session, booking_in: schemas.BookingCreate, client_id: str
) -> models.Booking:
    """Open a new booking in ``inquiry`` with its first history entry."""
    vendor_id = IdentityResolver(db).canonicalize(booking_in.vendor_ref)
    service = db.get(models.Service, booking_in.service_id)
    if service is None or service.deleted_at is not None:
        raise ServiceNotFound(booking_in.service_id)
    if service.vendor_id != vendor_id:
        raise LedgerError(
            f"Service {service.id} does not belong to vendor {booking_in.vendor_ref}",
            {"service_id": "vendor_mismatch"},
        )

    now = utcnow()
    with atomic(db):
        booking = models.Booking(
            reference=allocate_booking_reference(db, now),
            client_id=str(client_id),
            vendor_id=vendor_id,
            service_id=service.id,
            event_date=booking_in.event_date,
            location=booking_in.location,
            guest_count=booking_in.guest_count,
            status=BookingStatus.INQUIRY,
            status_changed_at=now,
            last_activity_at=now,
            currency=service.currency,
            total_paid=0,
            payment_progress=0,
        )
        db.add(booking)
        db.flush()
        db.add(
            models.BookingStatusHistory(
                booking=booking,
                kind="transition",
                from_status=None,
                to_status=BookingStatus.INQUIRY,
                actor_role=ActorRole.CLIENT,
                actor_id=str(client_id),
                message="Booking inquiry submitted",
                occurred_at=now,
            )
        )
    db.refresh(booking)
    logger.info("booking_created id=%s reference=%s vendor=%s", booking.id, booking.reference, vendor_id)
    return booking


def get_timeline(db: Session, booking_id: int) -> List[models.BookingStatusHistory]:
    return (
        db.query(models.BookingStatusHistory)
        .filter(models.BookingStatusHistory.booking_id == booking_id)
        .order_by(models.BookingStatusHistory.id)
        .all()
    )
