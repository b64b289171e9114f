import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..crud import crud_booking
from ..database import atomic
from ..models.booking_status import ActorRole, BookingStatus
from ..services.booking_lifecycle import BookingLifecycleManager, parse_status
from ..services.ledger import QuoteAndPaymentLedger
from ..utils.errors import InvalidTransition
from .dependencies import Actor, get_current_actor, get_db, get_participant_booking, require_role

router = APIRouter(tags=["bookings"])
logger = logging.getLogger(__name__)

# Reached only through the quote endpoints, which keep the ledger in step
_LEDGER_MANAGED = {
    BookingStatus.QUOTE_SENT,
    BookingStatus.QUOTE_ACCEPTED,
    BookingStatus.QUOTE_REJECTED,
}


@router.post("/bookings", response_model=schemas.BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    booking_in: schemas.BookingCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Submit a booking inquiry as a client."""
    require_role(actor, ActorRole.CLIENT, action="create bookings")
    return crud_booking.create_booking(db, booking_in, client_id=actor.id)


@router.get("/bookings/{booking_id}", response_model=schemas.BookingWithQuote)
def read_booking(booking: models.Booking = Depends(get_participant_booking)):
    return booking


@router.patch("/bookings/{booking_id}/status", response_model=schemas.BookingResponse)
def update_booking_status(
    booking_id: int,
    update: schemas.StatusUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    manager = BookingLifecycleManager(db)
    with atomic(db):
        booking = crud_booking.get_booking_for_update(db, booking_id)
        manager.ensure_participant(booking, actor.role, actor.id)
        current = manager.current_state(booking)
        target = parse_status(update.status, current)
        if target in _LEDGER_MANAGED and target != current:
            raise InvalidTransition(current, target, "use_quote_endpoints")
        manager.transition(
            booking,
            target,
            actor.role,
            actor_id=actor.id,
            message=update.message,
            reason=update.status_reason,
        )
    manager.publish_pending()
    db.refresh(booking)
    return booking


@router.post("/bookings/{booking_id}/mark-completed", response_model=schemas.BookingResponse)
def mark_completed(
    booking_id: int,
    body: schemas.MarkCompleted,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Record the vendor's or the client's confirmation of delivery."""
    if actor.role in (ActorRole.ADMIN, ActorRole.SYSTEM):
        # Staff confirm on behalf of a party named in the body
        actor_id = body.actor_id
    else:
        require_role(actor, body.completed_by, action=f"confirm completion as {body.completed_by.value}")
        actor_id = actor.id
    ledger = QuoteAndPaymentLedger(db)
    with atomic(db):
        booking = crud_booking.get_booking_for_update(db, booking_id)
        ledger.mark_completed(booking, body.completed_by, actor_id, notes=body.notes)
    ledger.publish_pending()
    db.refresh(booking)
    return booking


@router.get("/bookings/{booking_id}/timeline", response_model=schemas.TimelineResponse)
def read_timeline(
    booking: models.Booking = Depends(get_participant_booking),
    db: Session = Depends(get_db),
):
    entries = crud_booking.get_timeline(db, booking.id)
    return {"booking_id": booking.id, "entries": entries}


@router.post(
    "/bookings/{booking_id}/timeline/notes",
    response_model=schemas.TimelineEntry,
    status_code=status.HTTP_201_CREATED,
)
def add_timeline_note(
    booking_id: int,
    note: schemas.NoteCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    manager = BookingLifecycleManager(db)
    with atomic(db):
        booking = crud_booking.get_booking_for_update(db, booking_id)
        manager.ensure_participant(booking, actor.role, actor.id)
        entry = manager.annotate(booking, actor.role, note.message, actor_id=actor.id)
    db.refresh(entry)
    return entry


@router.get("/clients/me/bookings", response_model=List[schemas.BookingResponse])
def list_my_bookings(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    require_role(actor, ActorRole.CLIENT, action="list client bookings")
    return crud_booking.get_bookings_by_client(db, actor.id)
