import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..crud import crud_booking
from ..database import atomic
from ..models.booking_status import ActorRole
from ..services.ledger import QuoteAndPaymentLedger
from ..utils.errors import error_response
from ..utils.money import to_minor
from .dependencies import Actor, get_current_actor, get_db, get_participant_booking, require_role

router = APIRouter(tags=["quotes"])
logger = logging.getLogger(__name__)


@router.post("/bookings/{booking_id}/quote", response_model=schemas.BookingWithQuote)
def send_quote(
    booking_id: int,
    quote_in: schemas.QuoteCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Send or revise the itemized quote for a booking."""
    require_role(actor, ActorRole.VENDOR, action="send a quote")
    line_items = [
        {
            "name": item.name,
            "unit_price": to_minor(item.unit_price),
            "quantity": item.quantity,
            "description": item.description,
        }
        for item in quote_in.line_items
    ]
    ledger = QuoteAndPaymentLedger(db)
    with atomic(db):
        booking = crud_booking.get_booking_for_update(db, booking_id)
        ledger.lifecycle.ensure_participant(booking, actor.role, actor.id)
        ledger.send_quote(
            booking,
            line_items,
            actor=actor.role,
            vendor_ref=quote_in.vendor_ref,
            notes=quote_in.notes,
        )
    ledger.publish_pending()
    db.refresh(booking)
    return booking


@router.post("/bookings/{booking_id}/accept-quote", response_model=schemas.BookingWithQuote)
def accept_quote(
    booking_id: int,
    body: schemas.AcceptQuote,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    require_role(actor, ActorRole.CLIENT, action="accept a quote")
    ledger = QuoteAndPaymentLedger(db)
    with atomic(db):
        booking = crud_booking.get_booking_for_update(db, booking_id)
        ledger.lifecycle.ensure_participant(booking, actor.role, actor.id)
        ledger.accept_quote(booking, body.client_id, message=body.message)
    ledger.publish_pending()
    db.refresh(booking)
    return booking


@router.post("/bookings/{booking_id}/reject-quote", response_model=schemas.BookingResponse)
def reject_quote(
    booking_id: int,
    body: schemas.RejectQuote,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    require_role(actor, ActorRole.CLIENT, action="reject a quote")
    ledger = QuoteAndPaymentLedger(db)
    with atomic(db):
        booking = crud_booking.get_booking_for_update(db, booking_id)
        ledger.lifecycle.ensure_participant(booking, actor.role, actor.id)
        ledger.reject_quote(booking, body.client_id, reason=body.reason)
    ledger.publish_pending()
    db.refresh(booking)
    return booking


@router.get("/bookings/{booking_id}/quote", response_model=schemas.QuoteResponse)
def read_quote(
    booking: models.Booking = Depends(get_participant_booking),
    db: Session = Depends(get_db),
):
    """Return the active quote, or the most recent one once answered."""
    ledger = QuoteAndPaymentLedger(db)
    quote = ledger.active_quote(booking) or ledger.latest_quote(booking)
    if quote is None:
        raise error_response(
            f"Booking {booking.id} has no quote",
            {"quote": "not_found"},
            status.HTTP_404_NOT_FOUND,
        )
    return quote


@router.get("/bookings/{booking_id}/quotes", response_model=List[schemas.QuoteResponse])
def list_quotes(booking: models.Booking = Depends(get_participant_booking)):
    return list(booking.quotes)
