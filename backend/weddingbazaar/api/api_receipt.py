from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..services.booking_lifecycle import BookingLifecycleManager
from ..utils.errors import error_response
from .dependencies import Actor, get_current_actor, get_db, get_participant_booking

router = APIRouter(tags=["payments"])


@router.get("/bookings/{booking_id}/payments", response_model=List[schemas.PaymentResponse])
def list_payments(booking: models.Booking = Depends(get_participant_booking)):
    return list(booking.payments)


@router.get("/bookings/{booking_id}/receipts", response_model=List[schemas.ReceiptResponse])
def list_receipts(booking: models.Booking = Depends(get_participant_booking)):
    return list(booking.receipts)


@router.get("/receipts/{receipt_number}", response_model=schemas.ReceiptResponse)
def read_receipt(
    receipt_number: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    receipt = (
        db.query(models.Receipt)
        .filter(models.Receipt.receipt_number == receipt_number)
        .first()
    )
    if receipt is None:
        raise error_response(
            "Receipt not found",
            {"receipt_number": "not_found"},
            status.HTTP_404_NOT_FOUND,
        )
    BookingLifecycleManager(db).ensure_participant(receipt.booking, actor.role, actor.id)
    return receipt
