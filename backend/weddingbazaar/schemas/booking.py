from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from ..models.booking_status import ActorRole, BookingStatus


class BookingCreate(BaseModel):
    # Either format: canonical id, legacy code, or profile id
    vendor_ref: str = Field(alias="vendorId")
    service_id: int = Field(alias="serviceId")
    event_date: Optional[datetime] = Field(default=None, alias="eventDate")
    location: Optional[str] = None
    guest_count: Optional[int] = Field(default=None, ge=0, alias="guestCount")

    model_config = {"populate_by_name": True}


class StatusUpdate(BaseModel):
    # Kept as a plain string so unknown values surface as "Invalid status: <value>"
    status: str
    message: Optional[str] = None
    status_reason: Optional[str] = None


class MarkCompleted(BaseModel):
    completed_by: ActorRole
    actor_id: Optional[str] = None
    notes: Optional[str] = None


class NoteCreate(BaseModel):
    message: str = Field(min_length=1)


class TimelineEntry(BaseModel):
    id: int
    kind: str
    from_status: Optional[BookingStatus] = None
    to_status: BookingStatus
    actor_role: ActorRole
    actor_id: Optional[str] = None
    message: Optional[str] = None
    reason: Optional[str] = None
    occurred_at: datetime

    model_config = {"from_attributes": True}


class BookingResponse(BaseModel):
    """Booking with derived lifecycle metadata.

    Money fields are integer minor units (centavos).
    """

    id: int
    reference: str
    client_id: str
    vendor_id: str
    service_id: int
    event_date: Optional[datetime] = None
    location: Optional[str] = None
    guest_count: Optional[int] = None
    status: BookingStatus
    status_reason: Optional[str] = None
    progress_percentage: int
    next_action: str
    next_action_by: ActorRole
    currency: str
    total_amount: Optional[int] = None
    total_paid: int
    remaining_balance: Optional[int] = None
    downpayment_amount: Optional[int] = None
    payment_progress: int
    vendor_completed: bool
    client_completed: bool
    status_changed_at: Optional[datetime] = None
    quote_sent_at: Optional[datetime] = None
    quote_accepted_at: Optional[datetime] = None
    downpayment_confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookingWithQuote(BookingResponse):
    active_quote: Optional["QuoteResponse"] = None


class TimelineResponse(BaseModel):
    booking_id: int
    entries: List[TimelineEntry]


from .quote import QuoteResponse  # noqa: E402

BookingWithQuote.model_rebuild()
