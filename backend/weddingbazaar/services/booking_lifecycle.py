"""Booking state machine.

Every status change goes through :meth:`BookingLifecycleManager.transition`,
which checks the edge table below, checks the acting party, stamps the
per-state timestamps and appends a history row. Nothing here commits; the
caller owns the transaction (see ``database.atomic``) and publishes the
queued outbox events once it has committed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional, Union

from sqlalchemy.orm import Session

from .. import models
from ..core.config import settings
from ..database import atomic
from ..models.base import utcnow
from ..models.booking_status import ActorRole, BookingStatus, TERMINAL_STATUSES
from ..utils.errors import InvalidTransition, UnauthorizedActor
from ..utils.outbox import enqueue_outbox
from .identity_resolver import IdentityResolver
from .wallet import credit_vendor_earnings

logger = logging.getLogger(__name__)

S = BookingStatus
A = ActorRole

# (from, to) -> actors allowed to take the edge
TRANSITIONS: dict[tuple[BookingStatus, BookingStatus], frozenset[ActorRole]] = {
    (S.INQUIRY, S.VENDOR_REVIEWED): frozenset({A.VENDOR}),
    (S.VENDOR_REVIEWED, S.QUOTE_SENT): frozenset({A.VENDOR}),
    (S.QUOTE_SENT, S.QUOTE_ACCEPTED): frozenset({A.CLIENT}),
    (S.QUOTE_SENT, S.QUOTE_REJECTED): frozenset({A.CLIENT}),
    (S.QUOTE_ACCEPTED, S.DOWNPAYMENT_PENDING): frozenset({A.CLIENT, A.SYSTEM}),
    (S.DOWNPAYMENT_PENDING, S.DOWNPAYMENT_CONFIRMED): frozenset({A.SYSTEM, A.ADMIN}),
    (S.DOWNPAYMENT_CONFIRMED, S.FINAL_PAYMENT_DUE): frozenset({A.SYSTEM, A.VENDOR, A.ADMIN}),
    (S.FINAL_PAYMENT_DUE, S.COMPLETED): frozenset({A.SYSTEM, A.VENDOR, A.ADMIN}),
    (S.DOWNPAYMENT_CONFIRMED, S.DISPUTED): frozenset({A.CLIENT, A.VENDOR}),
    (S.FINAL_PAYMENT_DUE, S.DISPUTED): frozenset({A.CLIENT, A.VENDOR}),
    (S.DISPUTED, S.COMPLETED): frozenset({A.ADMIN}),
    (S.DISPUTED, S.CANCELLED): frozenset({A.ADMIN}),
}

_CANCELLERS = frozenset({A.CLIENT, A.VENDOR, A.ADMIN, A.SYSTEM})
for _state in BookingStatus:
    if _state not in TERMINAL_STATUSES and _state != S.DISPUTED:
        TRANSITIONS[(_state, S.CANCELLED)] = _CANCELLERS

# Per-state timestamp columns stamped on entry
_STAMPS = {
    S.QUOTE_SENT: "quote_sent_at",
    S.QUOTE_ACCEPTED: "quote_accepted_at",
    S.DOWNPAYMENT_CONFIRMED: "downpayment_confirmed_at",
    S.COMPLETED: "completed_at",
    S.CANCELLED: "cancelled_at",
}


def parse_status(
    value: Union[str, BookingStatus], current: Optional[BookingStatus] = None
) -> BookingStatus:
    """Coerce user input to a status, or fail as an unreachable target."""
    if isinstance(value, BookingStatus):
        return value
    normalised = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
    try:
        return BookingStatus(normalised)
    except ValueError:
        raise InvalidTransition(current, value) from None


def parse_actor(value: Union[str, ActorRole]) -> ActorRole:
    if isinstance(value, ActorRole):
        return value
    try:
        return ActorRole(str(value).strip().lower())
    except ValueError:
        raise UnauthorizedActor(value, "act on bookings") from None


class BookingLifecycleManager:
    def __init__(self, db: Session, resolver: Optional[IdentityResolver] = None) -> None:
        self.db = db
        self.resolver = resolver or IdentityResolver(db)
        # (topic, payload) pairs waiting for the surrounding commit
        self.pending_events: list[tuple[str, dict]] = []

    @staticmethod
    def current_state(booking: models.Booking) -> BookingStatus:
        return BookingStatus(booking.status)

    def allowed_actors(self, current: BookingStatus, target: BookingStatus) -> Optional[frozenset]:
        return TRANSITIONS.get((current, target))

    def ensure_participant(
        self, booking: models.Booking, actor: Union[str, ActorRole], actor_id: Optional[str]
    ) -> None:
        """Check that a client or vendor actor is a party to this booking."""
        actor = parse_actor(actor)
        if actor == A.CLIENT:
            if actor_id is None or str(actor_id) != booking.client_id:
                raise UnauthorizedActor(actor, f"act on booking {booking.id}")
        elif actor == A.VENDOR:
            vendor = self.resolver.find(actor_id)
            if vendor is None or vendor.id != booking.vendor_id:
                raise UnauthorizedActor(actor, f"act on booking {booking.id}")

    def transition(
        self,
        booking: models.Booking,
        target: Union[str, BookingStatus],
        actor: Union[str, ActorRole],
        actor_id: Optional[str] = None,
        message: Optional[str] = None,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """Move ``booking`` to ``target``.

        Returns False when ``target`` is already the current status (a retried
        request); nothing is written in that case. Raises InvalidTransition
        when no edge leads from the current status to ``target`` and
        UnauthorizedActor when ``actor`` may not take that edge.
        """
        current = self.current_state(booking)
        target = parse_status(target, current)
        actor = parse_actor(actor)
        if target == current:
            return False

        actors = self.allowed_actors(current, target)
        if actors is None:
            raise InvalidTransition(current, target)
        if actor not in actors:
            raise UnauthorizedActor(actor, f"move a booking from {current.value} to {target.value}")
        if (
            target == S.COMPLETED
            and booking.total_amount is not None
            and (booking.remaining_balance or 0) > 0
        ):
            raise InvalidTransition(current, target, "outstanding_balance")

        now = now or utcnow()
        booking.status = target
        booking.status_reason = reason
        booking.status_changed_at = now
        booking.last_activity_at = now
        stamp = _STAMPS.get(target)
        if stamp:
            setattr(booking, stamp, now)

        entry = models.BookingStatusHistory(
            booking=booking,
            kind="transition",
            from_status=current,
            to_status=target,
            actor_role=actor,
            actor_id=actor_id,
            message=message,
            reason=reason,
            occurred_at=now,
        )
        self.db.add(entry)
        self.db.flush()
        if target == S.COMPLETED:
            credit = credit_vendor_earnings(self.db, booking, now)
            if credit is not None:
                self.queue_event(
                    "wallet.credited",
                    {
                        "booking_id": booking.id,
                        "vendor_id": booking.vendor_id,
                        "transaction_id": credit.transaction_id,
                        "amount": credit.amount,
                    },
                )
        self.pending_events.append(
            (
                "booking.status_changed",
                {
                    "booking_id": booking.id,
                    "reference": booking.reference,
                    "from": current.value,
                    "to": target.value,
                    "actor": actor.value,
                    "at": now,
                },
            )
        )
        return True

    def walk(
        self,
        booking: models.Booking,
        path: Iterable[BookingStatus],
        actor: Union[str, ActorRole],
        actor_id: Optional[str] = None,
        message: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """Apply successive transitions; returns how many actually moved."""
        moved = 0
        for target in path:
            if self.transition(booking, target, actor, actor_id=actor_id, message=message, now=now):
                moved += 1
        return moved

    def annotate(
        self,
        booking: models.Booking,
        actor: Union[str, ActorRole],
        message: str,
        actor_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> models.BookingStatusHistory:
        """Append an audit note without changing status. Allowed in every state."""
        current = self.current_state(booking)
        now = now or utcnow()
        entry = models.BookingStatusHistory(
            booking=booking,
            kind="note",
            from_status=current,
            to_status=current,
            actor_role=parse_actor(actor),
            actor_id=actor_id,
            message=message,
            occurred_at=now,
        )
        self.db.add(entry)
        booking.last_activity_at = now
        self.db.flush()
        return entry

    def queue_event(self, topic: str, payload: dict) -> None:
        self.pending_events.append((topic, payload))

    def publish_pending(self) -> int:
        """Write queued events to the outbox. Call only after commit."""
        events, self.pending_events = self.pending_events, []
        written = 0
        for topic, payload in events:
            if enqueue_outbox(self.db, topic, payload):
                written += 1
        return written


def advance_by_schedule(
    db: Session,
    now: Optional[datetime] = None,
    due_days: Optional[int] = None,
) -> list[int]:
    """Time-driven transitions, run periodically by a scheduler.

    - ``downpayment_confirmed`` moves to ``final_payment_due`` once the event
      is within ``FINAL_PAYMENT_DUE_DAYS`` or the balance is already settled.
    - ``final_payment_due`` that is fully paid moves to ``completed`` once
      the event date has passed.

    Each booking is locked and committed on its own. Returns the ids of
    bookings that changed.
    """
    from ..crud import crud_booking

    now = now or utcnow()
    due_days = settings.FINAL_PAYMENT_DUE_DAYS if due_days is None else due_days
    horizon = now + timedelta(days=due_days)

    candidates = (
        db.query(models.Booking.id)
        .filter(
            models.Booking.status.in_([S.DOWNPAYMENT_CONFIRMED, S.FINAL_PAYMENT_DUE]),
            models.Booking.event_date.isnot(None),
        )
        .order_by(models.Booking.id)
        .all()
    )
    changed: list[int] = []
    for (booking_id,) in candidates:
        manager = BookingLifecycleManager(db)
        with atomic(db):
            booking = crud_booking.get_booking_for_update(db, booking_id)
            moved = False
            settled = booking.total_amount is not None and (booking.remaining_balance or 0) == 0
            if booking.status == S.DOWNPAYMENT_CONFIRMED and (booking.event_date <= horizon or settled):
                moved |= manager.transition(
                    booking, S.FINAL_PAYMENT_DUE, A.SYSTEM, message="Final payment due", now=now
                )
            if booking.status == S.FINAL_PAYMENT_DUE and settled and booking.event_date < now:
                moved |= manager.transition(
                    booking, S.COMPLETED, A.SYSTEM, message="Event date passed with full payment", now=now
                )
        if moved:
            changed.append(booking_id)
            manager.publish_pending()
    if changed:
        logger.info("schedule_sweep advanced=%s", len(changed))
    return changed
