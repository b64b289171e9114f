"""Quotes, payments and receipts for a booking.

All amounts are integer minor units (centavos). Methods here validate and
write but never commit: callers lock the booking with
``crud_booking.get_booking_for_update`` inside ``database.atomic`` so a
quote, a payment and its receipt land together or not at all. Outbox
events are queued on the lifecycle manager and published with
``publish_pending()`` after the commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional, Union

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from ..core.config import settings
from ..database import atomic
from ..models.base import utcnow
from ..models.booking_status import ActorRole, BookingStatus, TERMINAL_STATUSES
from ..models.payment import PaymentType
from ..models.quote import QuoteStatus
from ..utils.errors import (
    BookingClosed,
    EmptyQuote,
    ExternalReferenceConflict,
    InsufficientRefundableAmount,
    InvalidLineItem,
    InvalidTransition,
    LedgerError,
    NoActiveQuote,
    OverpaymentAttempt,
    UnauthorizedActor,
)
from ..utils.money import payment_progress, percentage_of, remaining_balance
from ..utils.references import allocate_receipt_number
from .booking_lifecycle import BookingLifecycleManager, parse_actor
from .identity_resolver import IdentityResolver
from .wallet import debit_vendor_refund

logger = logging.getLogger(__name__)

S = BookingStatus

# States in which a vendor may (re)send a quote
_QUOTABLE = (S.INQUIRY, S.VENDOR_REVIEWED, S.QUOTE_SENT)


@dataclass(frozen=True)
class LineItem:
    name: str
    unit_price: int
    quantity: int = 1
    description: Optional[str] = None

    @property
    def amount(self) -> int:
        return self.unit_price * self.quantity

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "description": self.description,
        }


@dataclass
class PaymentResult:
    payment: models.Payment
    receipt: models.Receipt
    # True when an earlier call with the same external reference is returned
    replayed: bool = False


def _field(raw: Any, key: str) -> Any:
    if isinstance(raw, Mapping):
        return raw.get(key)
    return getattr(raw, key, None)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def normalise_line_items(raw_items: Optional[Iterable[Any]]) -> list[LineItem]:
    """Validate raw line items (mappings or objects) into ``LineItem``s.

    Prices must already be integer minor units.
    """
    items = list(raw_items or [])
    if not items:
        raise EmptyQuote()
    result: list[LineItem] = []
    for index, raw in enumerate(items):
        name = _field(raw, "name")
        if not isinstance(name, str) or not name.strip():
            raise InvalidLineItem(index, "name_required")
        price = _field(raw, "unit_price")
        if not _is_int(price):
            raise InvalidLineItem(index, "unit_price_must_be_integer_minor_units")
        if price < 0:
            raise InvalidLineItem(index, "negative_price")
        quantity = _field(raw, "quantity")
        if quantity is None:
            quantity = 1
        if not _is_int(quantity) or quantity < 1:
            raise InvalidLineItem(index, "quantity_must_be_positive")
        description = _field(raw, "description")
        result.append(LineItem(name.strip(), price, quantity, description or None))
    return result


class QuoteAndPaymentLedger:
    def __init__(
        self,
        db: Session,
        lifecycle: Optional[BookingLifecycleManager] = None,
        downpayment_percent: Optional[int] = None,
    ) -> None:
        self.db = db
        self.lifecycle = lifecycle or BookingLifecycleManager(db)
        self.resolver: IdentityResolver = self.lifecycle.resolver
        self.downpayment_percent = (
            settings.DOWNPAYMENT_PERCENT if downpayment_percent is None else downpayment_percent
        )

    # ------------------------------------------------------------------
    # Quotes
    # ------------------------------------------------------------------

    def active_quote(self, booking: models.Booking) -> Optional[models.Quote]:
        return (
            self.db.query(models.Quote)
            .filter(
                models.Quote.booking_id == booking.id,
                models.Quote.status == QuoteStatus.ACTIVE,
            )
            .order_by(models.Quote.version.desc())
            .first()
        )

    def latest_quote(self, booking: models.Booking) -> Optional[models.Quote]:
        return (
            self.db.query(models.Quote)
            .filter(models.Quote.booking_id == booking.id)
            .order_by(models.Quote.version.desc())
            .first()
        )

    def send_quote(
        self,
        booking: models.Booking,
        line_items: Iterable[Any],
        actor: Union[str, ActorRole] = ActorRole.VENDOR,
        vendor_ref: Optional[str] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> models.Quote:
        """Attach a new active quote and move the booking to ``quote_sent``.

        A booking still in ``inquiry`` is walked through ``vendor_reviewed``
        first. Resending the exact same items while that quote is still
        active returns it unchanged.
        """
        actor = parse_actor(actor)
        if actor != ActorRole.VENDOR:
            raise UnauthorizedActor(actor, "send a quote")
        if vendor_ref is not None:
            vendor = self.resolver.find(vendor_ref)
            if vendor is None or vendor.id != booking.vendor_id:
                raise UnauthorizedActor(actor, f"quote booking {booking.id}")
        current = BookingStatus(booking.status)
        if current not in _QUOTABLE:
            raise InvalidTransition(current, S.QUOTE_SENT)

        items = normalise_line_items(line_items)
        total = sum(item.amount for item in items)
        if total < (booking.total_paid or 0):
            raise OverpaymentAttempt(total, booking.total_paid, 0)

        payload = [item.as_dict() for item in items]
        previous = self.active_quote(booking)
        if previous is not None and current == S.QUOTE_SENT and previous.line_items == payload:
            logger.info("quote_resend_noop booking=%s version=%s", booking.id, previous.version)
            return previous

        now = now or utcnow()
        if previous is not None:
            previous.status = QuoteStatus.SUPERSEDED
            previous.superseded_at = now

        last_version = (
            self.db.query(func.max(models.Quote.version))
            .filter(models.Quote.booking_id == booking.id)
            .scalar()
        )
        quote = models.Quote(
            booking=booking,
            version=(last_version or 0) + 1,
            vendor_id=booking.vendor_id,
            line_items=payload,
            total_amount=total,
            currency=booking.currency,
            status=QuoteStatus.ACTIVE,
            notes=notes,
        )
        self.db.add(quote)

        booking.total_amount = total
        self._refresh_totals(booking)
        vendor_id = str(vendor_ref) if vendor_ref is not None else booking.vendor_id
        moved = self.lifecycle.walk(
            booking,
            [S.VENDOR_REVIEWED, S.QUOTE_SENT] if current == S.INQUIRY else [S.QUOTE_SENT],
            ActorRole.VENDOR,
            actor_id=vendor_id,
            message=f"Quote v{quote.version} sent",
            now=now,
        )
        if not moved:
            # Revision of a quote the client has not answered yet
            booking.quote_sent_at = now
            self.lifecycle.annotate(
                booking, ActorRole.VENDOR, f"Quote revised to v{quote.version}", actor_id=vendor_id, now=now
            )
        self.db.flush()
        self.lifecycle.queue_event(
            "quote.sent",
            {
                "booking_id": booking.id,
                "quote_id": quote.id,
                "version": quote.version,
                "total_amount": total,
                "currency": quote.currency,
            },
        )
        logger.info(
            "quote_sent booking=%s version=%s total=%s items=%s",
            booking.id,
            quote.version,
            total,
            len(items),
        )
        return quote

    def _pending_quote(self, booking: models.Booking) -> models.Quote:
        quote = self.active_quote(booking)
        if quote is None or BookingStatus(booking.status) != S.QUOTE_SENT:
            raise NoActiveQuote(booking.id)
        return quote

    def _check_client(self, booking: models.Booking, client_id: Optional[str], action: str) -> None:
        if client_id is None or str(client_id) != booking.client_id:
            raise UnauthorizedActor(ActorRole.CLIENT, action)

    def accept_quote(
        self,
        booking: models.Booking,
        client_id: Optional[str],
        message: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> models.Quote:
        """Freeze the pending quote and move the booking to ``quote_accepted``."""
        quote = self._pending_quote(booking)
        self._check_client(booking, client_id, f"accept the quote for booking {booking.id}")
        now = now or utcnow()
        quote.status = QuoteStatus.ACCEPTED
        quote.accepted_at = now
        booking.total_amount = quote.total_amount
        booking.downpayment_amount = percentage_of(quote.total_amount, self.downpayment_percent)
        self._refresh_totals(booking)
        self.lifecycle.transition(
            booking, S.QUOTE_ACCEPTED, ActorRole.CLIENT, actor_id=str(client_id), message=message, now=now
        )
        if booking.total_paid:
            # Money collected while the quote was open counts immediately
            self._advance_with_payments(booking, now, "Payments received before acceptance")
        self.lifecycle.queue_event(
            "quote.accepted",
            {
                "booking_id": booking.id,
                "quote_id": quote.id,
                "total_amount": quote.total_amount,
                "downpayment_amount": booking.downpayment_amount,
            },
        )
        logger.info("quote_accepted booking=%s version=%s", booking.id, quote.version)
        return quote

    def reject_quote(
        self,
        booking: models.Booking,
        client_id: Optional[str],
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> models.Quote:
        quote = self._pending_quote(booking)
        self._check_client(booking, client_id, f"reject the quote for booking {booking.id}")
        now = now or utcnow()
        quote.status = QuoteStatus.REJECTED
        quote.rejected_at = now
        quote.rejection_reason = reason
        self.lifecycle.transition(
            booking, S.QUOTE_REJECTED, ActorRole.CLIENT, actor_id=str(client_id), reason=reason, now=now
        )
        self.lifecycle.queue_event(
            "quote.rejected",
            {"booking_id": booking.id, "quote_id": quote.id, "reason": reason},
        )
        logger.info("quote_rejected booking=%s version=%s", booking.id, quote.version)
        return quote

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def _payment_by_ref(self, external_ref: str) -> Optional[models.Payment]:
        return (
            self.db.query(models.Payment)
            .filter(models.Payment.external_ref == external_ref)
            .first()
        )

    def _replay(self, existing: models.Payment, booking_id: int) -> PaymentResult:
        if existing.booking_id != booking_id:
            raise ExternalReferenceConflict(existing.external_ref)
        logger.warning(
            "payment_replay booking=%s ref=%s payment=%s",
            booking_id,
            existing.external_ref,
            existing.id,
        )
        receipt = existing.receipt or self.issue_receipt(existing)
        return PaymentResult(existing, receipt, replayed=True)

    def refundable_amount(self, payment: models.Payment) -> int:
        refunded = (
            self.db.query(func.coalesce(func.sum(models.Payment.amount), 0))
            .filter(
                models.Payment.refund_of_id == payment.id,
                models.Payment.payment_type == PaymentType.REFUND,
            )
            .scalar()
        )
        return payment.amount - int(refunded or 0)

    def _sum_paid(self, booking: models.Booking) -> int:
        rows = (
            self.db.query(models.Payment.payment_type, func.coalesce(func.sum(models.Payment.amount), 0))
            .filter(models.Payment.booking_id == booking.id)
            .group_by(models.Payment.payment_type)
            .all()
        )
        paid = 0
        for payment_type, amount in rows:
            if PaymentType(payment_type) == PaymentType.REFUND:
                paid -= int(amount)
            else:
                paid += int(amount)
        return paid

    def _refresh_totals(self, booking: models.Booking) -> None:
        paid = booking.total_paid or 0
        booking.remaining_balance = remaining_balance(paid, booking.total_amount)
        booking.payment_progress = payment_progress(paid, booking.total_amount)

    def record_payment(
        self,
        booking: models.Booking,
        amount: int,
        payment_type: Union[str, PaymentType],
        method: str,
        external_ref: str,
        currency: Optional[str] = None,
        refund_of_id: Optional[int] = None,
        paid_at: Optional[datetime] = None,
    ) -> PaymentResult:
        """Record one gateway transaction and issue its receipt.

        Replaying an ``external_ref`` already recorded for this booking
        returns the original payment and receipt untouched.
        """
        if not external_ref or not str(external_ref).strip():
            raise LedgerError("A payment needs an external transaction reference", {"external_ref": "required"})
        external_ref = str(external_ref).strip()
        booking_id = booking.id

        existing = self._payment_by_ref(external_ref)
        if existing is not None:
            return self._replay(existing, booking_id)

        try:
            payment_type = PaymentType(str(getattr(payment_type, "value", payment_type)).strip().lower())
        except ValueError:
            raise LedgerError(f"Unknown payment type: {payment_type}", {"payment_type": "invalid"}) from None
        if not _is_int(amount) or amount <= 0:
            raise LedgerError("Payment amount must be a positive number of minor units", {"amount": "must_be_positive"})
        currency = (currency or booking.currency).upper()
        if currency != booking.currency:
            raise LedgerError(
                f"Payment currency {currency} does not match booking currency {booking.currency}",
                {"currency": "mismatch"},
            )

        status = BookingStatus(booking.status)
        paid = booking.total_paid or 0
        refund_of = None
        if payment_type == PaymentType.REFUND:
            refund_of = self.db.get(models.Payment, refund_of_id) if refund_of_id is not None else None
            if (
                refund_of is None
                or refund_of.booking_id != booking_id
                or refund_of.payment_type == PaymentType.REFUND
            ):
                raise InsufficientRefundableAmount(0, amount)
            refundable = self.refundable_amount(refund_of)
            if amount > refundable:
                raise InsufficientRefundableAmount(refundable, amount)
        else:
            if status in TERMINAL_STATUSES or status == S.DISPUTED:
                raise BookingClosed(booking_id, status)
            if booking.total_amount is not None and paid + amount > booking.total_amount:
                raise OverpaymentAttempt(booking.total_amount, paid, amount)

        payment = models.Payment(
            booking_id=booking_id,
            amount=amount,
            currency=currency,
            payment_method=method,
            payment_type=payment_type,
            external_ref=external_ref,
            refund_of_id=refund_of.id if refund_of is not None else None,
            paid_at=paid_at or utcnow(),
        )
        try:
            with self.db.begin_nested():
                self.db.add(payment)
        except IntegrityError:
            # Another worker recorded the same transaction first; only the
            # savepoint is gone, the booking lock and earlier writes remain
            existing = self._payment_by_ref(external_ref)
            if existing is None:
                raise
            return self._replay(existing, booking_id)

        # Recomputed from the payment rows so the booking can never drift
        booking.total_paid = self._sum_paid(booking)
        self._refresh_totals(booking)
        booking.last_activity_at = payment.paid_at
        receipt = self.issue_receipt(payment, booking)

        if payment_type == PaymentType.REFUND:
            debit = debit_vendor_refund(self.db, booking, payment)
            if debit is not None:
                self.lifecycle.queue_event(
                    "wallet.debited",
                    {
                        "booking_id": booking_id,
                        "vendor_id": booking.vendor_id,
                        "transaction_id": debit.transaction_id,
                        "amount": debit.amount,
                    },
                )
        else:
            self._advance_with_payments(booking, payment.paid_at, f"Payment {external_ref} received")

        self.lifecycle.queue_event(
            "payment.recorded",
            {
                "booking_id": booking_id,
                "payment_id": payment.id,
                "receipt_number": receipt.receipt_number,
                "payment_type": payment_type.value,
                "amount": amount,
                "total_paid": booking.total_paid,
                "remaining_balance": booking.remaining_balance,
            },
        )
        logger.info(
            "payment_recorded booking=%s ref=%s type=%s amount=%s total_paid=%s",
            booking_id,
            external_ref,
            payment_type.value,
            amount,
            booking.total_paid,
        )
        return PaymentResult(payment, receipt)

    def _advance_with_payments(self, booking: models.Booking, now: datetime, message: str) -> None:
        """Move the booking as far as the money already collected allows."""
        step = dict(actor=ActorRole.SYSTEM, message=message, now=now)
        if booking.status == S.QUOTE_ACCEPTED:
            self.lifecycle.transition(booking, S.DOWNPAYMENT_PENDING, **step)
        if booking.status == S.DOWNPAYMENT_PENDING and booking.total_paid >= (booking.downpayment_amount or 0):
            self.lifecycle.transition(booking, S.DOWNPAYMENT_CONFIRMED, **step)
        settled = booking.total_amount is not None and booking.remaining_balance == 0
        if booking.status == S.DOWNPAYMENT_CONFIRMED and settled:
            self.lifecycle.transition(booking, S.FINAL_PAYMENT_DUE, **step)
        if (
            booking.status == S.FINAL_PAYMENT_DUE
            and settled
            and booking.event_date is not None
            and booking.event_date < now
        ):
            self.lifecycle.transition(booking, S.COMPLETED, **step)

    def issue_receipt(
        self, payment: models.Payment, booking: Optional[models.Booking] = None
    ) -> models.Receipt:
        """Persist the receipt for ``payment``; returns the existing one if issued."""
        if payment.receipt is not None:
            return payment.receipt
        booking = booking or self.db.get(models.Booking, payment.booking_id)
        receipt = models.Receipt(
            receipt_number=allocate_receipt_number(self.db, payment.paid_at),
            payment=payment,
            booking_id=payment.booking_id,
            payment_type=payment.payment_type,
            amount=payment.amount,
            currency=payment.currency,
            payment_method=payment.payment_method,
            total_paid=booking.total_paid,
            remaining_balance=booking.remaining_balance,
            issued_at=payment.paid_at,
        )
        self.db.add(receipt)
        self.db.flush()
        return receipt

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def mark_completed(
        self,
        booking: models.Booking,
        completed_by: Union[str, ActorRole],
        actor_id: Optional[str],
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> models.Booking:
        """Record one side's confirmation that the service was delivered.

        The booking completes once both the vendor and the client have
        confirmed. Confirming twice is a no-op.
        """
        side = parse_actor(completed_by)
        if side not in (ActorRole.VENDOR, ActorRole.CLIENT):
            raise UnauthorizedActor(side, "confirm completion")
        self.lifecycle.ensure_participant(booking, side, actor_id)
        status = BookingStatus(booking.status)
        if status == S.COMPLETED:
            return booking
        if status != S.FINAL_PAYMENT_DUE:
            raise InvalidTransition(status, S.COMPLETED, "not_ready_for_completion")
        if booking.total_amount is not None and (booking.remaining_balance or 0) > 0:
            raise InvalidTransition(status, S.COMPLETED, "outstanding_balance")

        now = now or utcnow()
        flag = "vendor_completed" if side == ActorRole.VENDOR else "client_completed"
        if not getattr(booking, flag):
            setattr(booking, flag, True)
            setattr(booking, f"{flag}_at", now)
            if notes:
                booking.completion_notes = notes
            self.lifecycle.annotate(
                booking, side, notes or f"{side.value.capitalize()} confirmed completion", actor_id=actor_id, now=now
            )
        if booking.vendor_completed and booking.client_completed:
            self.lifecycle.transition(
                booking, S.COMPLETED, ActorRole.SYSTEM, message="Both parties confirmed completion", now=now
            )
        return booking

    def publish_pending(self) -> int:
        return self.lifecycle.publish_pending()


def apply_gateway_payment(
    db: Session,
    booking_id: int,
    amount: int,
    payment_type: Union[str, PaymentType],
    method: str,
    external_ref: str,
    **kwargs: Any,
) -> PaymentResult:
    """Entry point for the payment-gateway webhook handler.

    Locks the booking, records the payment and receipt in one transaction,
    then publishes outbox events.
    """
    from ..crud import crud_booking

    ledger = QuoteAndPaymentLedger(db)
    with atomic(db):
        booking = crud_booking.get_booking_for_update(db, booking_id)
        result = ledger.record_payment(booking, amount, payment_type, method, external_ref, **kwargs)
    if not result.replayed:
        ledger.publish_pending()
    return result
