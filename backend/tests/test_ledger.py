import re
from datetime import datetime, timedelta

import pytest
from freezegun import freeze_time

from weddingbazaar import models
from weddingbazaar.database import atomic
from weddingbazaar.models.booking_status import ActorRole, BookingStatus
from weddingbazaar.models.payment import PaymentType
from weddingbazaar.models.quote import QuoteStatus
from weddingbazaar.services.booking_lifecycle import advance_by_schedule
from weddingbazaar.services.ledger import QuoteAndPaymentLedger, apply_gateway_payment
from weddingbazaar.utils.errors import (
    BookingClosed,
    EmptyQuote,
    ExternalReferenceConflict,
    ImmutableRecordError,
    InsufficientRefundableAmount,
    InvalidLineItem,
    InvalidTransition,
    NoActiveQuote,
    OverpaymentAttempt,
    UnauthorizedActor,
)

PESOS = 100

PACKAGE_ITEMS = [
    {"name": "Full-day photo coverage", "unit_price": 50_000 * PESOS},
    {"name": "Same-day edit video", "unit_price": 25_000 * PESOS, "description": "3-5 minutes"},
]


def send(db, booking, items=PACKAGE_ITEMS, **kwargs):
    ledger = QuoteAndPaymentLedger(db)
    with atomic(db):
        quote = ledger.send_quote(booking, items, **kwargs)
    return quote


def accept(db, booking, client_id="client-1"):
    ledger = QuoteAndPaymentLedger(db)
    with atomic(db):
        return ledger.accept_quote(booking, client_id)


def pay(db, booking, amount, ref, payment_type=PaymentType.DEPOSIT, **kwargs):
    ledger = QuoteAndPaymentLedger(db)
    with atomic(db):
        result = ledger.record_payment(booking, amount, payment_type, "gcash", ref, **kwargs)
    ledger.publish_pending()
    return result


def test_send_quote_from_inquiry(db, booking):
    quote = send(db, booking)

    assert quote.version == 1
    assert quote.total_amount == 7_500_000
    assert booking.total_amount == 7_500_000
    assert booking.remaining_balance == 7_500_000
    assert booking.status == BookingStatus.QUOTE_SENT
    statuses = [h.to_status for h in booking.history if h.kind == "transition"]
    assert statuses == [
        BookingStatus.INQUIRY,
        BookingStatus.VENDOR_REVIEWED,
        BookingStatus.QUOTE_SENT,
    ]


def test_accept_then_pay_deposit(db, booking):
    send(db, booking)
    quote = accept(db, booking)
    assert quote.status == QuoteStatus.ACCEPTED
    assert booking.status == BookingStatus.QUOTE_ACCEPTED
    assert booking.downpayment_amount == 2_250_000

    result = pay(db, booking, 2_250_000, "gw-txn-1")

    assert booking.total_paid == 2_250_000
    assert booking.remaining_balance == 5_250_000
    assert booking.payment_progress == 30
    assert booking.status == BookingStatus.DOWNPAYMENT_CONFIRMED
    assert db.query(models.Receipt).count() == 1
    assert result.receipt.total_paid == 2_250_000
    assert result.receipt.remaining_balance == 5_250_000
    transitions = [h.to_status for h in booking.history if h.kind == "transition"]
    assert transitions[-2:] == [
        BookingStatus.DOWNPAYMENT_PENDING,
        BookingStatus.DOWNPAYMENT_CONFIRMED,
    ]


def test_retried_webhook_records_one_payment(db, booking):
    send(db, booking)
    accept(db, booking)
    pay(db, booking, 2_250_000, "gw-txn-1")

    first = pay(db, booking, 5_250_000, "gw-txn-2", payment_type=PaymentType.BALANCE)
    second = pay(db, booking, 5_250_000, "gw-txn-2", payment_type=PaymentType.BALANCE)

    assert second.replayed is True
    assert second.payment.id == first.payment.id
    assert second.receipt.receipt_number == first.receipt.receipt_number
    assert db.query(models.Payment).count() == 2
    assert db.query(models.Receipt).count() == 2
    db.refresh(booking)
    assert booking.total_paid == 7_500_000
    assert booking.remaining_balance == 0
    assert booking.payment_progress == 100
    assert booking.status == BookingStatus.FINAL_PAYMENT_DUE


def test_replayed_ref_on_another_booking_conflicts(db, booking, make_booking):
    other = make_booking(client_id="client-2")
    pay(db, booking, 10_000, "gw-shared")
    with pytest.raises(ExternalReferenceConflict):
        pay(db, other, 10_000, "gw-shared")


def test_payments_never_exceed_total(db, booking):
    send(db, booking)
    accept(db, booking)
    with pytest.raises(OverpaymentAttempt):
        pay(db, booking, 7_500_001, "gw-too-much", payment_type=PaymentType.FULL)
    db.refresh(booking)
    assert booking.total_paid == 0
    assert db.query(models.Payment).count() == 0


def test_payment_without_total_is_allowed(db, booking):
    result = pay(db, booking, 500_000, "gw-reservation")
    assert booking.total_amount is None
    assert booking.total_paid == 500_000
    assert booking.remaining_balance is None
    assert booking.payment_progress == 0
    assert result.receipt.remaining_balance is None


def test_total_paid_moves_with_payments_and_refunds(db, booking):
    send(db, booking)
    accept(db, booking)
    deposit = pay(db, booking, 2_250_000, "gw-1").payment
    history = [booking.total_paid]
    pay(db, booking, 1_000_000, "gw-2", payment_type=PaymentType.BALANCE)
    history.append(booking.total_paid)

    pay(db, booking, 250_000, "gw-refund-1", payment_type=PaymentType.REFUND, refund_of_id=deposit.id)
    history.append(booking.total_paid)

    assert history == [2_250_000, 3_250_000, 3_000_000]
    assert booking.remaining_balance == 4_500_000
    assert booking.payment_progress == 40


def test_refund_cannot_exceed_unrefunded_amount(db, booking):
    deposit = pay(db, booking, 100_000, "gw-1").payment
    pay(db, booking, 60_000, "gw-r1", payment_type=PaymentType.REFUND, refund_of_id=deposit.id)
    with pytest.raises(InsufficientRefundableAmount) as exc:
        pay(db, booking, 50_000, "gw-r2", payment_type=PaymentType.REFUND, refund_of_id=deposit.id)
    assert exc.value.refundable == 40_000


def test_refund_requires_prior_payment(db, booking):
    with pytest.raises(InsufficientRefundableAmount):
        pay(db, booking, 1_000, "gw-r", payment_type=PaymentType.REFUND)


def test_cancelled_booking_rejects_payments_but_allows_refunds(db, booking):
    deposit = pay(db, booking, 100_000, "gw-1").payment
    ledger = QuoteAndPaymentLedger(db)
    with atomic(db):
        ledger.lifecycle.transition(booking, BookingStatus.CANCELLED, ActorRole.CLIENT)
    with pytest.raises(BookingClosed):
        pay(db, booking, 1_000, "gw-2")
    pay(db, booking, 100_000, "gw-r1", payment_type=PaymentType.REFUND, refund_of_id=deposit.id)
    assert booking.total_paid == 0


def test_receipt_number_format(db, booking):
    with freeze_time("2025-01-01 00:00:00"):
        first = pay(db, booking, 1_000, "gw-1")
        second = pay(db, booking, 1_000, "gw-2")
    assert first.receipt.receipt_number == "RCP-1735689600-001"
    assert second.receipt.receipt_number == "RCP-1735689600-002"
    assert re.match(r"^RCP-\d+-\d{3}$", first.receipt.receipt_number)


def test_failed_receipt_leaves_nothing_behind(db, booking, monkeypatch):
    def boom(self, payment, booking=None):
        raise RuntimeError("receipt store unavailable")

    monkeypatch.setattr(QuoteAndPaymentLedger, "issue_receipt", boom)
    with pytest.raises(RuntimeError):
        pay(db, booking, 1_000, "gw-1")
    db.refresh(booking)
    assert booking.total_paid == 0
    assert db.query(models.Payment).count() == 0


def test_payments_and_receipts_are_immutable(db, booking):
    result = pay(db, booking, 1_000, "gw-1")
    result.payment.amount = 2_000
    with pytest.raises(ImmutableRecordError):
        db.commit()
    db.rollback()
    result.receipt.total_paid = 0
    with pytest.raises(ImmutableRecordError):
        db.commit()
    db.rollback()


def test_revised_quote_supersedes_previous(db, booking):
    first = send(db, booking)
    second = send(db, booking, items=[{"name": "Photo coverage", "unit_price": 45_000 * PESOS}])

    db.refresh(first)
    assert first.status == QuoteStatus.SUPERSEDED
    assert first.superseded_at is not None
    assert second.version == 2
    assert second.is_active
    assert booking.total_amount == 4_500_000
    assert booking.status == BookingStatus.QUOTE_SENT
    assert booking.history[-1].kind == "note"
    assert db.query(models.Quote).count() == 2


def test_resending_identical_quote_is_idempotent(db, booking):
    first = send(db, booking)
    again = send(db, booking)
    assert again.id == first.id
    assert db.query(models.Quote).count() == 1


def test_quote_validation(db, booking):
    ledger = QuoteAndPaymentLedger(db)
    with pytest.raises(EmptyQuote):
        ledger.send_quote(booking, [])
    with pytest.raises(InvalidLineItem) as exc:
        ledger.send_quote(booking, [{"name": "Flowers", "unit_price": 1_000}, {"name": "Cake", "unit_price": -1}])
    assert exc.value.index == 1
    with pytest.raises(InvalidLineItem):
        ledger.send_quote(booking, [{"name": " ", "unit_price": 1_000}])
    with pytest.raises(UnauthorizedActor):
        ledger.send_quote(booking, PACKAGE_ITEMS, actor=ActorRole.CLIENT)
    with pytest.raises(UnauthorizedActor):
        ledger.send_quote(booking, PACKAGE_ITEMS, vendor_ref="9-2020-999")
    db.refresh(booking)
    assert booking.status == BookingStatus.INQUIRY


def test_vendor_may_quote_with_legacy_code(db, booking):
    quote = send(db, booking, vendor_ref="2-2025-001")
    assert quote.vendor_id == booking.vendor_id


def test_accept_requires_pending_quote(db, booking):
    ledger = QuoteAndPaymentLedger(db)
    with pytest.raises(NoActiveQuote):
        ledger.accept_quote(booking, "client-1")
    send(db, booking)
    with pytest.raises(UnauthorizedActor):
        ledger.accept_quote(booking, "client-2")
    accept(db, booking)
    with pytest.raises(NoActiveQuote):
        ledger.accept_quote(booking, "client-1")


def test_reject_quote_records_reason(db, booking):
    send(db, booking)
    ledger = QuoteAndPaymentLedger(db)
    with atomic(db):
        quote = ledger.reject_quote(booking, "client-1", reason="Over budget")
    assert quote.status == QuoteStatus.REJECTED
    assert quote.rejection_reason == "Over budget"
    assert booking.status == BookingStatus.QUOTE_REJECTED
    assert booking.status_reason == "Over budget"
    with pytest.raises(InvalidTransition):
        ledger.send_quote(booking, PACKAGE_ITEMS)


def test_accepted_quote_is_frozen(db, booking):
    quote = send(db, booking)
    accept(db, booking)
    quote.total_amount = 1
    with pytest.raises(ImmutableRecordError):
        db.commit()
    db.rollback()


def test_two_sided_completion(db, booking):
    send(db, booking)
    accept(db, booking)
    pay(db, booking, 7_500_000, "gw-full", payment_type=PaymentType.FULL)
    assert booking.status == BookingStatus.FINAL_PAYMENT_DUE

    ledger = QuoteAndPaymentLedger(db)
    with atomic(db):
        ledger.mark_completed(booking, ActorRole.VENDOR, "prof-aurora", notes="Delivered album")
    assert booking.vendor_completed is True
    assert booking.status == BookingStatus.FINAL_PAYMENT_DUE

    with atomic(db):
        ledger.mark_completed(booking, ActorRole.VENDOR, "prof-aurora")
    with atomic(db):
        ledger.mark_completed(booking, ActorRole.CLIENT, "client-1")
    assert booking.status == BookingStatus.COMPLETED
    assert booking.history[-1].actor_role == ActorRole.SYSTEM
    assert booking.completion_notes == "Delivered album"


def test_completion_not_possible_with_open_balance(db, booking):
    send(db, booking)
    accept(db, booking)
    pay(db, booking, 2_250_000, "gw-1")
    ledger = QuoteAndPaymentLedger(db)
    with pytest.raises(InvalidTransition):
        ledger.mark_completed(booking, ActorRole.CLIENT, "client-1")


def test_payment_after_event_completes_booking(db, make_booking):
    with freeze_time("2025-03-01"):
        booking = make_booking(event_date=datetime(2025, 4, 1))
        send(db, booking)
        accept(db, booking)
        pay(db, booking, 2_250_000, "gw-1")
        ledger = QuoteAndPaymentLedger(db)
        with atomic(db):
            ledger.lifecycle.transition(booking, BookingStatus.FINAL_PAYMENT_DUE, ActorRole.SYSTEM)
    with freeze_time("2025-04-05"):
        pay(db, booking, 5_250_000, "gw-2", payment_type=PaymentType.BALANCE)
    assert booking.status == BookingStatus.COMPLETED


def test_gateway_entry_point_publishes_events(db, booking):
    send(db, booking)
    accept(db, booking)
    result = apply_gateway_payment(db, booking.id, 2_250_000, "deposit", "card", "gw-hook-1")
    replay = apply_gateway_payment(db, booking.id, 2_250_000, "deposit", "card", "gw-hook-1")
    assert replay.replayed and replay.payment.id == result.payment.id
    topics = [e.topic for e in db.query(models.OutboxEvent).order_by(models.OutboxEvent.id)]
    assert topics.count("payment.recorded") == 1
    assert "booking.status_changed" in topics


def test_full_payment_before_acceptance_advances_on_accept(db, booking):
    send(db, booking)
    pay(db, booking, 7_500_000, "gw-early-full", payment_type=PaymentType.FULL)
    assert booking.status == BookingStatus.QUOTE_SENT
    assert booking.remaining_balance == 0

    accept(db, booking)

    assert booking.status == BookingStatus.FINAL_PAYMENT_DUE
    transitions = [h.to_status for h in booking.history if h.kind == "transition"]
    assert transitions[-4:] == [
        BookingStatus.QUOTE_ACCEPTED,
        BookingStatus.DOWNPAYMENT_PENDING,
        BookingStatus.DOWNPAYMENT_CONFIRMED,
        BookingStatus.FINAL_PAYMENT_DUE,
    ]
    assert advance_by_schedule(db, now=booking.event_date + timedelta(days=1)) == [booking.id]
    db.refresh(booking)
    assert booking.status == BookingStatus.COMPLETED


def test_partial_payment_before_acceptance_waits_for_deposit(db, booking):
    send(db, booking)
    pay(db, booking, 1_000_000, "gw-early-part")
    accept(db, booking)
    assert booking.status == BookingStatus.DOWNPAYMENT_PENDING

    pay(db, booking, 1_250_000, "gw-rest-of-deposit")
    assert booking.status == BookingStatus.DOWNPAYMENT_CONFIRMED


def test_racing_duplicate_insert_keeps_earlier_writes(db, booking, monkeypatch):
    first = pay(db, booking, 100_000, "gw-race")
    real_lookup = QuoteAndPaymentLedger._payment_by_ref
    lookups = {"n": 0}

    def miss_once(self, external_ref):
        # The competing worker's row is not visible yet on the first read
        lookups["n"] += 1
        return None if lookups["n"] == 1 else real_lookup(self, external_ref)

    monkeypatch.setattr(QuoteAndPaymentLedger, "_payment_by_ref", miss_once)
    ledger = QuoteAndPaymentLedger(db)
    with atomic(db):
        ledger.lifecycle.annotate(booking, ActorRole.CLIENT, "Retrying the card payment", actor_id="client-1")
        result = ledger.record_payment(booking, 100_000, PaymentType.DEPOSIT, "gcash", "gw-race")

    assert result.replayed is True
    assert result.payment.id == first.payment.id
    assert db.query(models.Payment).count() == 1
    db.refresh(booking)
    assert booking.total_paid == 100_000
    assert booking.history[-1].message == "Retrying the card payment"
