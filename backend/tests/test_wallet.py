import json

import pytest

from weddingbazaar import models
from weddingbazaar.database import atomic
from weddingbazaar.models.booking_status import ActorRole, BookingStatus
from weddingbazaar.models.payment import PaymentType
from weddingbazaar.models.wallet import WalletTransactionType
from weddingbazaar.services.booking_lifecycle import BookingLifecycleManager
from weddingbazaar.services.ledger import QuoteAndPaymentLedger
from weddingbazaar.services.wallet import credit_vendor_earnings, get_wallet
from weddingbazaar.utils.errors import ImmutableRecordError

ITEMS = [
    {"name": "Full-day photo coverage", "unit_price": 5_000_000},
    {"name": "Same-day edit video", "unit_price": 2_500_000},
]


def record(db, booking, amount, ref, payment_type=PaymentType.FULL, **kwargs):
    ledger = QuoteAndPaymentLedger(db)
    with atomic(db):
        result = ledger.record_payment(booking, amount, payment_type, "gcash", ref, **kwargs)
    ledger.publish_pending()
    return result


def complete(db, booking, ref, client_id="client-1"):
    ledger = QuoteAndPaymentLedger(db)
    with atomic(db):
        ledger.send_quote(booking, ITEMS)
    with atomic(db):
        ledger.accept_quote(booking, client_id)
    result = record(db, booking, 7_500_000, ref)
    with atomic(db):
        ledger.mark_completed(booking, ActorRole.VENDOR, "prof-aurora")
    with atomic(db):
        ledger.mark_completed(booking, ActorRole.CLIENT, client_id)
    ledger.publish_pending()
    return result


def test_completion_credits_vendor_once(db, booking, vendor):
    paid = complete(db, booking, "gw-full")
    assert booking.status == BookingStatus.COMPLETED

    wallet = get_wallet(db, vendor.id)
    assert wallet.total_earnings == 7_500_000
    assert wallet.available_balance == 7_500_000
    assert wallet.withdrawn_amount == 0

    (txn,) = db.query(models.WalletTransaction).all()
    assert txn.transaction_id == f"TXN-{booking.reference}"
    assert txn.transaction_type == WalletTransactionType.EARNING
    assert txn.booking_id == booking.id
    assert txn.payment_reference == paid.receipt.receipt_number
    assert txn.payment_method == "gcash"
    assert txn.details["total_payments"] == 1
    assert txn.details["booking_reference"] == booking.reference
    assert txn.description == "Payment received for Wedding Photography (1 payment received)"

    with atomic(db):
        assert credit_vendor_earnings(db, booking) is None
    assert db.query(models.WalletTransaction).count() == 1
    db.refresh(wallet)
    assert wallet.available_balance == 7_500_000


def test_credit_is_announced_after_commit(db, booking):
    complete(db, booking, "gw-full")
    events = db.query(models.OutboxEvent).filter(models.OutboxEvent.topic == "wallet.credited").all()
    assert len(events) == 1


def test_bookings_for_one_vendor_share_a_wallet(db, make_booking, vendor):
    first = make_booking()
    second = make_booking(client_id="client-2")
    complete(db, first, "gw-a")
    complete(db, second, "gw-b", client_id="client-2")

    assert db.query(models.VendorWallet).count() == 1
    assert get_wallet(db, vendor.id).total_earnings == 15_000_000
    assert db.query(models.WalletTransaction).count() == 2


def test_refund_after_completion_is_debited(db, booking, vendor):
    paid = complete(db, booking, "gw-full")
    record(
        db,
        booking,
        500_000,
        "gw-refund",
        payment_type=PaymentType.REFUND,
        refund_of_id=paid.payment.id,
    )

    wallet = get_wallet(db, vendor.id)
    db.refresh(wallet)
    assert wallet.available_balance == 7_000_000
    assert wallet.total_earnings == 7_000_000
    kinds = [
        t.transaction_type
        for t in db.query(models.WalletTransaction).order_by(models.WalletTransaction.id)
    ]
    assert kinds == [WalletTransactionType.EARNING, WalletTransactionType.REFUND_DEBIT]
    debit = db.query(models.OutboxEvent).filter(models.OutboxEvent.topic == "wallet.debited").one()
    assert json.loads(debit.payload_json)["amount"] == 500_000


def test_refund_before_completion_leaves_wallet_alone(db, booking):
    deposit = record(db, booking, 300_000, "gw-dep", payment_type=PaymentType.DEPOSIT)
    record(db, booking, 300_000, "gw-ref", payment_type=PaymentType.REFUND, refund_of_id=deposit.payment.id)
    assert db.query(models.WalletTransaction).count() == 0
    assert db.query(models.VendorWallet).count() == 0


def test_completion_without_payments_credits_nothing(db, booking):
    booking.status = BookingStatus.FINAL_PAYMENT_DUE
    db.commit()
    with atomic(db):
        BookingLifecycleManager(db).transition(booking, BookingStatus.COMPLETED, ActorRole.SYSTEM)
    assert booking.status == BookingStatus.COMPLETED
    assert db.query(models.WalletTransaction).count() == 0


def test_wallet_transactions_are_immutable(db, booking):
    complete(db, booking, "gw-full")
    txn = db.query(models.WalletTransaction).one()
    txn.amount = 1
    with pytest.raises(ImmutableRecordError):
        db.commit()
    db.rollback()
