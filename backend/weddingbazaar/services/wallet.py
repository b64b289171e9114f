"""Vendor payouts.

When a booking completes, the money its receipts show as collected is
credited to the vendor's wallet exactly once, keyed by the booking
reference. A refund recorded after that credit is debited back under its
own key. Both run inside the caller's transaction; nothing here commits.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from ..models.base import utcnow
from ..models.payment import PaymentType
from ..models.wallet import WalletTransactionType

logger = logging.getLogger(__name__)


def earning_transaction_id(booking: models.Booking) -> str:
    return f"TXN-{booking.reference}"


def refund_transaction_id(booking: models.Booking, refund: models.Payment) -> str:
    return f"TXN-{booking.reference}-R{refund.id}"


def get_wallet(db: Session, vendor_id: str) -> Optional[models.VendorWallet]:
    return db.query(models.VendorWallet).filter(models.VendorWallet.vendor_id == vendor_id).first()


def _wallet_for_update(db: Session, vendor_id: str, currency: str) -> models.VendorWallet:
    def locked() -> Optional[models.VendorWallet]:
        return (
            db.query(models.VendorWallet)
            .filter(models.VendorWallet.vendor_id == vendor_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    wallet = locked()
    if wallet is not None:
        return wallet
    try:
        with db.begin_nested():
            wallet = models.VendorWallet(
                vendor_id=vendor_id,
                currency=currency,
                total_earnings=0,
                available_balance=0,
                pending_balance=0,
                withdrawn_amount=0,
            )
            db.add(wallet)
    except IntegrityError:
        # Another booking for this vendor opened the wallet first
        wallet = locked()
        if wallet is None:
            raise
    return wallet


def _transaction(db: Session, transaction_id: str) -> Optional[models.WalletTransaction]:
    return (
        db.query(models.WalletTransaction)
        .filter(models.WalletTransaction.transaction_id == transaction_id)
        .first()
    )


def credit_vendor_earnings(
    db: Session, booking: models.Booking, now: Optional[datetime] = None
) -> Optional[models.WalletTransaction]:
    """Credit the vendor with what was collected for ``booking``.

    Returns the new wallet transaction, or None when the booking was
    already credited or nothing was collected.
    """
    transaction_id = earning_transaction_id(booking)
    if _transaction(db, transaction_id) is not None:
        logger.info("wallet_credit_replay booking=%s", booking.id)
        return None

    receipts = (
        db.query(models.Receipt)
        .filter(models.Receipt.booking_id == booking.id)
        .order_by(models.Receipt.id)
        .all()
    )
    amount = sum(
        -r.amount if PaymentType(r.payment_type) == PaymentType.REFUND else r.amount
        for r in receipts
    )
    if amount <= 0:
        logger.info("wallet_credit_skipped booking=%s collected=%s", booking.id, amount)
        return None

    now = now or utcnow()
    methods: list[str] = []
    for receipt in receipts:
        if receipt.payment_method not in methods:
            methods.append(receipt.payment_method)
    service_title = booking.service.title if booking.service is not None else "Wedding service"
    count = len(receipts)

    wallet = _wallet_for_update(db, booking.vendor_id, booking.currency)
    wallet.total_earnings += amount
    wallet.available_balance += amount
    txn = models.WalletTransaction(
        transaction_id=transaction_id,
        wallet=wallet,
        vendor_id=booking.vendor_id,
        booking_id=booking.id,
        transaction_type=WalletTransactionType.EARNING,
        amount=amount,
        currency=booking.currency,
        description=f"Payment received for {service_title} ({count} payment{'s' if count != 1 else ''} received)",
        payment_method=", ".join(methods),
        payment_reference=", ".join(r.receipt_number for r in receipts),
        details={
            "receipts": [
                {
                    "receipt_number": r.receipt_number,
                    "amount": r.amount,
                    "payment_type": PaymentType(r.payment_type).value,
                    "payment_method": r.payment_method,
                    "issued_at": r.issued_at.isoformat(),
                }
                for r in receipts
            ],
            "total_payments": count,
            "booking_reference": booking.reference,
            "event_date": booking.event_date.isoformat() if booking.event_date else None,
        },
        occurred_at=now,
    )
    db.add(txn)
    db.flush()
    logger.info(
        "wallet_credited vendor=%s booking=%s amount=%s balance=%s",
        booking.vendor_id,
        booking.id,
        amount,
        wallet.available_balance,
    )
    return txn


def debit_vendor_refund(
    db: Session, booking: models.Booking, refund: models.Payment
) -> Optional[models.WalletTransaction]:
    """Take a post-completion refund back out of the vendor's wallet.

    Refunds before the booking was credited need no debit and return None.
    """
    if _transaction(db, earning_transaction_id(booking)) is None:
        return None
    transaction_id = refund_transaction_id(booking, refund)
    if _transaction(db, transaction_id) is not None:
        return None

    wallet = _wallet_for_update(db, booking.vendor_id, booking.currency)
    wallet.total_earnings -= refund.amount
    wallet.available_balance -= refund.amount
    txn = models.WalletTransaction(
        transaction_id=transaction_id,
        wallet=wallet,
        vendor_id=booking.vendor_id,
        booking_id=booking.id,
        transaction_type=WalletTransactionType.REFUND_DEBIT,
        amount=refund.amount,
        currency=refund.currency,
        description=f"Refund {refund.external_ref} issued after completion",
        payment_method=refund.payment_method,
        payment_reference=refund.receipt.receipt_number if refund.receipt is not None else None,
        details={"refund_payment_id": refund.id, "refund_of_id": refund.refund_of_id},
        occurred_at=refund.paid_at,
    )
    db.add(txn)
    db.flush()
    logger.warning(
        "wallet_debited vendor=%s booking=%s amount=%s balance=%s",
        booking.vendor_id,
        booking.id,
        refund.amount,
        wallet.available_balance,
    )
    return txn
