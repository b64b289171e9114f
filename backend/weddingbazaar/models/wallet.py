import enum

from sqlalchemy import JSON, BigInteger, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .base import BaseModel, utcnow
from .types import CaseInsensitiveEnum


class WalletTransactionType(str, enum.Enum):
    EARNING = "earning"
    REFUND_DEBIT = "refund_debit"


class VendorWallet(BaseModel):
    """Running payout balance for one vendor, in minor units."""

    __tablename__ = "vendor_wallets"

    id = Column(Integer, primary_key=True, index=True)
    vendor_id = Column(String(32), ForeignKey("vendors.id"), unique=True, nullable=False)
    currency = Column(String(3), nullable=False, default="PHP")
    total_earnings = Column(BigInteger, nullable=False, default=0)
    available_balance = Column(BigInteger, nullable=False, default=0)
    pending_balance = Column(BigInteger, nullable=False, default=0)
    withdrawn_amount = Column(BigInteger, nullable=False, default=0)

    vendor = relationship("Vendor")
    transactions = relationship(
        "WalletTransaction", back_populates="wallet", order_by="WalletTransaction.id"
    )


class WalletTransaction(BaseModel):
    """One credit or debit to a vendor wallet. Never mutated."""

    __tablename__ = "wallet_transactions"

    id = Column(Integer, primary_key=True, index=True)
    # TXN-<booking reference>[-R<refund payment id>]; one row per key
    transaction_id = Column(String(64), unique=True, nullable=False, index=True)
    wallet_id = Column(Integer, ForeignKey("vendor_wallets.id"), nullable=False, index=True)
    vendor_id = Column(String(32), ForeignKey("vendors.id"), nullable=False, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    transaction_type = Column(
        CaseInsensitiveEnum(WalletTransactionType, name="wallettransactiontype"), nullable=False
    )
    amount = Column(BigInteger, nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String(16), nullable=False, default="completed")
    description = Column(Text, nullable=True)
    payment_method = Column(String(200), nullable=True)
    payment_reference = Column(Text, nullable=True)
    details = Column(JSON, nullable=False, default=dict)
    occurred_at = Column(DateTime, nullable=False, default=utcnow)

    wallet = relationship("VendorWallet", back_populates="transactions")
