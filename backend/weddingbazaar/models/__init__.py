from .vendor import Vendor
from .service import Service
from .subscription import Subscription, PlanTier, SubscriptionStatus
from .booking_status import ActorRole, BookingStatus, STATE_META, TERMINAL_STATUSES
from .booking import Booking
from .booking_history import BookingStatusHistory
from .quote import Quote, QuoteStatus
from .payment import Payment, PaymentType
from .receipt import Receipt
from .reference_sequence import ReferenceSequence
from .outbox_event import OutboxEvent
from .wallet import VendorWallet, WalletTransaction, WalletTransactionType

__all__ = [
    "Vendor",
    "Service",
    "Subscription",
    "PlanTier",
    "SubscriptionStatus",
    "ActorRole",
    "BookingStatus",
    "STATE_META",
    "TERMINAL_STATUSES",
    "Booking",
    "BookingStatusHistory",
    "Quote",
    "QuoteStatus",
    "Payment",
    "PaymentType",
    "Receipt",
    "ReferenceSequence",
    "OutboxEvent",
    "VendorWallet",
    "WalletTransaction",
    "WalletTransactionType",
]
