import enum


class BookingStatus(str, enum.Enum):
    """Booking lifecycle states, in happy-path order."""

    INQUIRY = "inquiry"
    VENDOR_REVIEWED = "vendor_reviewed"
    QUOTE_SENT = "quote_sent"
    QUOTE_ACCEPTED = "quote_accepted"
    QUOTE_REJECTED = "quote_rejected"
    DOWNPAYMENT_PENDING = "downpayment_pending"
    DOWNPAYMENT_CONFIRMED = "downpayment_confirmed"
    FINAL_PAYMENT_DUE = "final_payment_due"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DISPUTED = "disputed"


class ActorRole(str, enum.Enum):
    CLIENT = "client"
    VENDOR = "vendor"
    SYSTEM = "system"
    ADMIN = "admin"


TERMINAL_STATUSES = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.QUOTE_REJECTED}
)


class StateMeta:
    """Fixed progress and next-step metadata for one status."""

    __slots__ = ("progress", "next_action", "next_action_by")

    def __init__(self, progress: int, next_action: str, next_action_by: ActorRole) -> None:
        self.progress = progress
        self.next_action = next_action
        self.next_action_by = next_action_by


# Derived on read from ``status``; never stored as editable text.
STATE_META = {
    BookingStatus.INQUIRY: StateMeta(10, "Vendor to review and respond", ActorRole.VENDOR),
    BookingStatus.VENDOR_REVIEWED: StateMeta(20, "Vendor to send quote", ActorRole.VENDOR),
    BookingStatus.QUOTE_SENT: StateMeta(30, "Client to accept or reject quote", ActorRole.CLIENT),
    BookingStatus.QUOTE_ACCEPTED: StateMeta(50, "Client to pay the down payment", ActorRole.CLIENT),
    BookingStatus.QUOTE_REJECTED: StateMeta(0, "No further action", ActorRole.SYSTEM),
    BookingStatus.DOWNPAYMENT_PENDING: StateMeta(70, "Complete payment processing", ActorRole.SYSTEM),
    BookingStatus.DOWNPAYMENT_CONFIRMED: StateMeta(80, "Await event and final payment", ActorRole.CLIENT),
    BookingStatus.FINAL_PAYMENT_DUE: StateMeta(90, "Settle final payment and confirm completion", ActorRole.CLIENT),
    BookingStatus.COMPLETED: StateMeta(100, "Service delivery completed", ActorRole.VENDOR),
    BookingStatus.CANCELLED: StateMeta(0, "Process refund if applicable", ActorRole.ADMIN),
    BookingStatus.DISPUTED: StateMeta(0, "Admin to resolve dispute", ActorRole.ADMIN),
}

# Status names written by the previous booking flow, mapped on read
LEGACY_STATUS_ALIASES = {
    "request": BookingStatus.INQUIRY.value,
    "pending": BookingStatus.INQUIRY.value,
    "quote_requested": BookingStatus.VENDOR_REVIEWED.value,
    "approved": BookingStatus.QUOTE_ACCEPTED.value,
    "declined": BookingStatus.QUOTE_REJECTED.value,
    "downpayment_paid": BookingStatus.DOWNPAYMENT_CONFIRMED.value,
    "confirmed": BookingStatus.DOWNPAYMENT_CONFIRMED.value,
    "paid": BookingStatus.FINAL_PAYMENT_DUE.value,
    "fully_paid": BookingStatus.FINAL_PAYMENT_DUE.value,
}
