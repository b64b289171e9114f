from .booking import (
    BookingCreate,
    BookingResponse,
    BookingWithQuote,
    MarkCompleted,
    NoteCreate,
    StatusUpdate,
    TimelineEntry,
    TimelineResponse,
)
from .quote import (
    AcceptQuote,
    LineItemIn,
    LineItemOut,
    QuoteCreate,
    QuoteResponse,
    RejectQuote,
)
from .payment import PaymentResponse, ReceiptResponse
from .service import ServiceCreate, ServiceResponse
from .subscription import ServiceQuotaResponse, SubscriptionCreate, SubscriptionResponse
from .vendor import VendorLink, VendorResponse
from .wallet import WalletResponse, WalletTransactionResponse
