from typing import Any, Dict, Optional
from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)


def error_response(
    message: str,
    field_errors: Dict[str, str],
    code: int = status.HTTP_422_UNPROCESSABLE_ENTITY,
) -> HTTPException:
    """Return an HTTPException with a consistent structure and log details."""
    logger.error("%s %s", message, field_errors)
    detail = {"message": message, "field_errors": field_errors}
    return HTTPException(status_code=code, detail=detail)


class LedgerError(Exception):
    """Base class for caller-correctable booking and ledger failures.

    ``code`` is the machine-readable identifier returned to API clients;
    ``status_code`` is the HTTP status the API layer maps it to.
    """

    code = "ledger_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, field_errors: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.field_errors = field_errors or {}
        super().__init__(message)

    def to_detail(self) -> dict:
        return {
            "message": self.message,
            "code": self.code,
            "field_errors": self.field_errors,
        }

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.to_detail())


class InvalidTransition(LedgerError):
    code = "invalid_transition"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, current: Any, target: Any, reason: Optional[str] = None) -> None:
        self.current = getattr(current, "value", current)
        self.target = getattr(target, "value", target)
        field_errors = {"status": "unreachable", "from": self.current}
        if reason:
            field_errors["reason"] = reason
        super().__init__(f"Invalid status: {self.target}", field_errors)


class UnauthorizedActor(LedgerError):
    code = "unauthorized_actor"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, actor: Any, action: str) -> None:
        self.actor = getattr(actor, "value", actor)
        self.action = action
        super().__init__(
            f"{self.actor} may not {action}",
            {"actor": self.actor},
        )


class EmptyQuote(LedgerError):
    code = "empty_quote"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self) -> None:
        super().__init__("A quote needs at least one line item", {"line_items": "empty"})


class InvalidLineItem(LedgerError):
    code = "invalid_line_item"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, index: int, problem: str) -> None:
        self.index = index
        super().__init__(
            f"Line item {index} is invalid: {problem}",
            {f"line_items.{index}": problem},
        )


class NoActiveQuote(LedgerError):
    code = "no_active_quote"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, booking_id: Any) -> None:
        super().__init__(
            f"Booking {booking_id} has no pending quote",
            {"quote": "not_pending"},
        )


class OverpaymentAttempt(LedgerError):
    code = "overpayment_attempt"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, total_amount: int, total_paid: int, amount: int) -> None:
        self.total_amount = total_amount
        self.total_paid = total_paid
        self.amount = amount
        super().__init__(
            "Payment exceeds the remaining balance",
            {
                "amount": "exceeds_balance",
                "remaining_balance": max(total_amount - total_paid, 0),
            },
        )


class InsufficientRefundableAmount(LedgerError):
    code = "insufficient_refundable_amount"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, refundable: int, amount: int) -> None:
        self.refundable = refundable
        self.amount = amount
        super().__init__(
            "Refund exceeds the unrefunded amount of the referenced payment",
            {"amount": "exceeds_refundable", "refundable": refundable},
        )


class QuotaExceeded(LedgerError):
    code = "quota_exceeded"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, tier: Any, max_services: int, current: int) -> None:
        self.tier = getattr(tier, "value", tier)
        self.max_services = max_services
        self.current = current
        super().__init__(
            f"Service limit reached for the {self.tier} plan ({current}/{max_services})",
            {"tier": self.tier, "max_services": max_services, "current": current},
        )


class UnknownVendorReference(LedgerError):
    code = "unknown_vendor_reference"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, reference: Any) -> None:
        self.reference = reference
        super().__init__(f"Unknown vendor reference: {reference}", {"vendor": "not_found"})


class BookingNotFound(LedgerError):
    code = "booking_not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, booking_id: Any) -> None:
        super().__init__(f"Booking {booking_id} not found", {"booking_id": "not_found"})


class ServiceNotFound(LedgerError):
    code = "service_not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, service_id: Any) -> None:
        super().__init__(f"Service {service_id} not found", {"service_id": "not_found"})


class BookingClosed(LedgerError):
    code = "booking_closed"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, booking_id: Any, state: Any) -> None:
        state = getattr(state, "value", state)
        super().__init__(
            f"Booking {booking_id} is {state} and does not accept payments",
            {"status": state},
        )


class ExternalReferenceConflict(LedgerError):
    code = "external_reference_conflict"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, external_ref: str) -> None:
        super().__init__(
            f"Transaction {external_ref} is already recorded against another booking",
            {"external_ref": "conflict"},
        )


class ConcurrentUpdate(LedgerError):
    code = "concurrent_update"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self) -> None:
        super().__init__("The booking was modified concurrently; retry the request", {})


class ImmutableRecordError(LedgerError):
    code = "immutable_record"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, record: str, record_id: Any) -> None:
        super().__init__(f"{record} {record_id} is immutable", {"record": record})
