from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Optional

_HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ValueError(f"not a monetary amount: {value!r}") from exc


def to_minor(amount: Any) -> int:
    """Convert a major-unit amount (pesos) to integer minor units (centavos)."""
    return int((to_decimal(amount) * _HUNDRED).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_major(minor: Optional[int]) -> Optional[Decimal]:
    if minor is None:
        return None
    return (Decimal(int(minor)) / _HUNDRED).quantize(Decimal("0.01"))


def round_half_up_ratio(numerator: int, denominator: int) -> int:
    """Integer ``round(numerator / denominator)`` with halves rounded up."""
    return int((Decimal(numerator) / Decimal(denominator)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percentage_of(total: int, percent: int) -> int:
    return round_half_up_ratio(total * percent, 100)


def payment_progress(total_paid: int, total_amount: Optional[int]) -> int:
    """Paid share of the total as a whole percentage in [0, 100].

    Returns 0 when no total has been set yet.
    """
    if not total_amount or total_amount <= 0:
        return 0
    pct = round_half_up_ratio(total_paid * 100, total_amount)
    return max(0, min(100, pct))


def remaining_balance(total_paid: int, total_amount: Optional[int]) -> Optional[int]:
    if total_amount is None:
        return None
    return max(total_amount - total_paid, 0)
