from decimal import Decimal

import pytest

from weddingbazaar.utils.money import (
    payment_progress,
    percentage_of,
    remaining_balance,
    to_major,
    to_minor,
)


@pytest.mark.parametrize(
    "paid,total,expected",
    [
        (0, None, 0),
        (5_000, 0, 0),
        (0, 7_500_000, 0),
        (2_250_000, 7_500_000, 30),
        (1, 200, 1),  # 0.5% rounds half up
        (1, 300, 0),
        (7_500_000, 7_500_000, 100),
    ],
)
def test_payment_progress(paid, total, expected):
    assert payment_progress(paid, total) == expected


def test_progress_is_clamped():
    assert payment_progress(-10, 100) == 0
    assert payment_progress(150, 100) == 100


def test_minor_unit_conversion():
    assert to_minor("50000") == 5_000_000
    assert to_minor(Decimal("0.005")) == 1
    assert to_minor(19.99) == 1_999
    assert to_major(1_999) == Decimal("19.99")
    assert to_major(None) is None
    with pytest.raises(ValueError):
        to_minor("fifty")


def test_percentage_and_balance():
    assert percentage_of(7_500_000, 30) == 2_250_000
    assert percentage_of(333, 50) == 167
    assert remaining_balance(100, None) is None
    assert remaining_balance(120, 100) == 0
    assert remaining_balance(40, 100) == 60
