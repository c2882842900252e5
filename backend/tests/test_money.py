"""Tests for integer-cent money arithmetic."""
import random
from decimal import Decimal

import pytest

from creator_ledger.exceptions import LedgerValidationError
from creator_ledger.services.money import (
    cents_to_decimal,
    cents_to_str,
    format_usd,
    split_commission,
    to_cents,
)


@pytest.mark.parametrize("amount,expected", [
    ("19.99", 1999),
    (19.99, 1999),
    (Decimal("40.00"), 4000),
    (5, 500),
    ("0.005", 1),
    ("0.004", 0),
    ("-12.345", -1235),
    ("100000.00", 10000000),
])
def test_to_cents(amount, expected):
    assert to_cents(amount) == expected


@pytest.mark.parametrize("bad", ["abc", "", None, float("nan"), "Infinity", True])
def test_to_cents_rejects_invalid_amounts(bad):
    with pytest.raises(LedgerValidationError):
        to_cents(bad)


def test_cents_formatting():
    assert cents_to_str(1234) == "12.34"
    assert cents_to_str(0) == "0.00"
    assert cents_to_str(5) == "0.05"
    assert cents_to_str(-50) == "-0.50"
    assert cents_to_decimal(6000) == Decimal("60.00")
    assert format_usd(5000) == "$50.00"
    assert format_usd(-1250) == "-$12.50"


def test_product_sale_split():
    split = split_commission(4000, 0.25)
    assert split == (4000, 1000, 3000)
    assert cents_to_str(split.gross_cents) == "40.00"
    assert cents_to_str(split.commission_cents) == "10.00"
    assert cents_to_str(split.creator_cents) == "30.00"


def test_course_sale_split():
    split = split_commission(to_cents("19.99"), "0.35")
    # 699.65 cents of commission rounds half-up to 700
    assert split.commission_cents == 700
    assert split.creator_cents == 1299


def test_commission_rounds_half_up():
    assert split_commission(2, 0.25).commission_cents == 1
    assert split_commission(1, 0.25).commission_cents == 0
    assert split_commission(6, 0.25).commission_cents == 2


def test_milestone_split_has_no_commission():
    split = split_commission(50, 0)
    assert split.commission_cents == 0
    assert split.creator_cents == 50


@pytest.mark.parametrize("rate", [0.25, 0.35, "0.1", 0, 1])
def test_split_always_adds_up_to_gross(rate):
    rng = random.Random(20260105)
    samples = [1, 2, 3, 99, 1999, 10000000] + [rng.randint(1, 10000000) for _ in range(500)]
    for gross in samples:
        split = split_commission(gross, rate)
        assert split.commission_cents + split.creator_cents == gross
        assert 0 <= split.commission_cents <= gross


def test_split_rejects_bad_input():
    with pytest.raises(LedgerValidationError):
        split_commission(-1, 0.25)
    with pytest.raises(LedgerValidationError):
        split_commission(100, 1.5)
    with pytest.raises(LedgerValidationError):
        split_commission(100, -0.1)
