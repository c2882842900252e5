"""Integer-cent money arithmetic.

Every amount inside the ledger is an ``int`` number of cents.  Decimal
amounts only appear at the edges: parsing what callers hand in and
formatting what the API hands back.

Commission split
----------------
``commission = round_half_up(gross * rate)`` and ``creator = gross - commission``.
The creator share is always the remainder and never rounded on its own, so
``gross == commission + creator`` holds for every amount and rate.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import NamedTuple, Union

from creator_ledger.exceptions import LedgerValidationError

Amount = Union[Decimal, str, int, float]

CENT = Decimal("0.01")
_ONE = Decimal("1")


class CommissionSplit(NamedTuple):
    gross_cents: int
    commission_cents: int
    creator_cents: int


def _to_decimal(value: Amount) -> Decimal:
    if isinstance(value, bool):
        raise LedgerValidationError(f"Invalid amount: {value!r}")
    try:
        # str() first so 19.99 means 19.99 rather than its binary approximation
        result = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise LedgerValidationError(f"Invalid amount: {value!r}")
    if not result.is_finite():
        raise LedgerValidationError(f"Invalid amount: {value!r}")
    return result


def to_cents(amount: Amount) -> int:
    """Convert a currency amount (dollars) to integer cents, rounding half-up."""
    return int((_to_decimal(amount) * 100).quantize(_ONE, rounding=ROUND_HALF_UP))


def cents_to_decimal(cents: int) -> Decimal:
    """Convert integer cents to a ``Decimal`` with two places."""
    return (Decimal(cents) / 100).quantize(CENT)


def cents_to_str(cents: int) -> str:
    """Format integer cents as a two-decimal string, e.g. ``1234 -> "12.34"``."""
    return f"{cents_to_decimal(cents):.2f}"


def format_usd(cents: int) -> str:
    """Human readable amount for messages, e.g. ``"$50.00"``."""
    if cents < 0:
        return f"-${cents_to_str(-cents)}"
    return f"${cents_to_str(cents)}"


def split_commission(gross_cents: int, rate: Amount) -> CommissionSplit:
    """Split *gross_cents* into platform commission and creator share.

    Parameters
    ----------
    gross_cents:
        Gross sale amount in cents, must be non-negative.
    rate:
        Platform commission rate in [0, 1], e.g. ``0.25``.
    """
    if gross_cents < 0:
        raise LedgerValidationError("Gross amount cannot be negative")
    rate_dec = _to_decimal(rate)
    if rate_dec < 0 or rate_dec > 1:
        raise LedgerValidationError(f"Commission rate must be between 0 and 1, got {rate}")

    commission = int((Decimal(gross_cents) * rate_dec).quantize(_ONE, rounding=ROUND_HALF_UP))
    return CommissionSplit(
        gross_cents=gross_cents,
        commission_cents=commission,
        creator_cents=gross_cents - commission,
    )
