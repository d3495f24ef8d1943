"""
Values -- Exact currency arithmetic helpers.

Responsibility:
    Provides the rounding and range-checking primitives used for every
    monetary amount in the engine, plus date helpers.  All amounts are
    single-currency (SLE) ``Decimal`` values stored at two decimal places.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every other domain module and engine.

Invariants enforced:
    - Exact decimal: amounts are Decimal end to end; obligation validation
      rejects anything else.
    - Rounding is ROUND_HALF_UP to the currency quantum (0.01).
    - Amounts must fit the decimal(18,2) column range of the ledger store.

Failure modes:
    - ArithmeticOverflowError when an amount exceeds MAX_AMOUNT or the
      decimal context signals Overflow.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, Overflow

from compliance_kernel.exceptions import ArithmeticOverflowError

CURRENCY_QUANTUM = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Largest value representable in a decimal(18,2) ledger column.
MAX_AMOUNT = Decimal("9999999999999999.99")


def check_amount_range(amount: Decimal, field: str = "amount") -> Decimal:
    """Raise ArithmeticOverflowError if ``amount`` is outside +/-MAX_AMOUNT."""
    if not amount.is_finite() or abs(amount) > MAX_AMOUNT:
        raise ArithmeticOverflowError(field, str(amount), str(MAX_AMOUNT))
    return amount


def round_amount(amount: Decimal, field: str = "amount") -> Decimal:
    """
    Round to the currency quantum with ROUND_HALF_UP.

    Postconditions:
        - Result has exactly two decimal places and is within MAX_AMOUNT.
    Raises:
        ArithmeticOverflowError: if the amount does not fit.
    """
    check_amount_range(amount, field)
    try:
        return amount.quantize(CURRENCY_QUANTUM, rounding=ROUND_HALF_UP)
    except (InvalidOperation, Overflow) as e:
        raise ArithmeticOverflowError(field, str(amount), str(MAX_AMOUNT)) from e


def as_date(value: date | datetime) -> date:
    """Reduce a datetime to its calendar date; pass dates through."""
    if isinstance(value, datetime):
        return value.date()
    return value


def days_between(start: date, end: date) -> int:
    """Signed whole days from ``start`` to ``end``."""
    return (as_date(end) - as_date(start)).days
