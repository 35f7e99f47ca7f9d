"""
Module: billing_kernel.db.types
Responsibility: Annotated type aliases and rounding helpers for currency
    columns.  Centralizes precision and rounding so that every model, store
    and aggregation uses identical money semantics.
Architecture position: Kernel > DB.  May be imported by models/, store/,
    domain/, services/ and selectors/.  MUST NOT import from any of those.

Invariants enforced:
    - Two-decimal currency.  MONEY_DECIMAL_PLACES is the canonical precision
      for every quote and payment value; round_money() is the ONLY sanctioned
      rounding function.
    - No floats.  A float handed in at the boundary is converted through
      str() first so binary representation noise never reaches a sum.

Failure modes:
    - InvalidAmountError on a non-numeric, non-finite or negative amount.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated

from sqlalchemy import Numeric

from billing_kernel.exceptions import InvalidAmountError

# Currency amount, two decimal places
Money = Annotated[Decimal, Numeric(12, 2)]


MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    This is the ONLY sanctioned rounding function for money in the kernel.

    Args:
        value: Amount to round.
        decimal_places: Number of decimal places to keep.
        rounding: Decimal rounding mode.

    Returns:
        Quantized Decimal.
    """
    return value.quantize(Decimal(1).scaleb(-decimal_places), rounding=rounding)


def to_money(value: Decimal | str | int | float, *, allow_negative: bool = False) -> Decimal:
    """
    Coerce a boundary value into a quantized two-decimal Decimal.

    Preconditions: value is a Decimal, int, numeric string or float.
    Postconditions: Returns a finite Decimal with exactly two places.

    Raises:
        InvalidAmountError: If value is not numeric, not finite, or negative
            while allow_negative is False.
    """
    if isinstance(value, bool):
        raise InvalidAmountError(str(value), "booleans are not amounts")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmountError(str(value), "not a number") from exc
    if not amount.is_finite():
        raise InvalidAmountError(str(value), "not finite")
    if amount < 0 and not allow_negative:
        raise InvalidAmountError(str(value), "must not be negative")
    return round_money(amount)
