"""
Values -- money accumulation and timestamp normalization.

Responsibility:
    Provides the exact-decimal accumulator used by every rollup, plus the
    helpers that put timestamps from different stores on one timeline.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Sums are built from quantized two-decimal Decimals only; repeated
      small additions reproduce exact totals (0.10 added ten times is 1.00).
    - Naive datetimes are interpreted as UTC (SQLite hands timestamps back
      without an offset; the store always writes UTC).
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from billing_kernel.db.types import round_money, to_money


class MoneyAccumulator:
    """
    Quantized two-decimal running total.

    Contract:
        ``add`` accepts anything ``to_money`` accepts (including zero) and
        keeps ``total`` quantized after every step.  ``count`` records how
        many values were added, zero-valued ones included.
    """

    __slots__ = ("_total", "_count")

    def __init__(self) -> None:
        self._total = round_money(Decimal("0"))
        self._count = 0

    def add(self, value: Decimal | str | int) -> None:
        self._total = round_money(self._total + to_money(value))
        self._count += 1

    @property
    def total(self) -> Decimal:
        return self._total

    @property
    def count(self) -> int:
        return self._count

    def __repr__(self) -> str:
        return f"MoneyAccumulator(total={self._total}, count={self._count})"


def ensure_aware(moment: datetime) -> datetime:
    """Return ``moment`` as an aware datetime, assuming UTC when naive."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def to_utc(moment: datetime) -> datetime:
    """Normalize ``moment`` to an aware UTC datetime."""
    return ensure_aware(moment).astimezone(timezone.utc)
