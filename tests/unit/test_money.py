"""
Unit tests for money handling.

Verifies:
- Boundary conversion (to_money) and its rejections
- Rounding determinism (ROUND_HALF_UP to two places)
- Exact accumulation (MoneyAccumulator)
"""

from decimal import ROUND_HALF_EVEN, Decimal

import pytest

from billing_kernel.db.types import MONEY_DECIMAL_PLACES, round_money, to_money
from billing_kernel.domain.values import MoneyAccumulator
from billing_kernel.exceptions import InvalidAmountError


class TestToMoney:
    """Tests for to_money."""

    def test_string_is_quantized(self):
        """Strings convert to two-decimal Decimals."""
        assert to_money("100") == Decimal("100.00")
        assert str(to_money("100")) == "100.00"

    def test_int(self):
        """Integers convert exactly."""
        assert to_money(150) == Decimal("150.00")

    def test_float_goes_through_str(self):
        """0.1 becomes 0.10, not 0.1000000000000000055..."""
        assert to_money(0.1) == Decimal("0.10")

    def test_half_up_rounding(self):
        """Third decimal place rounds half up."""
        assert to_money("2.345") == Decimal("2.35")
        assert to_money("2.344") == Decimal("2.34")

    def test_zero_is_accepted(self):
        """Zero is a valid amount."""
        assert to_money(0) == Decimal("0.00")

    def test_negative_rejected(self):
        """Negative amounts raise InvalidAmountError."""
        with pytest.raises(InvalidAmountError) as exc_info:
            to_money("-1.00")
        assert exc_info.value.code == "INVALID_AMOUNT"

    def test_negative_allowed_when_asked(self):
        """allow_negative lets negatives through."""
        assert to_money("-1.005", allow_negative=True) == Decimal("-1.01")

    def test_garbage_rejected(self):
        """Non-numeric strings raise InvalidAmountError."""
        with pytest.raises(InvalidAmountError):
            to_money("abc")

    def test_non_finite_rejected(self):
        """NaN and infinity are not amounts."""
        with pytest.raises(InvalidAmountError):
            to_money(Decimal("NaN"))
        with pytest.raises(InvalidAmountError):
            to_money(float("inf"))

    def test_bool_rejected(self):
        """True is not one real."""
        with pytest.raises(InvalidAmountError):
            to_money(True)


class TestRoundMoney:
    """Tests for round_money."""

    def test_default_places(self):
        """Default quantization is two places."""
        assert MONEY_DECIMAL_PLACES == 2
        assert round_money(Decimal("1.005")) == Decimal("1.01")

    def test_custom_rounding(self):
        """Rounding mode can be overridden."""
        assert round_money(Decimal("1.005"), rounding=ROUND_HALF_EVEN) == Decimal("1.00")

    def test_deterministic(self):
        """Same input always gives the same output."""
        results = {round_money(Decimal("9.995")) for _ in range(50)}
        assert results == {Decimal("10.00")}


class TestMoneyAccumulator:
    """Tests for MoneyAccumulator."""

    def test_empty_total_is_zero(self):
        """A fresh accumulator sums to 0.00 with count 0."""
        acc = MoneyAccumulator()
        assert acc.total == Decimal("0.00")
        assert acc.count == 0

    def test_ten_dimes_make_one(self):
        """0.10 added ten times is exactly 1.00."""
        acc = MoneyAccumulator()
        for _ in range(10):
            acc.add("0.10")
        assert acc.total == Decimal("1.00")

    def test_zero_values_are_counted(self):
        """Zero-value additions count but do not change the total."""
        acc = MoneyAccumulator()
        acc.add(0)
        acc.add("5")
        assert acc.total == Decimal("5.00")
        assert acc.count == 2

    def test_negative_rejected(self):
        """The accumulator refuses negative amounts."""
        acc = MoneyAccumulator()
        with pytest.raises(InvalidAmountError):
            acc.add("-1")
