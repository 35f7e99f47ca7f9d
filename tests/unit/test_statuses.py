"""
Unit tests for status enums and their boundary parsing.
"""

import pytest

from billing_kernel.domain.statuses import (
    AppointmentStatus,
    PaymentMethod,
    PaymentStatus,
    QuoteStatus,
    parse_optional,
    parse_status,
)
from billing_kernel.exceptions import UnknownStatusError, ValidationError


class TestParseStatus:
    """Tests for parse_status."""

    def test_raw_string(self):
        """Known strings map to enum members."""
        assert parse_status(QuoteStatus, "approved") is QuoteStatus.APPROVED
        assert parse_status(PaymentStatus, "paid") is PaymentStatus.PAID

    def test_member_passes_through(self):
        """Members are returned unchanged."""
        assert parse_status(AppointmentStatus, AppointmentStatus.CANCELLED) is (
            AppointmentStatus.CANCELLED
        )

    def test_unknown_value_rejected(self):
        """Unknown values raise UnknownStatusError listing what is allowed."""
        with pytest.raises(UnknownStatusError) as exc_info:
            parse_status(PaymentStatus, "refunded", "payment status")
        err = exc_info.value
        assert err.code == "UNKNOWN_STATUS"
        assert err.value == "refunded"
        assert err.allowed == ["pending", "paid"]

    def test_unknown_is_a_validation_error(self):
        """UnknownStatusError is catchable as ValidationError."""
        with pytest.raises(ValidationError):
            parse_status(QuoteStatus, "APPROVED")


class TestParseOptional:
    """Tests for parse_optional."""

    @pytest.mark.parametrize("raw", [None, ""])
    def test_empty_is_none(self, raw):
        """None and empty string mean 'no method'."""
        assert parse_optional(PaymentMethod, raw, "payment method") is None

    def test_value(self):
        """A present value is parsed like parse_status."""
        assert parse_optional(PaymentMethod, "pix", "payment method") is PaymentMethod.PIX

    def test_unknown(self):
        """Unknown methods are rejected."""
        with pytest.raises(UnknownStatusError):
            parse_optional(PaymentMethod, "card", "payment method")


class TestEnumValues:
    """The closed sets themselves."""

    def test_members(self):
        """Enums hold exactly the documented members."""
        assert [s.value for s in QuoteStatus] == ["sent", "approved", "lost"]
        assert [s.value for s in PaymentStatus] == ["pending", "paid"]
        assert [m.value for m in PaymentMethod] == ["pix", "cash", "other"]
        assert [s.value for s in AppointmentStatus] == [
            "scheduled",
            "completed",
            "cancelled",
        ]

    def test_str_enum_compares_to_raw(self):
        """Members compare equal to their raw strings."""
        assert QuoteStatus.LOST == "lost"
