"""
Unit tests for PayU field normalization.
"""
from decimal import Decimal

import pytest

from renewpay.services.normalization import (
    default_trim_truncate,
    format_amount,
    format_phone_number,
    truncate,
)


class TestPhoneNormalization:
    """Test suite for format_phone_number."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("+91 98765 43210", "9876543210"),
            ("919876543210", "9876543210"),
            ("09876543210", "9876543210"),
            ("9876543210", "9876543210"),
            ("(987) 654-3210", "9876543210"),
            ("123", "0000000123"),
            ("", "0000000000"),
            (None, "0000000000"),
            ("123456789012345", "6789012345"),
        ],
    )
    def test_format_phone_number(self, raw: str, expected: str) -> None:
        """Test phone numbers normalize to exactly 10 digits."""
        assert format_phone_number(raw) == expected

    @pytest.mark.unit
    def test_non_digit_only_input_pads_to_zeros(self) -> None:
        """Test input without digits degrades to the zero fallback."""
        assert format_phone_number("n/a") == "0000000000"

    @pytest.mark.unit
    def test_eleven_digits_without_leading_zero_keeps_last_ten(self) -> None:
        """Test 11 digits not starting with 0 keep the last 10."""
        assert format_phone_number("19876543210") == "9876543210"

    @pytest.mark.unit
    def test_twelve_digits_without_country_code_keeps_last_ten(self) -> None:
        """Test 12 digits not starting with 91 keep the last 10."""
        assert format_phone_number("449876543210") == "9876543210"


class TestAmountFormatting:
    """Test suite for format_amount."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "amount, expected",
        [
            (3000, "3000.00"),
            (2999.5, "2999.50"),
            (Decimal("3000"), "3000.00"),
            (Decimal("10.005"), "10.01"),
            ("1.2", "1.20"),
        ],
    )
    def test_format_amount(self, amount, expected: str) -> None:
        """Test amounts always carry two decimal places."""
        assert format_amount(amount) == expected


class TestTruncation:
    """Test suite for truncation helpers."""

    @pytest.mark.unit
    def test_truncate(self) -> None:
        assert truncate("abcdef", 3) == "abc"
        assert truncate(None, 3) == ""

    @pytest.mark.unit
    def test_default_applies_before_trim(self) -> None:
        """Test whitespace-only input is not replaced by the fallback."""
        assert default_trim_truncate("", "Customer", 60) == "Customer"
        assert default_trim_truncate("   ", "Customer", 60) == ""

    @pytest.mark.unit
    def test_trim_then_truncate(self) -> None:
        assert default_trim_truncate("  " + "x" * 70, "Customer", 60) == "x" * 60
