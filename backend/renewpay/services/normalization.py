"""
Field normalization for PayU form values.

All helpers are total: they default or truncate, never reject.
"""
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

PHONE_LENGTH = 10
PHONE_FALLBACK = "0" * PHONE_LENGTH

_NON_DIGITS = re.compile(r"\D")


def format_phone_number(phone: Optional[str]) -> str:
    """
    Normalize a phone number to exactly 10 digits.

    Drops a 91 country code on 12-digit numbers and a trunk 0 on 11-digit
    numbers, keeps the last 10 digits of anything longer and zero-pads
    anything shorter.

    >>> format_phone_number("+91 98765 43210")
    '9876543210'
    >>> format_phone_number("123")
    '0000000123'
    """
    if not phone:
        return PHONE_FALLBACK

    digits = _NON_DIGITS.sub("", phone)

    if len(digits) == 12 and digits.startswith("91"):
        digits = digits[2:]
    elif len(digits) == 11 and digits.startswith("0"):
        digits = digits[1:]

    if len(digits) >= PHONE_LENGTH:
        return digits[-PHONE_LENGTH:]

    return digits.rjust(PHONE_LENGTH, "0")


def format_amount(amount: Union[Decimal, int, float, str]) -> str:
    """Format an amount with exactly two decimal places ("3000" -> "3000.00")."""
    value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    return str(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def truncate(value: Optional[str], max_length: int) -> str:
    return (value or "")[:max_length]


def default_trim_truncate(value: Optional[str], fallback: str, max_length: int) -> str:
    """Apply a fallback to empty input, then trim, then truncate."""
    return (value or fallback).strip()[:max_length]
