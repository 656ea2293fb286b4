"""
Shared validation and money rules.

Phone numbers must be Ghanaian mobile numbers: ``+233`` or a leading ``0``,
one of the network prefixes below, then exactly seven digits. Whitespace is
ignored. The same rule applies to customer phones and profile phones.

Amounts are plain floats; rounding to two places only happens for display.
"""

import math
import re
from typing import Any, Optional

from invoicing.config import settings

PHONE_REGEX = re.compile(r"^(\+233|0)(20|23|24|25|26|27|28|50|54|55|59)\d{7}$")
_WHITESPACE = re.compile(r"\s")


def normalize_phone(phone: str) -> str:
    return _WHITESPACE.sub("", phone or "")


def is_valid_phone(phone: str) -> bool:
    return bool(PHONE_REGEX.match(normalize_phone(phone)))


def parse_amount(value: Any) -> float:
    """Parse a user-supplied number; anything unparseable becomes 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def round_money(value: float) -> float:
    return round(value, 2)


def format_amount(value: float, currency: Optional[str] = None) -> str:
    currency = currency or settings.CURRENCY
    rounded = round_money(value)
    sign = "-" if rounded < 0 else ""
    return f"{sign}{currency} {abs(rounded):.2f}"
