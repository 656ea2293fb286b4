"""
Unit tests for invoicing/services/validation.py

Covers the phone rule shared by customer and profile phones, amount
coercion and money formatting.
"""

import math

import pytest

from invoicing.services.validation import (
    format_amount,
    is_valid_phone,
    normalize_phone,
    parse_amount,
    round_money,
)


# ---------------------------------------------------------------------------
# is_valid_phone
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "phone",
    [
        "0244123456",
        "+233244123456",
        "0244 123 456",
        " 020 000 0000 ",
        "0591234567",
        "+233 50 123 4567",
    ],
)
def test_valid_phones(phone):
    assert is_valid_phone(phone) is True


@pytest.mark.parametrize(
    "phone",
    [
        "0144123456",     # bad network prefix
        "024412345",      # too short
        "02441234567",    # too long
        "233244123456",   # country code without +
        "+2330244123456", # both prefixes
        "0294123456",     # 29 is not a mobile prefix
        "",
        "024412345a",
    ],
)
def test_invalid_phones(phone):
    assert is_valid_phone(phone) is False


def test_is_valid_phone_handles_none():
    assert is_valid_phone(None) is False


def test_normalize_phone_strips_all_whitespace():
    assert normalize_phone(" 024\t412 3456\n") == "0244123456"


# ---------------------------------------------------------------------------
# parse_amount
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "raw, expected",
    [
        (12, 12.0),
        (2.5, 2.5),
        ("7.25", 7.25),
        (" 3 ", 3.0),
        ("-4", -4.0),
        ("", 0.0),
        ("abc", 0.0),
        (None, 0.0),
        (True, 0.0),
        ("nan", 0.0),
        ("inf", 0.0),
        (float("nan"), 0.0),
    ],
)
def test_parse_amount(raw, expected):
    result = parse_amount(raw)
    assert not math.isnan(result)
    assert result == expected


# ---------------------------------------------------------------------------
# round_money / format_amount
# ---------------------------------------------------------------------------

def test_round_money_two_places():
    assert round_money(10.005 + 0.001) == 10.01
    assert round_money(26) == 26.0


def test_format_amount_uses_default_currency():
    assert format_amount(26) == "GHS 26.00"


def test_format_amount_explicit_currency():
    assert format_amount(1234.5, "NGN") == "NGN 1234.50"


def test_format_amount_negative_sign_before_currency():
    assert format_amount(-1, "GHS") == "-GHS 1.00"


def test_format_amount_tiny_negative_is_not_negative_zero():
    assert format_amount(-0.001, "GHS") == "GHS 0.00"
