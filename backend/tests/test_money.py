"""Minor-unit arithmetic and formatting."""

import pytest

from stockpro.money import (
    format_cents,
    format_rate,
    line_total_cents,
    parse_amount_to_cents,
    tax_cents,
)


def test_line_total_is_exact_integer_product():
    assert line_total_cents(50000, 3) == 150000
    assert line_total_cents(1999, 7) == 13993


@pytest.mark.parametrize(
    "subtotal,rate_bp,expected",
    [
        (150000, 750, 11250),   # 1,500.00 at 7.5% -> 112.50
        (7, 750, 1),            # 0.525 rounds half-up to 1
        (6, 750, 0),            # 0.45 rounds down
        (20, 250, 1),           # exactly 0.5 rounds up
        (0, 750, 0),
        (123456, 0, 0),
    ],
)
def test_tax_rounds_half_up(subtotal, rate_bp, expected):
    assert tax_cents(subtotal, rate_bp) == expected


def test_tax_rejects_negative_inputs():
    with pytest.raises(ValueError):
        tax_cents(-1, 750)
    with pytest.raises(ValueError):
        tax_cents(100, -5)


def test_format_cents():
    assert format_cents(161250) == "1,612.50"
    assert format_cents(161250, "₦") == "₦1,612.50"
    assert format_cents(5) == "0.05"
    assert format_cents(-1050) == "-10.50"


def test_format_rate():
    assert format_rate(750) == "7.5%"
    assert format_rate(1000) == "10%"
    assert format_rate(125) == "1.25%"
    assert format_rate(0) == "0%"


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("500", 50000),
        ("499.99", 49999),
        ("12.5", 1250),
        (12.5, 1250),
        (7, 700),
        (".5", 50),
        (" 3.10 ", 310),
    ],
)
def test_parse_amount_to_cents(raw, expected):
    assert parse_amount_to_cents(raw) == expected


@pytest.mark.parametrize("raw", ["1.234", "1e3", "abc", "", True, None, "1.2.3"])
def test_parse_amount_rejects_bad_input(raw):
    with pytest.raises(ValueError):
        parse_amount_to_cents(raw)
