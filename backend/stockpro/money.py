"""
Minor-unit money helpers.

All amounts are integers in the currency's minor unit (kobo, cents).
Rates are integers in basis points (1 bp = 0.01%), so 750 bp = 7.5%.
"""

from __future__ import annotations

BASIS_POINTS = 10_000


def line_total_cents(unit_price_cents: int, quantity: int) -> int:
    return unit_price_cents * quantity


def tax_cents(subtotal_cents: int, rate_bp: int) -> int:
    """Tax on a subtotal, rounded half-up to the nearest minor unit."""
    if subtotal_cents < 0 or rate_bp < 0:
        raise ValueError("subtotal and rate must be non-negative")
    return (subtotal_cents * rate_bp + BASIS_POINTS // 2) // BASIS_POINTS


def format_cents(amount_cents: int, symbol: str = "") -> str:
    sign = "-" if amount_cents < 0 else ""
    whole, minor = divmod(abs(amount_cents), 100)
    return f"{sign}{symbol}{whole:,}.{minor:02d}"


def format_rate(rate_bp: int) -> str:
    """750 -> '7.5%'."""
    pct = f"{rate_bp / 100:.2f}".rstrip("0").rstrip(".")
    return f"{pct}%"


def parse_amount_to_cents(value) -> int:
    """
    Convert a major-unit amount ("500", "499.99", 500) to minor units.

    Floats are converted through their string form to avoid binary drift;
    more than two decimal places is rejected.
    """
    if isinstance(value, bool):
        raise ValueError("amount must be a number")
    if isinstance(value, int):
        return value * 100
    if isinstance(value, float):
        value = repr(value)
    if not isinstance(value, str):
        raise ValueError("amount must be a number")

    s = value.strip()
    if not s:
        raise ValueError("amount must be a number")
    negative = s.startswith("-")
    if negative:
        s = s[1:]
    if "e" in s.lower():
        raise ValueError("amount must be a plain decimal (scientific notation not allowed)")

    whole, _, frac = s.partition(".")
    if not whole:
        whole = "0"
    if not whole.isdigit() or (frac and not frac.isdigit()):
        raise ValueError("amount must be a number")
    if len(frac) > 2:
        raise ValueError("amount supports at most two decimal places")

    cents = int(whole) * 100 + int((frac + "00")[:2])
    return -cents if negative else cents
