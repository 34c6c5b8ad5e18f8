# Overview: Pure formatting of receipts for display and printing.

from __future__ import annotations

from ..money import format_cents, format_rate
from ..time_utils import to_display, to_utc_z


RECEIPT_FOOTER = "Thank you for shopping with us!"
STORE_NAME = "StockPro Supermarket"

MIN_RECEIPT_WIDTH = 24
MAX_RECEIPT_WIDTH = 120


def render_receipt(receipt, currency_symbol: str = "") -> dict:
    """Display-ready strings for every receipt field."""
    money = lambda cents: format_cents(cents, currency_symbol)  # noqa: E731
    return {
        "receipt_number": receipt.receipt_number,
        "timestamp": to_utc_z(receipt.timestamp),
        "timestamp_display": to_display(receipt.timestamp),
        "cashier_email": receipt.cashier_email,
        "lines": [
            {
                "item_name": line.item_name,
                "quantity": f"{line.quantity} {line.unit}".strip(),
                "unit_price": money(line.unit_price_cents),
                "line_total": money(line.line_total_cents),
            }
            for line in receipt.lines
        ],
        "subtotal": money(receipt.subtotal_cents),
        "tax_label": f"VAT ({format_rate(receipt.tax_rate_bp)})",
        "tax": money(receipt.tax_cents),
        "total": money(receipt.total_cents),
        "note": receipt.note,
        "footer": RECEIPT_FOOTER,
    }


def _row(left: str, right: str, width: int) -> str:
    space = width - len(left) - len(right)
    if space < 1:
        left = left[: max(width - len(right) - 2, 1)] + "~"
        space = max(width - len(left) - len(right), 1)
    return f"{left}{' ' * space}{right}"


def render_receipt_text(receipt, width: int = 40, currency_symbol: str = "") -> str:
    """
    Fixed-width plain-text receipt for the print surface.

    Deterministic: the same receipt always renders the same text.
    """
    if not MIN_RECEIPT_WIDTH <= width <= MAX_RECEIPT_WIDTH:
        raise ValueError(f"width must be between {MIN_RECEIPT_WIDTH} and {MAX_RECEIPT_WIDTH}")

    view = render_receipt(receipt, currency_symbol)
    rule = "-" * width
    out = [
        STORE_NAME.center(width).rstrip(),
        f"Receipt {view['receipt_number']}".center(width).rstrip(),
        view["timestamp_display"].center(width).rstrip(),
        rule,
    ]
    for line in view["lines"]:
        out.append(line["item_name"][:width])
        out.append(_row(f"  {line['quantity']} x {line['unit_price']}", line["line_total"], width))
    out.append(rule)
    out.append(_row("Subtotal", view["subtotal"], width))
    out.append(_row(view["tax_label"], view["tax"], width))
    out.append(_row("TOTAL", view["total"], width))
    out.append(rule)
    if view["note"]:
        out.append(f"Note: {view['note']}")
    out.append(f"Cashier: {view['cashier_email']}")
    out.append("")
    out.append(view["footer"].center(width).rstrip())
    return "\n".join(out) + "\n"
