# Overview: Service-layer operations for reporting; dashboards, transaction tables and CSV export.

from __future__ import annotations

import csv
import io
from datetime import date
from typing import Iterable

from sqlalchemy import func, or_

from ..extensions import db
from ..models import InventoryItem, TransactionRecord, User, STOCK_IN, STOCK_OUT
from ..money import format_cents
from ..time_utils import to_display, utcnow
from ..validation import LIKE_ESCAPE, contains_pattern
from .inventory_service import low_stock_items, total_quantity_on_hand


# Dashboard "recent sales" window (number of Stock Out records)
RECENT_SALES_WINDOW = 12
RECENT_TRANSACTIONS_LIMIT = 10
DEFAULT_LIST_LIMIT = 500
MAX_LIST_LIMIT = 5000

TYPE_FILTERS = {
    "all": None,
    "stock_in": STOCK_IN,
    "stock_out": STOCK_OUT,
}

CSV_HEADER = ("Type", "Item", "Quantity", "Unit", "Price", "Total", "Cashier", "Date")
CSV_FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def _transactions_query(*, search: str | None = None, type_filter: str = "all", cashier_email: str | None = None):
    if type_filter not in TYPE_FILTERS:
        raise ReportError(f"type must be one of: {', '.join(TYPE_FILTERS)}")

    query = db.session.query(TransactionRecord)

    tx_type = TYPE_FILTERS[type_filter]
    if tx_type is not None:
        query = query.filter(TransactionRecord.type == tx_type)

    if cashier_email is not None:
        query = query.filter(TransactionRecord.cashier_email == cashier_email)

    term = (search or "").strip().lower()
    if term:
        like = contains_pattern(term)
        query = query.filter(
            or_(
                func.lower(TransactionRecord.item_name).like(like, escape=LIKE_ESCAPE),
                func.lower(TransactionRecord.type).like(like, escape=LIKE_ESCAPE),
                func.lower(TransactionRecord.cashier_email).like(like, escape=LIKE_ESCAPE),
            )
        )
    return query


def list_transactions(
    *,
    search: str | None = None,
    type_filter: str = "all",
    cashier_email: str | None = None,
    limit: int = DEFAULT_LIST_LIMIT,
) -> list[TransactionRecord]:
    """
    Transaction log rows, newest first.

    search matches item name, type or cashier email (case-insensitive).
    cashier_email restricts the rows to one user (staff "my transactions").
    """
    if limit <= 0 or limit > MAX_LIST_LIMIT:
        raise ReportError(f"limit must be between 1 and {MAX_LIST_LIMIT}")

    query = _transactions_query(search=search, type_filter=type_filter, cashier_email=cashier_email)
    return (
        query.order_by(TransactionRecord.timestamp.desc(), TransactionRecord.id.desc())
        .limit(limit)
        .all()
    )


def transaction_stats(records: Iterable[TransactionRecord]) -> dict:
    total = stock_in = stock_out = value = 0
    for r in records:
        total += 1
        if r.type == STOCK_IN:
            stock_in += 1
        elif r.type == STOCK_OUT:
            stock_out += 1
        value += r.line_total_cents
    return {
        "total": total,
        "stock_in": stock_in,
        "stock_out": stock_out,
        "total_value_cents": value,
    }


def _stock_out_totals(cashier_email: str | None = None) -> tuple[int, int, int]:
    """(record count, quantity, amount) over Stock Out records."""
    query = db.session.query(
        func.count(TransactionRecord.id),
        func.coalesce(func.sum(TransactionRecord.quantity), 0),
        func.coalesce(func.sum(TransactionRecord.line_total_cents), 0),
    ).filter(TransactionRecord.type == STOCK_OUT)
    if cashier_email is not None:
        query = query.filter(TransactionRecord.cashier_email == cashier_email)
    count, qty, amount = query.one()
    return int(count), int(qty), int(amount)


def recent_sales_total(window: int = RECENT_SALES_WINDOW) -> int:
    recent = (
        db.session.query(TransactionRecord.line_total_cents)
        .filter(TransactionRecord.type == STOCK_OUT)
        .order_by(TransactionRecord.timestamp.desc(), TransactionRecord.id.desc())
        .limit(window)
        .subquery()
    )
    total = db.session.query(func.coalesce(func.sum(recent.c.line_total_cents), 0)).scalar()
    return int(total or 0)


def admin_summary(*, low_stock_threshold: int) -> dict:
    active_items = db.session.query(InventoryItem).filter(InventoryItem.is_active.is_(True))
    low = low_stock_items(low_stock_threshold)
    recent = (
        db.session.query(TransactionRecord)
        .order_by(TransactionRecord.timestamp.desc(), TransactionRecord.id.desc())
        .limit(RECENT_TRANSACTIONS_LIMIT)
        .all()
    )
    return {
        "total_products": active_items.count(),
        "total_users": db.session.query(User).filter(User.is_active.is_(True)).count(),
        "low_stock_count": len(low),
        "low_stock_items": [i.to_dict() for i in low],
        "total_quantity": total_quantity_on_hand(),
        "recent_sales_cents": recent_sales_total(),
        "recent_transactions": [r.to_dict() for r in recent],
    }


def staff_summary(user, *, low_stock_threshold: int) -> dict:
    tx_count = (
        db.session.query(func.count(TransactionRecord.id))
        .filter(TransactionRecord.cashier_email == user.email)
        .scalar()
    )
    _, sold_qty, sales_cents = _stock_out_totals(user.email)
    mine = list_transactions(cashier_email=user.email, limit=RECENT_TRANSACTIONS_LIMIT)
    return {
        "my_transaction_count": int(tx_count or 0),
        "my_stock_out_quantity": sold_qty,
        "my_sales_cents": sales_cents,
        "low_stock_count": len(low_stock_items(low_stock_threshold)),
        "total_products": db.session.query(InventoryItem).filter(InventoryItem.is_active.is_(True)).count(),
        "total_quantity": total_quantity_on_hand(),
        "recent_transactions": [r.to_dict() for r in mine],
    }


def _csv_cell(value: str) -> str:
    # Spreadsheets evaluate cells starting with these as formulas
    if value and value[0] in CSV_FORMULA_PREFIXES:
        return "'" + value
    return value


def export_transactions_csv(records: Iterable[TransactionRecord]) -> str:
    """
    CSV of the given rows with every cell quoted.

    Money columns are formatted major units without a currency symbol.
    Free-text cells that a spreadsheet would read as a formula get a
    leading apostrophe.
    """
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for r in records:
        writer.writerow([
            r.type,
            _csv_cell(r.item_name),
            r.quantity,
            _csv_cell(r.unit),
            format_cents(r.unit_price_cents),
            format_cents(r.line_total_cents),
            _csv_cell(r.cashier_email),
            to_display(r.timestamp),
        ])
    return buf.getvalue()


def export_filename(day: date | None = None) -> str:
    day = day or utcnow().date()
    return f"transactions-{day.isoformat()}.csv"
