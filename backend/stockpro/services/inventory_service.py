# Overview: Service-layer operations for inventory items and stock-in.

"""
StockPro Inventory Invariants (authoritative)

- quantity is the stored on-hand count and is never negative (CHECK constraint
  plus conditional updates).
- quantity changes only through create_item() (opening stock), stock_in()
  (increment) and the checkout engine's decrement_if_available(); item
  edits cannot write it.
- Every quantity change appends a TransactionRecord in the same DB transaction.
- Items are never hard-deleted; deactivated items drop out of the catalog and
  fail checkout with ItemNotFound.
"""

from __future__ import annotations

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError

from ..domain import Cashier, TransactionEntry
from ..extensions import db
from ..models import InventoryItem, STOCK_IN
from ..repositories import SqlUnitOfWork
from ..validation import LIKE_ESCAPE, ConflictError, contains_pattern
from .concurrency import run_with_retry


ITEM_MUTABLE_FIELDS = {"name", "category", "price_cents", "unit", "barcode", "is_active"}

OPENING_STOCK_NOTE = "Opening stock"


class InventoryError(Exception):
    """Raised for inventory operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ItemNotFoundError(InventoryError):
    pass


def list_items(*, include_inactive: bool = False, category: str | None = None, search: str | None = None) -> list[InventoryItem]:
    stmt = select(InventoryItem).order_by(InventoryItem.name.asc(), InventoryItem.id.asc())
    if not include_inactive:
        stmt = stmt.where(InventoryItem.is_active.is_(True))
    if category:
        stmt = stmt.where(InventoryItem.category == category)
    if search:
        like = contains_pattern(search.strip().lower())
        stmt = stmt.where(
            or_(
                func.lower(InventoryItem.name).like(like, escape=LIKE_ESCAPE),
                func.lower(InventoryItem.category).like(like, escape=LIKE_ESCAPE),
                InventoryItem.barcode.like(like, escape=LIKE_ESCAPE),
            )
        )
    return list(db.session.execute(stmt).scalars())


def get_item(item_id: int, *, include_inactive: bool = False) -> InventoryItem:
    item = db.session.get(InventoryItem, item_id)
    if item is None or (not include_inactive and not item.is_active):
        raise ItemNotFoundError("Item not found", details={"item_id": item_id})
    return item


def find_by_barcode(barcode: str) -> InventoryItem | None:
    code = (barcode or "").strip()
    if not code:
        return None
    return db.session.query(InventoryItem).filter_by(barcode=code, is_active=True).first()


def low_stock_items(threshold: int) -> list[InventoryItem]:
    """Active items with quantity at or below threshold, lowest first."""
    return (
        db.session.query(InventoryItem)
        .filter(InventoryItem.is_active.is_(True), InventoryItem.quantity <= threshold)
        .order_by(InventoryItem.quantity.asc(), InventoryItem.name.asc())
        .all()
    )


def _ensure_barcode_free(barcode: str | None, exclude_id: int | None = None) -> None:
    if not barcode:
        return
    q = db.session.query(InventoryItem).filter_by(barcode=barcode)
    if exclude_id is not None:
        q = q.filter(InventoryItem.id != exclude_id)
    if q.first() is not None:
        raise ConflictError("Barcode already assigned to another item")


def _stock_in_entry(item, quantity: int, actor: Cashier, note: str | None) -> TransactionEntry:
    return TransactionEntry(
        type=STOCK_IN,
        item_id=item.id,
        item_name=item.name,
        quantity=quantity,
        unit=item.unit,
        unit_price_cents=item.price_cents,
        line_total_cents=item.price_cents * quantity,
        cashier_email=actor.email,
        cashier_user_id=actor.user_id,
        note=note,
    )


def create_item(*, patch: dict, actor: Cashier) -> InventoryItem:
    """
    Add a new item from a validated patch.

    A positive opening quantity is recorded as a Stock In transaction in the
    same DB transaction as the insert, so a failure leaves no item behind.
    """
    opening_qty = patch.get("quantity", 0) or 0

    def _op():
        with SqlUnitOfWork() as uow:
            _ensure_barcode_free(patch.get("barcode"))
            item = InventoryItem(
                name=patch["name"],
                category=patch.get("category", ""),
                price_cents=patch.get("price_cents", 0),
                quantity=opening_qty,
                unit=patch.get("unit") or "pcs",
                barcode=patch.get("barcode"),
                is_active=patch.get("is_active", True),
            )
            uow.session.add(item)
            try:
                uow.session.flush()
            except IntegrityError:
                raise ConflictError("Barcode already assigned to another item")

            if opening_qty > 0:
                uow.transactions.append(_stock_in_entry(item, opening_qty, actor, OPENING_STOCK_NOTE))
            uow.commit()
            return item.id

    return db.session.get(InventoryItem, run_with_retry(_op))


def update_item(item_id: int, *, patch: dict) -> InventoryItem:
    """Edit item details. quantity is not writable here."""
    if "quantity" in patch:
        raise InventoryError("quantity can only change through stock in or checkout")

    item = get_item(item_id, include_inactive=True)
    if "barcode" in patch:
        _ensure_barcode_free(patch["barcode"], exclude_id=item.id)

    for k, v in patch.items():
        if k in ITEM_MUTABLE_FIELDS:
            setattr(item, k, v)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Barcode already assigned to another item")
    return item


def stock_in(*, item_id: int, quantity: int, actor: Cashier, note: str | None = None) -> TransactionEntry:
    """
    Increase an item's quantity and log a Stock In record atomically.
    """
    if quantity <= 0:
        raise InventoryError("quantity must be > 0")

    def _op():
        with SqlUnitOfWork() as uow:
            item = uow.inventory.increment(item_id, quantity)
            if item is None:
                raise ItemNotFoundError("Item not found", details={"item_id": item_id})

            entry = uow.transactions.append(_stock_in_entry(item, quantity, actor, note))
            uow.commit()
            return entry

    return run_with_retry(_op)


def total_quantity_on_hand() -> int:
    total = db.session.query(
        func.coalesce(func.sum(InventoryItem.quantity), 0)
    ).filter(InventoryItem.is_active.is_(True)).scalar()
    return int(total or 0)
