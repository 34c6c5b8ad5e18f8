# Overview: In-memory checkout cart and the per-session cart store.

"""
Cart - pending, unconfirmed intent to remove stock.

Invariants:
- At most one CartLine per item id; adding an item again merges quantities.
- Lines keep insertion order; checkout processes them in that order.
- requested_quantity >= 1; setting a quantity <= 0 removes the line.
- Availability checks here are soft and use the catalog snapshot. The
  authoritative check happens in the checkout engine at commit time.

Carts are never persisted. CartStore keeps one cart per session token in
process memory and forgets it on logout.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from stockpro.money import line_total_cents, tax_cents
from stockpro.time_utils import utcnow, to_utc_z
from stockpro.validation import ValidationError, parse_quantity


class CartError(Exception):
    """Raised for cart operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InsufficientDisplayStockError(CartError):
    """Requested quantity exceeds the last-known (displayed) stock."""
    def __init__(self, item_id: int, name: str, requested: int, available: int):
        super().__init__(
            f"Only {available} of {name} in stock",
            details={
                "item_id": item_id,
                "requested_quantity": requested,
                "available_quantity": available,
            },
        )
        self.item_id = item_id
        self.requested = requested
        self.available = available


@dataclass
class CartLine:
    item_id: int
    name: str
    unit: str
    unit_price_cents: int
    requested_quantity: int
    # Last-known stock from the catalog, for the soft check only
    available_hint: int | None = None

    @property
    def line_total_cents(self) -> int:
        return line_total_cents(self.unit_price_cents, self.requested_quantity)

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "name": self.name,
            "unit": self.unit,
            "unit_price_cents": self.unit_price_cents,
            "requested_quantity": self.requested_quantity,
            "line_total_cents": self.line_total_cents,
            "available_quantity": self.available_hint,
        }


@dataclass(frozen=True)
class CartTotals:
    subtotal_cents: int
    tax_rate_bp: int
    tax_cents: int
    total_cents: int

    def to_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "tax_rate_bp": self.tax_rate_bp,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
        }


def _check_display_stock(line: CartLine, quantity: int, available: int | None) -> None:
    if available is not None and quantity > available:
        raise InsufficientDisplayStockError(line.item_id, line.name, quantity, available)


class Cart:

    def __init__(self):
        self._lines: dict[int, CartLine] = {}

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self):
        return iter(list(self._lines.values()))

    def __contains__(self, item_id) -> bool:
        return item_id in self._lines

    def is_empty(self) -> bool:
        return not self._lines

    def get(self, item_id: int) -> CartLine | None:
        return self._lines.get(item_id)

    def lines(self) -> list[CartLine]:
        return list(self._lines.values())

    def add_item(self, item, qty: int = 1) -> CartLine:
        """
        Add qty of item, merging into an existing line.

        item is any catalog entry exposing id, name, unit, price_cents and
        quantity (the displayed stock). The cart is unchanged on error.
        """
        qty = parse_quantity(qty)

        existing = self._lines.get(item.id)
        if existing is not None:
            merged = existing.requested_quantity + qty
            _check_display_stock(existing, merged, item.quantity)
            existing.available_hint = item.quantity
            existing.requested_quantity = merged
            return existing

        line = CartLine(
            item_id=item.id,
            name=item.name,
            unit=item.unit,
            unit_price_cents=item.price_cents,
            requested_quantity=qty,
            available_hint=item.quantity,
        )
        _check_display_stock(line, qty, item.quantity)
        self._lines[item.id] = line
        return line

    def set_quantity(self, item_id: int, qty: int, item=None) -> CartLine | None:
        """
        Overwrite a line's quantity; qty <= 0 removes the line.

        Passing the current catalog entry refreshes the displayed stock
        used by the soft check. Returns the line, or None if removed.
        """
        if isinstance(qty, bool) or not isinstance(qty, int):
            raise ValidationError("quantity must be an integer")

        line = self._lines.get(item_id)
        if line is None:
            raise CartError("Item is not in the cart", details={"item_id": item_id})

        if qty <= 0:
            self.remove_item(item_id)
            return None

        available = item.quantity if item is not None else line.available_hint
        _check_display_stock(line, qty, available)
        line.available_hint = available
        line.requested_quantity = qty
        return line

    def remove_item(self, item_id: int) -> bool:
        return self._lines.pop(item_id, None) is not None

    def clear(self) -> None:
        self._lines.clear()

    def compute_totals(self, tax_rate_bp: int) -> CartTotals:
        subtotal = sum(line.line_total_cents for line in self._lines.values())
        tax = tax_cents(subtotal, tax_rate_bp)
        return CartTotals(
            subtotal_cents=subtotal,
            tax_rate_bp=tax_rate_bp,
            tax_cents=tax,
            total_cents=subtotal + tax,
        )

    def to_dict(self, tax_rate_bp: int) -> dict:
        return {
            "lines": [line.to_dict() for line in self._lines.values()],
            "count": len(self._lines),
            "totals": self.compute_totals(tax_rate_bp).to_dict(),
        }


@dataclass
class CartSession:
    """Cart plus the catalog snapshot the session last loaded."""
    cart: Cart = field(default_factory=Cart)
    catalog: object | None = None
    touched_at: datetime = field(default_factory=utcnow)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def to_dict(self, tax_rate_bp: int) -> dict:
        data = self.cart.to_dict(tax_rate_bp)
        data["catalog_loaded_at"] = to_utc_z(getattr(self.catalog, "loaded_at", None))
        return data


class CartStore:
    """Process-local carts keyed by session id."""

    def __init__(self):
        self._sessions: dict[int, CartSession] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, session_id: int) -> CartSession:
        with self._lock:
            cart_session = self._sessions.get(session_id)
            if cart_session is None:
                cart_session = CartSession()
                self._sessions[session_id] = cart_session
            cart_session.touched_at = utcnow()
            return cart_session

    def discard(self, session_id: int) -> bool:
        """Abandon a session's cart (logout)."""
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def purge_idle(self, max_idle: timedelta) -> int:
        cutoff = utcnow() - max_idle
        with self._lock:
            stale = [k for k, s in self._sessions.items() if s.touched_at < cutoff]
            for k in stale:
                del self._sessions[k]
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()
