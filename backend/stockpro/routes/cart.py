# Overview: Flask API routes for the session cart; parses input and returns JSON responses.

# backend/stockpro/routes/cart.py
"""
Cart routes.

One cart per session token, held in process memory (extensions.carts).
Stock checks here are soft and use the session's catalog snapshot; the
checkout engine does the authoritative check.
"""
from flask import Blueprint, request, g, current_app

from ..extensions import carts
from ..services import catalog_service
from ..services.cart_service import CartError, InsufficientDisplayStockError
from ..services.catalog_service import CatalogUnavailableError
from ..validation import ValidationError, coerce_int, parse_quantity
from ..decorators import require_auth, require_permission

cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")


def _cart_session():
    return carts.get(g.session_context.session_id)


def _cart_body(cart_session):
    return cart_session.to_dict(current_app.config["STOCKPRO_TAX_RATE_BP"])


def _snapshot(cart_session):
    if cart_session.catalog is None:
        cart_session.catalog = catalog_service.load()
    return cart_session.catalog


def _lookup(cart_session, *, item_id=None, barcode=None):
    """Find an item in the session snapshot, reloading once on a miss."""
    def find(snapshot):
        if item_id is not None:
            return snapshot.get(item_id)
        return snapshot.find_by_barcode(barcode)

    item = find(_snapshot(cart_session))
    if item is None:
        cart_session.catalog = catalog_service.load()
        item = find(cart_session.catalog)
    return item


@cart_bp.get("")
@require_auth
@require_permission("CHECKOUT")
def get_cart_route():
    cart_session = _cart_session()
    with cart_session.lock:
        return _cart_body(cart_session)


@cart_bp.post("/items")
@require_auth
@require_permission("CHECKOUT")
def add_item_route():
    """
    Add an item to the cart (merges with an existing line).

    Request body: {"item_id": int} or {"barcode": str}, plus "quantity" (default 1).
    """
    payload = request.get_json(silent=True) or {}
    try:
        quantity = parse_quantity(payload.get("quantity", 1))
        item_id = payload.get("item_id")
        barcode = payload.get("barcode")
        if item_id is None and not barcode:
            raise ValidationError("item_id or barcode is required")
        if item_id is not None:
            item_id = coerce_int("item_id", item_id)
    except ValidationError as e:
        return {"error": str(e)}, 400

    cart_session = _cart_session()
    with cart_session.lock:
        try:
            item = _lookup(cart_session, item_id=item_id, barcode=barcode)
        except CatalogUnavailableError as e:
            return {"error": str(e), "retryable": True}, 503
        if item is None:
            return {"error": "Item not found"}, 404

        try:
            cart_session.cart.add_item(item, quantity)
        except InsufficientDisplayStockError as e:
            return {"error": str(e), "details": e.details}, 409
        except (CartError, ValidationError) as e:
            return {"error": str(e)}, 400

        return _cart_body(cart_session), 201


@cart_bp.put("/items/<int:item_id>")
@require_auth
@require_permission("CHECKOUT")
def set_quantity_route(item_id: int):
    """
    Overwrite a line's quantity; quantity <= 0 removes the line.
    """
    payload = request.get_json(silent=True) or {}
    try:
        if "quantity" not in payload:
            raise ValidationError("quantity is required")
        quantity = coerce_int("quantity", payload["quantity"])
    except ValidationError as e:
        return {"error": str(e)}, 400

    cart_session = _cart_session()
    with cart_session.lock:
        item = cart_session.catalog.get(item_id) if cart_session.catalog is not None else None
        try:
            cart_session.cart.set_quantity(item_id, quantity, item=item)
        except InsufficientDisplayStockError as e:
            return {"error": str(e), "details": e.details}, 409
        except CartError as e:
            return {"error": str(e), "details": e.details}, 404
        except ValidationError as e:
            return {"error": str(e)}, 400

        return _cart_body(cart_session)


@cart_bp.delete("/items/<int:item_id>")
@require_auth
@require_permission("CHECKOUT")
def remove_item_route(item_id: int):
    cart_session = _cart_session()
    with cart_session.lock:
        cart_session.cart.remove_item(item_id)
        return _cart_body(cart_session)


@cart_bp.delete("")
@require_auth
@require_permission("CHECKOUT")
def clear_cart_route():
    cart_session = _cart_session()
    with cart_session.lock:
        cart_session.cart.clear()
        return _cart_body(cart_session)
