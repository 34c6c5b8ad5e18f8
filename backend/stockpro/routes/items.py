# Overview: Flask API routes for inventory items; parses input and returns JSON responses.

# backend/stockpro/routes/items.py
"""
Inventory item routes.

SECURITY: All routes require authentication.
- Read operations require VIEW_INVENTORY permission
- Add/edit require MANAGE_ITEMS; stock-in requires RECEIVE_STOCK
"""
from flask import Blueprint, request, g, current_app

from ..domain import Cashier
from ..models import InventoryItem
from ..permissions import can
from ..services import inventory_service
from ..services.concurrency import TRANSIENT_ERRORS
from ..services.inventory_service import InventoryError, ItemNotFoundError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    normalize_price_field,
    enforce_rules_item,
    parse_quantity,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth, require_permission

ITEM_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "category", "price_cents", "quantity", "unit", "barcode", "is_active"}),
    required_on_create=frozenset({"name", "category", "price_cents", "quantity", "unit"}),
)

# quantity is deliberately absent: it only moves through stock-in and checkout
ITEM_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "category", "price_cents", "unit", "barcode", "is_active"}),
)

items_bp = Blueprint("items", __name__, url_prefix="/api/items")


def _item_payload():
    payload = request.get_json(silent=True)
    if payload is None:
        raise ValidationError("Invalid JSON payload")
    return normalize_price_field(payload)


@items_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_items_route():
    """
    List items ordered by name.

    Query params:
    - search: str (optional) - matches name, category or barcode
    - category: str (optional)
    - include_inactive: bool (optional, MANAGE_ITEMS only)
    """
    include_inactive = request.args.get("include_inactive", "false").lower() in ("1", "true", "yes")
    if include_inactive and not can(g.current_user.role, "MANAGE_ITEMS"):
        include_inactive = False

    items = inventory_service.list_items(
        include_inactive=include_inactive,
        category=request.args.get("category") or None,
        search=request.args.get("search") or None,
    )
    return {"items": [i.to_dict() for i in items], "count": len(items)}


@items_bp.get("/low-stock")
@require_auth
@require_permission("VIEW_INVENTORY")
def low_stock_route():
    threshold = request.args.get("threshold", type=int)
    if threshold is None:
        threshold = current_app.config["STOCKPRO_LOW_STOCK_THRESHOLD"]
    if threshold < 0:
        return {"error": "threshold must be >= 0"}, 400

    items = inventory_service.low_stock_items(threshold)
    return {"items": [i.to_dict() for i in items], "count": len(items), "threshold": threshold}


@items_bp.get("/barcode/<string:code>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_by_barcode_route(code: str):
    item = inventory_service.find_by_barcode(code)
    if not item:
        return {"error": "Item not found"}, 404
    return item.to_dict()


@items_bp.get("/<int:item_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_item_route(item_id: int):
    try:
        item = inventory_service.get_item(
            item_id, include_inactive=can(g.current_user.role, "MANAGE_ITEMS")
        )
    except ItemNotFoundError as e:
        return {"error": str(e)}, 404
    return item.to_dict()


@items_bp.post("")
@require_auth
@require_permission("MANAGE_ITEMS")
def create_item_route():
    """
    Add a product.

    price may be sent in major units ("price": "500.00") or as price_cents.
    A positive opening quantity is recorded as a Stock In transaction.
    """
    try:
        patch = validate_payload(model=InventoryItem, payload=_item_payload(), policy=ITEM_CREATE_POLICY, partial=False)
        enforce_rules_item(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        item = inventory_service.create_item(patch=patch, actor=Cashier.from_user(g.current_user))
    except ConflictError as e:
        return {"error": str(e)}, 409
    except InventoryError as e:
        return {"error": str(e), "details": e.details}, 400
    except TRANSIENT_ERRORS:
        current_app.logger.exception("Item create hit a transient store error")
        return {"error": "Inventory store unavailable, please retry"}, 503
    except Exception:
        current_app.logger.exception("Failed to create item")
        return {"error": "Internal server error"}, 500

    current_app.logger.info("Item %s created by %s", item.id, g.current_user.email)
    return item.to_dict(), 201


@items_bp.patch("/<int:item_id>")
@require_auth
@require_permission("MANAGE_ITEMS")
def update_item_route(item_id: int):
    try:
        patch = validate_payload(model=InventoryItem, payload=_item_payload(), policy=ITEM_UPDATE_POLICY, partial=True)
        enforce_rules_item(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        item = inventory_service.update_item(item_id, patch=patch)
    except ItemNotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except InventoryError as e:
        return {"error": str(e), "details": e.details}, 400
    except Exception:
        current_app.logger.exception("Failed to update item")
        return {"error": "Internal server error"}, 500

    return item.to_dict()


@items_bp.post("/<int:item_id>/stock-in")
@require_auth
@require_permission("RECEIVE_STOCK")
def stock_in_route(item_id: int):
    """
    Receive stock for an item.

    Request body: {"quantity": int >= 1, "note": str (optional)}
    """
    payload = request.get_json(silent=True) or {}
    try:
        quantity = parse_quantity(payload.get("quantity"))
        note = payload.get("note")
        if note is not None:
            if not isinstance(note, str):
                raise ValidationError("note must be a string")
            note = note.strip()[:255] or None
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        entry = inventory_service.stock_in(
            item_id=item_id,
            quantity=quantity,
            actor=Cashier.from_user(g.current_user),
            note=note,
        )
    except ItemNotFoundError as e:
        return {"error": str(e)}, 404
    except InventoryError as e:
        return {"error": str(e), "details": e.details}, 400
    except TRANSIENT_ERRORS:
        current_app.logger.exception("Stock in gave up after retries")
        return {"error": "Inventory store unavailable, please retry"}, 503
    except Exception:
        current_app.logger.exception("Failed to record stock in")
        return {"error": "Internal server error"}, 500

    item = inventory_service.get_item(item_id)
    return {"transaction": entry.to_dict(), "item": item.to_dict()}, 201
