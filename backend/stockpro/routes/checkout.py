# Overview: Flask API routes for checkout and receipts; parses input and returns JSON responses.

# backend/stockpro/routes/checkout.py
"""
Checkout routes.

POST /api/checkout answers:
- 201 with the receipt when every line committed
- 400 for an empty cart or a bad note
- 409 with per-line failures when any line was rejected (nothing written)
- 409 with details.committed and details.failed when a non-atomic store
  kept some lines; the committed lines leave the cart
- 503 when the inventory store was unavailable; details.outcome_unknown
  tells the cashier whether stock must be re-checked before retrying
"""
from flask import Blueprint, Response, request, g, current_app

from ..domain import Cashier
from ..extensions import carts
from ..permissions import can
from ..services import checkout_service
from ..services.checkout_service import (
    CheckoutRejected,
    EmptyCartError,
    ExternalUnavailable,
    InvalidCheckoutError,
    PartialCommitError,
)
from ..services.receipt_service import render_receipt, render_receipt_text
from ..decorators import require_auth, require_permission

checkout_bp = Blueprint("checkout", __name__, url_prefix="/api/checkout")


def _receipt_body(receipt):
    return {
        "receipt": receipt.to_dict(),
        "display": render_receipt(receipt, current_app.config["STOCKPRO_CURRENCY_SYMBOL"]),
    }


@checkout_bp.post("")
@require_auth
@require_permission("CHECKOUT")
def checkout_route():
    """
    Check out the session cart.

    Request body: {"note": str (optional)}
    """
    payload = request.get_json(silent=True) or {}
    cashier = Cashier.from_user(g.current_user)

    cart_session = carts.get(g.session_context.session_id)
    with cart_session.lock:
        try:
            receipt = checkout_service.checkout(cart_session.cart, cashier, payload.get("note"))
        except EmptyCartError as e:
            return {"error": str(e)}, 400
        except InvalidCheckoutError as e:
            return {"error": str(e)}, 400
        except CheckoutRejected as e:
            return {"error": str(e), "details": e.details}, 409
        except PartialCommitError as e:
            current_app.logger.error("Partial checkout by %s: %s", cashier.email, e.details)
            cart_session.catalog = None
            return {"error": str(e), "details": e.details}, 409
        except ExternalUnavailable as e:
            return {"error": str(e), "details": e.details, "retryable": True}, 503
        except Exception:
            current_app.logger.exception("Failed to check out cart")
            return {"error": "Internal server error"}, 500

        # Stock has moved; the next catalog view must reload
        cart_session.catalog = None

    return _receipt_body(receipt), 201


@checkout_bp.get("/receipts")
@require_auth
@require_permission("VIEW_OWN_TRANSACTIONS")
def list_receipts_route():
    limit = request.args.get("limit", default=20, type=int)
    if limit <= 0 or limit > 200:
        return {"error": "limit must be between 1 and 200"}, 400

    cashier_email = None
    if not can(g.current_user.role, "VIEW_ALL_TRANSACTIONS"):
        cashier_email = g.current_user.email
    return {"receipts": checkout_service.recent_receipt_numbers(cashier_email, limit=limit)}


@checkout_bp.get("/receipts/<string:receipt_number>")
@require_auth
@require_permission("VIEW_OWN_TRANSACTIONS")
def get_receipt_route(receipt_number: str):
    """
    Rebuild a receipt. ?format=text returns the printable version.

    Staff only see their own receipts.
    """
    receipt = checkout_service.get_receipt(receipt_number)
    if receipt is None:
        return {"error": "Receipt not found"}, 404

    user = g.current_user
    if receipt.cashier_email != user.email and not can(user.role, "VIEW_ALL_TRANSACTIONS"):
        return {"error": "Receipt not found"}, 404

    if request.args.get("format") == "text":
        width = request.args.get("width", default=40, type=int)
        try:
            text = render_receipt_text(
                receipt,
                width=width,
                currency_symbol=current_app.config["STOCKPRO_CURRENCY_SYMBOL"],
            )
        except ValueError as e:
            return {"error": str(e)}, 400
        return Response(text, mimetype="text/plain")

    return _receipt_body(receipt)
