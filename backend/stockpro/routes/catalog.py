# Overview: Flask API route that loads the session's catalog snapshot.

from flask import Blueprint, g, current_app

from ..extensions import carts
from ..services import catalog_service
from ..services.catalog_service import CatalogUnavailableError
from ..decorators import require_auth, require_permission

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")


@catalog_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def load_catalog_route():
    """
    Load a fresh snapshot of active items and remember it for this session.

    The cart's soft stock checks use this snapshot until the next load.
    """
    try:
        snapshot = catalog_service.load()
    except CatalogUnavailableError as e:
        return {"error": str(e), "retryable": True}, 503

    cart_session = carts.get(g.session_context.session_id)
    with cart_session.lock:
        cart_session.catalog = snapshot

    current_app.logger.debug("Catalog loaded: %d items", len(snapshot))
    return snapshot.to_dict()
