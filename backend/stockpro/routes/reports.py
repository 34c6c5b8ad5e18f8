# Overview: Flask API routes for dashboard summaries.

from flask import Blueprint, g, current_app

from ..permissions import can
from ..services import reporting_service
from ..decorators import require_auth, require_any_permission

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/summary")
@require_auth
@require_any_permission("VIEW_ADMIN_DASHBOARD", "VIEW_STAFF_DASHBOARD")
def summary_route():
    """Admin or staff dashboard cards, picked by capability."""
    user = g.current_user
    threshold = current_app.config["STOCKPRO_LOW_STOCK_THRESHOLD"]

    if can(user.role, "VIEW_ADMIN_DASHBOARD"):
        return {"view": "admin", **reporting_service.admin_summary(low_stock_threshold=threshold)}
    return {"view": "staff", **reporting_service.staff_summary(user, low_stock_threshold=threshold)}
