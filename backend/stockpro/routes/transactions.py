# Overview: Flask API routes for the transaction log and CSV export.

from flask import Blueprint, Response, request, g

from ..permissions import can
from ..services import reporting_service
from ..services.reporting_service import ReportError
from ..decorators import require_auth, require_permission, require_any_permission

transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def _query_records():
    """
    Shared filter handling for the table and the export.

    Query params: search, type (all | stock_in | stock_out), limit.
    Users without VIEW_ALL_TRANSACTIONS only ever see their own rows.
    """
    user = g.current_user
    cashier_email = None if can(user.role, "VIEW_ALL_TRANSACTIONS") else user.email

    return reporting_service.list_transactions(
        search=request.args.get("search"),
        type_filter=request.args.get("type", "all"),
        cashier_email=cashier_email,
        limit=request.args.get("limit", default=reporting_service.DEFAULT_LIST_LIMIT, type=int),
    )


@transactions_bp.get("")
@require_auth
@require_any_permission("VIEW_ALL_TRANSACTIONS", "VIEW_OWN_TRANSACTIONS")
def list_transactions_route():
    try:
        records = _query_records()
    except ReportError as e:
        return {"error": str(e)}, 400

    return {
        "transactions": [r.to_dict() for r in records],
        "stats": reporting_service.transaction_stats(records),
    }


@transactions_bp.get("/export")
@require_auth
@require_permission("EXPORT_TRANSACTIONS")
def export_transactions_route():
    """CSV download of the currently filtered rows."""
    try:
        records = _query_records()
    except ReportError as e:
        return {"error": str(e)}, 400

    body = reporting_service.export_transactions_csv(records)
    filename = reporting_service.export_filename()
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
