# Overview: Flask API routes for user administration.

"""
User management routes (admin).

- GET /api/users requires VIEW_USERS
- PATCH /api/users/<id> requires MANAGE_USERS; accepts "role" and/or "is_active"
"""
from flask import Blueprint, request, g, current_app

from ..services import auth_service, permission_service
from ..services.auth_service import AuthError, LastAdminError, UserNotFoundError
from ..decorators import require_auth, require_permission

users_bp = Blueprint("users", __name__, url_prefix="/api/users")

USER_PATCH_FIELDS = {"role", "is_active"}


@users_bp.get("")
@require_auth
@require_permission("VIEW_USERS")
def list_users_route():
    users = auth_service.list_users()
    return {"users": [u.to_dict() for u in users], "count": len(users)}


@users_bp.patch("/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def update_user_route(user_id: int):
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict) or not payload:
        return {"error": "Invalid JSON payload"}, 400

    unknown = set(payload) - USER_PATCH_FIELDS
    if unknown:
        return {"error": f"Field not allowed: {', '.join(sorted(unknown))}"}, 400
    if "is_active" in payload and not isinstance(payload["is_active"], bool):
        return {"error": "is_active must be true or false"}, 400

    actor = g.current_user
    try:
        user = None
        if "role" in payload:
            user = auth_service.set_user_role(user_id, payload["role"])
            permission_service.log_security_event(
                user_id=actor.id,
                event_type="ROLE_CHANGED",
                success=True,
                resource=request.path,
                action="MANAGE_USERS",
                reason=f"user {user_id} -> {user.role}",
                ip_address=request.remote_addr,
                user_agent=request.headers.get("User-Agent"),
            )
        if "is_active" in payload:
            target = auth_service.get_profile(user_id)
            was_active = target.is_active if target else False
            user = auth_service.set_user_active(user_id, payload["is_active"])
            if was_active and not user.is_active:
                permission_service.log_security_event(
                    user_id=actor.id,
                    event_type="USER_DEACTIVATED",
                    success=True,
                    resource=request.path,
                    action="MANAGE_USERS",
                    reason=f"user {user_id} deactivated",
                    ip_address=request.remote_addr,
                    user_agent=request.headers.get("User-Agent"),
                )
    except LastAdminError as e:
        return {"error": str(e)}, 409
    except UserNotFoundError as e:
        return {"error": str(e)}, 404
    except AuthError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update user")
        return {"error": "Internal server error"}, 500

    return user.to_dict()
