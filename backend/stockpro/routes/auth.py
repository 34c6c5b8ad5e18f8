# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/stockpro/routes/auth.py
"""
Authentication API routes

- Self-registration (first account becomes admin, later ones staff)
- Login returns a bearer token; only its hash is stored
- Logout revokes the token and abandons the session's cart
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..permissions import get_role_permissions
from ..services import auth_service
from ..services import session_service
from ..services import permission_service
from ..services.auth_service import AuthError, PasswordValidationError
from ..decorators import require_auth, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(user, session, token):
    return {
        "user": user.to_dict(),
        "permissions": get_role_permissions(user.role),
        "token": token,
        "session": session.to_dict(),
    }


@auth_bp.post("/register")
def register_route():
    """
    Create an account and sign it in.

    Request body: {"email", "password", "confirm_password" (optional)}
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")
    if not email or not password:
        return jsonify({"error": "email and password required"}), 400

    try:
        user = auth_service.register(email, password, data.get("confirm_password"))
    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except AuthError as e:
        status = 409 if "already registered" in str(e) else 400
        return jsonify({"error": str(e)}), status

    try:
        permission_service.log_security_event(
            user_id=user.id,
            event_type="USER_REGISTERED",
            success=True,
            resource=request.path,
            reason=f"role={user.role}",
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except Exception:
        current_app.logger.exception("Failed to start session for new user")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info("Registered %s as %s", user.email, user.role)
    body = _session_payload(user, session, token)
    body["message"] = "Account created"
    return jsonify(body), 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not email or not password:
            return jsonify({"error": "email and password required"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        user = auth_service.authenticate(email, password)
        if not user:
            permission_service.log_security_event(
                user_id=None,
                event_type="LOGIN_FAILED",
                success=False,
                resource=request.path,
                reason=f"Invalid credentials for {str(email)[:200]}",
                ip_address=ip_address,
                user_agent=user_agent,
            )
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address
        )

        body = _session_payload(user, session, token)
        body["message"] = "Login successful"
        return jsonify(body), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout).

    Expects Authorization header: Bearer <token>
    """
    try:
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        # Revoking also abandons anything still in the cart
        session = session_service.revoke_session(token, reason="User logout")
        if not session:
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current identity with its role permissions (for UI filtering)."""
    user = g.current_user
    return jsonify({
        "user": user.to_dict(),
        "permissions": get_role_permissions(user.role),
        "session": g.session_context.session.to_dict(),
    }), 200
