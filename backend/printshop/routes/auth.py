# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

- POST /api/auth/login     username (or email) + password [+ company_code]
- POST /api/auth/logout    revokes the bearer token
- POST /api/auth/validate  returns user, permissions and tenant context

Self-registration does not exist: users are created by administrators
(POST /api/admin/users) or the CLI (flask users create).
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import auth_service
from ..services import session_service
from ..services import permission_service
from ..services.session_service import SessionError


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1]


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    Failed logins are recorded as LOGIN_FAILED security events.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username") or data.get("email")
        password = data.get("password")
        company_code = data.get("company_code")

        if not all([username, password]):
            return jsonify({"error": "username/email and password required"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        user = auth_service.authenticate(username, password, company_code=company_code)

        if not user:
            permission_service.log_security_event(
                user_id=None,
                event_type="LOGIN_FAILED",
                success=False,
                resource=request.path,
                action="LOGIN",
                reason=f"Invalid credentials for {username}",
                ip_address=ip_address,
                user_agent=user_agent
            )
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address
        )
        permissions = sorted(permission_service.get_user_permissions(user.id))

        return jsonify({
            "user": user.to_dict(),
            "permissions": permissions,
            "roles": permission_service.get_user_role_names(user.id),
            "token": token,
            "session": session.to_dict(),
            "company_id": session.company_id,
            "branch_id": session.branch_id,
            "message": "Login successful"
        }), 200

    except SessionError as e:
        return jsonify({"error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """Revoke session token (logout)."""
    try:
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        if not session_service.revoke_session(token, reason="User logout"):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/validate")
def validate_route():
    """Validate session token and return user, permissions and tenant context."""
    try:
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({
            "user": context.user.to_dict(),
            "permissions": sorted(permission_service.get_user_permissions(context.user.id)),
            "roles": permission_service.get_user_role_names(context.user.id),
            "company_id": context.company_id,
            "branch_id": context.branch_id,
            "message": "Token valid"
        }), 200

    except Exception:
        current_app.logger.exception("Failed to validate session")
        return jsonify({"error": "Internal server error"}), 500
