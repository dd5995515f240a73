# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service, permission_service
from .services.permission_service import PermissionDeniedError


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'company_id')


def _is_super_admin() -> bool:
    return _is_authenticated() and bool(g.current_user.is_super_admin)


def require_auth(f):
    """
    Require authentication and establish tenant context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.company_id: The company ID (tenant context)
    - g.branch_id: The user's branch ID (None for company-level users)
    - g.session_context: The full SessionContext object

    Returns 401 for a missing/invalid/expired token, a deactivated user
    or a deactivated company.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]

        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.company_id = context.company_id
        g.branch_id = context.branch_id
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def _deny(permission_codes: tuple, action: str, reason: str):
    permission_service.log_security_event(
        user_id=g.current_user.id,
        event_type="PERMISSION_DENIED",
        success=False,
        resource=request.path,
        action=action,
        reason=reason,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
        company_id=g.company_id,
        branch_id=g.branch_id
    )
    return jsonify({
        "error": "Permission denied",
        "required_permissions": list(permission_codes),
        "message": reason
    }), 403


def require_permission(permission_code: str):
    """
    Require a specific permission. Super admins pass every check.

    Denials are logged as PERMISSION_DENIED security events with tenant context.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if _is_super_admin():
                return f(*args, **kwargs)

            try:
                permission_service.require_permission(
                    user_id=g.current_user.id,
                    permission_code=permission_code,
                    resource=request.path,
                    ip_address=request.remote_addr,
                    user_agent=request.headers.get("User-Agent"),
                    company_id=g.company_id,
                    branch_id=g.branch_id
                )
            except PermissionDeniedError as e:
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": permission_code,
                    "message": str(e)
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_any_permission(*permission_codes):
    """Require any of the specified permissions."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if _is_super_admin():
                return f(*args, **kwargs)

            user_permissions = permission_service.get_user_permissions(g.current_user.id)
            if not any(code in user_permissions for code in permission_codes):
                return _deny(
                    permission_codes,
                    action=f"ANY_OF:{','.join(permission_codes)}",
                    reason=f"Requires any of: {', '.join(permission_codes)}",
                )

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_super_admin(f):
    """Require the authenticated user to be a super admin."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not hasattr(g, 'current_user'):
            return jsonify({"error": "Authentication required"}), 401
        if not g.current_user.is_super_admin:
            return _deny(("SYSTEM_ADMIN",), action="SUPER_ADMIN", reason="Super admin access required")
        return f(*args, **kwargs)
    return decorated_function
