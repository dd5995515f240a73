# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

"""
Admin routes for user, role and permission management.

All lookups are scoped to the caller's company; users and roles of other
companies are reported as not found.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..models import User, Role, UserRole, Permission, RolePermission, SecurityEvent
from ..services import auth_service, session_service, permission_service
from ..services.auth_service import PasswordValidationError, UserError
from ..services.pagination import paginate
from ..services.tenant_service import TenantAccessError, require_branch_in_company
from ..decorators import require_auth, require_permission
from ..permissions import (
    get_permission_definition,
    get_permissions_by_category,
    get_permissions_grouped,
    validate_permission_code,
)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


def _get_user_in_current_company(user_id: int) -> User | None:
    return db.session.query(User).filter_by(id=user_id, company_id=g.company_id).first()


def _user_with_roles(user: User) -> dict:
    user_dict = user.to_dict()
    user_dict["roles"] = permission_service.get_user_role_names(user.id)
    return user_dict


def _log_admin_event(event_type: str, action: str) -> None:
    permission_service.log_security_event(
        user_id=g.current_user.id,
        event_type=event_type,
        success=True,
        resource=request.path,
        action=action,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
        company_id=g.company_id,
        branch_id=g.branch_id
    )


# =============================================================================
# USER MANAGEMENT
# =============================================================================

@admin_bp.get("/users")
@require_auth
@require_permission("VIEW_USERS")
def list_users():
    """
    List company users with their roles.

    Query params:
    - include_inactive: bool (default false)
    - branch_id: int - filter by branch
    """
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    branch_id = request.args.get("branch_id", type=int)

    query = db.session.query(User).filter(User.company_id == g.company_id)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    if branch_id:
        query = query.filter_by(branch_id=branch_id)

    users = [_user_with_roles(u) for u in query.order_by(User.username).all()]
    return jsonify({"users": users, "count": len(users)})


@admin_bp.get("/users/<int:user_id>")
@require_auth
@require_permission("VIEW_USERS")
def get_user(user_id: int):
    user = _get_user_in_current_company(user_id)
    if not user:
        return jsonify({"error": "User not found"}), 404

    user_dict = _user_with_roles(user)
    user_dict["permissions"] = sorted(permission_service.get_user_permissions(user.id))
    return jsonify({"user": user_dict})


@admin_bp.post("/users")
@require_auth
@require_permission("CREATE_USER")
def create_user():
    """
    Create a user in the caller's company.

    Request body: username, email, password (required); full_name,
    branch_id, role (optional).
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        email = data.get("email")
        password = data.get("password")
        branch_id = data.get("branch_id")
        role_name = data.get("role")

        if not all([username, email, password]):
            return jsonify({"error": "username, email, and password required"}), 400

        if branch_id is not None:
            require_branch_in_company(branch_id, g.company_id)

        user = auth_service.create_user(
            username, email, password,
            company_id=g.company_id,
            branch_id=branch_id,
            full_name=data.get("full_name"),
        )

        if role_name:
            try:
                auth_service.assign_role(user.id, role_name)
            except UserError as e:
                return jsonify({
                    "user": user.to_dict(),
                    "warning": f"User created but role assignment failed: {str(e)}"
                }), 201

        _log_admin_event("USER_CREATED", f"Created user: {username}")

        return jsonify({"user": _user_with_roles(user), "message": "User created successfully"}), 201

    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except (PasswordValidationError, UserError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.patch("/users/<int:user_id>")
@require_auth
@require_permission("EDIT_USER")
def update_user(user_id: int):
    """
    Update user details.

    Request body (all optional): email, full_name, branch_id, is_active.
    Deactivating a user revokes all of their sessions.
    """
    try:
        user = _get_user_in_current_company(user_id)
        if not user:
            return jsonify({"error": "User not found"}), 404

        data = request.get_json(silent=True) or {}

        if "email" in data:
            existing = db.session.query(User).filter(
                User.company_id == g.company_id,
                User.email == data["email"],
                User.id != user_id
            ).first()
            if existing:
                return jsonify({"error": "Email already in use"}), 400

        if data.get("branch_id") is not None:
            require_branch_in_company(data["branch_id"], g.company_id)

        if "email" in data:
            user.email = data["email"]
        if "full_name" in data:
            user.full_name = data["full_name"]
        if "branch_id" in data:
            user.branch_id = data["branch_id"]

        deactivated = False
        if "is_active" in data:
            if user.id == g.current_user.id and not data["is_active"]:
                return jsonify({"error": "You cannot deactivate your own account"}), 400
            deactivated = user.is_active and not data["is_active"]
            user.is_active = bool(data["is_active"])

        db.session.commit()

        if deactivated:
            session_service.revoke_all_user_sessions(user.id, reason="User deactivated")

        return jsonify({"user": _user_with_roles(user)})

    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/users/<int:user_id>/roles")
@require_auth
@require_permission("ASSIGN_ROLES")
def assign_role(user_id: int):
    """Assign a company role to a user. Request body: {"role": "cashier"}"""
    try:
        user = _get_user_in_current_company(user_id)
        if not user:
            return jsonify({"error": "User not found"}), 404

        role_name = (request.get_json(silent=True) or {}).get("role")
        if not role_name:
            return jsonify({"error": "role is required"}), 400

        auth_service.assign_role(user.id, role_name)
        _log_admin_event("ROLE_ASSIGNED", f"Assigned {role_name} to {user.username}")

        return jsonify({"user": _user_with_roles(user), "message": f"Role {role_name} assigned"})

    except UserError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to assign role")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.delete("/users/<int:user_id>/roles/<role_name>")
@require_auth
@require_permission("ASSIGN_ROLES")
def remove_role(user_id: int, role_name: str):
    user = _get_user_in_current_company(user_id)
    if not user:
        return jsonify({"error": "User not found"}), 404

    role = db.session.query(Role).filter_by(company_id=g.company_id, name=role_name).first()
    if not role:
        return jsonify({"error": f"Role {role_name} not found"}), 404

    user_role = db.session.query(UserRole).filter_by(user_id=user.id, role_id=role.id).first()
    if not user_role:
        return jsonify({"error": f"User does not have role {role_name}"}), 400

    db.session.delete(user_role)
    db.session.commit()
    _log_admin_event("ROLE_REVOKED", f"Removed {role_name} from {user.username}")

    return jsonify({"user": _user_with_roles(user)})


# =============================================================================
# ROLES AND PERMISSIONS
# =============================================================================

@admin_bp.get("/roles")
@require_auth
@require_permission("VIEW_USERS")
def list_roles():
    """List company roles with their permission codes."""
    roles = db.session.query(Role).filter_by(company_id=g.company_id).order_by(Role.name).all()

    result = []
    for role in roles:
        codes = (
            db.session.query(Permission.code)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .filter(RolePermission.role_id == role.id)
            .order_by(Permission.code)
            .all()
        )
        role_dict = role.to_dict()
        role_dict["permissions"] = [row.code for row in codes]
        result.append(role_dict)

    return jsonify({"roles": result, "count": len(result)})


@admin_bp.get("/permissions")
@require_auth
@require_permission("VIEW_USERS")
def list_permissions():
    """
    All permission definitions grouped by category.

    Query params: category (e.g. PRICING) returns that category's list only.
    """
    category = request.args.get("category")
    if category:
        category = category.strip().upper()
        return jsonify({"category": category, "permissions": get_permissions_by_category(category)})
    return jsonify({"permissions": get_permissions_grouped()})


@admin_bp.get("/permissions/<code>")
@require_auth
@require_permission("VIEW_USERS")
def get_permission(code: str):
    definition = get_permission_definition(code.upper())
    if definition is None:
        return jsonify({"error": "Permission not found"}), 404
    return jsonify({"permission": definition})


@admin_bp.post("/roles/<role_name>/permissions")
@require_auth
@require_permission("MANAGE_PERMISSIONS")
def grant_role_permission(role_name: str):
    """Request body: {"permission_code": "VIEW_PRICING"}"""
    code = (request.get_json(silent=True) or {}).get("permission_code")
    if not code or not validate_permission_code(code):
        return jsonify({"error": f"Invalid permission code: {code}"}), 400
    if role_name == "super_admin" or code == "SYSTEM_ADMIN":
        return jsonify({"error": "System permissions can only be changed from the CLI"}), 400

    try:
        permission_service.grant_permission_to_role(role_name, code, company_id=g.company_id)
    except ValueError as e:
        return jsonify({"error": str(e)}), 404

    _log_admin_event("PERMISSION_GRANTED", f"Granted {code} to {role_name}")
    return jsonify({"message": f"Granted {code} to {role_name}"})


@admin_bp.delete("/roles/<role_name>/permissions/<code>")
@require_auth
@require_permission("MANAGE_PERMISSIONS")
def revoke_role_permission(role_name: str, code: str):
    if not validate_permission_code(code):
        return jsonify({"error": f"Invalid permission code: {code}"}), 400
    if role_name == "super_admin":
        return jsonify({"error": "System permissions can only be changed from the CLI"}), 400

    try:
        revoked = permission_service.revoke_permission_from_role(role_name, code, company_id=g.company_id)
    except ValueError as e:
        return jsonify({"error": str(e)}), 404

    if not revoked:
        return jsonify({"error": f"{role_name} does not have {code}"}), 400

    _log_admin_event("PERMISSION_REVOKED", f"Revoked {code} from {role_name}")
    return jsonify({"message": f"Revoked {code} from {role_name}"})


# =============================================================================
# SECURITY EVENTS
# =============================================================================

@admin_bp.get("/security-events")
@require_auth
@require_permission("VIEW_AUDIT_LOG")
def list_security_events():
    """
    Company security events, newest first.

    Query params: event_type, page, per_page
    """
    query = db.session.query(SecurityEvent).filter(SecurityEvent.company_id == g.company_id)
    event_type = request.args.get("event_type")
    if event_type:
        query = query.filter(SecurityEvent.event_type == event_type)
    query = query.order_by(SecurityEvent.occurred_at.desc(), SecurityEvent.id.desc())

    return jsonify(paginate(
        query,
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    ))
