# Overview: Service-layer operations for permission; encapsulates business logic and database work.

"""
Permission Checking and Security Event Logging with Multi-Tenant Support

Role-based access control: a user's permissions are the union of the
permissions of their roles. Roles are company-scoped; permission codes are
global definitions.

DESIGN PRINCIPLES:
- Fail closed: Deny by default, require explicit permission grant
- Log denials only: Permission grants are not logged
- Tenant isolation: Security events carry company_id and branch_id
"""

from ..extensions import db
from ..models import UserRole, Role, RolePermission, Permission, SecurityEvent
from ..permissions import PERMISSION_DEFINITIONS, DEFAULT_ROLE_PERMISSIONS
from printshop.time_utils import utcnow


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""
    pass


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    company_id: int | None = None,
    branch_id: int | None = None
) -> SecurityEvent:
    """
    Log security event to audit trail with tenant context.

    event_type examples:
    - PERMISSION_DENIED
    - LOGIN_FAILED
    - LOGIN_SUCCESS
    - LOGOUT
    - ROLE_ASSIGNED
    - USER_CREATED
    - TENANT_CONTEXT_MISSING
    - CROSS_TENANT_ACCESS_DENIED
    """
    event = SecurityEvent(
        user_id=user_id,
        company_id=company_id,
        branch_id=branch_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow()
    )

    db.session.add(event)
    db.session.commit()

    return event


def get_user_permissions(user_id: int) -> set[str]:
    """
    Get all permission codes for a user (e.g. {"VIEW_INVOICES", "MANAGE_PRICING"}).
    """
    rows = (
        db.session.query(Permission.code)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .join(UserRole, UserRole.role_id == RolePermission.role_id)
        .filter(UserRole.user_id == user_id)
        .distinct()
        .all()
    )
    return {row.code for row in rows}


def user_has_permission(user_id: int, permission_code: str) -> bool:
    return permission_code in get_user_permissions(user_id)


def require_permission(
    user_id: int,
    permission_code: str,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    company_id: int | None = None,
    branch_id: int | None = None
) -> None:
    """
    Require user to have permission, raise PermissionDeniedError if not.

    Denials are logged to security_events with tenant context.

    Usage:
        require_permission(user.id, "MANAGE_PRICING", resource="/api/weight-pricing", company_id=g.company_id)
    """
    if not user_has_permission(user_id, permission_code):
        log_security_event(
            user_id=user_id,
            event_type="PERMISSION_DENIED",
            success=False,
            resource=resource,
            action=permission_code,
            reason=f"Missing permission: {permission_code}",
            ip_address=ip_address,
            user_agent=user_agent,
            company_id=company_id,
            branch_id=branch_id
        )
        raise PermissionDeniedError(f"Permission denied: {permission_code}")


def get_user_role_names(user_id: int) -> list[str]:
    """Get list of role names for a user."""
    rows = (
        db.session.query(Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user_id)
        .order_by(Role.name)
        .all()
    )
    return [row.name for row in rows]


def initialize_permissions() -> int:
    """
    Create Permission records for all codes in PERMISSION_DEFINITIONS.

    Idempotent: Safe to run multiple times. Returns count created.
    """
    created_count = 0

    for code, name, description, category in PERMISSION_DEFINITIONS:
        existing = db.session.query(Permission).filter_by(code=code).first()

        if not existing:
            db.session.add(Permission(
                code=code,
                name=name,
                description=description,
                category=category
            ))
            created_count += 1

    db.session.commit()
    return created_count


def assign_default_role_permissions(company_id: int | None = None) -> int:
    """
    Link each default role (in every company, or one company) to its
    default permission set. Idempotent; returns count of links created.
    """
    permissions = {p.code: p for p in db.session.query(Permission).all()}
    created_count = 0

    for role_name, permission_codes in DEFAULT_ROLE_PERMISSIONS.items():
        query = db.session.query(Role).filter_by(name=role_name)
        if company_id is not None:
            query = query.filter_by(company_id=company_id)

        for role in query.all():
            granted = {
                rp.permission_id
                for rp in db.session.query(RolePermission).filter_by(role_id=role.id).all()
            }
            for permission_code in permission_codes:
                permission = permissions.get(permission_code)
                if not permission or permission.id in granted:
                    continue
                db.session.add(RolePermission(role_id=role.id, permission_id=permission.id))
                created_count += 1

    db.session.commit()
    return created_count


def _get_role(role_name: str, company_id: int | None) -> Role:
    query = db.session.query(Role).filter_by(name=role_name)
    if company_id is not None:
        query = query.filter_by(company_id=company_id)
    role = query.first()
    if not role:
        raise ValueError(f"Role '{role_name}' not found")
    return role


def _get_permission(permission_code: str) -> Permission:
    permission = db.session.query(Permission).filter_by(code=permission_code).first()
    if not permission:
        raise ValueError(f"Permission '{permission_code}' not found")
    return permission


def grant_permission_to_role(role_name: str, permission_code: str, company_id: int | None = None) -> RolePermission:
    """Grant a permission to a role."""
    role = _get_role(role_name, company_id)
    permission = _get_permission(permission_code)

    existing = db.session.query(RolePermission).filter_by(
        role_id=role.id,
        permission_id=permission.id
    ).first()
    if existing:
        return existing

    role_permission = RolePermission(role_id=role.id, permission_id=permission.id)
    db.session.add(role_permission)
    db.session.commit()
    return role_permission


def revoke_permission_from_role(role_name: str, permission_code: str, company_id: int | None = None) -> bool:
    """Revoke a permission from a role. Returns False if it was not granted."""
    role = _get_role(role_name, company_id)
    permission = _get_permission(permission_code)

    role_permission = db.session.query(RolePermission).filter_by(
        role_id=role.id,
        permission_id=permission.id
    ).first()

    if not role_permission:
        return False

    db.session.delete(role_permission)
    db.session.commit()
    return True
