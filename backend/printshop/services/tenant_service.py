"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

Every authenticated request is scoped to a company (g.company_id).
Branch IDs and entity IDs from client input are validated against it and
cross-tenant attempts are logged as security events. Lookups across
tenants report "not found" so other tenants' data is never revealed.

USAGE:
    from printshop.services.tenant_service import require_branch_in_company

    branch = require_branch_in_company(branch_id, g.company_id)
"""

from flask import g, has_request_context, request
from ..extensions import db
from ..models import Branch
from .permission_service import log_security_event


class TenantAccessError(Exception):
    """Raised when cross-tenant access is attempted."""
    pass


def get_current_company_id() -> int:
    """
    Current tenant's company_id from Flask g.

    Raises TenantAccessError if not set (should not happen after @require_auth).
    """
    company_id = getattr(g, 'company_id', None)
    if company_id is None:
        raise TenantAccessError("Tenant context not established")
    return company_id


def require_branch_in_company(branch_id: int, company_id: int) -> Branch:
    """
    Validate that a branch belongs to the company.

    Raises TenantAccessError if the branch doesn't exist or belongs to
    another company.
    """
    branch = db.session.query(Branch).filter_by(id=branch_id).first()

    if not branch:
        _log_cross_tenant_attempt(f"Branch {branch_id} not found", company_id=company_id)
        raise TenantAccessError("Branch not found")

    if branch.company_id != company_id:
        _log_cross_tenant_attempt(
            f"Branch {branch_id} belongs to company {branch.company_id}, not {company_id}",
            company_id=company_id,
            attempted_branch_id=branch_id
        )
        raise TenantAccessError("Branch not found")

    return branch


def require_branches_in_company(branch_ids: list[int], company_id: int) -> list[Branch]:
    """Batch form of require_branch_in_company."""
    if not branch_ids:
        return []

    branches = db.session.query(Branch).filter(Branch.id.in_(branch_ids)).all()

    missing_ids = set(branch_ids) - {b.id for b in branches}
    if missing_ids:
        _log_cross_tenant_attempt(f"Branches not found: {sorted(missing_ids)}", company_id=company_id)
        raise TenantAccessError("One or more branches not found")

    for branch in branches:
        if branch.company_id != company_id:
            _log_cross_tenant_attempt(
                f"Branch {branch.id} belongs to company {branch.company_id}, not {company_id}",
                company_id=company_id,
                attempted_branch_id=branch.id
            )
            raise TenantAccessError("One or more branches not found")

    return branches


def require_owned(model, entity_id: int, company_id: int, label: str | None = None):
    """
    Load a company-owned row (model must have company_id) or raise
    TenantAccessError as "not found".
    """
    label = label or model.__name__
    entity = db.session.get(model, entity_id)

    if entity is None:
        raise TenantAccessError(f"{label} not found")

    if entity.company_id != company_id:
        _log_cross_tenant_attempt(
            f"{label} {entity_id} belongs to company {entity.company_id}, not {company_id}",
            company_id=company_id
        )
        raise TenantAccessError(f"{label} not found")

    return entity


def get_company_branches(company_id: int, active_only: bool = True) -> list[Branch]:
    query = db.session.query(Branch).filter_by(company_id=company_id)
    if active_only:
        query = query.filter_by(is_active=True)
    return query.order_by(Branch.name).all()


def get_company_branch_ids(company_id: int) -> set[int]:
    rows = db.session.query(Branch.id).filter_by(company_id=company_id).all()
    return {row.id for row in rows}


def _log_cross_tenant_attempt(
    reason: str,
    company_id: int | None = None,
    attempted_branch_id: int | None = None
) -> None:
    """Record a cross-tenant access attempt as a security event."""
    user = getattr(g, 'current_user', None)
    in_request = has_request_context()

    log_security_event(
        user_id=user.id if user is not None else None,
        event_type="CROSS_TENANT_ACCESS_DENIED",
        success=False,
        resource=request.path if in_request else None,
        action=request.method if in_request else None,
        reason=reason,
        ip_address=request.remote_addr if in_request else None,
        user_agent=request.headers.get("User-Agent") if in_request else None,
        company_id=company_id,
        branch_id=attempted_branch_id
    )
