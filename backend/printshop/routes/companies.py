# Overview: Flask API routes for companies and branches; parses input and returns JSON responses.

"""
Company and branch routes.

- Companies are created and listed by super admins only.
- A company admin may view and edit their own company.
- Branches are always scoped to the caller's company.
"""

from flask import Blueprint, request, g, current_app

from ..models import Company, Branch
from ..services import company_service
from ..services.company_service import CompanyError
from ..services.tenant_service import TenantAccessError, require_branch_in_company
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_company,
    ValidationError,
)
from ..decorators import require_auth, require_permission, require_super_admin
from ..extensions import db

COMPANY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "code", "email", "phone", "address", "tax_rate", "currency", "is_active"},
    required_on_create={"name", "code"},
)

BRANCH_POLICY = ModelValidationPolicy(
    writable_fields={"name", "code", "address", "phone", "is_active"},
    required_on_create={"name", "code"},
)

companies_bp = Blueprint("companies", __name__, url_prefix="/api")


# =============================================================================
# COMPANIES
# =============================================================================

@companies_bp.get("/companies")
@require_auth
@require_super_admin
def list_companies_route():
    return company_service.list_companies(
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@companies_bp.post("/companies")
@require_auth
@require_super_admin
def create_company_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Company, payload=payload, policy=COMPANY_POLICY, partial=False)
        enforce_rules_company(patch)
        company = company_service.create_company(patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except CompanyError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to create company")
        return {"error": "Internal server error"}, 500

    current_app.logger.info("Company %s created by user %s", company.code, g.current_user.id)
    return {"company": company.to_dict()}, 201


@companies_bp.get("/companies/current")
@require_auth
@require_permission("VIEW_COMPANIES")
def get_current_company_route():
    company = db.session.get(Company, g.company_id)
    return {"company": company.to_dict()}


@companies_bp.patch("/companies/<int:company_id>")
@require_auth
@require_permission("MANAGE_COMPANIES")
def update_company_route(company_id: int):
    """Company admins may edit their own company; super admins any company."""
    if company_id != g.company_id and not g.current_user.is_super_admin:
        return {"error": "Company not found"}, 404

    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Company, payload=payload, policy=COMPANY_POLICY, partial=True)
        enforce_rules_company(patch)
        if patch.get("is_active") is False and company_id == g.company_id:
            return {"error": "You cannot deactivate your own company"}, 400
        company = company_service.update_company(company_id, patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except CompanyError as e:
        status = 404 if "not found" in str(e) else 409
        return {"error": str(e)}, status

    return {"company": company.to_dict()}


# =============================================================================
# BRANCHES
# =============================================================================

@companies_bp.get("/branches")
@require_auth
@require_permission("VIEW_BRANCHES")
def list_branches_route():
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    return company_service.list_branches(
        company_id=g.company_id,
        include_inactive=include_inactive,
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@companies_bp.post("/branches")
@require_auth
@require_permission("MANAGE_BRANCHES")
def create_branch_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Branch, payload=payload, policy=BRANCH_POLICY, partial=False)
        branch = company_service.create_branch(company_id=g.company_id, patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except CompanyError as e:
        return {"error": str(e)}, 409

    return {"branch": branch.to_dict()}, 201


@companies_bp.get("/branches/<int:branch_id>")
@require_auth
@require_permission("VIEW_BRANCHES")
def get_branch_route(branch_id: int):
    try:
        branch = require_branch_in_company(branch_id, g.company_id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    return {"branch": branch.to_dict()}


@companies_bp.patch("/branches/<int:branch_id>")
@require_auth
@require_permission("MANAGE_BRANCHES")
def update_branch_route(branch_id: int):
    try:
        branch = require_branch_in_company(branch_id, g.company_id)
        patch = validate_payload(
            model=Branch, payload=request.get_json(silent=True) or {}, policy=BRANCH_POLICY, partial=True
        )
        branch = company_service.update_branch(branch, patch=patch)
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except CompanyError as e:
        return {"error": str(e)}, 409

    return {"branch": branch.to_dict()}


@companies_bp.delete("/branches/<int:branch_id>")
@require_auth
@require_permission("MANAGE_BRANCHES")
def deactivate_branch_route(branch_id: int):
    try:
        branch = require_branch_in_company(branch_id, g.company_id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404

    company_service.deactivate_branch(branch)
    return {"branch": branch.to_dict()}
