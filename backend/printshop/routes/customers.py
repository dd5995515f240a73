# Overview: Flask API routes for customers; parses input and returns JSON responses.

"""
Customer routes. All customers are scoped to the caller's company.
"""

from flask import Blueprint, request, g

from ..models import Customer
from ..services import customer_service
from ..services.customer_service import CustomerError
from ..services.tenant_service import TenantAccessError, require_owned, require_branch_in_company
from ..validation import ModelValidationPolicy, validate_payload, ValidationError
from ..decorators import require_auth, require_permission

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "address", "customer_type", "branch_id", "is_active"},
    required_on_create={"name"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_permission("VIEW_CUSTOMERS")
def list_customers_route():
    """
    Query params: search, include_inactive, page, per_page
    """
    return customer_service.list_customers(
        company_id=g.company_id,
        search=request.args.get("search"),
        include_inactive=request.args.get("include_inactive", "false").lower() == "true",
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@customers_bp.post("")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def create_customer_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        if patch.get("branch_id") is not None:
            require_branch_in_company(patch["branch_id"], g.company_id)
        else:
            patch["branch_id"] = g.branch_id
        customer = customer_service.create_customer(
            company_id=g.company_id, patch=patch, user_id=g.current_user.id
        )
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except (ValidationError, CustomerError) as e:
        return {"error": str(e)}, 400

    return {"customer": customer.to_dict()}, 201


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_permission("VIEW_CUSTOMERS")
def get_customer_route(customer_id: int):
    try:
        customer = require_owned(Customer, customer_id, g.company_id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    return {"customer": customer.to_dict()}


@customers_bp.patch("/<int:customer_id>")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def update_customer_route(customer_id: int):
    try:
        customer = require_owned(Customer, customer_id, g.company_id)
        patch = validate_payload(
            model=Customer, payload=request.get_json(silent=True) or {}, policy=CUSTOMER_POLICY, partial=True
        )
        if patch.get("branch_id") is not None:
            require_branch_in_company(patch["branch_id"], g.company_id)
        customer = customer_service.update_customer(customer, patch=patch, user_id=g.current_user.id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except (ValidationError, CustomerError) as e:
        return {"error": str(e)}, 400

    return {"customer": customer.to_dict()}


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def delete_customer_route(customer_id: int):
    """Soft delete: the customer is deactivated and keeps its invoices."""
    try:
        customer = require_owned(Customer, customer_id, g.company_id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404

    customer_service.deactivate_customer(customer, user_id=g.current_user.id)
    return {"ok": True}, 200
