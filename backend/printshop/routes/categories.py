# Overview: Flask API routes for product categories; parses input and returns JSON responses.

"""
Product category routes.

Reads require VIEW_PRODUCTS; writes require MANAGE_PRODUCTS. Every
category belongs to the caller's company.
"""

from flask import Blueprint, request, g

from ..models import ProductCategory
from ..services import category_service
from ..services.category_service import CategoryError
from ..services.tenant_service import TenantAccessError, require_owned
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_category,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth, require_permission

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "code", "description", "parent_id", "status", "sort_order"},
    required_on_create={"name"},
)

categories_bp = Blueprint("categories", __name__, url_prefix="/api/product-categories")


def _load_category(category_id: int) -> ProductCategory:
    return require_owned(ProductCategory, category_id, g.company_id, label="Category")


@categories_bp.get("")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_categories_route():
    """
    Query params:
    - search: matches name, code or description
    - status: active | inactive
    - parent_id: int, or "null" for top-level categories
    - page / per_page (optional)
    """
    try:
        return category_service.list_categories(
            company_id=g.company_id,
            search=request.args.get("search"),
            status=request.args.get("status"),
            parent_id=request.args.get("parent_id"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400


@categories_bp.get("/tree")
@require_auth
@require_permission("VIEW_PRODUCTS")
def category_tree_route():
    return {"categories": category_service.get_category_tree(g.company_id)}


@categories_bp.get("/stats")
@require_auth
@require_permission("VIEW_PRODUCTS")
def category_stats_route():
    return {"stats": category_service.get_category_stats(g.company_id)}


@categories_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_category_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=ProductCategory, payload=payload, policy=CATEGORY_POLICY, partial=False)
        enforce_rules_category(patch)
        category = category_service.create_category(company_id=g.company_id, patch=patch, user_id=g.current_user.id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except CategoryError as e:
        return {"error": str(e)}, 400

    return {"category": category.to_dict()}, 201


@categories_bp.get("/<int:category_id>")
@require_auth
@require_permission("VIEW_PRODUCTS")
def get_category_route(category_id: int):
    try:
        category = _load_category(category_id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404

    data = category.to_dict()
    data["children"] = [
        {"id": c.id, "name": c.name, "code": c.code, "status": c.status}
        for c in sorted(category.children, key=lambda c: (c.sort_order, c.name))
    ]
    data["products"] = [
        {"id": p.id, "product_code": p.product_code, "name": p.name, "status": p.status}
        for p in category.products
    ]
    return {"category": data}


@categories_bp.put("/<int:category_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_category_route(category_id: int):
    try:
        category = _load_category(category_id)
        patch = validate_payload(
            model=ProductCategory, payload=request.get_json(silent=True) or {}, policy=CATEGORY_POLICY, partial=True
        )
        enforce_rules_category(patch)
        category = category_service.update_category(category, patch=patch, user_id=g.current_user.id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except CategoryError as e:
        return {"error": str(e)}, 400

    return {"category": category.to_dict()}


@categories_bp.post("/<int:category_id>/toggle")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def toggle_category_route(category_id: int):
    try:
        category = category_service.toggle_category_status(_load_category(category_id), user_id=g.current_user.id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except CategoryError as e:
        return {"error": str(e)}, 409

    return {"category": category.to_dict()}


@categories_bp.post("/reorder")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def reorder_categories_route():
    """Request body: {"category_ids": [3, 1, 2]}"""
    category_ids = (request.get_json(silent=True) or {}).get("category_ids")
    try:
        categories = category_service.reorder_categories(
            company_id=g.company_id, category_ids=category_ids, user_id=g.current_user.id
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except CategoryError as e:
        return {"error": str(e)}, 404

    return {"categories": [c.to_dict() for c in categories]}


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def delete_category_route(category_id: int):
    try:
        category_service.delete_category(_load_category(category_id), user_id=g.current_user.id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except CategoryError as e:
        return {"error": str(e)}, 409

    return {"ok": True}, 200
