# Overview: Flask API routes for products operations; parses input and returns JSON responses.

"""
Product management routes with multi-tenant support.

MULTI-TENANT: All product operations are scoped to the caller's company
(g.company_id, set by @require_auth).

- Read operations require VIEW_PRODUCTS
- Write operations require MANAGE_PRODUCTS
- Pricing quotes require VIEW_PRICING
"""
from flask import Blueprint, request, g

from ..services.products_service import (
    ProductError,
    calculate_product_pricing,
    create_product,
    deactivate_product,
    list_products as list_products_service,
    update_product,
)
from ..services.tenant_service import TenantAccessError, require_owned
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth, require_permission

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "product_code", "name", "description", "base_price", "unit_type",
        "weight_per_unit", "weight_unit", "tax_rate", "minimum_quantity",
        "maximum_quantity", "specifications", "status", "category_id",
    },
    required_on_create={"product_code", "name", "base_price"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_products():
    """
    Query params:
    - search: matches name or product_code
    - status: active | inactive
    - category_id: int
    - page: int (optional). If omitted, returns all items.
    - per_page: int (optional)
    """
    return list_products_service(
        company_id=g.company_id,
        search=request.args.get("search"),
        status=request.args.get("status"),
        category_id=request.args.get("category_id", type=int),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = create_product(patch=patch, company_id=g.company_id, user_id=g.current_user.id)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ProductError as e:
        return {"error": str(e)}, 400

    return {"product": created.to_dict()}, 201


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_PRODUCTS")
def get_product_route(product_id: int):
    try:
        product = require_owned(Product, product_id, g.company_id)
    except TenantAccessError:
        return {"error": "Product not found"}, 404
    return {"product": product.to_dict()}


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    try:
        product = require_owned(Product, product_id, g.company_id)
    except TenantAccessError:
        return {"error": "Product not found"}, 404

    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = update_product(product, patch=patch, user_id=g.current_user.id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ProductError as e:
        return {"error": str(e)}, 400

    return {"product": updated.to_dict()}, 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def delete_product_route(product_id: int):
    """Soft delete: the product is marked inactive."""
    try:
        product = require_owned(Product, product_id, g.company_id)
    except TenantAccessError:
        return {"error": "Product not found"}, 404

    deactivate_product(product, user_id=g.current_user.id)
    return {"ok": True}, 200


@products_bp.post("/<int:product_id>/pricing")
@require_auth
@require_permission("VIEW_PRICING")
def product_pricing_route(product_id: int):
    """
    Price `quantity` units including weight-based delivery and tax.

    Request body: {"quantity": 100}
    """
    try:
        product = require_owned(Product, product_id, g.company_id)
    except TenantAccessError:
        return {"error": "Product not found"}, 404

    quantity = (request.get_json(silent=True) or {}).get("quantity")

    try:
        quote = calculate_product_pricing(product, quantity)
    except (ProductError, ValidationError) as e:
        return {"error": str(e)}, 400

    return {"product_id": product.id, "quantity": quantity, "pricing": quote.to_dict()}, 200
