# backend/printshop/services/products_service.py
"""
Products Service with Multi-Tenant Support

Products are company-scoped; product_code is unique within a company.
Deleting a product deactivates it so invoice history keeps its reference.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Company, Product
from ..pricing import DeliveryQuote, compose_line_total
from ..validation import ConflictError
from .activity_service import append_activity
from .category_service import CategoryError, require_category
from .pagination import paginate
from .weight_pricing_service import get_active_tiers

PRODUCT_MUTABLE_FIELDS = {
    "product_code", "name", "description", "base_price", "unit_type",
    "weight_per_unit", "weight_unit", "tax_rate", "minimum_quantity",
    "maximum_quantity", "specifications", "status", "category_id",
}


class ProductError(Exception):
    """Raised for product business rule violations."""
    pass


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def list_products(
    *,
    company_id: int,
    search: str | None = None,
    status: str | None = None,
    category_id: int | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Tenant-scoped product listing with optional search, status and category
    filters and pagination (page=None returns all items).
    """
    query = db.session.query(Product).filter(Product.company_id == company_id)

    if status:
        query = query.filter(Product.status == status)
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(Product.name.ilike(like), Product.product_code.ilike(like)))

    query = query.order_by(Product.name.asc(), Product.id.asc())
    return paginate(query, page=page, per_page=per_page)


def _ensure_code_unique(company_id: int, product_code: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Product).filter(
        Product.company_id == company_id,
        Product.product_code == product_code,
    )
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError("Product code already exists for this company.")


def _check_category(company_id: int, category_id) -> None:
    if category_id is None:
        return
    try:
        require_category(company_id, category_id)
    except CategoryError as e:
        raise ProductError(str(e))


def create_product(*, patch: dict, company_id: int, user_id: int | None = None) -> Product:
    """
    Create product from a validated patch dict.

    Raises ConflictError if product_code already exists in the company.
    """
    product_code = patch.get("product_code")
    if not product_code:
        raise ProductError("product_code is required")
    _ensure_code_unique(company_id, product_code)
    _check_category(company_id, patch.get("category_id"))

    p = Product(company_id=company_id)
    apply_product_patch(p, patch)

    db.session.add(p)
    db.session.flush()

    append_activity(
        company_id=company_id,
        user_id=user_id,
        action="product.created",
        entity_type="product",
        entity_id=p.id,
        description=f"Created product code={p.product_code} name={p.name}",
    )

    db.session.commit()
    return p


def update_product(p: Product, *, patch: dict, user_id: int | None = None) -> Product:
    if "product_code" in patch and patch["product_code"] != p.product_code:
        _ensure_code_unique(p.company_id, patch["product_code"], exclude_id=p.id)
    if "category_id" in patch:
        _check_category(p.company_id, patch["category_id"])

    min_qty = patch.get("minimum_quantity", p.minimum_quantity)
    max_qty = patch["maximum_quantity"] if "maximum_quantity" in patch else p.maximum_quantity
    if min_qty is not None and max_qty is not None and max_qty < min_qty:
        raise ProductError("maximum_quantity must be >= minimum_quantity")

    apply_product_patch(p, patch)

    append_activity(
        company_id=p.company_id,
        user_id=user_id,
        action="product.updated",
        entity_type="product",
        entity_id=p.id,
        description=f"Updated fields: {', '.join(sorted(patch))}",
    )
    db.session.commit()
    return p


def deactivate_product(p: Product, *, user_id: int | None = None) -> Product:
    p.status = "inactive"
    append_activity(
        company_id=p.company_id,
        user_id=user_id,
        action="product.deactivated",
        entity_type="product",
        entity_id=p.id,
    )
    db.session.commit()
    return p


def calculate_product_pricing(p: Product, quantity: int) -> DeliveryQuote:
    """
    Goods + weight-based delivery + product tax for `quantity` units,
    priced against the product company's active weight tiers.
    """
    if p.status != "active":
        raise ProductError("Product is not active")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ProductError("quantity must be a positive integer")
    if p.minimum_quantity and quantity < p.minimum_quantity:
        raise ProductError(f"Minimum quantity is {p.minimum_quantity}")
    if p.maximum_quantity and quantity > p.maximum_quantity:
        raise ProductError(f"Maximum quantity is {p.maximum_quantity}")

    company = db.session.get(Company, p.company_id)
    if company is None or not company.is_active:
        raise ProductError("Company is not active")

    return compose_line_total(
        unit_price=p.base_price,
        quantity=quantity,
        weight_per_unit=p.weight_per_unit,
        weight_unit=p.weight_unit,
        tax_rate=p.tax_rate,
        tiers=get_active_tiers(p.company_id),
    )
