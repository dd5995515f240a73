# Overview: Service-layer operations for product categories; encapsulates business logic and database work.

"""
Product Category Service

Categories group a company's products and nest through parent_id.

RULES:
- code is unique within a company; when omitted it is generated from the
  name (first three letters + a 3-digit counter, e.g. BUS001)
- A parent must belong to the same company and be active
- A category can never become its own ancestor
- Categories with products or subcategories cannot be deleted
"""

from __future__ import annotations

import re

from ..extensions import db
from ..models import Product, ProductCategory
from ..validation import ConflictError, ValidationError
from .activity_service import append_activity
from .concurrency import run_with_retry
from .pagination import paginate

CATEGORY_MUTABLE_FIELDS = {"name", "code", "description", "parent_id", "status", "sort_order"}


class CategoryError(Exception):
    """Raised for product category business rule violations."""
    pass


# =============================================================================
# QUERIES
# =============================================================================

def _product_counts(company_id: int) -> dict[int, int]:
    rows = (
        db.session.query(Product.category_id, db.func.count(Product.id))
        .filter(Product.company_id == company_id, Product.category_id.isnot(None))
        .group_by(Product.category_id)
        .all()
    )
    return {category_id: count for category_id, count in rows}


def list_categories(
    *,
    company_id: int,
    search: str | None = None,
    status: str | None = None,
    parent_id: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Flat tenant-scoped listing. parent_id="null" returns top-level
    categories only; any other value filters on that parent.
    """
    query = db.session.query(ProductCategory).filter(ProductCategory.company_id == company_id)

    if status:
        query = query.filter(ProductCategory.status == status)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(
            ProductCategory.name.ilike(like),
            ProductCategory.code.ilike(like),
            ProductCategory.description.ilike(like),
        ))
    if parent_id:
        if parent_id == "null":
            query = query.filter(ProductCategory.parent_id.is_(None))
        else:
            try:
                query = query.filter(ProductCategory.parent_id == int(parent_id))
            except ValueError:
                raise ValidationError("parent_id must be an integer or 'null'")

    counts = _product_counts(company_id)

    def serialize(category: ProductCategory) -> dict:
        data = category.to_dict()
        data["products_count"] = counts.get(category.id, 0)
        return data

    query = query.order_by(ProductCategory.sort_order.asc(), ProductCategory.name.asc(), ProductCategory.id.asc())
    return paginate(query, page=page, per_page=per_page, serialize=serialize)


def get_category_tree(company_id: int) -> list[dict]:
    """
    Active categories nested under their parents, ordered by sort_order then
    name. Subcategories of an inactive parent are left out with it.
    """
    categories = (
        db.session.query(ProductCategory)
        .filter(ProductCategory.company_id == company_id, ProductCategory.status == "active")
        .order_by(ProductCategory.sort_order.asc(), ProductCategory.name.asc(), ProductCategory.id.asc())
        .all()
    )
    counts = _product_counts(company_id)

    nodes = {}
    for c in categories:
        nodes[c.id] = {
            "id": c.id,
            "name": c.name,
            "code": c.code,
            "sort_order": c.sort_order,
            "products_count": counts.get(c.id, 0),
            "children": [],
        }

    roots = []
    for c in categories:
        if c.parent_id is None:
            roots.append(nodes[c.id])
        elif c.parent_id in nodes:
            nodes[c.parent_id]["children"].append(nodes[c.id])
    return roots


def get_category_stats(company_id: int) -> dict:
    base = db.session.query(ProductCategory).filter(ProductCategory.company_id == company_id)
    total = base.count()
    active = base.filter(ProductCategory.status == "active").count()
    top_level = base.filter(ProductCategory.parent_id.is_(None)).count()
    return {
        "total": total,
        "active": active,
        "inactive": total - active,
        "top_level": top_level,
        "with_products": len(_product_counts(company_id)),
    }


def require_category(company_id: int, category_id, field: str = "category_id") -> ProductCategory:
    """Resolve a category id supplied in a payload; other companies' ids are 'not found'."""
    if isinstance(category_id, bool) or not isinstance(category_id, int):
        raise ValidationError(f"{field} must be an integer")
    category = db.session.get(ProductCategory, category_id)
    if category is None or category.company_id != company_id:
        raise CategoryError("Category not found")
    return category


# =============================================================================
# COMMANDS
# =============================================================================

CODE_PATTERN = re.compile(r"^[A-Z0-9_-]{3,50}$")


def _code_exists(company_id: int, code: str, exclude_id: int | None = None) -> bool:
    query = db.session.query(ProductCategory.id).filter(
        ProductCategory.company_id == company_id,
        ProductCategory.code == code,
    )
    if exclude_id is not None:
        query = query.filter(ProductCategory.id != exclude_id)
    return query.first() is not None


def generate_code(company_id: int, name: str) -> str:
    prefix = re.sub(r"[^A-Za-z0-9]", "", name)[:3].upper() or "CAT"
    counter = 1
    while _code_exists(company_id, f"{prefix}{counter:03d}"):
        counter += 1
    return f"{prefix}{counter:03d}"


def _normalize_code(code: str) -> str:
    code = code.strip().upper()
    if not CODE_PATTERN.match(code):
        raise ValidationError("code must be 3-50 characters of A-Z, 0-9, '_' or '-'")
    return code


def _check_parent(category: ProductCategory | None, company_id: int, parent_id) -> None:
    if parent_id is None:
        return
    parent = require_category(company_id, parent_id, "parent_id")
    if parent.status != "active":
        raise CategoryError("Parent category is not active")
    if category is None:
        return

    node = parent
    while node is not None:
        if node.id == category.id:
            raise CategoryError("A category cannot be moved under itself or its subcategories")
        node = node.parent


def create_category(*, company_id: int, patch: dict, user_id: int | None = None) -> ProductCategory:
    """
    Create a category from a validated patch dict.

    Raises ConflictError when the code is already used in the company.
    """
    name = (patch.get("name") or "").strip()
    if len(name) < 2:
        raise ValidationError("name must be at least 2 characters")

    _check_parent(None, company_id, patch.get("parent_id"))

    if patch.get("code"):
        code = _normalize_code(patch["code"])
        if _code_exists(company_id, code):
            raise ConflictError("Category code already exists for this company.")
    else:
        code = generate_code(company_id, name)

    def _op():
        category = ProductCategory(company_id=company_id, status="active", sort_order=0)
        for k, v in patch.items():
            if k in CATEGORY_MUTABLE_FIELDS:
                setattr(category, k, v)
        category.name = name
        category.code = code

        db.session.add(category)
        db.session.flush()

        append_activity(
            company_id=company_id,
            user_id=user_id,
            action="product_category.created",
            entity_type="product_category",
            entity_id=category.id,
            description=f"Created category {category.code} ({category.name})",
        )
        db.session.commit()
        return category

    return run_with_retry(_op)


def update_category(category: ProductCategory, *, patch: dict, user_id: int | None = None) -> ProductCategory:
    if "name" in patch:
        patch = dict(patch, name=(patch["name"] or "").strip())
        if len(patch["name"]) < 2:
            raise ValidationError("name must be at least 2 characters")
    if patch.get("code"):
        patch = dict(patch, code=_normalize_code(patch["code"]))
        if patch["code"] != category.code and _code_exists(category.company_id, patch["code"], exclude_id=category.id):
            raise ConflictError("Category code already exists for this company.")
    elif "code" in patch:
        raise ValidationError("code cannot be empty")
    if "parent_id" in patch:
        _check_parent(category, category.company_id, patch["parent_id"])
    if patch.get("status") == "active" and category.status != "active":
        parent_id = patch["parent_id"] if "parent_id" in patch else category.parent_id
        parent = db.session.get(ProductCategory, parent_id) if parent_id is not None else None
        if parent is not None and parent.status != "active":
            raise CategoryError("Parent category is not active")

    def _op():
        for k, v in patch.items():
            if k in CATEGORY_MUTABLE_FIELDS:
                setattr(category, k, v)

        append_activity(
            company_id=category.company_id,
            user_id=user_id,
            action="product_category.updated",
            entity_type="product_category",
            entity_id=category.id,
            description=f"Updated fields: {', '.join(sorted(patch))}",
        )
        db.session.commit()
        return category

    return run_with_retry(_op)


def toggle_category_status(category: ProductCategory, *, user_id: int | None = None) -> ProductCategory:
    """Flip active/inactive. Re-activation needs an active parent."""
    def _op():
        if category.status == "active":
            category.status = "inactive"
        else:
            if category.parent is not None and category.parent.status != "active":
                raise CategoryError("Parent category is not active")
            category.status = "active"

        append_activity(
            company_id=category.company_id,
            user_id=user_id,
            action=f"product_category.{'activated' if category.status == 'active' else 'deactivated'}",
            entity_type="product_category",
            entity_id=category.id,
        )
        db.session.commit()
        return category

    return run_with_retry(_op)


def reorder_categories(*, company_id: int, category_ids: list[int], user_id: int | None = None) -> list[ProductCategory]:
    """Set sort_order = position + 1 for each id in category_ids."""
    if (
        not isinstance(category_ids, list)
        or not category_ids
        or not all(isinstance(c, int) and not isinstance(c, bool) for c in category_ids)
    ):
        raise ValidationError("category_ids must be a non-empty list of integers")
    if len(set(category_ids)) != len(category_ids):
        raise ValidationError("category_ids must not contain duplicates")

    def _op():
        categories = (
            db.session.query(ProductCategory)
            .filter(ProductCategory.company_id == company_id, ProductCategory.id.in_(category_ids))
            .all()
        )
        by_id = {c.id: c for c in categories}
        missing = [c for c in category_ids if c not in by_id]
        if missing:
            raise CategoryError(f"Categories not found: {missing}")

        for index, category_id in enumerate(category_ids):
            by_id[category_id].sort_order = index + 1

        append_activity(
            company_id=company_id,
            user_id=user_id,
            action="product_category.reordered",
            entity_type="product_category",
            entity_id=category_ids[0],
            description=f"New order: {category_ids}",
        )
        db.session.commit()
        return [by_id[c] for c in category_ids]

    return run_with_retry(_op)


def delete_category(category: ProductCategory, *, user_id: int | None = None) -> None:
    if db.session.query(Product.id).filter(Product.category_id == category.id).first():
        raise CategoryError("Cannot delete a category with products; move or deactivate them first")
    if db.session.query(ProductCategory.id).filter(ProductCategory.parent_id == category.id).first():
        raise CategoryError("Cannot delete a category with subcategories; delete them first")

    append_activity(
        company_id=category.company_id,
        user_id=user_id,
        action="product_category.deleted",
        entity_type="product_category",
        entity_id=category.id,
        description=f"Deleted category {category.code} ({category.name})",
    )
    db.session.delete(category)
    db.session.commit()
