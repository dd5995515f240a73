# Overview: Service-layer operations for customers.

from __future__ import annotations

from ..extensions import db
from ..models import Customer
from .activity_service import append_activity
from .pagination import paginate

CUSTOMER_MUTABLE_FIELDS = {"name", "email", "phone", "address", "customer_type", "branch_id", "is_active"}
CUSTOMER_TYPES = ("individual", "business")


class CustomerError(Exception):
    """Raised for customer business rule violations."""
    pass


def _apply(customer: Customer, patch: dict) -> None:
    if "customer_type" in patch and patch["customer_type"] not in CUSTOMER_TYPES:
        raise CustomerError(f"Invalid customer_type. Must be one of {list(CUSTOMER_TYPES)}")
    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(customer, k, v)


def list_customers(
    *,
    company_id: int,
    search: str | None = None,
    include_inactive: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(Customer).filter(Customer.company_id == company_id)
    if not include_inactive:
        query = query.filter(Customer.is_active.is_(True))
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Customer.name.ilike(like),
            Customer.email.ilike(like),
            Customer.phone.ilike(like),
        ))
    query = query.order_by(Customer.name.asc(), Customer.id.asc())
    return paginate(query, page=page, per_page=per_page)


def create_customer(*, company_id: int, patch: dict, user_id: int | None = None) -> Customer:
    customer = Customer(company_id=company_id)
    _apply(customer, patch)
    db.session.add(customer)
    db.session.flush()

    append_activity(
        company_id=company_id,
        branch_id=customer.branch_id,
        user_id=user_id,
        action="customer.created",
        entity_type="customer",
        entity_id=customer.id,
        description=f"Created customer {customer.name}",
    )
    db.session.commit()
    return customer


def update_customer(customer: Customer, *, patch: dict, user_id: int | None = None) -> Customer:
    _apply(customer, patch)
    append_activity(
        company_id=customer.company_id,
        user_id=user_id,
        action="customer.updated",
        entity_type="customer",
        entity_id=customer.id,
        description=f"Updated fields: {', '.join(sorted(patch))}",
    )
    db.session.commit()
    return customer


def deactivate_customer(customer: Customer, *, user_id: int | None = None) -> Customer:
    customer.is_active = False
    append_activity(
        company_id=customer.company_id,
        user_id=user_id,
        action="customer.deactivated",
        entity_type="customer",
        entity_id=customer.id,
    )
    db.session.commit()
    return customer
