# Overview: Service-layer operations for invoices; encapsulates business logic and database work.

"""
Invoice Service

Invoices bill a customer for product lines plus a weight-based delivery
charge and company tax.

TOTALS (recomputed on every change, never accepted from clients):
- line_total   = quantity * unit_price
- line_weight  = quantity * unit_weight (kg)
- subtotal     = sum(line_total)
- total_weight = sum(line_weight)
- weight_charge: delivery charge for total_weight from the company's
  active weight tiers (0 when no tier matches)
- taxable      = subtotal + weight_charge - discount_amount
- tax_amount   = taxable * company.tax_rate / 100
- total_amount = taxable + tax_amount

LIFECYCLE:
- draft -> pending -> processing -> completed; draft/pending/processing -> cancelled
- Editable while draft or pending and not fully paid
- Deletable only while draft with no payments recorded
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import Company, Customer, Invoice, InvoiceItem, Product
from ..pricing import (
    ZERO,
    HUNDRED,
    calculate_delivery_charge,
    money_str,
    qmoney,
    qweight,
    to_kilograms,
    weight_str,
)
from ..validation import MAX_AMOUNT, MAX_PRICE, MAX_QUANTITY, ValidationError
from .activity_service import append_activity
from .concurrency import lock_for_update, run_with_retry
from .pagination import paginate
from .payment_service import get_total_paid, get_pending_total, update_invoice_payment_status
from .sequence_service import next_invoice_number
from printshop.time_utils import parse_iso_date, today


class InvoiceError(Exception):
    """Raised for invoice business rule violations."""
    pass


# =============================================================================
# STATUS (CONSTANTS)
# =============================================================================

STATUS_DRAFT = "draft"
STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"

VALID_STATUSES = [STATUS_DRAFT, STATUS_PENDING, STATUS_PROCESSING, STATUS_COMPLETED, STATUS_CANCELLED]

VALID_PAYMENT_STATUSES = ["pending", "partially_paid", "paid", "refunded"]

ALLOWED_TRANSITIONS = {
    STATUS_DRAFT: {STATUS_PENDING, STATUS_CANCELLED},
    STATUS_PENDING: {STATUS_DRAFT, STATUS_PROCESSING, STATUS_CANCELLED},
    STATUS_PROCESSING: {STATUS_COMPLETED, STATUS_CANCELLED},
    STATUS_COMPLETED: set(),
    STATUS_CANCELLED: set(),
}

EDITABLE_STATUSES = {STATUS_DRAFT, STATUS_PENDING}


# =============================================================================
# TOTALS
# =============================================================================

@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    total_weight: Decimal
    weight_charge: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    tier_name: str | None

    def to_dict(self) -> dict:
        return {
            "subtotal": money_str(self.subtotal),
            "total_weight": weight_str(self.total_weight),
            "weight_charge": money_str(self.weight_charge),
            "discount_amount": money_str(self.discount_amount),
            "tax_amount": money_str(self.tax_amount),
            "total_amount": money_str(self.total_amount),
            "tier_name": self.tier_name,
        }


def compute_totals(company: Company, items: list[InvoiceItem], discount_amount) -> InvoiceTotals:
    from .weight_pricing_service import get_active_tiers

    discount = qmoney(Decimal(discount_amount or 0))
    if discount < ZERO:
        raise InvoiceError("discount_amount must be >= 0")

    subtotal = sum((Decimal(i.line_total) for i in items), ZERO)
    total_weight = sum((Decimal(i.line_weight) for i in items), ZERO)

    delivery = calculate_delivery_charge(total_weight, "kg", get_active_tiers(company.id))
    weight_charge = qmoney(delivery.delivery_charge)

    if discount > subtotal + weight_charge:
        raise InvoiceError("Discount cannot exceed subtotal plus weight charge")

    taxable = subtotal + weight_charge - discount
    tax_amount = qmoney(taxable * Decimal(company.tax_rate or 0) / HUNDRED)
    if taxable + tax_amount > MAX_AMOUNT:
        raise InvoiceError(f"Invoice total cannot exceed {MAX_AMOUNT:,}")

    return InvoiceTotals(
        subtotal=qmoney(subtotal),
        total_weight=qweight(total_weight),
        weight_charge=weight_charge,
        discount_amount=discount,
        tax_amount=tax_amount,
        total_amount=qmoney(taxable + tax_amount),
        tier_name=delivery.tier_name,
    )


def _apply_totals(invoice: Invoice, totals: InvoiceTotals) -> None:
    invoice.subtotal = totals.subtotal
    invoice.total_weight = totals.total_weight
    invoice.weight_charge = totals.weight_charge
    invoice.discount_amount = totals.discount_amount
    invoice.tax_amount = totals.tax_amount
    invoice.total_amount = totals.total_amount


# =============================================================================
# ITEMS
# =============================================================================

def _parse_quantity(raw) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        if isinstance(raw, str) and raw.strip().isdigit():
            raw = int(raw.strip())
        else:
            raise ValidationError("quantity must be a positive integer")
    if raw < 1:
        raise ValidationError("quantity must be a positive integer")
    if raw > MAX_QUANTITY:
        raise ValidationError(f"quantity cannot exceed {MAX_QUANTITY:,}")
    return raw


def _parse_money(raw, field: str, limit: Decimal = MAX_PRICE) -> Decimal:
    if isinstance(raw, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        value = Decimal(str(raw).strip())
    except ArithmeticError:
        raise ValidationError(f"{field} must be a number")
    if not value.is_finite() or value < ZERO:
        raise ValidationError(f"{field} must be >= 0")
    if value > limit:
        raise ValidationError(f"{field} cannot exceed {limit:,}")
    return qmoney(value)


def build_items(company_id: int, items_payload) -> list[InvoiceItem]:
    """
    Turn client item dicts into unsaved InvoiceItem rows.

    Each item needs product_id and quantity; unit_price and item_description
    default from the product. unit_weight is the product weight in kg.
    """
    if not isinstance(items_payload, list) or not items_payload:
        raise ValidationError("items must be a non-empty list")

    items = []
    for idx, raw in enumerate(items_payload, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"Item {idx} must be an object")

        product_id = raw.get("product_id")
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise ValidationError(f"Item {idx}: product_id must be an integer")

        product = db.session.get(Product, product_id)
        if product is None or product.company_id != company_id:
            raise InvoiceError(f"Item {idx}: product not found")
        if product.status != "active":
            raise InvoiceError(f"Item {idx}: product {product.product_code} is not active")

        quantity = _parse_quantity(raw.get("quantity"))
        if product.minimum_quantity and quantity < product.minimum_quantity:
            raise InvoiceError(f"Item {idx}: minimum quantity is {product.minimum_quantity}")
        if product.maximum_quantity and quantity > product.maximum_quantity:
            raise InvoiceError(f"Item {idx}: maximum quantity is {product.maximum_quantity}")

        if raw.get("unit_price") is not None:
            unit_price = _parse_money(raw["unit_price"], "unit_price")
        else:
            unit_price = qmoney(Decimal(product.base_price))

        unit_weight = qweight(to_kilograms(product.weight_per_unit or 0, product.weight_unit))

        specifications = raw.get("specifications")
        if specifications is not None and not isinstance(specifications, dict):
            raise ValidationError(f"Item {idx}: specifications must be an object")

        line_total = qmoney(unit_price * quantity)
        if line_total > MAX_AMOUNT:
            raise InvoiceError(f"Item {idx}: line total cannot exceed {MAX_AMOUNT:,}")

        description = (raw.get("item_description") or product.name).strip()

        items.append(InvoiceItem(
            product_id=product.id,
            item_description=description[:500],
            quantity=quantity,
            unit_price=unit_price,
            unit_weight=unit_weight,
            line_total=line_total,
            line_weight=qweight(unit_weight * quantity),
            specifications=specifications,
        ))

    return items


def preview_totals(*, company_id: int, items_payload, discount_amount=0) -> dict:
    """Totals for a prospective invoice without persisting anything."""
    company = db.session.get(Company, company_id)
    items = build_items(company_id, items_payload)
    totals = compute_totals(company, items, _parse_money(discount_amount or 0, "discount_amount", MAX_AMOUNT))
    data = totals.to_dict()
    data["items"] = [
        {
            "product_id": i.product_id,
            "item_description": i.item_description,
            "quantity": i.quantity,
            "unit_price": money_str(i.unit_price),
            "unit_weight": weight_str(i.unit_weight),
            "line_total": money_str(i.line_total),
            "line_weight": weight_str(i.line_weight),
        }
        for i in items
    ]
    return data


# =============================================================================
# QUERIES
# =============================================================================

def list_invoices(
    *,
    company_id: int,
    status: str | None = None,
    payment_status: str | None = None,
    customer_id: int | None = None,
    branch_id: int | None = None,
    search: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(Invoice).filter(Invoice.company_id == company_id)

    if status:
        if status not in VALID_STATUSES:
            raise ValidationError(f"Invalid status: {status}")
        query = query.filter(Invoice.status == status)
    if payment_status:
        if payment_status not in VALID_PAYMENT_STATUSES:
            raise ValidationError(f"Invalid payment_status: {payment_status}")
        query = query.filter(Invoice.payment_status == payment_status)
    if customer_id is not None:
        query = query.filter(Invoice.customer_id == customer_id)
    if branch_id is not None:
        query = query.filter(Invoice.branch_id == branch_id)
    if search:
        like = f"%{search.strip()}%"
        query = query.join(Customer, Customer.id == Invoice.customer_id).filter(
            db.or_(Invoice.invoice_number.ilike(like), Customer.name.ilike(like))
        )
    try:
        start = parse_iso_date(date_from)
        end = parse_iso_date(date_to)
    except ValueError:
        raise ValidationError("date_from/date_to must be ISO-8601 dates")
    if start:
        query = query.filter(Invoice.invoice_date >= start)
    if end:
        query = query.filter(Invoice.invoice_date <= end)

    query = query.order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
    return paginate(query, page=page, per_page=per_page)


def is_modifiable(invoice: Invoice) -> bool:
    return invoice.status in EDITABLE_STATUSES and invoice.payment_status not in ("paid", "refunded")


# =============================================================================
# COMMANDS
# =============================================================================

def _resolve_customer(company_id: int, customer_id) -> Customer:
    if isinstance(customer_id, bool) or not isinstance(customer_id, int):
        raise ValidationError("customer_id must be an integer")
    customer = db.session.get(Customer, customer_id)
    if customer is None or customer.company_id != company_id:
        raise InvoiceError("Customer not found")
    if not customer.is_active:
        raise InvoiceError("Customer is not active")
    return customer


def _parse_date_field(payload: dict, field: str):
    raw = payload.get(field)
    if raw is None:
        return None
    try:
        return parse_iso_date(str(raw))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date")


def create_invoice(
    *,
    company_id: int,
    branch_id: int,
    payload: dict,
    user_id: int | None = None,
) -> Invoice:
    """
    Create an invoice with items. branch_id must already be validated
    against the tenant.
    """
    company = db.session.get(Company, company_id)
    customer = _resolve_customer(company_id, payload.get("customer_id"))
    items = build_items(company_id, payload.get("items"))

    status = payload.get("status") or STATUS_DRAFT
    if status not in (STATUS_DRAFT, STATUS_PENDING):
        raise InvoiceError("New invoices must be draft or pending")

    invoice_date = _parse_date_field(payload, "invoice_date") or today()
    due_date = _parse_date_field(payload, "due_date") or (
        invoice_date + timedelta(days=current_app.config.get("DEFAULT_INVOICE_DUE_DAYS", 30))
    )
    if due_date < invoice_date:
        raise InvoiceError("due_date cannot be before invoice_date")

    discount = _parse_money(payload.get("discount_amount") or 0, "discount_amount", MAX_AMOUNT)
    totals = compute_totals(company, items, discount)

    def _op():
        invoice = Invoice(
            company_id=company_id,
            branch_id=branch_id,
            customer_id=customer.id,
            created_by=user_id,
            invoice_number=next_invoice_number(branch_id, invoice_date),
            invoice_date=invoice_date,
            due_date=due_date,
            status=status,
            payment_status="pending",
            notes=payload.get("notes"),
            terms_conditions=payload.get("terms_conditions"),
        )
        _apply_totals(invoice, totals)
        invoice.items = items

        db.session.add(invoice)
        db.session.flush()

        append_activity(
            company_id=company_id,
            branch_id=branch_id,
            user_id=user_id,
            action="invoice.created",
            entity_type="invoice",
            entity_id=invoice.id,
            description=f"Created invoice {invoice.invoice_number} total={money_str(invoice.total_amount)}",
        )
        db.session.commit()
        return invoice

    invoice = run_with_retry(_op)
    current_app.logger.info(
        "Invoice %s created for company %s (total %s)",
        invoice.invoice_number, company_id, money_str(invoice.total_amount),
    )
    return invoice


def update_invoice(invoice: Invoice, *, payload: dict, user_id: int | None = None) -> Invoice:
    """
    Update header fields and/or replace items, then recompute totals.
    """
    if not is_modifiable(invoice):
        raise InvoiceError(f"Invoice cannot be modified (status={invoice.status}, payment_status={invoice.payment_status})")

    allowed = {"customer_id", "invoice_date", "due_date", "discount_amount", "notes", "terms_conditions", "items"}
    unknown = sorted(set(payload) - allowed)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    company = db.session.get(Company, invoice.company_id)
    customer = _resolve_customer(invoice.company_id, payload["customer_id"]) if "customer_id" in payload else None
    new_items = build_items(invoice.company_id, payload["items"]) if "items" in payload else None

    invoice_date = _parse_date_field(payload, "invoice_date") or invoice.invoice_date
    due_date = _parse_date_field(payload, "due_date") or invoice.due_date
    if due_date and due_date < invoice_date:
        raise InvoiceError("due_date cannot be before invoice_date")

    discount = (
        _parse_money(payload.get("discount_amount") or 0, "discount_amount", MAX_AMOUNT)
        if "discount_amount" in payload else invoice.discount_amount
    )
    totals = compute_totals(company, new_items if new_items is not None else invoice.items, discount)

    def _op():
        locked = lock_for_update(db.session.query(Invoice).filter_by(id=invoice.id)).first()

        paid = get_total_paid(locked.id)
        if totals.total_amount < paid:
            raise InvoiceError(f"New total {money_str(totals.total_amount)} is below amount already paid {money_str(paid)}")
        pending = get_pending_total(locked.id)
        if totals.total_amount < paid + pending:
            raise InvoiceError(
                f"New total {money_str(totals.total_amount)} is below paid plus pending payments {money_str(paid + pending)}"
            )

        if customer is not None:
            locked.customer_id = customer.id
        locked.invoice_date = invoice_date
        locked.due_date = due_date
        if "notes" in payload:
            locked.notes = payload["notes"]
        if "terms_conditions" in payload:
            locked.terms_conditions = payload["terms_conditions"]
        if new_items is not None:
            locked.items = new_items
        _apply_totals(locked, totals)
        update_invoice_payment_status(locked)

        append_activity(
            company_id=locked.company_id,
            branch_id=locked.branch_id,
            user_id=user_id,
            action="invoice.updated",
            entity_type="invoice",
            entity_id=locked.id,
            description=f"Updated fields: {', '.join(sorted(payload))}",
        )
        db.session.commit()
        return locked

    return run_with_retry(_op)


def change_status(invoice: Invoice, new_status: str, *, user_id: int | None = None) -> Invoice:
    if new_status not in VALID_STATUSES:
        raise ValidationError(f"Invalid status: {new_status}. Must be one of {VALID_STATUSES}")
    if new_status == invoice.status:
        return invoice
    if new_status not in ALLOWED_TRANSITIONS[invoice.status]:
        raise InvoiceError(f"Cannot change invoice status from {invoice.status} to {new_status}")
    if new_status == STATUS_CANCELLED and get_total_paid(invoice.id) > ZERO:
        raise InvoiceError("Cannot cancel an invoice with completed payments")

    old_status = invoice.status
    invoice.status = new_status
    append_activity(
        company_id=invoice.company_id,
        branch_id=invoice.branch_id,
        user_id=user_id,
        action="invoice.status_changed",
        entity_type="invoice",
        entity_id=invoice.id,
        description=f"{old_status} -> {new_status}",
    )
    db.session.commit()
    return invoice


def delete_invoice(invoice: Invoice, *, user_id: int | None = None) -> None:
    if invoice.status != STATUS_DRAFT:
        raise InvoiceError("Only draft invoices can be deleted")
    if invoice.payments or invoice.payment_verifications:
        raise InvoiceError("Cannot delete an invoice with payments")

    append_activity(
        company_id=invoice.company_id,
        branch_id=invoice.branch_id,
        user_id=user_id,
        action="invoice.deleted",
        entity_type="invoice",
        entity_id=invoice.id,
        description=f"Deleted invoice {invoice.invoice_number}",
    )
    db.session.delete(invoice)
    db.session.commit()


def duplicate_invoice(invoice: Invoice, *, user_id: int | None = None) -> Invoice:
    """
    Copy an invoice's customer and lines into a new draft dated today.
    Line prices are kept; the weight charge and tax use current tiers and rates.
    """
    company = db.session.get(Company, invoice.company_id)
    items = [
        InvoiceItem(
            product_id=i.product_id,
            item_description=i.item_description,
            quantity=i.quantity,
            unit_price=i.unit_price,
            unit_weight=i.unit_weight,
            line_total=i.line_total,
            line_weight=i.line_weight,
            specifications=i.specifications,
        )
        for i in invoice.items
    ]
    totals = compute_totals(company, items, invoice.discount_amount)
    invoice_date = today()

    def _op():
        copy = Invoice(
            company_id=invoice.company_id,
            branch_id=invoice.branch_id,
            customer_id=invoice.customer_id,
            created_by=user_id,
            invoice_number=next_invoice_number(invoice.branch_id, invoice_date),
            invoice_date=invoice_date,
            due_date=invoice_date + timedelta(days=current_app.config.get("DEFAULT_INVOICE_DUE_DAYS", 30)),
            status=STATUS_DRAFT,
            payment_status="pending",
            notes=invoice.notes,
            terms_conditions=invoice.terms_conditions,
        )
        _apply_totals(copy, totals)
        copy.items = items
        db.session.add(copy)
        db.session.flush()

        append_activity(
            company_id=copy.company_id,
            branch_id=copy.branch_id,
            user_id=user_id,
            action="invoice.duplicated",
            entity_type="invoice",
            entity_id=copy.id,
            description=f"Duplicated from {invoice.invoice_number}",
        )
        db.session.commit()
        return copy

    return run_with_retry(_op)


def get_payment_summary(invoice: Invoice) -> dict:
    total = Decimal(invoice.total_amount)
    paid = get_total_paid(invoice.id)
    pending = get_pending_total(invoice.id)
    return {
        "invoice_id": invoice.id,
        "invoice_number": invoice.invoice_number,
        "invoice_total": money_str(total),
        "total_paid": money_str(paid),
        "pending_amount": money_str(pending),
        "remaining_balance": money_str(max(ZERO, total - paid)),
        "payment_status": invoice.payment_status,
        "payments": [p.to_dict() for p in invoice.payments],
    }
