# Overview: Service-layer operations for payments; encapsulates business logic and database work.

"""
Payment Service

Payments are recorded against invoices and only count once verified.

RULES:
- amount > 0 and may not exceed the invoice's open balance
  (total - verified payments - payments awaiting verification)
- cash and card payments are completed and verified on entry; other
  methods wait for verification
- after every change the invoice's payment_status is rolled up:
  paid when verified total >= invoice total, partially_paid when > 0,
  otherwise pending
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import Invoice, Payment
from ..pricing import ZERO, money_str, qmoney
from ..validation import MAX_AMOUNT, ValidationError
from .activity_service import append_activity
from .concurrency import lock_for_update, run_with_retry
from .pagination import paginate
from .sequence_service import next_payment_reference
from printshop.time_utils import parse_iso_date, today, utcnow


class PaymentError(Exception):
    """Raised for payment business rule violations."""
    pass


PAYMENT_METHODS = ["cash", "bank_transfer", "online", "card", "cheque", "mobile_payment"]
INSTANT_METHODS = {"cash", "card"}

PAYMENT_STATUSES = ["pending", "completed", "failed", "cancelled", "refunded"]
VERIFICATION_STATUSES = ["pending", "verified", "rejected"]


# =============================================================================
# TOTALS
# =============================================================================

def get_total_paid(invoice_id: int) -> Decimal:
    """Sum of completed, verified payments."""
    total = (
        db.session.query(db.func.coalesce(db.func.sum(Payment.amount), 0))
        .filter(
            Payment.invoice_id == invoice_id,
            Payment.status == "completed",
            Payment.verification_status == "verified",
        )
        .scalar()
    )
    return qmoney(Decimal(str(total)))


def get_pending_total(invoice_id: int) -> Decimal:
    """Sum of payments still awaiting verification."""
    total = (
        db.session.query(db.func.coalesce(db.func.sum(Payment.amount), 0))
        .filter(
            Payment.invoice_id == invoice_id,
            Payment.status == "pending",
            Payment.verification_status == "pending",
        )
        .scalar()
    )
    return qmoney(Decimal(str(total)))


def update_invoice_payment_status(invoice: Invoice) -> str:
    """Recompute invoice.payment_status from its verified payments. Does not commit."""
    if invoice.payment_status == "refunded":
        return invoice.payment_status

    db.session.flush()
    paid = get_total_paid(invoice.id)
    total = Decimal(invoice.total_amount)

    if total > ZERO and paid >= total:
        status = "paid"
    elif paid > ZERO:
        status = "partially_paid"
    else:
        status = "pending"

    if status != invoice.payment_status:
        current_app.logger.info(
            "Invoice %s payment status %s -> %s (paid %s of %s)",
            invoice.invoice_number, invoice.payment_status, status, money_str(paid), money_str(total),
        )
        invoice.payment_status = status
    return status


# =============================================================================
# QUERIES
# =============================================================================

def list_payments(
    *,
    company_id: int,
    invoice_id: int | None = None,
    branch_id: int | None = None,
    status: str | None = None,
    verification_status: str | None = None,
    payment_method: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = (
        db.session.query(Payment)
        .join(Invoice, Invoice.id == Payment.invoice_id)
        .filter(Invoice.company_id == company_id)
    )
    if invoice_id is not None:
        query = query.filter(Payment.invoice_id == invoice_id)
    if branch_id is not None:
        query = query.filter(Payment.branch_id == branch_id)
    if status:
        if status not in PAYMENT_STATUSES:
            raise ValidationError(f"Invalid status: {status}")
        query = query.filter(Payment.status == status)
    if verification_status:
        if verification_status not in VERIFICATION_STATUSES:
            raise ValidationError(f"Invalid verification_status: {verification_status}")
        query = query.filter(Payment.verification_status == verification_status)
    if payment_method:
        query = query.filter(Payment.payment_method == payment_method)

    query = query.order_by(Payment.payment_date.desc(), Payment.id.desc())
    return paginate(query, page=page, per_page=per_page)


def get_payment(payment_id: int, company_id: int) -> Payment:
    payment = db.session.get(Payment, payment_id)
    if payment is None or payment.invoice.company_id != company_id:
        raise PaymentError("Payment not found")
    return payment


# =============================================================================
# COMMANDS
# =============================================================================

def _parse_amount(raw) -> Decimal:
    if isinstance(raw, bool) or raw is None:
        raise ValidationError("amount must be a number")
    try:
        amount = Decimal(str(raw).strip())
    except ArithmeticError:
        raise ValidationError("amount must be a number")
    if not amount.is_finite() or amount <= ZERO:
        raise ValidationError("amount must be greater than 0")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"amount cannot exceed {MAX_AMOUNT:,}")
    return qmoney(amount)


def record_payment(invoice: Invoice, *, payload: dict, user_id: int | None = None) -> Payment:
    """
    Record a payment against an invoice.

    payload: amount, payment_method, payment_date?, bank_name?,
    transaction_id?, cheque_number?, notes?
    """
    amount = _parse_amount(payload.get("amount"))

    method = payload.get("payment_method")
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"Invalid payment_method: {method}. Must be one of {PAYMENT_METHODS}")
    if method == "cheque" and not payload.get("cheque_number"):
        raise ValidationError("cheque_number is required for cheque payments")

    try:
        raw_date = payload.get("payment_date")
        payment_date = (parse_iso_date(str(raw_date)) if raw_date is not None else None) or today()
    except ValueError:
        raise ValidationError("payment_date must be an ISO-8601 date")

    if invoice.status == "cancelled":
        raise PaymentError("Cannot record payments on a cancelled invoice")

    def _op():
        locked = lock_for_update(db.session.query(Invoice).filter_by(id=invoice.id)).first()

        open_balance = Decimal(locked.total_amount) - get_total_paid(locked.id) - get_pending_total(locked.id)
        if amount > open_balance:
            raise PaymentError(
                f"Payment amount {money_str(amount)} exceeds remaining balance {money_str(max(ZERO, open_balance))}"
            )

        instant = method in INSTANT_METHODS
        payment = Payment(
            invoice_id=locked.id,
            branch_id=locked.branch_id,
            customer_id=locked.customer_id,
            received_by=user_id,
            payment_reference=next_payment_reference(locked.branch_id, payment_date),
            amount=amount,
            payment_date=payment_date,
            payment_method=method,
            bank_name=payload.get("bank_name"),
            transaction_id=payload.get("transaction_id"),
            cheque_number=payload.get("cheque_number"),
            notes=payload.get("notes"),
            status="completed" if instant else "pending",
            verification_status="verified" if instant else "pending",
            verified_at=utcnow() if instant else None,
            verified_by=user_id if instant else None,
        )
        db.session.add(payment)
        db.session.flush()

        update_invoice_payment_status(locked)
        append_activity(
            company_id=locked.company_id,
            branch_id=locked.branch_id,
            user_id=user_id,
            action="payment.recorded",
            entity_type="payment",
            entity_id=payment.id,
            description=f"{payment.payment_reference} {method} {money_str(amount)} for {locked.invoice_number}",
        )
        db.session.commit()
        return payment

    return run_with_retry(_op)


def verify_payment(payment: Payment, *, user_id: int | None = None, notes: str | None = None) -> Payment:
    if payment.verification_status != "pending":
        raise PaymentError("Payment has already been verified or rejected")
    if payment.status not in ("pending", "processing"):
        raise PaymentError(f"Cannot verify a payment with status {payment.status}")

    payment.verification_status = "verified"
    payment.status = "completed"
    payment.verified_by = user_id
    payment.verified_at = utcnow()
    if notes:
        payment.notes = f"{payment.notes}\n{notes}" if payment.notes else notes

    update_invoice_payment_status(payment.invoice)
    append_activity(
        company_id=payment.invoice.company_id,
        branch_id=payment.branch_id,
        user_id=user_id,
        action="payment.verified",
        entity_type="payment",
        entity_id=payment.id,
        description=f"Verified {payment.payment_reference}",
    )
    db.session.commit()
    current_app.logger.info("Payment %s verified by user %s", payment.payment_reference, user_id)
    return payment


def reject_payment(payment: Payment, *, reason: str, user_id: int | None = None) -> Payment:
    if not reason or not str(reason).strip():
        raise ValidationError("rejection_reason is required")
    if payment.verification_status != "pending":
        raise PaymentError("Payment has already been verified or rejected")

    payment.verification_status = "rejected"
    payment.status = "failed"
    payment.verified_by = user_id
    payment.verified_at = utcnow()
    payment.rejection_reason = str(reason).strip()

    update_invoice_payment_status(payment.invoice)
    append_activity(
        company_id=payment.invoice.company_id,
        branch_id=payment.branch_id,
        user_id=user_id,
        action="payment.rejected",
        entity_type="payment",
        entity_id=payment.id,
        description=f"Rejected {payment.payment_reference}: {payment.rejection_reason}",
    )
    db.session.commit()
    current_app.logger.warning("Payment %s rejected: %s", payment.payment_reference, payment.rejection_reason)
    return payment
