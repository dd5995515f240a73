# Overview: Service-layer operations for customer payment claims awaiting bank verification.

"""
Payment Verification Service

A customer reports a bank payment against an invoice; staff check it against
the bank statement and verify or reject the claim.

- Verifying a claim linked to a payment verifies that payment.
- Verifying an unlinked claim creates a completed, verified bank_transfer
  payment for the claimed amount and links it.
- Rejecting requires a reason and rejects the linked payment when present.
- Branch-bound staff may only decide claims for their own branch's invoices.
"""

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import Invoice, Payment, PaymentVerification
from ..pricing import ZERO, money_str, qmoney
from ..validation import MAX_AMOUNT, ValidationError
from .activity_service import append_activity
from .concurrency import run_with_retry
from .pagination import paginate
from .payment_service import (
    get_pending_total,
    get_total_paid,
    reject_payment,
    update_invoice_payment_status,
    verify_payment,
)
from .sequence_service import next_payment_reference
from printshop.time_utils import parse_iso_date, today, utcnow


class VerificationError(Exception):
    """Raised for payment verification business rule violations."""
    pass


VERIFICATION_METHODS = ["manual", "automatic", "bank_api"]


def _check_branch(claim: PaymentVerification, staff_branch_id: int | None) -> None:
    if staff_branch_id is not None and claim.invoice.branch_id != staff_branch_id:
        raise VerificationError("You can only verify payments for your branch")


def submit_claim(invoice: Invoice, *, payload: dict, user_id: int | None = None) -> PaymentVerification:
    """
    Record a claimed bank payment. payload: claimed_amount,
    payment_claimed_date?, bank_reference?, bank_name?, verification_notes?,
    verification_method?, payment_id?
    """
    raw_amount = payload.get("claimed_amount")
    if isinstance(raw_amount, bool) or raw_amount is None:
        raise ValidationError("claimed_amount must be a number")
    try:
        amount = Decimal(str(raw_amount).strip())
    except ArithmeticError:
        raise ValidationError("claimed_amount must be a number")
    if not amount.is_finite() or amount <= ZERO:
        raise ValidationError("claimed_amount must be greater than 0")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"claimed_amount cannot exceed {MAX_AMOUNT:,}")
    amount = qmoney(amount)

    method = payload.get("verification_method") or "manual"
    if method not in VERIFICATION_METHODS:
        raise ValidationError(f"Invalid verification_method. Must be one of {VERIFICATION_METHODS}")

    raw_date = payload.get("payment_claimed_date")
    try:
        claimed_date = (parse_iso_date(str(raw_date)) if raw_date is not None else None) or today()
    except ValueError:
        raise ValidationError("payment_claimed_date must be an ISO-8601 date")

    if invoice.status == "cancelled":
        raise VerificationError("Cannot submit payment claims for a cancelled invoice")

    payment = None
    if payload.get("payment_id") is not None:
        payment = db.session.get(Payment, payload["payment_id"])
        if payment is None or payment.invoice_id != invoice.id:
            raise VerificationError("Payment not found for this invoice")

    claim = PaymentVerification(
        invoice_id=invoice.id,
        customer_id=invoice.customer_id,
        payment_id=payment.id if payment else None,
        verification_method=method,
        bank_reference=payload.get("bank_reference"),
        bank_name=payload.get("bank_name"),
        verification_notes=payload.get("verification_notes"),
        claimed_amount=amount,
        payment_claimed_date=claimed_date,
        verification_status="pending",
    )
    db.session.add(claim)
    db.session.flush()

    append_activity(
        company_id=invoice.company_id,
        branch_id=invoice.branch_id,
        user_id=user_id,
        action="payment_claim.submitted",
        entity_type="payment_verification",
        entity_id=claim.id,
        description=f"Claim of {money_str(amount)} for {invoice.invoice_number}",
    )
    db.session.commit()
    return claim


def verify_claim(
    claim: PaymentVerification,
    *,
    user_id: int | None = None,
    staff_branch_id: int | None = None,
    notes: str | None = None,
) -> PaymentVerification:
    if claim.verification_status != "pending":
        raise VerificationError("Payment verification already processed")
    _check_branch(claim, staff_branch_id)

    invoice = claim.invoice

    def _op():
        if claim.payment is not None:
            if claim.payment.verification_status == "pending":
                verify_payment(claim.payment, user_id=user_id)
        else:
            open_balance = Decimal(invoice.total_amount) - get_total_paid(invoice.id) - get_pending_total(invoice.id)
            if Decimal(claim.claimed_amount) > open_balance:
                raise VerificationError(
                    f"Claimed amount {money_str(claim.claimed_amount)} exceeds remaining balance "
                    f"{money_str(max(ZERO, open_balance))}"
                )
            payment = Payment(
                invoice_id=invoice.id,
                branch_id=invoice.branch_id,
                customer_id=invoice.customer_id,
                received_by=user_id,
                payment_reference=next_payment_reference(invoice.branch_id, claim.payment_claimed_date),
                amount=claim.claimed_amount,
                payment_date=claim.payment_claimed_date,
                payment_method="bank_transfer",
                bank_name=claim.bank_name,
                transaction_id=claim.bank_reference,
                status="completed",
                verification_status="verified",
                verified_at=utcnow(),
                verified_by=user_id,
                notes=f"Created from payment verification #{claim.id}",
            )
            db.session.add(payment)
            db.session.flush()
            claim.payment_id = payment.id

        claim.verification_status = "verified"
        claim.verified_by = user_id
        claim.verified_at = utcnow()
        if notes:
            claim.verification_notes = notes

        update_invoice_payment_status(invoice)
        append_activity(
            company_id=invoice.company_id,
            branch_id=invoice.branch_id,
            user_id=user_id,
            action="payment_claim.verified",
            entity_type="payment_verification",
            entity_id=claim.id,
            description=f"Verified claim of {money_str(claim.claimed_amount)} for {invoice.invoice_number}",
        )
        db.session.commit()
        return claim

    return run_with_retry(_op)


def reject_claim(
    claim: PaymentVerification,
    *,
    reason: str,
    user_id: int | None = None,
    staff_branch_id: int | None = None,
) -> PaymentVerification:
    if not reason or not str(reason).strip():
        raise ValidationError("rejection_reason is required")
    if claim.verification_status != "pending":
        raise VerificationError("Payment verification already processed")
    _check_branch(claim, staff_branch_id)

    reason = str(reason).strip()
    if claim.payment is not None and claim.payment.verification_status == "pending":
        reject_payment(claim.payment, reason=reason, user_id=user_id)

    claim.verification_status = "rejected"
    claim.verified_by = user_id
    claim.verified_at = utcnow()
    claim.rejection_reason = reason

    append_activity(
        company_id=claim.invoice.company_id,
        branch_id=claim.invoice.branch_id,
        user_id=user_id,
        action="payment_claim.rejected",
        entity_type="payment_verification",
        entity_id=claim.id,
        description=reason,
    )
    db.session.commit()
    return claim


def _company_query(company_id: int):
    return (
        db.session.query(PaymentVerification)
        .join(Invoice, Invoice.id == PaymentVerification.invoice_id)
        .filter(Invoice.company_id == company_id)
    )


def list_claims(
    *,
    company_id: int,
    status: str | None = None,
    branch_id: int | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = _company_query(company_id)
    if status:
        if status not in ("pending", "verified", "rejected"):
            raise ValidationError(f"Invalid status: {status}")
        query = query.filter(PaymentVerification.verification_status == status)
    if branch_id is not None:
        query = query.filter(Invoice.branch_id == branch_id)
    query = query.order_by(PaymentVerification.id.desc())
    return paginate(query, page=page, per_page=per_page)


def get_claim(claim_id: int, company_id: int) -> PaymentVerification:
    claim = _company_query(company_id).filter(PaymentVerification.id == claim_id).first()
    if claim is None:
        raise VerificationError("Payment verification not found")
    return claim


def pending_count(company_id: int, branch_id: int | None = None) -> int:
    query = _company_query(company_id).filter(PaymentVerification.verification_status == "pending")
    if branch_id is not None:
        query = query.filter(Invoice.branch_id == branch_id)
    return query.count()
