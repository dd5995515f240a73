# Overview: Flask API routes for payments and payment verifications.

"""
Payment routes.

- Recording payments requires PROCESS_PAYMENTS.
- Verifying or rejecting payments and customer claims requires
  VERIFY_PAYMENTS. Branch staff may only decide claims for their branch.
"""

from flask import Blueprint, request, g, current_app

from ..models import Invoice
from ..services import invoice_service, payment_service, verification_service
from ..services.payment_service import PaymentError
from ..services.verification_service import VerificationError
from ..services.tenant_service import TenantAccessError, require_owned
from ..validation import ValidationError
from ..decorators import require_any_permission, require_auth, require_permission

payments_bp = Blueprint("payments", __name__, url_prefix="/api")


def _not_found_status(e: Exception) -> int:
    return 404 if "not found" in str(e).lower() else 400


# =============================================================================
# PAYMENTS
# =============================================================================

@payments_bp.get("/payments")
@require_auth
@require_permission("VIEW_PAYMENTS")
def list_payments_route():
    """Query params: invoice_id, branch_id, status, verification_status, payment_method, page, per_page"""
    try:
        return payment_service.list_payments(
            company_id=g.company_id,
            invoice_id=request.args.get("invoice_id", type=int),
            branch_id=request.args.get("branch_id", type=int),
            status=request.args.get("status"),
            verification_status=request.args.get("verification_status"),
            payment_method=request.args.get("payment_method"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400


@payments_bp.get("/invoices/<int:invoice_id>/payments")
@require_auth
@require_permission("VIEW_PAYMENTS")
def invoice_payment_summary_route(invoice_id: int):
    try:
        invoice = require_owned(Invoice, invoice_id, g.company_id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    return invoice_service.get_payment_summary(invoice)


@payments_bp.post("/invoices/<int:invoice_id>/payments")
@require_auth
@require_permission("PROCESS_PAYMENTS")
def record_payment_route(invoice_id: int):
    """
    Request body:
    {"amount": "500.00", "payment_method": "cash", "payment_date": "2025-01-31",
     "bank_name": "...", "transaction_id": "...", "cheque_number": "...", "notes": "..."}
    """
    try:
        invoice = require_owned(Invoice, invoice_id, g.company_id)
        payment = payment_service.record_payment(
            invoice, payload=request.get_json(silent=True) or {}, user_id=g.current_user.id
        )
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except (ValidationError, PaymentError) as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return {"error": "Internal server error"}, 500

    return {"payment": payment.to_dict(), "invoice": payment.invoice.to_dict()}, 201


@payments_bp.get("/payments/<int:payment_id>")
@require_auth
@require_permission("VIEW_PAYMENTS")
def get_payment_route(payment_id: int):
    try:
        payment = payment_service.get_payment(payment_id, g.company_id)
    except PaymentError as e:
        return {"error": str(e)}, 404
    return {"payment": payment.to_dict()}


@payments_bp.post("/payments/<int:payment_id>/verify")
@require_auth
@require_permission("VERIFY_PAYMENTS")
def verify_payment_route(payment_id: int):
    notes = (request.get_json(silent=True) or {}).get("notes")
    try:
        payment = payment_service.get_payment(payment_id, g.company_id)
        payment = payment_service.verify_payment(payment, user_id=g.current_user.id, notes=notes)
    except PaymentError as e:
        return {"error": str(e)}, _not_found_status(e)

    return {"payment": payment.to_dict(), "invoice": payment.invoice.to_dict()}


@payments_bp.post("/payments/<int:payment_id>/reject")
@require_auth
@require_permission("VERIFY_PAYMENTS")
def reject_payment_route(payment_id: int):
    """Request body: {"rejection_reason": "..."}"""
    reason = (request.get_json(silent=True) or {}).get("rejection_reason")
    try:
        payment = payment_service.get_payment(payment_id, g.company_id)
        payment = payment_service.reject_payment(payment, reason=reason, user_id=g.current_user.id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except PaymentError as e:
        return {"error": str(e)}, _not_found_status(e)

    return {"payment": payment.to_dict(), "invoice": payment.invoice.to_dict()}


# =============================================================================
# PAYMENT VERIFICATIONS (customer claims)
# =============================================================================

@payments_bp.get("/payment-verifications")
@require_auth
@require_any_permission("VIEW_PAYMENTS", "VERIFY_PAYMENTS")
def list_claims_route():
    """Query params: status, page, per_page. Branch staff see their branch only."""
    try:
        return verification_service.list_claims(
            company_id=g.company_id,
            status=request.args.get("status"),
            branch_id=g.branch_id,
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400


@payments_bp.get("/payment-verifications/pending-count")
@require_auth
@require_any_permission("VIEW_PAYMENTS", "VERIFY_PAYMENTS")
def pending_claims_count_route():
    return {"pending": verification_service.pending_count(g.company_id, branch_id=g.branch_id)}


@payments_bp.post("/invoices/<int:invoice_id>/payment-verifications")
@require_auth
@require_permission("PROCESS_PAYMENTS")
def submit_claim_route(invoice_id: int):
    """
    Request body:
    {"claimed_amount": "1500.00", "payment_claimed_date": "2025-01-31",
     "bank_reference": "...", "bank_name": "...", "verification_notes": "...",
     "payment_id": 3}
    """
    try:
        invoice = require_owned(Invoice, invoice_id, g.company_id)
        claim = verification_service.submit_claim(
            invoice, payload=request.get_json(silent=True) or {}, user_id=g.current_user.id
        )
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except (ValidationError, VerificationError) as e:
        return {"error": str(e)}, 400

    return {"verification": claim.to_dict()}, 201


@payments_bp.get("/payment-verifications/<int:claim_id>")
@require_auth
@require_permission("VIEW_PAYMENTS")
def get_claim_route(claim_id: int):
    try:
        claim = verification_service.get_claim(claim_id, g.company_id)
    except VerificationError as e:
        return {"error": str(e)}, 404
    return {"verification": claim.to_dict()}


@payments_bp.post("/payment-verifications/<int:claim_id>/verify")
@require_auth
@require_permission("VERIFY_PAYMENTS")
def verify_claim_route(claim_id: int):
    notes = (request.get_json(silent=True) or {}).get("verification_notes")
    try:
        claim = verification_service.get_claim(claim_id, g.company_id)
        claim = verification_service.verify_claim(
            claim, user_id=g.current_user.id, staff_branch_id=g.branch_id, notes=notes
        )
    except VerificationError as e:
        return {"error": str(e)}, _not_found_status(e)
    except Exception:
        current_app.logger.exception("Failed to verify payment claim")
        return {"error": "Internal server error"}, 500

    return {"verification": claim.to_dict(), "invoice": claim.invoice.to_dict()}


@payments_bp.post("/payment-verifications/<int:claim_id>/reject")
@require_auth
@require_permission("VERIFY_PAYMENTS")
def reject_claim_route(claim_id: int):
    """Request body: {"rejection_reason": "..."}"""
    reason = (request.get_json(silent=True) or {}).get("rejection_reason")
    try:
        claim = verification_service.get_claim(claim_id, g.company_id)
        claim = verification_service.reject_claim(
            claim, reason=reason, user_id=g.current_user.id, staff_branch_id=g.branch_id
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except VerificationError as e:
        return {"error": str(e)}, _not_found_status(e)

    return {"verification": claim.to_dict()}
