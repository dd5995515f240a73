# Overview: Flask API routes for invoices; parses input and returns JSON responses.

"""
Invoice routes.

Totals are always computed server-side from the items, the company's
weight tiers and tax rate. Branch staff create invoices for their own
branch; company-level users must name a branch.
"""

from flask import Blueprint, request, g, current_app

from ..models import Invoice
from ..services import invoice_service
from ..services.invoice_service import InvoiceError
from ..services.tenant_service import TenantAccessError, require_owned, require_branch_in_company
from ..validation import ValidationError
from ..decorators import require_auth, require_permission

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _resolve_branch_id(payload: dict) -> int:
    requested = payload.get("branch_id")
    if g.branch_id is not None:
        if requested is not None and requested != g.branch_id:
            raise TenantAccessError("Branch not found")
        return g.branch_id
    if requested is None:
        raise ValidationError("branch_id is required")
    return require_branch_in_company(requested, g.company_id).id


@invoices_bp.get("")
@require_auth
@require_permission("VIEW_INVOICES")
def list_invoices_route():
    """
    Query params: status, payment_status, customer_id, branch_id, search,
    date_from, date_to, page, per_page
    """
    try:
        return invoice_service.list_invoices(
            company_id=g.company_id,
            status=request.args.get("status"),
            payment_status=request.args.get("payment_status"),
            customer_id=request.args.get("customer_id", type=int),
            branch_id=request.args.get("branch_id", type=int),
            search=request.args.get("search"),
            date_from=request.args.get("date_from"),
            date_to=request.args.get("date_to"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400


@invoices_bp.post("")
@require_auth
@require_permission("CREATE_INVOICE")
def create_invoice_route():
    """
    Request body:
    {
        "customer_id": 1,
        "branch_id": 1,                     // company-level users only
        "items": [{"product_id": 1, "quantity": 100, "unit_price": "12.50"}],
        "discount_amount": "0",
        "invoice_date": "2025-01-31", "due_date": "2025-03-01",
        "status": "draft" | "pending",
        "notes": "...", "terms_conditions": "..."
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        branch_id = _resolve_branch_id(payload)
        invoice = invoice_service.create_invoice(
            company_id=g.company_id,
            branch_id=branch_id,
            payload=payload,
            user_id=g.current_user.id,
        )
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except (ValidationError, InvoiceError) as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return {"error": "Internal server error"}, 500

    return {"invoice": invoice.to_dict(include_items=True)}, 201


@invoices_bp.post("/preview")
@require_auth
@require_permission("CREATE_INVOICE")
def preview_invoice_route():
    """Totals for prospective items without saving. Body: {items, discount_amount}"""
    payload = request.get_json(silent=True) or {}
    try:
        totals = invoice_service.preview_totals(
            company_id=g.company_id,
            items_payload=payload.get("items"),
            discount_amount=payload.get("discount_amount") or 0,
        )
    except (ValidationError, InvoiceError) as e:
        return {"error": str(e)}, 400

    return {"totals": totals}


@invoices_bp.get("/<int:invoice_id>")
@require_auth
@require_permission("VIEW_INVOICES")
def get_invoice_route(invoice_id: int):
    try:
        invoice = require_owned(Invoice, invoice_id, g.company_id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404

    data = invoice.to_dict(include_items=True)
    data["is_modifiable"] = invoice_service.is_modifiable(invoice)
    return {"invoice": data}


@invoices_bp.put("/<int:invoice_id>")
@require_auth
@require_permission("EDIT_INVOICE")
def update_invoice_route(invoice_id: int):
    try:
        invoice = require_owned(Invoice, invoice_id, g.company_id)
        invoice = invoice_service.update_invoice(
            invoice, payload=request.get_json(silent=True) or {}, user_id=g.current_user.id
        )
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except (ValidationError, InvoiceError) as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update invoice")
        return {"error": "Internal server error"}, 500

    return {"invoice": invoice.to_dict(include_items=True)}


@invoices_bp.post("/<int:invoice_id>/status")
@require_auth
@require_permission("EDIT_INVOICE")
def change_status_route(invoice_id: int):
    """Request body: {"status": "pending"}"""
    new_status = (request.get_json(silent=True) or {}).get("status")
    try:
        invoice = require_owned(Invoice, invoice_id, g.company_id)
        invoice = invoice_service.change_status(invoice, new_status, user_id=g.current_user.id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except (ValidationError, InvoiceError) as e:
        return {"error": str(e)}, 400

    return {"invoice": invoice.to_dict()}


@invoices_bp.delete("/<int:invoice_id>")
@require_auth
@require_permission("DELETE_INVOICE")
def delete_invoice_route(invoice_id: int):
    try:
        invoice = require_owned(Invoice, invoice_id, g.company_id)
        invoice_service.delete_invoice(invoice, user_id=g.current_user.id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except InvoiceError as e:
        return {"error": str(e)}, 400

    return {"ok": True}, 200


@invoices_bp.post("/<int:invoice_id>/duplicate")
@require_auth
@require_permission("CREATE_INVOICE")
def duplicate_invoice_route(invoice_id: int):
    try:
        invoice = require_owned(Invoice, invoice_id, g.company_id)
        copy = invoice_service.duplicate_invoice(invoice, user_id=g.current_user.id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except (ValidationError, InvoiceError) as e:
        return {"error": str(e)}, 400

    return {"invoice": copy.to_dict(include_items=True)}, 201
