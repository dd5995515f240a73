# Overview: Flask API routes for print jobs and production stages.

"""
Production routes.

- Floor staff (UPDATE_PRODUCTION_STATUS) start, complete, hold, resume and
  skip stages.
- Managers (MANAGE_PRODUCTION) create jobs, start production and approve
  or reject stages.
"""

from flask import Blueprint, request, g, current_app

from ..models import PrintJob
from ..services import production_service
from ..services.production_service import ProductionError, REASON_ACTIONS, STAGE_ACTIONS
from ..services.tenant_service import TenantAccessError, require_owned, require_branch_in_company
from ..validation import ValidationError
from ..decorators import require_auth, require_permission

production_bp = Blueprint("production", __name__, url_prefix="/api/production")


# =============================================================================
# JOBS
# =============================================================================

@production_bp.get("/jobs")
@require_auth
@require_permission("VIEW_PRODUCTION")
def list_jobs_route():
    """Query params: status, priority, branch_id, page, per_page"""
    try:
        return production_service.list_print_jobs(
            company_id=g.company_id,
            status=request.args.get("status"),
            priority=request.args.get("priority"),
            branch_id=g.branch_id or request.args.get("branch_id", type=int),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400


@production_bp.post("/jobs")
@require_auth
@require_permission("MANAGE_PRODUCTION")
def create_job_route():
    """
    Request body:
    {"invoice_id": 1, "job_type": "business_cards", "priority": "high",
     "quantity": 500, "specifications": {...}, "branch_id": 1}
    """
    payload = request.get_json(silent=True) or {}
    try:
        branch_id = g.branch_id
        if branch_id is None and payload.get("branch_id") is not None:
            branch_id = require_branch_in_company(payload["branch_id"], g.company_id).id
        if branch_id is None and payload.get("invoice_id") is None:
            raise ValidationError("branch_id is required")

        job = production_service.create_print_job(
            company_id=g.company_id,
            branch_id=branch_id,
            payload=payload,
            user_id=g.current_user.id,
        )
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except (ValidationError, ProductionError) as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create print job")
        return {"error": "Internal server error"}, 500

    return {"job": job.to_dict(include_stages=True)}, 201


@production_bp.get("/jobs/<int:job_id>")
@require_auth
@require_permission("VIEW_PRODUCTION")
def get_job_route(job_id: int):
    try:
        job = require_owned(PrintJob, job_id, g.company_id, label="Print job")
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    return {"job": job.to_dict(include_stages=True)}


@production_bp.get("/jobs/<int:job_id>/timeline")
@require_auth
@require_permission("VIEW_PRODUCTION")
def job_timeline_route(job_id: int):
    try:
        job = require_owned(PrintJob, job_id, g.company_id, label="Print job")
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    return production_service.get_timeline(job)


@production_bp.post("/jobs/<int:job_id>/start")
@require_auth
@require_permission("MANAGE_PRODUCTION")
def start_production_route(job_id: int):
    try:
        job = require_owned(PrintJob, job_id, g.company_id, label="Print job")
        job = production_service.start_production(job, user_id=g.current_user.id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except ProductionError as e:
        return {"error": str(e)}, 400

    return {"job": job.to_dict(include_stages=True)}


@production_bp.get("/approvals")
@require_auth
@require_permission("VIEW_PRODUCTION")
def pending_approvals_route():
    stages = production_service.list_pending_approvals(g.company_id)
    return {"stages": stages, "count": len(stages)}


# =============================================================================
# STAGES
# =============================================================================

def _run_stage_action(stage_id: int, action: str):
    data = request.get_json(silent=True) or {}
    try:
        stage = production_service.get_stage(stage_id, g.company_id)
        handler = STAGE_ACTIONS[action]
        if action in REASON_ACTIONS:
            stage = handler(stage, reason=data.get("reason"), user_id=g.current_user.id)
        else:
            stage = handler(stage, user_id=g.current_user.id, notes=data.get("notes"))
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ProductionError as e:
        status = 404 if "not found" in str(e) else 400
        return {"error": str(e)}, status

    return {"stage": stage.to_dict(), "job": stage.print_job.to_dict()}


@production_bp.post("/stages/<int:stage_id>/start")
@require_auth
@require_permission("UPDATE_PRODUCTION_STATUS")
def start_stage_route(stage_id: int):
    return _run_stage_action(stage_id, "start")


@production_bp.post("/stages/<int:stage_id>/complete")
@require_auth
@require_permission("UPDATE_PRODUCTION_STATUS")
def complete_stage_route(stage_id: int):
    return _run_stage_action(stage_id, "complete")


@production_bp.post("/stages/<int:stage_id>/hold")
@require_auth
@require_permission("UPDATE_PRODUCTION_STATUS")
def hold_stage_route(stage_id: int):
    return _run_stage_action(stage_id, "hold")


@production_bp.post("/stages/<int:stage_id>/resume")
@require_auth
@require_permission("UPDATE_PRODUCTION_STATUS")
def resume_stage_route(stage_id: int):
    return _run_stage_action(stage_id, "resume")


@production_bp.post("/stages/<int:stage_id>/skip")
@require_auth
@require_permission("UPDATE_PRODUCTION_STATUS")
def skip_stage_route(stage_id: int):
    return _run_stage_action(stage_id, "skip")


@production_bp.post("/stages/<int:stage_id>/approve")
@require_auth
@require_permission("MANAGE_PRODUCTION")
def approve_stage_route(stage_id: int):
    return _run_stage_action(stage_id, "approve")


@production_bp.post("/stages/<int:stage_id>/reject")
@require_auth
@require_permission("MANAGE_PRODUCTION")
def reject_stage_route(stage_id: int):
    return _run_stage_action(stage_id, "reject")
