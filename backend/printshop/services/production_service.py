# Overview: Service-layer operations for print jobs and their production stages.

"""
Production Service

A print job moves through an ordered list of stages created from a template
for its job type.

STAGE TRANSITIONS:
- start:    pending | ready               -> in_progress
- complete: in_progress | requires_approval -> completed
- approve:  requires_approval              -> completed (approval recorded)
- reject:   in_progress | requires_approval -> rejected (reason required)
- hold:     pending | ready | in_progress  -> on_hold (reason required)
- resume:   on_hold -> in_progress if it was started, else pending
- skip:     pending | ready | on_hold      -> skipped (reason required)

After complete/approve/skip the next pending stage becomes ready, or
requires_approval when it needs customer sign-off. Completed and skipped
stages count as finished; the job completes when every stage is finished.
Each transition appends "<YYYY-MM-DD HH:MM:SS>: <Action> - <text>" to the
stage notes.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Invoice, PrintJob, ProductionStage
from ..validation import ValidationError
from .activity_service import append_activity
from .concurrency import run_with_retry
from .pagination import paginate
from .sequence_service import next_job_number
from printshop.time_utils import today, utcnow


class ProductionError(Exception):
    """Raised for invalid production workflow operations."""
    pass


JOB_STATUSES = ["pending", "in_production", "completed", "on_hold", "cancelled"]
PRIORITIES = ["low", "normal", "high", "urgent"]

FINISHED_STAGE_STATUSES = {"completed", "skipped"}


def _stage(name: str, minutes: int, approval: bool = False) -> dict:
    return {"name": name, "estimated_duration": minutes, "requires_approval": approval}


STAGE_TEMPLATES = {
    "business_cards": [
        _stage("design_review", 30),
        _stage("customer_approval", 60, True),
        _stage("pre_press_setup", 45),
        _stage("printing_process", 120),
        _stage("cutting", 60),
        _stage("quality_inspection", 30),
        _stage("packaging", 30),
    ],
    "brochures": [
        _stage("design_review", 60),
        _stage("customer_approval", 120, True),
        _stage("pre_press_setup", 90),
        _stage("printing_process", 180),
        _stage("folding", 90),
        _stage("quality_inspection", 45),
        _stage("packaging", 45),
    ],
    "flyers": [
        _stage("design_review", 30),
        _stage("customer_approval", 60, True),
        _stage("pre_press_setup", 30),
        _stage("printing_process", 90),
        _stage("cutting", 45),
        _stage("quality_inspection", 30),
        _stage("packaging", 30),
    ],
    "posters": [
        _stage("design_review", 45),
        _stage("customer_approval", 90, True),
        _stage("pre_press_setup", 60),
        _stage("printing_process", 120),
        _stage("cutting", 45),
        _stage("quality_inspection", 30),
        _stage("packaging", 30),
    ],
    "banners": [
        _stage("design_review", 60),
        _stage("customer_approval", 120, True),
        _stage("material_preparation", 45),
        _stage("printing_process", 180),
        _stage("finishing", 90),
        _stage("quality_inspection", 45),
        _stage("packaging", 45),
    ],
    "default": [
        _stage("design_review", 45),
        _stage("customer_approval", 90, True),
        _stage("pre_press_setup", 60),
        _stage("printing_process", 120),
        _stage("finishing", 60),
        _stage("quality_inspection", 30),
        _stage("packaging", 30),
    ],
}

JOB_TYPES = ["business_cards", "brochures", "flyers", "posters", "banners", "stickers", "general_printing"]


def get_stage_template(job_type: str) -> list[dict]:
    return STAGE_TEMPLATES.get(job_type, STAGE_TEMPLATES["default"])


def determine_job_type(invoice: Invoice) -> str:
    """Guess a job type from the invoice's product names."""
    names = [(item.product.name or "").lower() for item in invoice.items if item.product is not None]
    for keyword, job_type in (
        ("business card", "business_cards"),
        ("brochure", "brochures"),
        ("banner", "banners"),
        ("flyer", "flyers"),
        ("poster", "posters"),
        ("sticker", "stickers"),
    ):
        if any(keyword in name for name in names):
            return job_type
    return "general_printing"


def _append_note(stage: ProductionStage, action: str, text: str | None) -> None:
    line = f"{utcnow().strftime('%Y-%m-%d %H:%M:%S')}: {action}"
    if text:
        line = f"{line} - {text}"
    stage.notes = f"{stage.notes}\n{line}" if stage.notes else line


def _require_reason(reason: str | None) -> str:
    if not reason or not str(reason).strip():
        raise ValidationError("reason is required")
    return str(reason).strip()


# =============================================================================
# QUERIES
# =============================================================================

def list_print_jobs(
    *,
    company_id: int,
    status: str | None = None,
    priority: str | None = None,
    branch_id: int | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(PrintJob).filter(PrintJob.company_id == company_id)
    if status:
        if status not in JOB_STATUSES:
            raise ValidationError(f"Invalid status: {status}")
        query = query.filter(PrintJob.production_status == status)
    if priority:
        query = query.filter(PrintJob.priority == priority)
    if branch_id is not None:
        query = query.filter(PrintJob.branch_id == branch_id)
    query = query.order_by(PrintJob.id.desc())
    return paginate(query, page=page, per_page=per_page)


def get_stage(stage_id: int, company_id: int) -> ProductionStage:
    stage = (
        db.session.query(ProductionStage)
        .join(PrintJob, PrintJob.id == ProductionStage.print_job_id)
        .filter(ProductionStage.id == stage_id, PrintJob.company_id == company_id)
        .first()
    )
    if stage is None:
        raise ProductionError("Production stage not found")
    return stage


def get_timeline(job: PrintJob) -> dict:
    finished = sum(1 for s in job.stages if s.stage_status in FINISHED_STAGE_STATUSES)
    current = next(
        (s for s in job.stages if s.stage_status in ("ready", "in_progress", "requires_approval", "on_hold")),
        None,
    )
    return {
        "job": job.to_dict(),
        "stages": [s.to_dict() for s in job.stages],
        "current_stage": current.stage_name if current else None,
        "finished_stages": finished,
        "total_stages": len(job.stages),
        "estimated_total_minutes": sum(s.estimated_duration or 0 for s in job.stages),
        "actual_total_minutes": sum(s.actual_duration or 0 for s in job.stages),
    }


def list_pending_approvals(company_id: int) -> list[dict]:
    stages = (
        db.session.query(ProductionStage)
        .join(PrintJob, PrintJob.id == ProductionStage.print_job_id)
        .filter(
            PrintJob.company_id == company_id,
            ProductionStage.stage_status == "requires_approval",
        )
        .order_by(ProductionStage.id.asc())
        .all()
    )
    return [
        dict(stage.to_dict(), job_number=stage.print_job.job_number, priority=stage.print_job.priority)
        for stage in stages
    ]


# =============================================================================
# JOBS
# =============================================================================

def create_print_job(
    *,
    company_id: int,
    branch_id: int,
    payload: dict,
    user_id: int | None = None,
) -> PrintJob:
    """
    Create a print job with its stages.

    payload: invoice_id?, job_type?, priority?, quantity?, specifications?
    job_type defaults from the invoice's products, then "general_printing".
    """
    invoice = None
    if payload.get("invoice_id") is not None:
        invoice = db.session.get(Invoice, payload["invoice_id"])
        if invoice is None or invoice.company_id != company_id:
            raise ProductionError("Invoice not found")
        if invoice.status == "cancelled":
            raise ProductionError("Cannot create a print job for a cancelled invoice")
        branch_id = invoice.branch_id

    job_type = payload.get("job_type") or (determine_job_type(invoice) if invoice else "general_printing")
    if not isinstance(job_type, str) or len(job_type) > 32:
        raise ValidationError("job_type must be a string of at most 32 characters")

    priority = payload.get("priority") or "normal"
    if priority not in PRIORITIES:
        raise ValidationError(f"Invalid priority. Must be one of {PRIORITIES}")

    quantity = payload.get("quantity")
    if quantity is None and invoice is not None:
        quantity = sum(item.quantity for item in invoice.items) or None
    if quantity is not None and (isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1):
        raise ValidationError("quantity must be a positive integer")

    specifications = payload.get("specifications")
    if specifications is not None and not isinstance(specifications, dict):
        raise ValidationError("specifications must be an object")

    def _op():
        job = PrintJob(
            company_id=company_id,
            branch_id=branch_id,
            invoice_id=invoice.id if invoice else None,
            created_by=user_id,
            job_number=next_job_number(branch_id, today()),
            job_type=job_type,
            quantity=quantity,
            specifications=specifications,
            production_status="pending",
            priority=priority,
            completion_percentage=0,
        )
        job.stages = [
            ProductionStage(
                stage_name=tpl["name"],
                stage_order=index + 1,
                stage_status="pending",
                requires_customer_approval=tpl["requires_approval"],
                estimated_duration=tpl["estimated_duration"],
            )
            for index, tpl in enumerate(get_stage_template(job_type))
        ]
        db.session.add(job)
        db.session.flush()

        append_activity(
            company_id=company_id,
            branch_id=branch_id,
            user_id=user_id,
            action="print_job.created",
            entity_type="print_job",
            entity_id=job.id,
            description=f"Created {job.job_number} ({job_type}, {len(job.stages)} stages)",
        )
        db.session.commit()
        return job

    return run_with_retry(_op)


def start_production(job: PrintJob, *, user_id: int | None = None) -> PrintJob:
    if job.production_status != "pending":
        raise ProductionError(f"Cannot start production for a job with status {job.production_status}")

    job.production_status = "in_production"
    job.started_at = utcnow()

    first = next((s for s in job.stages if s.stage_status == "pending"), None)
    if first is not None:
        first.stage_status = "ready"
        first.updated_by = user_id
        _append_note(first, "Ready", "Production started")

    append_activity(
        company_id=job.company_id,
        branch_id=job.branch_id,
        user_id=user_id,
        action="print_job.started",
        entity_type="print_job",
        entity_id=job.id,
        description=f"Production started for {job.job_number}",
    )
    db.session.commit()
    current_app.logger.info("Production started for print job %s", job.job_number)
    return job


def _refresh_job_progress(job: PrintJob) -> None:
    total = len(job.stages)
    finished = sum(1 for s in job.stages if s.stage_status in FINISHED_STAGE_STATUSES)
    job.completion_percentage = int(finished * 100 / total) if total else 0

    if total and finished == total and job.production_status != "completed":
        job.production_status = "completed"
        job.actual_completion = utcnow()
        current_app.logger.info("Print job %s completed", job.job_number)


def _advance_next_stage(stage: ProductionStage) -> ProductionStage | None:
    job = stage.print_job
    following = [s for s in job.stages if s.stage_order > stage.stage_order and s.stage_status == "pending"]
    if not following:
        return None
    nxt = following[0]
    nxt.stage_status = "requires_approval" if nxt.requires_customer_approval else "ready"
    _append_note(nxt, "Auto-advanced", f"from {stage.stage_name}")
    return nxt


def _check_job_open(stage: ProductionStage) -> None:
    if stage.print_job.production_status in ("completed", "cancelled"):
        raise ProductionError(f"Print job is {stage.print_job.production_status}")


def _finish(stage: ProductionStage, action: str, user_id: int | None) -> ProductionStage:
    _advance_next_stage(stage)
    _refresh_job_progress(stage.print_job)
    append_activity(
        company_id=stage.print_job.company_id,
        branch_id=stage.print_job.branch_id,
        user_id=user_id,
        action=f"production_stage.{action}",
        entity_type="production_stage",
        entity_id=stage.id,
        description=f"{stage.print_job.job_number}: {stage.display_name} {action}",
    )
    db.session.commit()
    return stage


def _record(stage: ProductionStage, action: str, user_id: int | None, description: str | None = None) -> ProductionStage:
    append_activity(
        company_id=stage.print_job.company_id,
        branch_id=stage.print_job.branch_id,
        user_id=user_id,
        action=f"production_stage.{action}",
        entity_type="production_stage",
        entity_id=stage.id,
        description=description or f"{stage.print_job.job_number}: {stage.display_name} {action}",
    )
    db.session.commit()
    return stage


# =============================================================================
# STAGE TRANSITIONS
# =============================================================================

def start_stage(stage: ProductionStage, *, user_id: int | None = None, notes: str | None = None) -> ProductionStage:
    _check_job_open(stage)
    if stage.stage_status not in ("pending", "ready"):
        raise ProductionError(f"Cannot start a stage with status {stage.stage_status}")

    job = stage.print_job
    if job.production_status == "pending":
        job.production_status = "in_production"
        job.started_at = utcnow()

    stage.stage_status = "in_progress"
    stage.started_at = utcnow()
    stage.updated_by = user_id
    _append_note(stage, "Started", notes)
    return _record(stage, "started", user_id)


def complete_stage(stage: ProductionStage, *, user_id: int | None = None, notes: str | None = None) -> ProductionStage:
    _check_job_open(stage)
    if stage.stage_status not in ("in_progress", "requires_approval"):
        raise ProductionError(f"Cannot complete a stage with status {stage.stage_status}")

    now = utcnow()
    stage.stage_status = "completed"
    stage.completed_at = now
    if stage.started_at is not None:
        stage.actual_duration = max(0, int((now - stage.started_at).total_seconds() // 60))
    stage.updated_by = user_id
    _append_note(stage, "Completed", notes)
    return _finish(stage, "completed", user_id)


def approve_stage(stage: ProductionStage, *, user_id: int | None = None, notes: str | None = None) -> ProductionStage:
    _check_job_open(stage)
    if stage.stage_status != "requires_approval":
        raise ProductionError("Stage is not awaiting approval")

    now = utcnow()
    stage.stage_status = "completed"
    stage.approval_status = "approved"
    stage.approved_by = user_id
    stage.customer_approved_at = now
    stage.completed_at = now
    stage.updated_by = user_id
    _append_note(stage, "Approved", notes)
    return _finish(stage, "approved", user_id)


def reject_stage(stage: ProductionStage, *, reason: str, user_id: int | None = None) -> ProductionStage:
    reason = _require_reason(reason)
    _check_job_open(stage)
    if stage.stage_status not in ("in_progress", "requires_approval"):
        raise ProductionError(f"Cannot reject a stage with status {stage.stage_status}")

    stage.stage_status = "rejected"
    stage.approval_status = "rejected"
    stage.rejection_reason = reason
    stage.updated_by = user_id
    _append_note(stage, "Rejected", reason)
    return _record(stage, "rejected", user_id, description=reason)


def hold_stage(stage: ProductionStage, *, reason: str, user_id: int | None = None) -> ProductionStage:
    reason = _require_reason(reason)
    _check_job_open(stage)
    if stage.stage_status not in ("pending", "ready", "in_progress"):
        raise ProductionError(f"Cannot put a stage with status {stage.stage_status} on hold")

    stage.stage_status = "on_hold"
    stage.updated_by = user_id
    _append_note(stage, "Put on hold", reason)
    return _record(stage, "held", user_id, description=reason)


def resume_stage(stage: ProductionStage, *, user_id: int | None = None, notes: str | None = None) -> ProductionStage:
    _check_job_open(stage)
    if stage.stage_status != "on_hold":
        raise ProductionError("Stage is not on hold")

    stage.stage_status = "in_progress" if stage.started_at is not None else "pending"
    stage.updated_by = user_id
    _append_note(stage, "Resumed", notes)
    return _record(stage, "resumed", user_id)


def skip_stage(stage: ProductionStage, *, reason: str, user_id: int | None = None) -> ProductionStage:
    reason = _require_reason(reason)
    _check_job_open(stage)
    if stage.stage_status not in ("pending", "ready", "on_hold"):
        raise ProductionError(f"Cannot skip a stage with status {stage.stage_status}")

    stage.stage_status = "skipped"
    stage.completed_at = utcnow()
    stage.updated_by = user_id
    _append_note(stage, "Skipped", reason)
    return _finish(stage, "skipped", user_id)


STAGE_ACTIONS = {
    "start": start_stage,
    "complete": complete_stage,
    "approve": approve_stage,
    "reject": reject_stage,
    "hold": hold_stage,
    "resume": resume_stage,
    "skip": skip_stage,
}

REASON_ACTIONS = {"reject", "hold", "skip"}
