from __future__ import annotations

from ..extensions import db
from printshop.time_utils import to_utc_z


class PrintJob(db.Model):
    """
    Production job for a print order.

    A job owns an ordered list of ProductionStage rows. completion_percentage
    is the share of stages that are completed or skipped; the job completes
    when it reaches 100.
    """
    __tablename__ = "print_jobs"
    __table_args__ = (
        db.UniqueConstraint("company_id", "job_number", name="uq_print_jobs_company_number"),
        db.Index("ix_print_jobs_company_status", "company_id", "production_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True, index=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    job_number = db.Column(db.String(64), nullable=False, index=True)
    job_type = db.Column(db.String(32), nullable=False)
    quantity = db.Column(db.Integer, nullable=True)
    specifications = db.Column(db.JSON, nullable=True)

    production_status = db.Column(db.String(16), nullable=False, default="pending")
    priority = db.Column(db.String(16), nullable=False, default="normal")
    completion_percentage = db.Column(db.Integer, nullable=False, default=0)

    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    actual_completion = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    invoice = db.relationship("Invoice", backref=db.backref("print_jobs", lazy=True))
    stages = db.relationship(
        "ProductionStage",
        backref="print_job",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ProductionStage.stage_order",
    )

    def to_dict(self, include_stages: bool = False) -> dict:
        data = {
            "id": self.id,
            "company_id": self.company_id,
            "branch_id": self.branch_id,
            "invoice_id": self.invoice_id,
            "job_number": self.job_number,
            "job_type": self.job_type,
            "quantity": self.quantity,
            "specifications": self.specifications,
            "production_status": self.production_status,
            "priority": self.priority,
            "completion_percentage": self.completion_percentage,
            "started_at": to_utc_z(self.started_at) if self.started_at else None,
            "actual_completion": to_utc_z(self.actual_completion) if self.actual_completion else None,
            "created_at": to_utc_z(self.created_at),
        }
        if include_stages:
            data["stages"] = [stage.to_dict() for stage in self.stages]
        return data


class ProductionStage(db.Model):
    """
    One step of a print job (design review, printing, cutting, ...).

    stage_status: pending, ready, in_progress, completed, on_hold,
    requires_approval, rejected, skipped.
    notes accumulates one timestamped line per transition.
    """
    __tablename__ = "production_stages"
    __table_args__ = (
        db.UniqueConstraint("print_job_id", "stage_order", name="uq_production_stages_job_order"),
        db.Index("ix_production_stages_status", "stage_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    print_job_id = db.Column(db.Integer, db.ForeignKey("print_jobs.id"), nullable=False, index=True)

    stage_name = db.Column(db.String(64), nullable=False)
    stage_order = db.Column(db.Integer, nullable=False)
    stage_status = db.Column(db.String(24), nullable=False, default="pending")

    requires_customer_approval = db.Column(db.Boolean, nullable=False, default=False)
    estimated_duration = db.Column(db.Integer, nullable=True)  # minutes
    actual_duration = db.Column(db.Integer, nullable=True)  # minutes

    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    approved_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approval_status = db.Column(db.String(16), nullable=True)
    customer_approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    notes = db.Column(db.Text, nullable=True)
    updated_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    @property
    def display_name(self) -> str:
        return self.stage_name.replace("_", " ").title()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "print_job_id": self.print_job_id,
            "stage_name": self.stage_name,
            "display_name": self.display_name,
            "stage_order": self.stage_order,
            "stage_status": self.stage_status,
            "requires_customer_approval": self.requires_customer_approval,
            "estimated_duration": self.estimated_duration,
            "actual_duration": self.actual_duration,
            "started_at": to_utc_z(self.started_at) if self.started_at else None,
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "approved_by": self.approved_by,
            "approval_status": self.approval_status,
            "customer_approved_at": to_utc_z(self.customer_approved_at) if self.customer_approved_at else None,
            "rejection_reason": self.rejection_reason,
            "notes": self.notes,
            "updated_by": self.updated_by,
        }
