# Overview: Pytest coverage for print jobs and production stage transitions.

import pytest

from printshop.services import invoice_service, production_service
from printshop.services.production_service import ProductionError
from printshop.validation import ValidationError


@pytest.fixture
def invoice(db_session, company_a, branch_a, customer_a, business_cards):
    return invoice_service.create_invoice(
        company_id=company_a.id,
        branch_id=branch_a.id,
        payload={"customer_id": customer_a.id, "items": [{"product_id": business_cards.id, "quantity": 4}]},
    )


@pytest.fixture
def job(invoice, company_a):
    return production_service.create_print_job(
        company_id=company_a.id,
        branch_id=invoice.branch_id,
        payload={"invoice_id": invoice.id, "priority": "high"},
    )


def stage_named(job, name):
    return next(s for s in job.stages if s.stage_name == name)


class TestPrintJobs:

    def test_job_from_invoice(self, job, invoice):
        assert job.job_type == "business_cards"
        assert job.quantity == 4
        assert job.priority == "high"
        assert job.production_status == "pending"
        assert job.job_number.startswith("JOB-MAIN-")
        assert [s.stage_order for s in job.stages] == list(range(1, 8))
        assert stage_named(job, "customer_approval").requires_customer_approval is True
        assert all(s.stage_status == "pending" for s in job.stages)

    def test_job_without_invoice_uses_default_template(self, db_session, company_a, branch_a):
        job = production_service.create_print_job(company_id=company_a.id, branch_id=branch_a.id, payload={})
        assert job.job_type == "general_printing"
        assert [s.stage_name for s in job.stages][4] == "finishing"

    def test_explicit_job_type(self, db_session, company_a, branch_a):
        job = production_service.create_print_job(
            company_id=company_a.id, branch_id=branch_a.id, payload={"job_type": "brochures", "quantity": 250}
        )
        assert "folding" in [s.stage_name for s in job.stages]

    def test_invalid_priority(self, db_session, company_a, branch_a):
        with pytest.raises(ValidationError):
            production_service.create_print_job(
                company_id=company_a.id, branch_id=branch_a.id, payload={"priority": "asap"}
            )

    def test_cancelled_invoice(self, invoice, company_a):
        invoice_service.change_status(invoice, "cancelled")
        with pytest.raises(ProductionError):
            production_service.create_print_job(
                company_id=company_a.id, branch_id=invoice.branch_id, payload={"invoice_id": invoice.id}
            )

    def test_foreign_invoice(self, invoice, company_b, branch_b):
        with pytest.raises(ProductionError, match="Invoice not found"):
            production_service.create_print_job(
                company_id=company_b.id, branch_id=branch_b.id, payload={"invoice_id": invoice.id}
            )

    def test_start_production_readies_first_stage(self, job):
        production_service.start_production(job)
        assert job.production_status == "in_production"
        assert job.started_at is not None
        assert job.stages[0].stage_status == "ready"

        with pytest.raises(ProductionError):
            production_service.start_production(job)


class TestStageFlow:

    def test_full_run_completes_job(self, job):
        production_service.start_production(job)

        design = stage_named(job, "design_review")
        production_service.start_stage(design, notes="Checking bleed")
        production_service.complete_stage(design)
        assert design.stage_status == "completed"
        assert design.actual_duration is not None

        approval = stage_named(job, "customer_approval")
        assert approval.stage_status == "requires_approval"
        production_service.approve_stage(approval, notes="Approved by email")
        assert approval.approval_status == "approved"
        assert approval.customer_approved_at is not None

        pre_press = stage_named(job, "pre_press_setup")
        assert pre_press.stage_status == "ready"
        production_service.skip_stage(pre_press, reason="Plates reused from last run")
        assert pre_press.stage_status == "skipped"
        assert job.completion_percentage == int(3 * 100 / 7)

        for name in ("printing_process", "cutting", "quality_inspection", "packaging"):
            stage = stage_named(job, name)
            assert stage.stage_status == "ready"
            production_service.start_stage(stage)
            production_service.complete_stage(stage)

        assert job.completion_percentage == 100
        assert job.production_status == "completed"
        assert job.actual_completion is not None

        with pytest.raises(ProductionError):
            production_service.hold_stage(stage_named(job, "packaging"), reason="late")

    def test_start_stage_starts_pending_job(self, job):
        design = stage_named(job, "design_review")
        production_service.start_stage(design)
        assert job.production_status == "in_production"

    def test_notes_are_timestamped(self, job):
        design = stage_named(job, "design_review")
        production_service.start_stage(design, notes="Checking bleed")
        line = design.notes.splitlines()[-1]
        assert line.endswith(": Started - Checking bleed")
        assert line[4] == "-" and line[10] == " " and line[13] == ":"

    def test_hold_and_resume(self, job):
        design = stage_named(job, "design_review")
        production_service.start_stage(design)

        with pytest.raises(ValidationError):
            production_service.hold_stage(design, reason="")

        production_service.hold_stage(design, reason="Waiting for artwork")
        assert design.stage_status == "on_hold"
        assert "Put on hold - Waiting for artwork" in design.notes

        production_service.resume_stage(design)
        assert design.stage_status == "in_progress"

        with pytest.raises(ProductionError):
            production_service.resume_stage(design)

    def test_resume_unstarted_stage_returns_to_pending(self, job):
        cutting = stage_named(job, "cutting")
        production_service.hold_stage(cutting, reason="Blade replacement")
        production_service.resume_stage(cutting)
        assert cutting.stage_status == "pending"

    def test_reject_requires_reason(self, job):
        production_service.start_production(job)
        design = stage_named(job, "design_review")
        production_service.start_stage(design)
        production_service.complete_stage(design)
        approval = stage_named(job, "customer_approval")

        with pytest.raises(ValidationError):
            production_service.reject_stage(approval, reason=None)

        production_service.reject_stage(approval, reason="Wrong logo colour")
        assert approval.stage_status == "rejected"
        assert approval.rejection_reason == "Wrong logo colour"
        assert job.production_status == "in_production"

    def test_invalid_transitions(self, job):
        design = stage_named(job, "design_review")
        with pytest.raises(ProductionError):
            production_service.complete_stage(design)
        with pytest.raises(ProductionError):
            production_service.approve_stage(design)

        production_service.start_stage(design)
        with pytest.raises(ProductionError):
            production_service.skip_stage(design, reason="no")

    def test_pending_approvals_and_timeline(self, job):
        production_service.start_production(job)
        design = stage_named(job, "design_review")
        production_service.start_stage(design)
        production_service.complete_stage(design)

        approvals = production_service.list_pending_approvals(job.company_id)
        assert [a["stage_name"] for a in approvals] == ["customer_approval"]
        assert approvals[0]["job_number"] == job.job_number

        timeline = production_service.get_timeline(job)
        assert timeline["current_stage"] == "customer_approval"
        assert timeline["finished_stages"] == 1
        assert timeline["total_stages"] == 7
        assert timeline["estimated_total_minutes"] == 30 + 60 + 45 + 120 + 60 + 30 + 30


class TestProductionRoutes:

    def test_manager_creates_and_staff_progress(self, client, manager_headers, production_headers, invoice):
        resp = client.post("/api/production/jobs", json={"invoice_id": invoice.id}, headers=manager_headers)
        assert resp.status_code == 201
        job = resp.json["job"]
        assert job["job_type"] == "business_cards"
        first_stage_id = job["stages"][0]["id"]

        resp = client.post("/api/production/jobs", json={"invoice_id": invoice.id}, headers=production_headers)
        assert resp.status_code == 403

        resp = client.post(f"/api/production/jobs/{job['id']}/start", headers=manager_headers)
        assert resp.status_code == 200

        resp = client.post(f"/api/production/stages/{first_stage_id}/start", headers=production_headers)
        assert resp.status_code == 200
        assert resp.json["stage"]["stage_status"] == "in_progress"

        resp = client.post(f"/api/production/stages/{first_stage_id}/complete", json={"notes": "ok"},
                           headers=production_headers)
        assert resp.status_code == 200
        assert resp.json["job"]["completion_percentage"] == 14

        approval_id = job["stages"][1]["id"]
        resp = client.post(f"/api/production/stages/{approval_id}/approve", headers=production_headers)
        assert resp.status_code == 403

        resp = client.post(f"/api/production/stages/{approval_id}/approve", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.json["stage"]["approval_status"] == "approved"

        resp = client.get(f"/api/production/jobs/{job['id']}/timeline", headers=production_headers)
        assert resp.status_code == 200
        assert resp.json["current_stage"] == "pre_press_setup"

    def test_skip_without_reason(self, client, manager_headers, production_headers, invoice):
        resp = client.post("/api/production/jobs", json={"invoice_id": invoice.id}, headers=manager_headers)
        stage_id = resp.json["job"]["stages"][0]["id"]

        resp = client.post(f"/api/production/stages/{stage_id}/skip", json={}, headers=production_headers)
        assert resp.status_code == 400

    def test_unknown_stage(self, client, production_headers):
        resp = client.post("/api/production/stages/999999/start", headers=production_headers)
        assert resp.status_code == 404

    def test_company_user_needs_branch(self, client, admin_headers):
        resp = client.post("/api/production/jobs", json={"job_type": "flyers"}, headers=admin_headers)
        assert resp.status_code == 400
