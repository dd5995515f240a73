# Overview: Pytest coverage for tenant isolation behavior.

"""
Multi-Tenant Isolation Tests

Two companies (ACME and BETA) each get a MAIN branch, users and data.
Verifies that:
1. A user of one company cannot read or change the other company's data
2. Passing a foreign branch_id is rejected
3. Cross-tenant lookups answer "not found" rather than revealing existence
4. Cross-tenant attempts are logged as security events
"""

import pytest
from flask import g

from printshop.models import Invoice, SecurityEvent
from printshop.services import invoice_service
from printshop.services.tenant_service import (
    TenantAccessError, get_company_branch_ids, get_company_branches, get_current_company_id,
    require_branch_in_company, require_branches_in_company, require_owned,
)


class TestTenantServiceHelpers:

    def test_branch_in_own_company(self, db_session, company_a, branch_a):
        assert require_branch_in_company(branch_a.id, company_a.id).id == branch_a.id

    def test_branch_of_other_company(self, db_session, company_a, branch_b):
        with pytest.raises(TenantAccessError, match="Branch not found"):
            require_branch_in_company(branch_b.id, company_a.id)

        event = db_session.query(SecurityEvent).filter_by(event_type="CROSS_TENANT_ACCESS_DENIED").one()
        assert event.company_id == company_a.id
        assert event.branch_id == branch_b.id

    def test_missing_branch(self, db_session, company_a):
        with pytest.raises(TenantAccessError):
            require_branch_in_company(99999, company_a.id)

    def test_company_branches(self, db_session, company_a, branch_a, branch_a2, branch_b):
        ids = {b.id for b in get_company_branches(company_a.id)}
        assert ids == {branch_a.id, branch_a2.id}

    def test_branch_ids(self, db_session, company_a, branch_a, branch_a2, branch_b):
        assert get_company_branch_ids(company_a.id) == {branch_a.id, branch_a2.id}

    def test_batch_branch_check(self, db_session, company_a, branch_a, branch_a2, branch_b):
        assert len(require_branches_in_company([branch_a.id, branch_a2.id], company_a.id)) == 2
        assert require_branches_in_company([], company_a.id) == []

        with pytest.raises(TenantAccessError):
            require_branches_in_company([branch_a.id, branch_b.id], company_a.id)
        with pytest.raises(TenantAccessError):
            require_branches_in_company([branch_a.id, 99999], company_a.id)

    def test_current_company_requires_context(self, app, company_a):
        with app.test_request_context():
            with pytest.raises(TenantAccessError):
                get_current_company_id()
            g.company_id = company_a.id
            assert get_current_company_id() == company_a.id

    def test_require_owned(self, db_session, company_a, company_b, business_cards):
        assert require_owned(type(business_cards), business_cards.id, company_a.id) is business_cards
        with pytest.raises(TenantAccessError, match="Product not found"):
            require_owned(type(business_cards), business_cards.id, company_b.id)


class TestCrossTenantRoutes:

    def test_foreign_product(self, client, admin_b_headers, business_cards):
        resp = client.get(f"/api/products/{business_cards.id}", headers=admin_b_headers)
        assert resp.status_code == 404

        resp = client.put(f"/api/products/{business_cards.id}", json={"name": "Hijacked"}, headers=admin_b_headers)
        assert resp.status_code == 404

    def test_foreign_customer(self, client, admin_b_headers, customer_a):
        resp = client.get(f"/api/customers/{customer_a.id}", headers=admin_b_headers)
        assert resp.status_code == 404

    def test_foreign_tier(self, client, admin_b_headers, standard_tiers):
        tier_id = standard_tiers[0].id
        resp = client.get(f"/api/weight-pricing/tiers/{tier_id}", headers=admin_b_headers)
        assert resp.status_code == 404

        resp = client.delete(f"/api/weight-pricing/tiers/{tier_id}", headers=admin_b_headers)
        assert resp.status_code == 404

    def test_foreign_invoice(self, client, db_session, admin_b_headers, company_a, branch_a, customer_a, business_cards):
        invoice = invoice_service.create_invoice(
            company_id=company_a.id,
            branch_id=branch_a.id,
            payload={"customer_id": customer_a.id, "items": [{"product_id": business_cards.id, "quantity": 1}]},
        )

        resp = client.get(f"/api/invoices/{invoice.id}", headers=admin_b_headers)
        assert resp.status_code == 404

        resp = client.post(f"/api/invoices/{invoice.id}/payments", json={
            "amount": "1", "payment_method": "cash",
        }, headers=admin_b_headers)
        assert resp.status_code == 404

        resp = client.get("/api/invoices", headers=admin_b_headers)
        assert resp.get_json()["count"] == 0

        assert db_session.query(SecurityEvent).filter_by(event_type="CROSS_TENANT_ACCESS_DENIED").count() >= 1

    def test_foreign_branch_on_create(self, client, admin_headers, branch_b, customer_a, business_cards):
        resp = client.post("/api/invoices", json={
            "branch_id": branch_b.id,
            "customer_id": customer_a.id,
            "items": [{"product_id": business_cards.id, "quantity": 1}],
        }, headers=admin_headers)
        assert resp.status_code == 404

    def test_foreign_product_on_invoice(self, client, admin_b_headers, branch_b, customer_b, business_cards):
        resp = client.post("/api/invoices", json={
            "branch_id": branch_b.id,
            "customer_id": customer_b.id,
            "items": [{"product_id": business_cards.id, "quantity": 1}],
        }, headers=admin_b_headers)
        assert resp.status_code in (400, 404)

    def test_tier_quotes_use_own_company(self, client, admin_b_headers, standard_tiers):
        resp = client.post("/api/weight-pricing/calculate", json={"weight": 3}, headers=admin_b_headers)
        assert resp.status_code == 200
        assert resp.get_json()["delivery_charge"] == "0.00"


class TestDocumentNumbers:

    def test_same_branch_code_in_two_companies(
        self, db_session, company_a, branch_a, customer_a, business_cards,
        company_b, branch_b, customer_b, product_b,
    ):
        first = invoice_service.create_invoice(
            company_id=company_a.id,
            branch_id=branch_a.id,
            payload={"customer_id": customer_a.id, "items": [{"product_id": business_cards.id, "quantity": 1}]},
        )
        second = invoice_service.create_invoice(
            company_id=company_b.id,
            branch_id=branch_b.id,
            payload={"customer_id": customer_b.id, "items": [{"product_id": product_b.id, "quantity": 1}]},
        )

        assert first.invoice_number.startswith("MAIN-")
        assert second.invoice_number.startswith("MAIN-")
        assert first.invoice_number.endswith("-0001")
        assert second.invoice_number.endswith("-0001")
        assert db_session.query(Invoice).count() == 2
