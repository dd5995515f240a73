"""
Authorization tests.

Verifies:
- Unauthenticated requests return 401
- Cashier and production roles denied privileged operations (403)
- Admin role can perform privileged operations
- Denials and failed logins are recorded as security events
"""

import pytest

from printshop.models import SecurityEvent
from printshop.services import company_service


# =============================================================================
# UNAUTHENTICATED ACCESS - 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/admin/users"),
            ("POST", "/api/admin/users"),
            ("GET", "/api/admin/roles"),
            ("GET", "/api/admin/permissions"),
            ("GET", "/api/companies"),
            ("GET", "/api/branches"),
            ("GET", "/api/customers"),
            ("GET", "/api/products"),
            ("GET", "/api/product-categories"),
            ("POST", "/api/product-categories"),
            ("GET", "/api/weight-pricing/tiers"),
            ("POST", "/api/weight-pricing/calculate"),
            ("GET", "/api/invoices"),
            ("POST", "/api/invoices"),
            ("GET", "/api/payments"),
            ("GET", "/api/payment-verifications"),
            ("GET", "/api/production/jobs"),
            ("GET", "/api/activity"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/invoices", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401

    def test_logout_revokes_token(self, client, admin_headers):
        resp = client.post("/api/auth/logout", headers=admin_headers)
        assert resp.status_code == 200

        resp = client.get("/api/invoices", headers=admin_headers)
        assert resp.status_code == 401

    def test_deactivated_company_loses_access(self, client, company_a, admin_headers):
        company_service.update_company(company_a.id, patch={"is_active": False})
        resp = client.get("/api/invoices", headers=admin_headers)
        assert resp.status_code == 401


# =============================================================================
# LOGIN
# =============================================================================


class TestLogin:

    def test_login_returns_tenant_context(self, client, cashier_a, company_a, branch_a):
        resp = client.post("/api/auth/login", json={"username": "cashier_a", "password": "Password123!"})
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["company_id"] == company_a.id
        assert data["branch_id"] == branch_a.id
        assert "PROCESS_PAYMENTS" in data["permissions"]
        assert "VERIFY_PAYMENTS" not in data["permissions"]

    def test_failed_login_is_recorded(self, client, db_session, cashier_a):
        resp = client.post("/api/auth/login", json={"username": "cashier_a", "password": "wrong-password"})
        assert resp.status_code == 401

        events = db_session.query(SecurityEvent).filter_by(event_type="LOGIN_FAILED").all()
        assert len(events) == 1
        assert events[0].success is False

    def test_missing_credentials(self, client, db_session):
        resp = client.post("/api/auth/login", json={"username": "someone"})
        assert resp.status_code == 400

    def test_validate(self, client, manager_headers):
        resp = client.post("/api/auth/validate", headers=manager_headers)
        assert resp.status_code == 200
        assert "branch_manager" in resp.get_json()["roles"]


# =============================================================================
# LOWER ROLES DENIED PRIVILEGED OPERATIONS - 403
# =============================================================================


class TestCashierDenied:
    """Cashier role cannot perform privileged operations."""

    def test_cannot_list_users(self, client, cashier_headers):
        resp = client.get("/api/admin/users", headers=cashier_headers)
        assert resp.status_code == 403

    def test_cannot_create_user(self, client, cashier_headers):
        resp = client.post(
            "/api/admin/users",
            json={"username": "x", "email": "x@x.com", "password": "P@ssw0rd123!"},
            headers=cashier_headers,
        )
        assert resp.status_code == 403

    def test_cannot_grant_permissions(self, client, cashier_headers):
        resp = client.post(
            "/api/admin/roles/cashier/permissions",
            json={"permission_code": "VERIFY_PAYMENTS"},
            headers=cashier_headers,
        )
        assert resp.status_code == 403

    def test_cannot_manage_products(self, client, cashier_headers):
        resp = client.post(
            "/api/products",
            json={"product_code": "X", "name": "X", "base_price": "1"},
            headers=cashier_headers,
        )
        assert resp.status_code == 403

    def test_cannot_analyze_tiers(self, client, cashier_headers):
        resp = client.get("/api/weight-pricing/analysis", headers=cashier_headers)
        assert resp.status_code == 403

    def test_cannot_view_activity(self, client, cashier_headers):
        resp = client.get("/api/activity", headers=cashier_headers)
        assert resp.status_code == 403

    def test_cannot_delete_invoices(self, client, cashier_headers):
        resp = client.delete("/api/invoices/1", headers=cashier_headers)
        assert resp.status_code == 403

    def test_denial_is_recorded(self, client, db_session, cashier_headers, company_a):
        client.get("/api/admin/users", headers=cashier_headers)

        event = db_session.query(SecurityEvent).filter_by(event_type="PERMISSION_DENIED").one()
        assert event.company_id == company_a.id
        assert event.resource == "/api/admin/users"


class TestProductionStaffDenied:

    def test_cannot_record_payments(self, client, production_headers):
        resp = client.post("/api/invoices/1/payments", json={"amount": "1"}, headers=production_headers)
        assert resp.status_code == 403

    def test_cannot_create_invoices(self, client, production_headers):
        resp = client.post("/api/invoices", json={}, headers=production_headers)
        assert resp.status_code == 403

    def test_can_view_production(self, client, production_headers):
        resp = client.get("/api/production/jobs", headers=production_headers)
        assert resp.status_code == 200


# =============================================================================
# ADMIN CAN PERFORM PRIVILEGED OPERATIONS - 200
# =============================================================================


class TestAdminAccess:
    """Company admin can perform privileged operations within the company."""

    def test_can_list_users(self, client, admin_headers):
        resp = client.get("/api/admin/users", headers=admin_headers)
        assert resp.status_code == 200

    def test_can_list_roles(self, client, admin_headers):
        resp = client.get("/api/admin/roles", headers=admin_headers)
        assert resp.status_code == 200
        names = {r["name"] for r in resp.get_json()["roles"]}
        assert {"company_admin", "branch_manager", "cashier", "production_staff"} <= names

    def test_can_list_permissions(self, client, admin_headers):
        resp = client.get("/api/admin/permissions", headers=admin_headers)
        assert resp.status_code == 200
        assert len(resp.get_json()["permissions"]) > 0

    def test_permissions_by_category(self, client, admin_headers):
        resp = client.get("/api/admin/permissions?category=pricing", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["category"] == "PRICING"
        codes = {p["code"] for p in data["permissions"]}
        assert "VIEW_PRICING" in codes
        assert all(p["category"] == "PRICING" for p in data["permissions"])

    def test_single_permission(self, client, admin_headers):
        resp = client.get("/api/admin/permissions/verify_payments", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["permission"]["code"] == "VERIFY_PAYMENTS"

        resp = client.get("/api/admin/permissions/NOT_A_PERMISSION", headers=admin_headers)
        assert resp.status_code == 404

    def test_can_grant_and_revoke(self, client, admin_headers, cashier_headers):
        resp = client.post(
            "/api/admin/roles/cashier/permissions",
            json={"permission_code": "VIEW_AUDIT_LOG"},
            headers=admin_headers,
        )
        assert resp.status_code == 200

        resp = client.get("/api/activity", headers=cashier_headers)
        assert resp.status_code == 200

        resp = client.delete("/api/admin/roles/cashier/permissions/VIEW_AUDIT_LOG", headers=admin_headers)
        assert resp.status_code == 200

        resp = client.get("/api/activity", headers=cashier_headers)
        assert resp.status_code == 403

    def test_cannot_grant_system_admin(self, client, admin_headers):
        resp = client.post(
            "/api/admin/roles/cashier/permissions",
            json={"permission_code": "SYSTEM_ADMIN"},
            headers=admin_headers,
        )
        assert resp.status_code == 400

    def test_can_view_security_events(self, client, admin_headers):
        resp = client.get("/api/admin/security-events", headers=admin_headers)
        assert resp.status_code == 200

    def test_cannot_list_all_companies(self, client, admin_headers):
        resp = client.get("/api/companies", headers=admin_headers)
        assert resp.status_code == 403


# =============================================================================
# PUBLIC ENDPOINTS - NO AUTH REQUIRED
# =============================================================================


class TestPublicEndpoints:
    """System health and version endpoints are public."""

    def test_health(self, client, company_a):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "healthy"

    def test_version(self, client, db_session):
        resp = client.get("/version")
        assert resp.status_code == 200
