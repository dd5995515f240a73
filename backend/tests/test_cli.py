# Overview: Pytest coverage for the flask CLI command groups.

from printshop.models import Company, Permission, RolePermission, User, WeightPricingTier


class TestPricingCommands:

    def test_quote(self, app, company_a, standard_tiers):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["pricing", "quote", "--company-id", str(company_a.id), "--weight", "10"])
        assert result.exit_code == 0
        assert "Tier:            Medium" in result.output
        assert "Delivery charge: 250.00" in result.output

    def test_quote_in_grams(self, app, company_a, standard_tiers):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "pricing", "quote", "--company-id", str(company_a.id), "--weight", "2500", "--unit", "g",
        ])
        assert "(2.500 kg)" in result.output
        assert "Delivery charge: 100.00" in result.output

    def test_quote_invalid_weight(self, app, company_a):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["pricing", "quote", "--company-id", str(company_a.id), "--weight=-1"])
        assert result.output.startswith("FAIL")

    def test_tiers(self, app, company_a, standard_tiers):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["pricing", "tiers", "--company-id", str(company_a.id)])
        assert result.exit_code == 0
        assert "0.000kg - 5.000kg" in result.output
        assert "20.000kg+" in result.output


class TestSystemInit:

    def test_init_creates_company_users_and_tiers(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["system", "init", "--company", "Quick Print", "--code", "QP", "--sample-tiers"])
        assert result.exit_code == 0, result.output
        assert "DONE System initialized" in result.output

        company = db_session.query(Company).filter_by(code="QP").one()
        assert db_session.query(User).filter_by(company_id=company.id).count() > 0
        assert db_session.query(WeightPricingTier).filter_by(company_id=company.id).count() == 3

    def test_init_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()
        runner.invoke(args=["system", "init", "--code", "QP"])
        result = runner.invoke(args=["system", "init", "--code", "QP"])
        assert result.exit_code == 0
        assert "Using existing company" in result.output
        assert "already exists, skipping" in result.output


class TestCompanyCommands:

    def test_create_and_list(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["companies", "create", "--name", "Gamma Graphics", "--code", "GAMMA"])
        assert "PASS Created company: Gamma Graphics" in result.output

        result = runner.invoke(args=["companies", "create", "--name", "Again", "--code", "GAMMA"])
        assert "FAIL" in result.output

        result = runner.invoke(args=["companies", "list"])
        assert "GAMMA" in result.output


class TestPermissionCommands:

    def test_check_granted_and_missing(self, app, cashier_a):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["perms", "check", "cashier_a", "process_payments"])
        assert result.output.startswith("PASS User 'cashier_a' HAS permission 'PROCESS_PAYMENTS'")
        assert "User roles: cashier" in result.output

        result = runner.invoke(args=["perms", "check", "cashier_a", "VERIFY_PAYMENTS"])
        assert result.output.startswith("FAIL User 'cashier_a' DOES NOT HAVE permission 'VERIFY_PAYMENTS'")

    def test_check_unknown_code_and_user(self, app, cashier_a):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["perms", "check", "cashier_a", "FLY_PLANES"])
        assert result.output.startswith("FAIL Unknown permission")

        result = runner.invoke(args=["perms", "check", "nobody", "VIEW_PRICING"])
        assert result.output.startswith("FAIL User 'nobody' not found")

    def test_sync_restores_missing_permission(self, app, db_session, company_a):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["perms", "sync", "--dry-run"])
        assert result.output.startswith("PASS All")

        perm = db_session.query(Permission).filter_by(code="VIEW_AUDIT_LOG").one()
        db_session.query(RolePermission).filter_by(permission_id=perm.id).delete()
        db_session.delete(perm)
        db_session.commit()

        result = runner.invoke(args=["perms", "sync", "--dry-run"])
        assert "missing: VIEW_AUDIT_LOG" in result.output
        assert "WARN  1 permission(s) missing" in result.output
        assert db_session.query(Permission).filter_by(code="VIEW_AUDIT_LOG").count() == 0

        result = runner.invoke(args=["perms", "sync"])
        assert "PASS Created 1 permission(s)" in result.output
        assert db_session.query(Permission).filter_by(code="VIEW_AUDIT_LOG").count() == 1
