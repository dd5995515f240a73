# Overview: Pytest coverage for weight pricing tiers and delivery quote endpoints.

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from printshop.extensions import db
from printshop.models import ActivityLog, WeightPricingTier
from printshop.services import weight_pricing_service
from printshop.services.weight_pricing_service import WeightPricingError


def _tier_patch(name, min_w, max_w, base, per_kg="0", **extra):
    patch = {
        "tier_name": name,
        "min_weight": Decimal(min_w),
        "max_weight": Decimal(max_w) if max_w is not None else None,
        "base_price": Decimal(base),
        "per_kg_rate": Decimal(per_kg),
    }
    patch.update(extra)
    return patch


class TestTierProvider:

    def test_active_tiers_ordered_by_min_weight(self, db_session, company_a):
        weight_pricing_service.create_tier(company_id=company_a.id, patch=_tier_patch("Heavy", "20", None, "300", "15"))
        weight_pricing_service.create_tier(company_id=company_a.id, patch=_tier_patch("Light", "0", "5", "100"))
        weight_pricing_service.create_tier(company_id=company_a.id, patch=_tier_patch("Medium", "5", "20", "150", "10"))

        names = [t.tier_name for t in weight_pricing_service.get_active_tiers(company_a.id)]
        assert names == ["Light", "Medium", "Heavy"]

    def test_inactive_tiers_are_ignored(self, db_session, company_a, standard_tiers):
        weight_pricing_service.toggle_tier_status(standard_tiers[0])

        result = weight_pricing_service.calculate_delivery_price(company_a.id, "3", "kg")
        assert result.tier is None
        assert result.delivery_charge == Decimal("0")

    def test_tiers_are_per_company(self, db_session, company_a, company_b, standard_tiers):
        result = weight_pricing_service.calculate_delivery_price(company_b.id, "3", "kg")
        assert result.tier is None

        result = weight_pricing_service.calculate_delivery_price(company_a.id, "3", "kg")
        assert result.tier_name == "Light"

    def test_toggle_retries_after_lock_conflict(self, db_session, company_a, standard_tiers, monkeypatch):
        tier = standard_tiers[0]
        real_commit = db.session.commit
        attempts = []

        def flaky_commit():
            attempts.append(tier.status)
            if len(attempts) == 1:
                raise OperationalError("UPDATE weight_pricing_tiers", {}, Exception("database is locked"))
            return real_commit()

        monkeypatch.setattr(db.session, "commit", flaky_commit)
        monkeypatch.setattr("printshop.services.concurrency.time.sleep", lambda seconds: None)

        result = weight_pricing_service.toggle_tier_status(tier)
        monkeypatch.undo()

        assert attempts == ["inactive", "inactive"]
        assert result.status == "inactive"
        db.session.expire_all()
        assert db.session.get(WeightPricingTier, tier.id).status == "inactive"
        logged = db.session.query(ActivityLog).filter_by(action="pricing_tier.deactivated").count()
        assert logged == 1

    def test_reactivation_rechecks_overlap(self, db_session, company_a, standard_tiers):
        light = standard_tiers[0]
        weight_pricing_service.toggle_tier_status(light)
        weight_pricing_service.create_tier(company_id=company_a.id, patch=_tier_patch("Small", "0", "4", "80"))

        with pytest.raises(WeightPricingError, match="overlaps"):
            weight_pricing_service.toggle_tier_status(light)


class TestTierValidation:

    def test_overlapping_range_rejected(self, db_session, company_a, standard_tiers):
        with pytest.raises(WeightPricingError, match="overlaps"):
            weight_pricing_service.create_tier(
                company_id=company_a.id, patch=_tier_patch("Overlap", "3", "8", "120")
            )

    def test_open_ended_overlap_rejected(self, db_session, company_a, standard_tiers):
        with pytest.raises(WeightPricingError):
            weight_pricing_service.create_tier(
                company_id=company_a.id, patch=_tier_patch("Huge", "100", None, "900")
            )

    def test_contiguous_tiers_allowed(self, db_session, company_a):
        weight_pricing_service.create_tier(company_id=company_a.id, patch=_tier_patch("A", "0", "5", "100"))
        tier = weight_pricing_service.create_tier(company_id=company_a.id, patch=_tier_patch("B", "5", "10", "150"))
        assert tier.id is not None

    def test_inactive_tier_may_overlap(self, db_session, company_a, standard_tiers):
        tier = weight_pricing_service.create_tier(
            company_id=company_a.id, patch=_tier_patch("Promo", "0", "5", "50", status="inactive")
        )
        assert tier.status == "inactive"

        with pytest.raises(WeightPricingError):
            weight_pricing_service.toggle_tier_status(tier)

    def test_update_rechecks_range(self, db_session, company_a, standard_tiers):
        light = standard_tiers[0]
        with pytest.raises(WeightPricingError):
            weight_pricing_service.update_tier(light, patch={"max_weight": Decimal("8")})

        updated = weight_pricing_service.update_tier(light, patch={"base_price": Decimal("90")})
        assert updated.base_price == Decimal("90")

    def test_max_must_exceed_min(self, db_session, company_a):
        with pytest.raises(WeightPricingError):
            weight_pricing_service.validate_weight_range(company_a.id, Decimal("5"), Decimal("5"))


class TestTierRoutes:

    def test_create_and_list(self, client, admin_headers):
        resp = client.post("/api/weight-pricing/tiers", json={
            "tier_name": "Light (0-5kg)",
            "min_weight": "0",
            "max_weight": "5",
            "base_price": "100",
        }, headers=admin_headers)
        assert resp.status_code == 201
        tier = resp.json["tier"]
        assert tier["weight_range"] == "0.000kg - 5.000kg"
        assert tier["per_kg_rate"] == "0.00"
        assert tier["sort_order"] == 1

        resp = client.get("/api/weight-pricing/tiers", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["count"] == 1

    def test_create_missing_fields(self, client, admin_headers):
        resp = client.post("/api/weight-pricing/tiers", json={"tier_name": "X"}, headers=admin_headers)
        assert resp.status_code == 400
        assert "Missing required fields" in resp.json["error"]

    def test_create_negative_price(self, client, admin_headers):
        resp = client.post("/api/weight-pricing/tiers", json={
            "tier_name": "Bad", "min_weight": 0, "max_weight": 5, "base_price": -1,
        }, headers=admin_headers)
        assert resp.status_code == 400

    def test_overlap_is_conflict(self, client, admin_headers, standard_tiers):
        resp = client.post("/api/weight-pricing/tiers", json={
            "tier_name": "Overlap", "min_weight": 2, "max_weight": 4, "base_price": 10,
        }, headers=admin_headers)
        assert resp.status_code == 409

    def test_cashier_cannot_manage_tiers(self, client, cashier_headers, standard_tiers):
        resp = client.post("/api/weight-pricing/tiers", json={
            "tier_name": "X", "min_weight": 100, "base_price": 1,
        }, headers=cashier_headers)
        assert resp.status_code == 403

        resp = client.get("/api/weight-pricing/tiers", headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.json["count"] == 3

    def test_toggle_and_delete(self, client, admin_headers, standard_tiers):
        heavy_id = standard_tiers[2].id
        resp = client.post(f"/api/weight-pricing/tiers/{heavy_id}/toggle", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["tier"]["status"] == "inactive"

        resp = client.post("/api/weight-pricing/calculate", json={"weight": 25}, headers=admin_headers)
        assert resp.json["delivery_charge"] == "0.00"
        assert resp.json["tier_name"] is None

        resp = client.delete(f"/api/weight-pricing/tiers/{heavy_id}", headers=admin_headers)
        assert resp.status_code == 200
        resp = client.get(f"/api/weight-pricing/tiers/{heavy_id}", headers=admin_headers)
        assert resp.status_code == 404

    def test_reorder(self, client, admin_headers, standard_tiers):
        ids = [t.id for t in reversed(standard_tiers)]
        resp = client.post("/api/weight-pricing/tiers/reorder", json={"tier_ids": ids}, headers=admin_headers)
        assert resp.status_code == 200
        assert [t["sort_order"] for t in resp.json["tiers"]] == [1, 2, 3]
        assert [t["id"] for t in resp.json["tiers"]] == ids

    def test_reorder_unknown_tier(self, client, admin_headers, standard_tiers):
        resp = client.post("/api/weight-pricing/tiers/reorder", json={"tier_ids": [999999]}, headers=admin_headers)
        assert resp.status_code == 404


class TestQuoteRoutes:

    @pytest.mark.parametrize(
        "payload,charge,tier_name",
        [
            ({"weight": 3}, "100.00", "Light"),
            ({"weight": 5}, "100.00", "Light"),
            ({"weight": "10"}, "250.00", "Medium"),
            ({"weight": 25, "unit": "kg"}, "675.00", "Heavy"),
            ({"weight": 500, "unit": "g"}, "100.00", "Light"),
        ],
    )
    def test_calculate(self, client, cashier_headers, standard_tiers, payload, charge, tier_name):
        resp = client.post("/api/weight-pricing/calculate", json=payload, headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.json["delivery_charge"] == charge
        assert resp.json["tier_name"] == tier_name

    def test_calculate_without_tiers(self, client, admin_headers):
        resp = client.post("/api/weight-pricing/calculate", json={"weight": 7}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["delivery_charge"] == "0.00"
        assert resp.json["tier"] is None

    @pytest.mark.parametrize(
        "payload",
        [{}, {"weight": -2}, {"weight": "heavy"}, {"weight": 2, "unit": "stone"},
         {"weight": "1e30"}, {"weight": 1e30}, {"weight": "1e13", "unit": "g"}],
    )
    def test_calculate_invalid(self, client, admin_headers, standard_tiers, payload):
        resp = client.post("/api/weight-pricing/calculate", json=payload, headers=admin_headers)
        assert resp.status_code == 400

    def test_breakdown(self, client, admin_headers, standard_tiers):
        resp = client.post("/api/weight-pricing/breakdown", json={"weights": [1, 10, 25]}, headers=admin_headers)
        assert resp.status_code == 200
        prices = [row["price"] for row in resp.json["breakdown"]]
        assert prices == ["100.00", "250.00", "675.00"]

    def test_sample_table(self, client, admin_headers, standard_tiers):
        resp = client.get("/api/weight-pricing/sample-table", headers=admin_headers)
        assert resp.status_code == 200
        table = resp.json["table"]
        assert table[0] == {
            "weight": "0.5kg",
            "tier": "Light",
            "price": "100.00",
            "base_price": "100.00",
            "additional_price": "0.00",
        }
        assert len(table) == len(weight_pricing_service.SAMPLE_WEIGHTS)

    def test_analysis_reports_gaps(self, client, admin_headers, db_session, company_a):
        db_session.add_all([
            WeightPricingTier(company_id=company_a.id, tier_name="Small", min_weight=Decimal("0"),
                              max_weight=Decimal("5"), base_price=Decimal("200"), status="active"),
            WeightPricingTier(company_id=company_a.id, tier_name="Large", min_weight=Decimal("10"),
                              max_weight=None, base_price=Decimal("150"), status="active"),
        ])
        db_session.commit()

        resp = client.get("/api/weight-pricing/analysis", headers=admin_headers)
        assert resp.status_code == 200
        types = [s["type"] for s in resp.json["suggestions"]]
        assert types == ["gap", "pricing_inconsistency"]
        assert resp.json["coverage_analysis"]["max_covered_weight"] == "unlimited"
        assert resp.json["active_tiers"] == 2
