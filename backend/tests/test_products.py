# Overview: Pytest coverage for product routes and product pricing quotes.

from decimal import Decimal

import pytest

from printshop.extensions import db


class TestProductPricingRoute:

    def test_quote(self, client, cashier_headers, business_cards, standard_tiers):
        resp = client.post(f"/api/products/{business_cards.id}/pricing", json={"quantity": 10}, headers=cashier_headers)
        assert resp.status_code == 200
        pricing = resp.json["pricing"]
        assert pricing["base_price"] == "250.00"
        assert pricing["total_weight"] == "5.000"
        assert pricing["delivery_charge"] == "100.00"
        assert pricing["total_amount"] == "350.00"
        assert pricing["tier_used"] == "Light"

    @pytest.mark.parametrize("quantity", [10**30, 1_000_001])
    def test_huge_quantity_is_bad_request(self, client, cashier_headers, business_cards, standard_tiers, quantity):
        resp = client.post(f"/api/products/{business_cards.id}/pricing", json={"quantity": quantity},
                           headers=cashier_headers)
        assert resp.status_code == 400
        assert "quantity cannot exceed" in resp.json["error"]

    def test_weight_over_limit_is_bad_request(self, client, cashier_headers, banner, standard_tiers):
        # 50 banners is within the product limit but 50 x 250,000 kg is over the weight ceiling
        banner.weight_per_unit = Decimal("250000")
        db.session.commit()

        resp = client.post(f"/api/products/{banner.id}/pricing", json={"quantity": 50}, headers=cashier_headers)
        assert resp.status_code == 400
        assert "weight cannot exceed" in resp.json["error"]


class TestProductLimits:

    @pytest.mark.parametrize(
        "payload",
        [
            {"base_price": "1e30"},
            {"weight_per_unit": "1e30"},
            {"weight_per_unit": "10000000"},
            {"maximum_quantity": 2_000_000},
            {"tax_rate": "101"},
        ],
    )
    def test_out_of_range_fields(self, client, admin_headers, business_cards, payload):
        resp = client.put(f"/api/products/{business_cards.id}", json=payload, headers=admin_headers)
        assert resp.status_code == 400
