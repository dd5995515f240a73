# Overview: Pytest coverage for the pure delivery pricing calculator.

"""
Delivery pricing calculator tests.

The calculator works on any objects exposing tier attributes, so these
tests use plain namespaces and never touch the database.
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from printshop.pricing import (
    InvalidArgumentError,
    calculate_delivery_charge,
    compose_line_total,
    select_tier,
    to_kilograms,
)


def tier(name, min_w, max_w, base, per_kg="0"):
    return SimpleNamespace(
        tier_name=name,
        min_weight=Decimal(min_w),
        max_weight=Decimal(max_w) if max_w is not None else None,
        base_price=Decimal(base),
        per_kg_rate=Decimal(per_kg),
    )


@pytest.fixture
def tiers():
    return [
        tier("Light", "0", "5", "100"),
        tier("Medium", "5", "20", "150", "10"),
        tier("Heavy", "20", None, "300", "15"),
    ]


class TestDeliveryCharge:

    @pytest.mark.parametrize(
        "weight,expected,tier_name",
        [
            ("3", "100", "Light"),
            ("5", "100", "Light"),
            ("10", "250", "Medium"),
            ("20", "350", "Medium"),
            ("25", "675", "Heavy"),
            ("0", "100", "Light"),
        ],
    )
    def test_standard_tariff(self, tiers, weight, expected, tier_name):
        result = calculate_delivery_charge(weight, "kg", tiers)
        assert result.delivery_charge == Decimal(expected)
        assert result.tier_name == tier_name

    def test_grams_are_normalized(self, tiers):
        result = calculate_delivery_charge(500, "g", tiers)
        assert result.weight_kg == Decimal("0.5")
        assert result.tier_name == "Light"
        assert result.delivery_charge == Decimal("100")

    def test_no_tiers_means_free_delivery(self):
        result = calculate_delivery_charge("12", "kg", [])
        assert result.delivery_charge == Decimal("0")
        assert result.tier is None
        assert result.tier_name is None
        assert result.base_price == Decimal("0")

    def test_weight_outside_every_tier(self):
        result = calculate_delivery_charge("50", "kg", [tier("Small", "0", "10", "40")])
        assert result.delivery_charge == Decimal("0")
        assert result.tier is None

    def test_breakdown_splits_base_and_additional(self, tiers):
        result = calculate_delivery_charge("10", "kg", tiers)
        assert result.base_price == Decimal("150")
        assert result.additional_price == Decimal("100")

        data = result.to_dict()
        assert data["delivery_charge"] == "250.00"
        assert data["weight_kg"] == "10.000"
        assert data["breakdown"] == {"base_price": "150.00", "additional_price": "100.00"}
        assert data["tier_name"] == "Medium"

    def test_missing_per_kg_rate_counts_as_zero(self):
        t = tier("Flat", "0", None, "75")
        t.per_kg_rate = None
        result = calculate_delivery_charge("40", "kg", [t])
        assert result.delivery_charge == Decimal("75")

    def test_first_matching_tier_wins(self):
        first = tier("First", "0", "10", "10")
        second = tier("Second", "0", "10", "99")
        assert select_tier([first, second], Decimal("4")) is first
        assert select_tier([second, first], Decimal("4")) is second

    def test_charge_never_decreases_across_standard_tariff(self, tiers):
        weights = [Decimal(w) / 4 for w in range(0, 200)]
        charges = [calculate_delivery_charge(w, "kg", tiers).delivery_charge for w in weights]
        assert charges == sorted(charges)


class TestUnits:

    @pytest.mark.parametrize(
        "weight,unit,expected",
        [
            ("1", "kg", "1"),
            ("1500", "g", "1.5"),
            ("1", "lb", "0.453592"),
            ("1", "oz", "0.0283495"),
            ("2", "KG", "2"),
            ("2", None, "2"),
        ],
    )
    def test_conversion(self, weight, unit, expected):
        assert to_kilograms(weight, unit) == Decimal(expected)

    def test_float_input_keeps_its_decimal_text(self):
        assert to_kilograms(0.1, "kg") == Decimal("0.1")

    @pytest.mark.parametrize("unit", ["kg", "g", "lb", "oz"])
    def test_charge_never_decreases_in_any_unit(self, tiers, unit):
        weights = [Decimal(w) * 7 for w in range(0, 300)]
        kilos = [to_kilograms(w, unit) for w in weights]
        charges = [calculate_delivery_charge(w, unit, tiers).delivery_charge for w in weights]
        assert kilos == sorted(kilos)
        assert charges == sorted(charges)

    def test_same_input_same_result(self, tiers):
        first = calculate_delivery_charge("12.345", "lb", tiers)
        for _ in range(5):
            again = calculate_delivery_charge("12.345", "lb", tiers)
            assert again.to_dict() == first.to_dict()
            assert again.tier is first.tier

    def test_line_total_is_repeatable(self, tiers):
        kwargs = dict(unit_price="19.99", quantity=37, weight_per_unit="11", weight_unit="oz",
                      tax_rate="7.5", tiers=tiers)
        assert compose_line_total(**kwargs) == compose_line_total(**kwargs)


class TestInvalidInput:

    @pytest.mark.parametrize("weight", ["-1", -0.5, "abc", None, True, "NaN", "Infinity", [1]])
    def test_rejects_bad_weight(self, tiers, weight):
        with pytest.raises(InvalidArgumentError):
            calculate_delivery_charge(weight, "kg", tiers)

    def test_rejects_unknown_unit(self, tiers):
        with pytest.raises(InvalidArgumentError, match="Invalid weight unit"):
            calculate_delivery_charge("1", "stone", tiers)

    def test_invalid_argument_is_a_validation_error(self):
        with pytest.raises(ValueError):
            to_kilograms("-3", "kg")

    @pytest.mark.parametrize("weight,unit", [("1e30", "kg"), ("1e12", "g"), ("10000000", "kg"), ("1E+999999", "oz")])
    def test_rejects_weight_above_limit(self, tiers, weight, unit):
        with pytest.raises(InvalidArgumentError, match="cannot exceed"):
            calculate_delivery_charge(weight, unit, tiers)

    def test_accepts_weight_at_limit(self):
        result = calculate_delivery_charge("9999999.999", "kg", [])
        assert result.to_dict()["weight_kg"] == "9999999.999"


class TestLineTotal:

    def test_goods_delivery_and_tax(self, tiers):
        # 10 boxes x 0.5 kg = 5 kg -> Light tier
        quote = compose_line_total(
            unit_price="25.00",
            quantity=10,
            weight_per_unit="0.5",
            weight_unit="kg",
            tax_rate="10",
            tiers=tiers,
        )
        assert quote.base_price == Decimal("250.00")
        assert quote.total_weight == Decimal("5.0")
        assert quote.delivery_charge == Decimal("100")
        assert quote.tax_amount == Decimal("35")
        assert quote.total_amount == Decimal("385")
        assert quote.tier_used.tier_name == "Light"

    def test_weight_in_grams(self, tiers):
        quote = compose_line_total(
            unit_price="1",
            quantity=30,
            weight_per_unit="500",
            weight_unit="g",
            tax_rate=None,
            tiers=tiers,
        )
        assert quote.total_weight == Decimal("15")
        assert quote.delivery_charge == Decimal("300")
        assert quote.to_dict()["tier_used"] == "Medium"

    def test_rejects_negative_price(self, tiers):
        with pytest.raises(InvalidArgumentError):
            compose_line_total(unit_price="-1", quantity=1, weight_per_unit=0, weight_unit="kg",
                               tax_rate=0, tiers=tiers)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"unit_price": "1e30"},
            {"unit_price": "10000000"},
            {"quantity": 10**40},
            {"quantity": 1_000_001},
            {"weight_per_unit": "1e30"},
            {"tax_rate": "150"},
        ],
    )
    def test_rejects_out_of_range_line(self, tiers, overrides):
        kwargs = dict(unit_price="1", quantity=1, weight_per_unit="1", weight_unit="kg",
                      tax_rate="0", tiers=tiers)
        kwargs.update(overrides)
        with pytest.raises(InvalidArgumentError):
            compose_line_total(**kwargs)

    def test_heavy_line_over_weight_limit(self, tiers):
        # 1,000,000 units x 10 kg is over the 9,999,999.999 kg ceiling
        with pytest.raises(InvalidArgumentError, match="weight cannot exceed"):
            compose_line_total(unit_price="1", quantity=1_000_000, weight_per_unit="10", weight_unit="kg",
                               tax_rate="0", tiers=tiers)
