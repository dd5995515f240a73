# Overview: Pure weight-based delivery pricing and line total composition.

"""
Weight Pricing Calculator

Delivery is charged per company from a small table of weight tiers. Each tier
covers [min_weight, max_weight] kilograms (max_weight None = open ended) and
charges base_price + per_kg_rate * weight.

RULES:
- Weights are normalized to kilograms before tier lookup
- Tiers are evaluated in the order supplied; the first containing tier wins
- Both tier bounds are inclusive
- No matching tier is a valid outcome: the delivery charge is 0

All arithmetic uses Decimal. Results carry full precision; qmoney() and
qweight() quantize for presentation and persistence.

This module touches no database state. Callers load the company's active
tiers (see weight_pricing_service.get_active_tiers) and pass them in.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable

from .validation import MAX_PRICE, MAX_QUANTITY, MAX_TOTAL_WEIGHT, ValidationError

MONEY = Decimal("0.01")
WEIGHT = Decimal("0.001")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Conversion factors into kilograms
UNIT_TO_KG = {
    "kg": Decimal("1"),
    "g": Decimal("0.001"),
    "grams": Decimal("0.001"),
    "lb": Decimal("0.453592"),
    "oz": Decimal("0.0283495"),
}

VALID_WEIGHT_UNITS = ["kg", "g", "lb", "oz"]


class InvalidArgumentError(ValidationError):
    """Raised for calculator inputs outside the domain (negative weight, unknown unit)."""
    pass


def qmoney(x: Decimal) -> Decimal:
    return Decimal(x).quantize(MONEY, rounding=ROUND_HALF_UP)


def qweight(x: Decimal) -> Decimal:
    return Decimal(x).quantize(WEIGHT, rounding=ROUND_HALF_UP)


def money_str(x: Decimal | None) -> str | None:
    return str(qmoney(x)) if x is not None else None


def weight_str(x: Decimal | None) -> str | None:
    return str(qweight(x)) if x is not None else None


def to_decimal(value: Any, field: str = "value") -> Decimal:
    """
    Coerce a JSON/CLI number into a finite Decimal.

    Floats go through str() so 0.1 stays 0.1.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidArgumentError(f"{field} must be a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise InvalidArgumentError(f"{field} must be a number")
    else:
        raise InvalidArgumentError(f"{field} must be a number")

    if not result.is_finite():
        raise InvalidArgumentError(f"{field} must be finite")
    return result


def normalize_unit(unit: str | None) -> str:
    if unit is None:
        return "kg"
    key = str(unit).strip().lower()
    if key not in UNIT_TO_KG:
        raise InvalidArgumentError(
            f"Invalid weight unit: {unit}. Must be one of {VALID_WEIGHT_UNITS}"
        )
    return key


def to_kilograms(weight: Any, unit: str | None = "kg") -> Decimal:
    """Convert a non-negative weight in `unit` to kilograms, at most MAX_TOTAL_WEIGHT."""
    w = to_decimal(weight, "weight")
    if w < ZERO:
        raise InvalidArgumentError("weight must be >= 0")
    factor = UNIT_TO_KG[normalize_unit(unit)]
    if w > MAX_TOTAL_WEIGHT / factor:
        raise InvalidArgumentError(f"weight cannot exceed {MAX_TOTAL_WEIGHT} kg")
    return w * factor


def tier_contains(tier: Any, weight_kg: Decimal) -> bool:
    min_weight = Decimal(tier.min_weight)
    max_weight = tier.max_weight
    upper_ok = max_weight is None or weight_kg <= Decimal(max_weight)
    return min_weight <= weight_kg and upper_ok


def select_tier(tiers: Iterable[Any], weight_kg: Decimal) -> Any | None:
    """Return the first tier (in supplied order) whose range contains weight_kg."""
    for tier in tiers:
        if tier_contains(tier, weight_kg):
            return tier
    return None


def tier_charge(tier: Any, weight_kg: Decimal) -> Decimal:
    per_kg = tier.per_kg_rate if tier.per_kg_rate is not None else ZERO
    return Decimal(tier.base_price) + Decimal(per_kg) * weight_kg


@dataclass(frozen=True)
class DeliveryCharge:
    weight_kg: Decimal
    delivery_charge: Decimal
    tier: Any | None

    @property
    def tier_name(self) -> str | None:
        return self.tier.tier_name if self.tier is not None else None

    @property
    def base_price(self) -> Decimal:
        return Decimal(self.tier.base_price) if self.tier is not None else ZERO

    @property
    def additional_price(self) -> Decimal:
        return self.delivery_charge - self.base_price

    def to_dict(self) -> dict:
        return {
            "weight_kg": weight_str(self.weight_kg),
            "delivery_charge": money_str(self.delivery_charge),
            "tier_name": self.tier_name,
            "breakdown": {
                "base_price": money_str(self.base_price),
                "additional_price": money_str(self.additional_price),
            },
            "tier": self.tier.to_dict() if hasattr(self.tier, "to_dict") else None,
        }


def calculate_delivery_charge(weight: Any, unit: str | None, tiers: Iterable[Any]) -> DeliveryCharge:
    """
    Delivery charge for a weight against an ordered tier list.

    Raises InvalidArgumentError for negative/non-finite weights or unknown units.
    """
    weight_kg = to_kilograms(weight, unit)
    tier = select_tier(tiers, weight_kg)
    if tier is None:
        return DeliveryCharge(weight_kg=weight_kg, delivery_charge=ZERO, tier=None)
    return DeliveryCharge(weight_kg=weight_kg, delivery_charge=tier_charge(tier, weight_kg), tier=tier)


@dataclass(frozen=True)
class DeliveryQuote:
    base_price: Decimal
    total_weight: Decimal
    delivery_charge: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    tier_used: Any | None

    def to_dict(self) -> dict:
        return {
            "base_price": money_str(self.base_price),
            "total_weight": weight_str(self.total_weight),
            "delivery_charge": money_str(self.delivery_charge),
            "tax_amount": money_str(self.tax_amount),
            "total_amount": money_str(self.total_amount),
            "tier_used": self.tier_used.tier_name if self.tier_used is not None else None,
        }


def compose_line_total(
    *,
    unit_price: Any,
    quantity: Any,
    weight_per_unit: Any,
    weight_unit: str | None,
    tax_rate: Any,
    tiers: Iterable[Any],
) -> DeliveryQuote:
    """
    Price a product line: goods + weight-based delivery + tax.

    tax_rate is a percentage and applies to goods plus delivery.
    """
    price = to_decimal(unit_price, "unit_price")
    qty = to_decimal(quantity, "quantity")
    if price < ZERO:
        raise InvalidArgumentError("unit_price must be >= 0")
    if price > MAX_PRICE:
        raise InvalidArgumentError(f"unit_price cannot exceed {MAX_PRICE:,}")
    if qty < ZERO:
        raise InvalidArgumentError("quantity must be >= 0")
    if qty > MAX_QUANTITY:
        raise InvalidArgumentError(f"quantity cannot exceed {MAX_QUANTITY:,}")
    rate = to_decimal(tax_rate if tax_rate is not None else 0, "tax_rate")
    if not (ZERO <= rate <= HUNDRED):
        raise InvalidArgumentError("tax_rate must be between 0 and 100")

    base_price = price * qty
    wpu = weight_per_unit if weight_per_unit is not None else 0
    total_weight = to_kilograms(wpu, weight_unit) * qty

    delivery = calculate_delivery_charge(total_weight, "kg", tiers)
    tax_amount = (base_price + delivery.delivery_charge) * rate / HUNDRED
    total_amount = base_price + delivery.delivery_charge + tax_amount

    return DeliveryQuote(
        base_price=base_price,
        total_weight=total_weight,
        delivery_charge=delivery.delivery_charge,
        tax_amount=tax_amount,
        total_amount=total_amount,
        tier_used=delivery.tier,
    )
