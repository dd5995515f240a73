# Overview: Service-layer operations for weight pricing tiers and delivery quotes.

"""
Weight Pricing Tier Service

Each company maintains its own delivery tariff as a list of weight tiers.
This module owns the tier table (CRUD, ordering, status) and is the tier
provider for the pure calculator in printshop.pricing.

INVARIANTS:
- The provider returns only the company's active tiers, ordered by
  min_weight, then sort_order, then id.
- Active tiers of one company never overlap. Two ranges overlap when
  new_min < existing_max and new_max > existing_min (open upper bounds are
  infinite), so tiers may share a boundary value; the shared boundary is
  priced by the lower tier because selection is first-match.
- Inactive tiers are ignored by both the overlap check and pricing.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import WeightPricingTier
from ..pricing import (
    DeliveryCharge,
    calculate_delivery_charge,
    money_str,
    qmoney,
    weight_str,
)
from ..validation import ValidationError
from .activity_service import append_activity
from .concurrency import run_with_retry

TIER_MUTABLE_FIELDS = {"tier_name", "min_weight", "max_weight", "base_price", "per_kg_rate", "status", "sort_order"}

SAMPLE_WEIGHTS = [
    Decimal("0.5"), Decimal("1"), Decimal("2"), Decimal("3"), Decimal("5"),
    Decimal("10"), Decimal("15"), Decimal("20"), Decimal("25"), Decimal("50"),
]


class WeightPricingError(Exception):
    """Raised for weight pricing tier business rule violations."""
    pass


def get_active_tiers(company_id: int) -> list[WeightPricingTier]:
    """Tier provider for the calculator."""
    return (
        db.session.query(WeightPricingTier)
        .filter(
            WeightPricingTier.company_id == company_id,
            WeightPricingTier.status == "active",
        )
        .order_by(
            WeightPricingTier.min_weight.asc(),
            WeightPricingTier.sort_order.asc(),
            WeightPricingTier.id.asc(),
        )
        .all()
    )


def list_tiers(*, company_id: int, status: str | None = None) -> list[WeightPricingTier]:
    query = db.session.query(WeightPricingTier).filter(WeightPricingTier.company_id == company_id)
    if status:
        query = query.filter(WeightPricingTier.status == status)
    return query.order_by(
        WeightPricingTier.sort_order.asc(),
        WeightPricingTier.min_weight.asc(),
        WeightPricingTier.id.asc(),
    ).all()


def _ranges_overlap(min_a: Decimal, max_a: Decimal | None, min_b: Decimal, max_b: Decimal | None) -> bool:
    a_upper_above_b = max_a is None or max_a > min_b
    b_upper_above_a = max_b is None or min_a < max_b
    return a_upper_above_b and b_upper_above_a


def validate_weight_range(
    company_id: int,
    min_weight: Decimal,
    max_weight: Decimal | None,
    exclude_tier_id: int | None = None,
) -> None:
    """Raise WeightPricingError if [min, max] overlaps an active tier."""
    if min_weight < 0:
        raise WeightPricingError("min_weight must be >= 0")
    if max_weight is not None and max_weight <= min_weight:
        raise WeightPricingError("max_weight must be greater than min_weight")

    for tier in get_active_tiers(company_id):
        if exclude_tier_id is not None and tier.id == exclude_tier_id:
            continue
        if _ranges_overlap(min_weight, max_weight, Decimal(tier.min_weight),
                           Decimal(tier.max_weight) if tier.max_weight is not None else None):
            raise WeightPricingError(f"Weight range overlaps with existing tier: {tier.tier_name}")


def _next_sort_order(company_id: int) -> int:
    current = (
        db.session.query(db.func.max(WeightPricingTier.sort_order))
        .filter(WeightPricingTier.company_id == company_id)
        .scalar()
    )
    return (current or 0) + 1


def create_tier(*, company_id: int, patch: dict, user_id: int | None = None) -> WeightPricingTier:
    def _op():
        status = patch.get("status") or "active"
        if status == "active":
            validate_weight_range(company_id, patch["min_weight"], patch.get("max_weight"))

        tier = WeightPricingTier(company_id=company_id, status=status, per_kg_rate=Decimal("0"))
        for k, v in patch.items():
            if k in TIER_MUTABLE_FIELDS:
                setattr(tier, k, v)
        if tier.sort_order is None:
            tier.sort_order = _next_sort_order(company_id)

        db.session.add(tier)
        db.session.flush()

        append_activity(
            company_id=company_id,
            user_id=user_id,
            action="pricing_tier.created",
            entity_type="weight_pricing_tier",
            entity_id=tier.id,
            description=f"Created tier {tier.tier_name} ({tier.weight_range})",
        )
        db.session.commit()
        return tier

    return run_with_retry(_op)


def update_tier(tier: WeightPricingTier, *, patch: dict, user_id: int | None = None) -> WeightPricingTier:
    """Apply a validated patch; the merged range is re-checked for overlap."""
    def _op():
        min_weight = patch.get("min_weight", tier.min_weight)
        max_weight = patch["max_weight"] if "max_weight" in patch else tier.max_weight
        status = patch.get("status", tier.status)

        min_weight = Decimal(min_weight)
        max_weight = Decimal(max_weight) if max_weight is not None else None
        if max_weight is not None and max_weight <= min_weight:
            raise WeightPricingError("max_weight must be greater than min_weight")
        if status == "active":
            validate_weight_range(tier.company_id, min_weight, max_weight, exclude_tier_id=tier.id)

        for k, v in patch.items():
            if k in TIER_MUTABLE_FIELDS:
                setattr(tier, k, v)

        append_activity(
            company_id=tier.company_id,
            user_id=user_id,
            action="pricing_tier.updated",
            entity_type="weight_pricing_tier",
            entity_id=tier.id,
            description=f"Updated fields: {', '.join(sorted(patch))}",
        )
        db.session.commit()
        return tier

    return run_with_retry(_op)


def toggle_tier_status(tier: WeightPricingTier, *, user_id: int | None = None) -> WeightPricingTier:
    """Flip active/inactive. Re-activation must not overlap current active tiers."""
    def _op():
        if tier.status == "active":
            tier.status = "inactive"
        else:
            validate_weight_range(
                tier.company_id,
                Decimal(tier.min_weight),
                Decimal(tier.max_weight) if tier.max_weight is not None else None,
                exclude_tier_id=tier.id,
            )
            tier.status = "active"

        append_activity(
            company_id=tier.company_id,
            user_id=user_id,
            action=f"pricing_tier.{'activated' if tier.status == 'active' else 'deactivated'}",
            entity_type="weight_pricing_tier",
            entity_id=tier.id,
        )
        db.session.commit()
        return tier

    return run_with_retry(_op)


def reorder_tiers(*, company_id: int, tier_ids: list[int], user_id: int | None = None) -> list[WeightPricingTier]:
    """Set sort_order = position + 1 for each id in tier_ids."""
    if not tier_ids or not all(isinstance(t, int) and not isinstance(t, bool) for t in tier_ids):
        raise ValidationError("tier_ids must be a non-empty list of integers")
    if len(set(tier_ids)) != len(tier_ids):
        raise ValidationError("tier_ids must not contain duplicates")

    tiers = (
        db.session.query(WeightPricingTier)
        .filter(
            WeightPricingTier.company_id == company_id,
            WeightPricingTier.id.in_(tier_ids),
        )
        .all()
    )
    by_id = {t.id: t for t in tiers}
    missing = [t for t in tier_ids if t not in by_id]
    if missing:
        raise WeightPricingError(f"Pricing tiers not found: {missing}")

    for index, tier_id in enumerate(tier_ids):
        by_id[tier_id].sort_order = index + 1

    append_activity(
        company_id=company_id,
        user_id=user_id,
        action="pricing_tier.reordered",
        entity_type="weight_pricing_tier",
        entity_id=tier_ids[0],
        description=f"New order: {tier_ids}",
    )
    db.session.commit()
    return [by_id[t] for t in tier_ids]


def delete_tier(tier: WeightPricingTier, *, user_id: int | None = None) -> None:
    append_activity(
        company_id=tier.company_id,
        user_id=user_id,
        action="pricing_tier.deleted",
        entity_type="weight_pricing_tier",
        entity_id=tier.id,
        description=f"Deleted tier {tier.tier_name} ({tier.weight_range})",
    )
    db.session.delete(tier)
    db.session.commit()


# =============================================================================
# QUOTES
# =============================================================================

def calculate_delivery_price(company_id: int, weight, unit: str | None = "kg") -> DeliveryCharge:
    """Delivery charge for a weight using the company's active tiers."""
    result = calculate_delivery_charge(weight, unit, get_active_tiers(company_id))
    if result.tier is None:
        current_app.logger.info(
            "No active weight tier matches %s kg for company %s; delivery charge is 0",
            weight_str(result.weight_kg), company_id,
        )
    return result


def get_pricing_breakdown(company_id: int, weights: list, unit: str | None = "kg") -> list[dict]:
    if not isinstance(weights, list) or not weights:
        raise ValidationError("weights must be a non-empty list")

    tiers = get_active_tiers(company_id)
    breakdown = []
    for weight in weights:
        result = calculate_delivery_charge(weight, unit, tiers)
        breakdown.append({
            "weight": str(weight),
            "unit": unit or "kg",
            "weight_kg": weight_str(result.weight_kg),
            "tier": result.tier_name,
            "price": money_str(result.delivery_charge),
            "breakdown": {
                "base_price": money_str(result.base_price),
                "additional_price": money_str(result.additional_price),
            },
        })
    return breakdown


def generate_sample_pricing_table(company_id: int) -> list[dict]:
    tiers = get_active_tiers(company_id)
    table = []
    for weight in SAMPLE_WEIGHTS:
        result = calculate_delivery_charge(weight, "kg", tiers)
        table.append({
            "weight": f"{weight}kg",
            "tier": result.tier_name or "No tier",
            "price": money_str(result.delivery_charge),
            "base_price": money_str(result.base_price),
            "additional_price": money_str(result.additional_price),
        })
    return table


def analyze_pricing_tiers(company_id: int) -> dict:
    """
    Review the active tariff: uncovered weight ranges, tiers priced below
    lighter tiers, and the overall covered range.
    """
    active = get_active_tiers(company_id)
    total = db.session.query(WeightPricingTier).filter_by(company_id=company_id).count()

    suggestions = []
    previous_max: Decimal | None = Decimal("0")
    for tier in active:
        tier_min = Decimal(tier.min_weight)
        if previous_max is not None and tier_min > previous_max:
            suggestions.append({
                "type": "gap",
                "message": f"Gap in weight range from {weight_str(previous_max)}kg to {weight_str(tier_min)}kg",
                "recommendation": "Consider adding a tier to cover this weight range",
            })
        if tier.max_weight is None:
            previous_max = None
        elif previous_max is not None:
            previous_max = max(previous_max, Decimal(tier.max_weight))

    for lighter, heavier in zip(active, active[1:]):
        if qmoney(lighter.base_price) > qmoney(heavier.base_price):
            suggestions.append({
                "type": "pricing_inconsistency",
                "message": (
                    f"Tier '{lighter.tier_name}' has higher base price than '{heavier.tier_name}'"
                ),
                "recommendation": "Consider adjusting pricing to maintain logical progression",
            })

    if not active:
        coverage = {
            "min_covered_weight": "0",
            "max_covered_weight": "0",
            "total_coverage": "0kg - 0kg",
            "tiers_count": 0,
            "gaps": ["No pricing tiers defined"],
        }
    else:
        min_covered = weight_str(active[0].min_weight)
        max_covered = "unlimited" if previous_max is None else weight_str(previous_max)
        upper = max_covered if previous_max is None else f"{max_covered}kg"
        coverage = {
            "min_covered_weight": min_covered,
            "max_covered_weight": max_covered,
            "total_coverage": f"{min_covered}kg - {upper}",
            "tiers_count": len(active),
        }

    return {
        "total_tiers": total,
        "active_tiers": len(active),
        "suggestions": suggestions,
        "coverage_analysis": coverage,
    }
