# Overview: Flask API routes for weight pricing tiers and delivery quotes.

"""
Weight pricing routes.

Tier management requires MANAGE_PRICING; listing and quotes require
VIEW_PRICING. Every tier belongs to the caller's company.
"""

from flask import Blueprint, request, g, current_app

from ..models import WeightPricingTier
from ..services import weight_pricing_service as pricing_service
from ..services.weight_pricing_service import WeightPricingError
from ..services.tenant_service import TenantAccessError, require_owned
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_weight_tier,
    ValidationError,
)
from ..decorators import require_auth, require_permission

TIER_POLICY = ModelValidationPolicy(
    writable_fields={"tier_name", "min_weight", "max_weight", "base_price", "per_kg_rate", "status", "sort_order"},
    required_on_create={"tier_name", "min_weight", "base_price"},
)

weight_pricing_bp = Blueprint("weight_pricing", __name__, url_prefix="/api/weight-pricing")


def _load_tier(tier_id: int) -> WeightPricingTier:
    return require_owned(WeightPricingTier, tier_id, g.company_id, label="Pricing tier")


# =============================================================================
# TIERS
# =============================================================================

@weight_pricing_bp.get("/tiers")
@require_auth
@require_permission("VIEW_PRICING")
def list_tiers_route():
    """Query params: status (active | inactive)"""
    tiers = pricing_service.list_tiers(company_id=g.company_id, status=request.args.get("status"))
    return {"tiers": [t.to_dict() for t in tiers], "count": len(tiers)}


@weight_pricing_bp.post("/tiers")
@require_auth
@require_permission("MANAGE_PRICING")
def create_tier_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=WeightPricingTier, payload=payload, policy=TIER_POLICY, partial=False)
        enforce_rules_weight_tier(patch)
        tier = pricing_service.create_tier(company_id=g.company_id, patch=patch, user_id=g.current_user.id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except WeightPricingError as e:
        return {"error": str(e)}, 409

    return {"tier": tier.to_dict()}, 201


@weight_pricing_bp.get("/tiers/<int:tier_id>")
@require_auth
@require_permission("VIEW_PRICING")
def get_tier_route(tier_id: int):
    try:
        tier = _load_tier(tier_id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    return {"tier": tier.to_dict()}


@weight_pricing_bp.put("/tiers/<int:tier_id>")
@require_auth
@require_permission("MANAGE_PRICING")
def update_tier_route(tier_id: int):
    try:
        tier = _load_tier(tier_id)
        patch = validate_payload(
            model=WeightPricingTier, payload=request.get_json(silent=True) or {}, policy=TIER_POLICY, partial=True
        )
        enforce_rules_weight_tier(patch)
        tier = pricing_service.update_tier(tier, patch=patch, user_id=g.current_user.id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except WeightPricingError as e:
        return {"error": str(e)}, 409

    return {"tier": tier.to_dict()}


@weight_pricing_bp.post("/tiers/<int:tier_id>/toggle")
@require_auth
@require_permission("MANAGE_PRICING")
def toggle_tier_route(tier_id: int):
    try:
        tier = pricing_service.toggle_tier_status(_load_tier(tier_id), user_id=g.current_user.id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except WeightPricingError as e:
        return {"error": str(e)}, 409

    return {"tier": tier.to_dict()}


@weight_pricing_bp.post("/tiers/reorder")
@require_auth
@require_permission("MANAGE_PRICING")
def reorder_tiers_route():
    """Request body: {"tier_ids": [3, 1, 2]}"""
    tier_ids = (request.get_json(silent=True) or {}).get("tier_ids")
    try:
        tiers = pricing_service.reorder_tiers(company_id=g.company_id, tier_ids=tier_ids, user_id=g.current_user.id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except WeightPricingError as e:
        return {"error": str(e)}, 404

    return {"tiers": [t.to_dict() for t in tiers]}


@weight_pricing_bp.delete("/tiers/<int:tier_id>")
@require_auth
@require_permission("MANAGE_PRICING")
def delete_tier_route(tier_id: int):
    try:
        tier = _load_tier(tier_id)
    except TenantAccessError as e:
        return {"error": str(e)}, 404

    pricing_service.delete_tier(tier, user_id=g.current_user.id)
    return {"ok": True}, 200


# =============================================================================
# QUOTES
# =============================================================================

@weight_pricing_bp.post("/calculate")
@require_auth
@require_permission("VIEW_PRICING")
def calculate_route():
    """
    Delivery charge for a weight.

    Request body: {"weight": 2.5, "unit": "kg"}  (unit: kg, g, lb, oz)
    """
    data = request.get_json(silent=True) or {}
    if "weight" not in data:
        return {"error": "weight is required"}, 400

    try:
        result = pricing_service.calculate_delivery_price(g.company_id, data["weight"], data.get("unit") or "kg")
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to calculate delivery charge")
        return {"error": "Internal server error"}, 500

    return result.to_dict()


@weight_pricing_bp.post("/breakdown")
@require_auth
@require_permission("VIEW_PRICING")
def breakdown_route():
    """Request body: {"weights": [0.5, 2, 10], "unit": "kg"}"""
    data = request.get_json(silent=True) or {}
    try:
        breakdown = pricing_service.get_pricing_breakdown(g.company_id, data.get("weights"), data.get("unit") or "kg")
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {"breakdown": breakdown}


@weight_pricing_bp.get("/sample-table")
@require_auth
@require_permission("VIEW_PRICING")
def sample_table_route():
    return {"table": pricing_service.generate_sample_pricing_table(g.company_id)}


@weight_pricing_bp.get("/analysis")
@require_auth
@require_permission("MANAGE_PRICING")
def analysis_route():
    return pricing_service.analyze_pricing_tiers(g.company_id)
