# Overview: Flask API routes for the business activity log.

from flask import Blueprint, request, g

from ..services.activity_service import list_activity
from ..decorators import require_auth, require_permission

activity_bp = Blueprint("activity", __name__, url_prefix="/api/activity")


@activity_bp.get("")
@require_auth
@require_permission("VIEW_AUDIT_LOG")
def list_activity_route():
    """Query params: entity_type, entity_id, action, page, per_page"""
    return list_activity(
        company_id=g.company_id,
        entity_type=request.args.get("entity_type"),
        entity_id=request.args.get("entity_id", type=int),
        action=request.args.get("action"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
