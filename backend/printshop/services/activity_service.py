# Overview: Service-layer operations for the business activity log.

from __future__ import annotations

from ..extensions import db
from ..models import ActivityLog
from printshop.time_utils import utcnow
from .pagination import paginate

"""
Activity Log Invariants

- Append-only: events are never updated or deleted.
- Events are added inside the same DB transaction as the change they
  record; append_activity() never commits.
- Reads are always filtered to one company.
"""


def append_activity(
    *,
    company_id: int,
    action: str,
    entity_type: str,
    entity_id: int,
    user_id: int | None = None,
    branch_id: int | None = None,
    description: str | None = None,
) -> ActivityLog:
    event = ActivityLog(
        company_id=company_id,
        branch_id=branch_id,
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        description=description,
        occurred_at=utcnow(),
    )
    db.session.add(event)
    return event


def list_activity(
    *,
    company_id: int,
    entity_type: str | None = None,
    entity_id: int | None = None,
    action: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(ActivityLog).filter(ActivityLog.company_id == company_id)
    if entity_type:
        query = query.filter(ActivityLog.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(ActivityLog.entity_id == entity_id)
    if action:
        query = query.filter(ActivityLog.action == action)

    query = query.order_by(ActivityLog.occurred_at.desc(), ActivityLog.id.desc())
    return paginate(query, page=page, per_page=per_page)
