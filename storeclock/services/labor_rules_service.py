"""
Per-store labor rules: week start and overtime thresholds
"""
import logging
from typing import Any, Dict

from sqlalchemy.orm import Session

from storeclock.models.store import Store
from storeclock.services.audit_service import log_audit
from storeclock.services.time_summary_service import get_store_or_404

_log = logging.getLogger(__name__)

LABOR_RULE_FIELDS = (
    "week_starts_on",
    "overtime_daily_enabled",
    "overtime_daily_minutes",
    "overtime_weekly_enabled",
    "overtime_weekly_minutes",
    "overtime_monthly_enabled",
    "overtime_monthly_minutes",
)


def get_labor_rules(db: Session, store_id: int) -> Store:
    return get_store_or_404(db, store_id)


def update_labor_rules(db: Session, store_id: int, actor_id: int, changes: Dict[str, Any]) -> Store:
    """Apply a partial update; only labor-rule fields are touched."""
    store = get_store_or_404(db, store_id)

    applied = {}
    for field in LABOR_RULE_FIELDS:
        if field in changes and changes[field] is not None:
            old = getattr(store, field)
            if old != changes[field]:
                applied[field] = {"old": old, "new": changes[field]}
                setattr(store, field, changes[field])

    if applied:
        log_audit(
            db=db,
            actor_id=actor_id,
            action="LABOR_RULES_UPDATE",
            entity_type="stores",
            entity_id=store.id,
            meta=applied,
            commit=False,
        )
        db.commit()
        db.refresh(store)
        _log.info("Labor rules updated for store_id=%s fields=%s", store_id, sorted(applied))
    return store
