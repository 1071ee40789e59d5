"""
Labor rule endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storeclock.core.deps import get_db, get_store_membership, require_store_roles
from storeclock.models.store import Membership, MembershipRole
from storeclock.schemas.labor_rules import LaborRulesOut, LaborRulesUpdate
from storeclock.services.labor_rules_service import get_labor_rules, update_labor_rules

router = APIRouter()


@router.get("/{store_id}/labor-rules", response_model=LaborRulesOut)
async def read_labor_rules(
    store_id: int,
    membership: Membership = Depends(get_store_membership),
    db: Session = Depends(get_db),
):
    """Week start and overtime thresholds (any member)"""
    return get_labor_rules(db, store_id)


@router.put("/{store_id}/labor-rules", response_model=LaborRulesOut)
async def write_labor_rules(
    store_id: int,
    body: LaborRulesUpdate,
    membership: Membership = Depends(require_store_roles(MembershipRole.OWNER)),
    db: Session = Depends(get_db),
):
    """Update labor rules (OWNER)"""
    return update_labor_rules(db, store_id, membership.user_id, body.model_dump(exclude_unset=True))
