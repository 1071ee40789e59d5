"""
Store membership endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storeclock.core.deps import get_db, require_store_roles
from storeclock.models.store import Membership, MembershipRole
from storeclock.schemas.membership import MembershipOut, MemberUpsert
from storeclock.services.store_service import add_member

router = APIRouter()


@router.put("/{store_id}/members", response_model=MembershipOut)
async def upsert_member(
    store_id: int,
    body: MemberUpsert,
    membership: Membership = Depends(require_store_roles(MembershipRole.OWNER)),
    db: Session = Depends(get_db),
):
    """Add a user by email or change their role (OWNER)"""
    return add_member(db, store_id, membership.user_id, body.email, body.role)
