"""
Time entry endpoints: listing and manager review
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storeclock.core.clock import Clock
from storeclock.core.deps import get_clock, get_db, get_store_membership, is_store_admin, require_store_roles
from storeclock.models.store import Membership, MembershipRole
from storeclock.models.time_entry import TimeEntryStatus
from storeclock.schemas.time_entry import ReviewRequest, TimeEntryListResponse, TimeEntryOut
from storeclock.services.time_entry_service import list_pending, list_time_entries, review_time_entry

router = APIRouter()


@router.get("/{store_id}/time-entries", response_model=TimeEntryListResponse)
async def get_time_entries(
    store_id: int,
    user_id: Optional[int] = Query(None, description="Filter by user (OWNER/MANAGER only)"),
    from_date: Optional[date] = Query(None, alias="from"),
    to_date: Optional[date] = Query(None, alias="to"),
    entry_status: Optional[TimeEntryStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    membership: Membership = Depends(get_store_membership),
    db: Session = Depends(get_db),
):
    """
    Time entries of the store, newest first.

    Workers always get only their own entries; OWNER/MANAGER see everyone
    unless user_id is given.
    """
    if not is_store_admin(membership):
        user_id = membership.user_id

    items, total = list_time_entries(
        db,
        store_id=store_id,
        user_id=user_id,
        from_date=from_date,
        to_date=to_date,
        entry_status=entry_status,
        page=page,
        page_size=page_size,
    )
    return TimeEntryListResponse(items=items, total=total)


@router.get("/{store_id}/time-entries/pending", response_model=List[TimeEntryOut])
async def get_pending_time_entries(
    store_id: int,
    membership: Membership = Depends(require_store_roles(MembershipRole.OWNER, MembershipRole.MANAGER)),
    db: Session = Depends(get_db),
):
    """Entries awaiting review (OWNER/MANAGER)"""
    return list_pending(db, store_id)


@router.patch("/{store_id}/time-entries/{entry_id}/review", response_model=TimeEntryOut)
async def review_entry(
    store_id: int,
    entry_id: int,
    body: ReviewRequest,
    membership: Membership = Depends(require_store_roles(MembershipRole.OWNER, MembershipRole.MANAGER)),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Approve or reject a PENDING_REVIEW entry (OWNER/MANAGER)"""
    return review_time_entry(
        db,
        store_id=store_id,
        entry_id=entry_id,
        reviewer_id=membership.user_id,
        outcome=body.status,
        now=clock.now(),
        note=body.note,
    )
