"""
Labor summary endpoints
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from storeclock.core.deps import get_db, get_store_membership, require_store_roles
from storeclock.models.store import Membership, MembershipRole
from storeclock.schemas.time_summary import (
    MonthlySummaryResponse,
    StaffMonthlySummaryResponse,
    WeeklySummaryResponse,
)
from storeclock.services.time_summary_service import (
    get_member_or_404,
    get_monthly_summary,
    get_staff_monthly_summary,
    get_weekly_summary,
)

router = APIRouter()

_admin = require_store_roles(MembershipRole.OWNER, MembershipRole.MANAGER)


@router.get("/{store_id}/me/summary/weekly", response_model=WeeklySummaryResponse)
async def my_weekly_summary(
    store_id: int,
    from_date: date = Query(..., alias="from"),
    to_date: date = Query(..., alias="to"),
    week_starts_on: Optional[int] = Query(None, ge=0, le=6, description="Override the store's week start"),
    membership: Membership = Depends(get_store_membership),
    db: Session = Depends(get_db),
):
    """Own worked minutes per week over [from, to] (both inclusive)"""
    return get_weekly_summary(db, store_id, membership.user_id, from_date, to_date, week_starts_on)


@router.get("/{store_id}/me/summary/monthly/{year}/{month}", response_model=MonthlySummaryResponse)
async def my_monthly_summary(
    store_id: int,
    year: int = Path(..., ge=2000, le=2100),
    month: int = Path(..., ge=1, le=12),
    membership: Membership = Depends(get_store_membership),
    db: Session = Depends(get_db),
):
    """Own worked minutes for a calendar month"""
    return get_monthly_summary(db, store_id, membership.user_id, year, month)


@router.get("/{store_id}/summary/users/{user_id}/weekly", response_model=WeeklySummaryResponse)
async def user_weekly_summary(
    store_id: int,
    user_id: int,
    from_date: date = Query(..., alias="from"),
    to_date: date = Query(..., alias="to"),
    week_starts_on: Optional[int] = Query(None, ge=0, le=6),
    membership: Membership = Depends(_admin),
    db: Session = Depends(get_db),
):
    """Weekly summary of any user in the store (OWNER/MANAGER)"""
    get_member_or_404(db, store_id, user_id)
    return get_weekly_summary(db, store_id, user_id, from_date, to_date, week_starts_on)


@router.get("/{store_id}/summary/users/{user_id}/monthly/{year}/{month}", response_model=MonthlySummaryResponse)
async def user_monthly_summary(
    store_id: int,
    user_id: int,
    year: int = Path(..., ge=2000, le=2100),
    month: int = Path(..., ge=1, le=12),
    membership: Membership = Depends(_admin),
    db: Session = Depends(get_db),
):
    """Monthly summary of any user in the store (OWNER/MANAGER)"""
    get_member_or_404(db, store_id, user_id)
    return get_monthly_summary(db, store_id, user_id, year, month)


@router.get("/{store_id}/summary/staff/monthly/{year}/{month}", response_model=StaffMonthlySummaryResponse)
async def staff_monthly_summary(
    store_id: int,
    year: int = Path(..., ge=2000, le=2100),
    month: int = Path(..., ge=1, le=12),
    membership: Membership = Depends(_admin),
    db: Session = Depends(get_db),
):
    """One row per staff member with entries in the month (OWNER/MANAGER)"""
    return get_staff_monthly_summary(db, store_id, year, month)
