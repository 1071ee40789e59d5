"""
Time entry listing and manual review.

Review is the only way an entry leaves PENDING_REVIEW, and the only way to
reach REJECTED.
"""
import logging
from datetime import date, datetime
from typing import List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from storeclock.models.time_entry import TimeEntry, TimeEntryStatus
from storeclock.services.audit_service import log_audit
from storeclock.utils.datetime_utils import date_range_to_utc, get_zone

_log = logging.getLogger(__name__)

REVIEW_OUTCOMES = (TimeEntryStatus.APPROVED, TimeEntryStatus.REJECTED)


def list_time_entries(
    db: Session,
    store_id: int,
    user_id: Optional[int] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    entry_status: Optional[TimeEntryStatus] = None,
    page: int = 1,
    page_size: int = 50,
) -> Tuple[List[TimeEntry], int]:
    """
    Entries of a store, newest first, with optional filters.

    Returns:
        (items, total)
    """
    if from_date and to_date and to_date < from_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="'to' must not be before 'from'",
        )

    query = db.query(TimeEntry).filter(TimeEntry.store_id == store_id)
    if user_id is not None:
        query = query.filter(TimeEntry.user_id == user_id)
    if entry_status is not None:
        query = query.filter(TimeEntry.status == TimeEntryStatus(entry_status).value)

    tz = get_zone()
    if from_date:
        start, _ = date_range_to_utc(from_date, from_date, tz)
        query = query.filter(TimeEntry.timestamp >= start)
    if to_date:
        _, end = date_range_to_utc(to_date, to_date, tz)
        query = query.filter(TimeEntry.timestamp < end)

    total = query.count()
    items = (
        query.order_by(TimeEntry.timestamp.desc(), TimeEntry.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return items, total


def list_pending(db: Session, store_id: int) -> List[TimeEntry]:
    """Entries awaiting review, oldest first."""
    return (
        db.query(TimeEntry)
        .filter(
            TimeEntry.store_id == store_id,
            TimeEntry.status == TimeEntryStatus.PENDING_REVIEW.value,
        )
        .order_by(TimeEntry.timestamp.asc(), TimeEntry.id.asc())
        .all()
    )


def review_time_entry(
    db: Session,
    store_id: int,
    entry_id: int,
    reviewer_id: int,
    outcome: TimeEntryStatus,
    now: datetime,
    note: Optional[str] = None,
) -> TimeEntry:
    """
    Move a PENDING_REVIEW entry to APPROVED or REJECTED.

    Raises:
        HTTPException 404: entry not found in this store
        HTTPException 400: entry is not pending, or outcome is not a review outcome
    """
    outcome = TimeEntryStatus(outcome)
    if outcome not in REVIEW_OUTCOMES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Review outcome must be APPROVED or REJECTED",
        )

    entry = (
        db.query(TimeEntry)
        .filter(TimeEntry.id == entry_id, TimeEntry.store_id == store_id)
        .first()
    )
    if not entry:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Time entry not found")

    if entry.status != TimeEntryStatus.PENDING_REVIEW.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot review time entry with status {entry.status}",
        )

    old_status = entry.status
    entry.status = outcome.value
    entry.reviewed_by_id = reviewer_id
    entry.reviewed_at = now
    entry.review_note = note

    log_audit(
        db=db,
        actor_id=reviewer_id,
        action="TIME_ENTRY_REVIEW",
        entity_type="time_entries",
        entity_id=entry.id,
        meta={
            "store_id": store_id,
            "old_status": old_status,
            "new_status": outcome.value,
            "note": note,
        },
        commit=False,
    )
    db.commit()
    db.refresh(entry)

    _log.info("Time entry %s reviewed by user_id=%s: %s -> %s", entry.id, reviewer_id, old_status, outcome.value)
    return entry
