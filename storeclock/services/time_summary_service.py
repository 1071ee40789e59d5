"""
Labor summaries for a store: load time entries and the store's labor rules,
then hand them to the accounting engine.

Counted entries: APPROVED and PENDING_REVIEW. REJECTED entries never count.
Date ranges are calendar dates in settings.TZ; `to` is inclusive.
"""
import logging
from calendar import monthrange
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from storeclock.core.exceptions import InvalidTimeRange
from storeclock.models.store import Membership, Store
from storeclock.models.time_entry import TimeEntry, TimeEntryStatus, TimeEntryType
from storeclock.models.user import User
from storeclock.services import time_accounting
from storeclock.utils.datetime_utils import date_range_to_utc, get_zone

_log = logging.getLogger(__name__)

COUNTED_STATUSES = (TimeEntryStatus.APPROVED.value, TimeEntryStatus.PENDING_REVIEW.value)
MAX_RANGE_DAYS = 366


def get_store_or_404(db: Session, store_id: int) -> Store:
    store = db.query(Store).filter(Store.id == store_id).first()
    if not store:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Store not found")
    return store


def get_member_or_404(db: Session, store_id: int, user_id: int) -> Membership:
    """Membership of the user whose summary is requested"""
    membership = db.query(Membership).filter(
        Membership.store_id == store_id,
        Membership.user_id == user_id,
    ).first()
    if not membership:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Target user is not a member of this store",
        )
    return membership


def daily_threshold(store: Store) -> Optional[int]:
    return store.overtime_daily_minutes if store.overtime_daily_enabled else None


def weekly_threshold(store: Store) -> Optional[int]:
    return store.overtime_weekly_minutes if store.overtime_weekly_enabled else None


def monthly_threshold(store: Store) -> Optional[int]:
    return store.overtime_monthly_minutes if store.overtime_monthly_enabled else None


def _validate_dates(from_date: date, to_date: date) -> None:
    if to_date < from_date:
        raise InvalidTimeRange("'to' must not be before 'from'")
    if (to_date - from_date).days >= MAX_RANGE_DAYS:
        raise InvalidTimeRange(f"Date range cannot exceed {MAX_RANGE_DAYS} days")


def _month_dates(year: int, month: int):
    if not 1 <= month <= 12:
        raise InvalidTimeRange("month must be between 1 and 12")
    first = date(year, month, 1)
    return first, first.replace(day=monthrange(year, month)[1])


def load_counted_entries(db: Session, store_id: int, start, end, user_id: Optional[int] = None) -> List[TimeEntry]:
    """
    Counted entries needed to pair every interval checked in during [start, end).

    That is the entries in [start, end) plus, for each user whose last entry
    in range is a CHECK_IN, their next counted entry at or after `end`, so a
    shift running past the end of the range still closes. Entries before
    `start` are not loaded: they can only close intervals that belong to an
    earlier period.
    """
    def counted():
        query = db.query(TimeEntry).filter(
            TimeEntry.store_id == store_id,
            TimeEntry.status.in_(COUNTED_STATUSES),
        )
        if user_id is not None:
            query = query.filter(TimeEntry.user_id == user_id)
        return query

    entries = (
        counted()
        .filter(TimeEntry.timestamp >= start, TimeEntry.timestamp < end)
        .order_by(TimeEntry.timestamp.asc(), TimeEntry.id.asc())
        .all()
    )

    last_type = {}
    for entry in entries:
        last_type[entry.user_id] = entry.type
    for uid, entry_type in sorted(last_type.items()):
        if entry_type != TimeEntryType.CHECK_IN.value:
            continue
        following = (
            counted()
            .filter(TimeEntry.user_id == uid, TimeEntry.timestamp >= end)
            .order_by(TimeEntry.timestamp.asc(), TimeEntry.id.asc())
            .first()
        )
        if following is not None:
            entries.append(following)
    return entries


def _bucket_dict(bucket: time_accounting.BucketSummary) -> Dict:
    return {
        "start_date": bucket.start_date,
        "end_date": bucket.end_date,
        "total_mins": bucket.total_mins,
        "regular_mins": bucket.regular_mins,
        "overtime_mins": bucket.overtime_mins,
        "interval_count": bucket.interval_count,
        "open_interval": bucket.open_interval,
    }


def _day_dict(bucket: time_accounting.BucketSummary) -> Dict:
    return {
        "day": bucket.start_date,
        "total_mins": bucket.total_mins,
        "overtime_mins": bucket.overtime_mins,
        "interval_count": bucket.interval_count,
    }


def get_weekly_summary(
    db: Session,
    store_id: int,
    user_id: int,
    from_date: date,
    to_date: date,
    week_starts_on: Optional[int] = None,
) -> Dict:
    """
    Weekly totals for one user over [from_date, to_date].

    Overtime is computed per week: the larger of the week's overage beyond
    the weekly threshold and its summed daily overage. The range totals are
    the sum of the weeks. Calendar months the range touches are listed too,
    each against the monthly threshold.
    """
    _validate_dates(from_date, to_date)
    store = get_store_or_404(db, store_id)
    if week_starts_on is None:
        week_starts_on = store.week_starts_on

    tz = get_zone()
    start, end = date_range_to_utc(from_date, to_date, tz)
    entries = load_counted_entries(db, store_id, start, end, user_id=user_id)

    threshold = weekly_threshold(store)
    daily = daily_threshold(store)
    weeks = time_accounting.summarize_by_week(
        entries, start, end, week_starts_on, threshold, tz=tz, daily_overtime_threshold_minutes=daily,
    )
    months = time_accounting.summarize_by_month(
        entries, start, end, week_starts_on, monthly_threshold(store), tz=tz, daily_overtime_threshold_minutes=daily,
    )
    days = time_accounting.summarize_by_day(entries, start, end, tz=tz, overtime_threshold_minutes=daily)
    overall = time_accounting.summarize(entries, start, end, week_starts_on, None)

    overtime = sum(w.overtime_mins for w in weeks)
    return {
        "store_id": store_id,
        "user_id": user_id,
        "from_date": from_date,
        "to_date": to_date,
        "week_starts_on": week_starts_on,
        "overtime_threshold_mins": threshold,
        "daily_overtime_threshold_mins": daily,
        "total_mins": overall.total_mins,
        "regular_mins": overall.total_mins - overtime,
        "overtime_mins": overtime,
        "interval_count": overall.interval_count,
        "open_interval": overall.open_interval,
        "weeks": [_bucket_dict(w) for w in weeks],
        "months": [_bucket_dict(m) for m in months],
        "by_day": [_day_dict(d) for d in days],
    }


def get_monthly_summary(db: Session, store_id: int, user_id: int, year: int, month: int) -> Dict:
    """
    Monthly totals for one user with a weekly breakdown.

    Overtime is the larger of the overage beyond the monthly threshold and
    the summed daily overage.
    """
    first, last = _month_dates(year, month)
    store = get_store_or_404(db, store_id)

    tz = get_zone()
    start, end = date_range_to_utc(first, last, tz)
    entries = load_counted_entries(db, store_id, start, end, user_id=user_id)

    threshold = monthly_threshold(store)
    daily = daily_threshold(store)
    summary = time_accounting.summarize(entries, start, end, store.week_starts_on, threshold, daily, tz=tz)
    weeks = time_accounting.summarize_by_week(
        entries, start, end, store.week_starts_on, weekly_threshold(store),
        tz=tz, daily_overtime_threshold_minutes=daily,
    )
    return {
        "store_id": store_id,
        "user_id": user_id,
        "year": year,
        "month": month,
        "overtime_threshold_mins": threshold,
        "daily_overtime_threshold_mins": daily,
        "total_mins": summary.total_mins,
        "regular_mins": summary.regular_mins,
        "overtime_mins": summary.overtime_mins,
        "interval_count": summary.interval_count,
        "open_interval": summary.open_interval,
        "weeks": [_bucket_dict(w) for w in weeks],
    }


def get_staff_monthly_summary(db: Session, store_id: int, year: int, month: int) -> Dict:
    """One row per user with counted entries in the month, ordered by name."""
    first, last = _month_dates(year, month)
    store = get_store_or_404(db, store_id)

    tz = get_zone()
    start, end = date_range_to_utc(first, last, tz)
    entries = load_counted_entries(db, store_id, start, end)

    by_user = defaultdict(list)
    for entry in entries:
        by_user[entry.user_id].append(entry)

    users = {}
    if by_user:
        users = {u.id: u for u in db.query(User).filter(User.id.in_(list(by_user))).all()}

    threshold = monthly_threshold(store)
    daily = daily_threshold(store)
    rows = []
    for uid, user_entries in by_user.items():
        summary = time_accounting.summarize(user_entries, start, end, store.week_starts_on, threshold, daily, tz=tz)
        user = users.get(uid)
        rows.append({
            "user_id": uid,
            "name": user.name if user else None,
            "email": user.email if user else None,
            "total_mins": summary.total_mins,
            "regular_mins": summary.regular_mins,
            "overtime_mins": summary.overtime_mins,
            "interval_count": summary.interval_count,
            "open_interval": summary.open_interval,
        })
    rows.sort(key=lambda r: ((r["name"] or "").lower(), r["user_id"]))

    _log.debug("Staff monthly summary store_id=%s %s-%02d rows=%s", store_id, year, month, len(rows))
    return {
        "store_id": store_id,
        "year": year,
        "month": month,
        "overtime_threshold_mins": threshold,
        "staff": rows,
    }
