"""
Time accounting: pair CHECK_IN/CHECK_OUT entries into worked intervals and
roll them up into period totals with overtime.

Pure functions over in-memory entries. Callers decide which entries count
(status filtering happens in the summary service).

Pairing rules, applied per user in timestamp order:
- CHECK_IN with nothing open opens an interval
- CHECK_OUT closes the open interval
- CHECK_IN while already open closes the open interval at that instant and
  opens a new one
- CHECK_OUT with nothing open is ignored
- an interval still open when the entries run out contributes 0 minutes

Entries without a `user_id` attribute are paired as a single user.

A closed interval belongs to the period holding its check-in instant, even
when its check-out falls after the period end. Pass the entries around the
period too (see time_summary_service.load_counted_entries) so intervals that
cross a period boundary can be closed.

Overtime for a period is the larger of the period overage (minutes beyond
the period threshold) and the summed daily overage (minutes beyond the daily
threshold on each local check-in date).
"""
from calendar import monthrange
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from storeclock.core.exceptions import InvalidTimeRange
from storeclock.models.time_entry import TimeEntryType
from storeclock.utils.datetime_utils import ensure_utc, get_zone, local_date


@dataclass(frozen=True)
class Interval:
    start: datetime
    end: datetime
    user_id: Optional[int] = None

    @property
    def minutes(self) -> int:
        seconds = (self.end - self.start).total_seconds()
        return max(0, int(seconds // 60))


@dataclass
class Pairing:
    intervals: List[Interval] = field(default_factory=list)
    open_by_user: Dict[Optional[int], datetime] = field(default_factory=dict)
    orphan_checkouts: int = 0

    @property
    def open_since(self) -> Optional[datetime]:
        """Earliest check-in still waiting for its CHECK_OUT"""
        return min(self.open_by_user.values()) if self.open_by_user else None

    @property
    def open_interval(self) -> bool:
        return bool(self.open_by_user)


@dataclass(frozen=True)
class PeriodSummary:
    period_start: datetime
    period_end: datetime
    total_mins: int
    regular_mins: int
    overtime_mins: int
    interval_count: int
    open_interval: bool


@dataclass(frozen=True)
class BucketSummary:
    """One week, month or day of a summary. end_date is inclusive."""
    start_date: date
    end_date: date
    total_mins: int
    regular_mins: int
    overtime_mins: int
    interval_count: int
    open_interval: bool = False


def _type_of(entry) -> str:
    value = entry.type
    return value.value if isinstance(value, TimeEntryType) else str(value)


def _sort_key(entry):
    # CHECK_IN sorts before CHECK_OUT at the same instant
    return (
        ensure_utc(entry.timestamp),
        0 if _type_of(entry) == TimeEntryType.CHECK_IN.value else 1,
        getattr(entry, "id", None) or 0,
    )


def pair_intervals(entries: Iterable) -> Pairing:
    """Pair entries (anything with `type` and `timestamp`) into intervals, per user."""
    result = Pairing()
    for entry in sorted(entries, key=_sort_key):
        ts = ensure_utc(entry.timestamp)
        user_id = getattr(entry, "user_id", None)
        opened = result.open_by_user.pop(user_id, None)
        if _type_of(entry) == TimeEntryType.CHECK_IN.value:
            if opened is not None:
                result.intervals.append(Interval(opened, ts, user_id))
            result.open_by_user[user_id] = ts
        else:
            if opened is None:
                result.orphan_checkouts += 1
                continue
            result.intervals.append(Interval(opened, ts, user_id))
    return result


def split_overtime(total_mins: int, threshold_mins: Optional[int], daily_overtime_mins: int = 0) -> Tuple[int, int]:
    """
    (regular, overtime).

    Overtime is the larger of the overage beyond threshold_mins and
    daily_overtime_mins. A threshold of None means no period overage.
    """
    overage = 0
    if threshold_mins is not None:
        overage = max(0, total_mins - max(0, threshold_mins))
    overtime = min(total_mins, max(overage, daily_overtime_mins))
    return total_mins - overtime, overtime


def daily_overtime(intervals: Iterable[Interval], threshold_mins: Optional[int], tz: ZoneInfo) -> int:
    """Minutes beyond threshold_mins, summed over each user's local check-in dates."""
    if threshold_mins is None:
        return 0
    threshold_mins = max(0, threshold_mins)
    per_day = defaultdict(int)
    for interval in intervals:
        per_day[(interval.user_id, local_date(interval.start, tz))] += interval.minutes
    return sum(max(0, minutes - threshold_mins) for minutes in per_day.values())


def _check_range(period_start: datetime, period_end: datetime) -> Tuple[datetime, datetime]:
    period_start = ensure_utc(period_start)
    period_end = ensure_utc(period_end)
    if period_end < period_start:
        raise InvalidTimeRange()
    return period_start, period_end


def _started_in(
    pairing: Pairing, period_start: datetime, period_end: datetime,
) -> Tuple[List[Interval], List[datetime]]:
    """Closed intervals and still-open check-ins whose check-in lies in [period_start, period_end)."""
    intervals = [i for i in pairing.intervals if period_start <= i.start < period_end]
    still_open = [ts for ts in pairing.open_by_user.values() if period_start <= ts < period_end]
    return intervals, still_open


def summarize(
    entries: Iterable,
    period_start: datetime,
    period_end: datetime,
    week_starts_on: int = 0,
    overtime_threshold_minutes: Optional[int] = None,
    daily_overtime_threshold_minutes: Optional[int] = None,
    tz: Optional[ZoneInfo] = None,
) -> PeriodSummary:
    """
    Totals for intervals checked in during [period_start, period_end).

    week_starts_on does not change a single-period total; it is accepted so
    every summarize_* call takes the same labor-rule arguments. tz picks the
    local dates the daily threshold applies to (settings.TZ by default).

    Raises:
        InvalidTimeRange: period_end is before period_start
    """
    period_start, period_end = _check_range(period_start, period_end)
    intervals, still_open = _started_in(pair_intervals(entries), period_start, period_end)
    total = sum(i.minutes for i in intervals)
    daily = 0
    if daily_overtime_threshold_minutes is not None:
        daily = daily_overtime(intervals, daily_overtime_threshold_minutes, tz or get_zone())
    regular, overtime = split_overtime(total, overtime_threshold_minutes, daily)
    return PeriodSummary(
        period_start=period_start,
        period_end=period_end,
        total_mins=total,
        regular_mins=regular,
        overtime_mins=overtime,
        interval_count=len(intervals),
        open_interval=bool(still_open),
    )


def week_start(d: date, week_starts_on: int = 0) -> date:
    """First day of the week containing d. week_starts_on: 0=Sunday ... 6=Saturday."""
    if not 0 <= week_starts_on <= 6:
        raise ValueError("week_starts_on must be between 0 (Sunday) and 6 (Saturday)")
    day_of_week = (d.weekday() + 1) % 7  # Sunday=0
    return d - timedelta(days=(day_of_week - week_starts_on + 7) % 7)


def month_start(d: date) -> date:
    return d.replace(day=1)


def _month_end(d: date) -> date:
    return d.replace(day=monthrange(d.year, d.month)[1])


def _next_month(d: date) -> date:
    return _month_end(d) + timedelta(days=1)


def _last_local_date(period_start: datetime, period_end: datetime, tz: ZoneInfo) -> date:
    if period_end == period_start:
        return local_date(period_start, tz)
    return local_date(period_end - timedelta(microseconds=1), tz)


def _bucketed(
    entries: Iterable,
    period_start: datetime,
    period_end: datetime,
    bucket_starts: List[date],
    bucket_of,
    bucket_end,
    threshold: Optional[int],
    daily_threshold: Optional[int],
    tz: ZoneInfo,
) -> List[BucketSummary]:
    intervals, still_open = _started_in(pair_intervals(entries), period_start, period_end)

    grouped = {start: [] for start in bucket_starts}
    for interval in intervals:
        grouped.setdefault(bucket_of(local_date(interval.start, tz)), []).append(interval)

    open_keys = {bucket_of(local_date(ts, tz)) for ts in still_open}

    buckets = []
    for start in sorted(grouped):
        members = grouped[start]
        minutes = sum(i.minutes for i in members)
        regular, overtime = split_overtime(minutes, threshold, daily_overtime(members, daily_threshold, tz))
        buckets.append(BucketSummary(
            start_date=start,
            end_date=bucket_end(start),
            total_mins=minutes,
            regular_mins=regular,
            overtime_mins=overtime,
            interval_count=len(members),
            open_interval=start in open_keys,
        ))
    return buckets


def summarize_by_week(
    entries: Iterable,
    period_start: datetime,
    period_end: datetime,
    week_starts_on: int = 0,
    overtime_threshold_minutes: Optional[int] = None,
    tz: Optional[ZoneInfo] = None,
    daily_overtime_threshold_minutes: Optional[int] = None,
) -> List[BucketSummary]:
    """
    One bucket per week the range touches, empty weeks included. An interval
    belongs to the week of its check-in date; overtime is per week.
    """
    period_start, period_end = _check_range(period_start, period_end)
    tz = tz or get_zone()

    first = week_start(local_date(period_start, tz), week_starts_on)
    last = week_start(_last_local_date(period_start, period_end, tz), week_starts_on)
    starts = []
    current = first
    while current <= last:
        starts.append(current)
        current += timedelta(days=7)

    return _bucketed(
        entries, period_start, period_end, starts,
        bucket_of=lambda d: week_start(d, week_starts_on),
        bucket_end=lambda s: s + timedelta(days=6),
        threshold=overtime_threshold_minutes,
        daily_threshold=daily_overtime_threshold_minutes,
        tz=tz,
    )


def summarize_by_month(
    entries: Iterable,
    period_start: datetime,
    period_end: datetime,
    week_starts_on: int = 0,
    overtime_threshold_minutes: Optional[int] = None,
    tz: Optional[ZoneInfo] = None,
    daily_overtime_threshold_minutes: Optional[int] = None,
) -> List[BucketSummary]:
    """Like summarize_by_week, bucketed by calendar month."""
    period_start, period_end = _check_range(period_start, period_end)
    tz = tz or get_zone()

    first = month_start(local_date(period_start, tz))
    last = month_start(_last_local_date(period_start, period_end, tz))
    starts = []
    current = first
    while current <= last:
        starts.append(current)
        current = _next_month(current)

    return _bucketed(
        entries, period_start, period_end, starts,
        bucket_of=month_start,
        bucket_end=_month_end,
        threshold=overtime_threshold_minutes,
        daily_threshold=daily_overtime_threshold_minutes,
        tz=tz,
    )


def summarize_by_day(
    entries: Iterable,
    period_start: datetime,
    period_end: datetime,
    tz: Optional[ZoneInfo] = None,
    overtime_threshold_minutes: Optional[int] = None,
) -> List[BucketSummary]:
    """Per-date totals for every local date in the range, overtime against a daily threshold."""
    period_start, period_end = _check_range(period_start, period_end)
    tz = tz or get_zone()

    first = local_date(period_start, tz)
    last = _last_local_date(period_start, period_end, tz)
    starts = [first + timedelta(days=n) for n in range((last - first).days + 1)]

    return _bucketed(
        entries, period_start, period_end, starts,
        bucket_of=lambda d: d,
        bucket_end=lambda s: s,
        threshold=overtime_threshold_minutes,
        daily_threshold=None,
        tz=tz,
    )
