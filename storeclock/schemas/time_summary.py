"""
Labor summary schemas. All durations are whole minutes.
"""
from datetime import date
from typing import List, Optional

from pydantic import BaseModel


class BucketOut(BaseModel):
    """One week or month of a summary; end_date is inclusive"""
    start_date: date
    end_date: date
    total_mins: int
    regular_mins: int
    overtime_mins: int
    interval_count: int
    open_interval: bool


class DayOut(BaseModel):
    day: date
    total_mins: int
    overtime_mins: int
    interval_count: int


class WeeklySummaryResponse(BaseModel):
    store_id: int
    user_id: int
    from_date: date
    to_date: date
    week_starts_on: int
    overtime_threshold_mins: Optional[int]
    daily_overtime_threshold_mins: Optional[int]
    total_mins: int
    regular_mins: int
    overtime_mins: int
    interval_count: int
    open_interval: bool
    weeks: List[BucketOut]
    months: List[BucketOut]
    by_day: List[DayOut]


class MonthlySummaryResponse(BaseModel):
    store_id: int
    user_id: int
    year: int
    month: int
    overtime_threshold_mins: Optional[int]
    daily_overtime_threshold_mins: Optional[int]
    total_mins: int
    regular_mins: int
    overtime_mins: int
    interval_count: int
    open_interval: bool
    weeks: List[BucketOut]


class StaffSummaryRow(BaseModel):
    user_id: int
    name: Optional[str]
    email: Optional[str]
    total_mins: int
    regular_mins: int
    overtime_mins: int
    interval_count: int
    open_interval: bool


class StaffMonthlySummaryResponse(BaseModel):
    store_id: int
    year: int
    month: int
    overtime_threshold_mins: Optional[int]
    staff: List[StaffSummaryRow]
