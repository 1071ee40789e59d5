"""
Labor rule schemas
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class LaborRulesOut(BaseModel):
    """week_starts_on: 0=Sunday, 1=Monday, ..., 6=Saturday"""
    week_starts_on: int
    overtime_daily_enabled: bool
    overtime_daily_minutes: int
    overtime_weekly_enabled: bool
    overtime_weekly_minutes: int
    overtime_monthly_enabled: bool
    overtime_monthly_minutes: int

    model_config = ConfigDict(from_attributes=True)


class LaborRulesUpdate(BaseModel):
    """Partial update; omitted fields keep their value"""
    week_starts_on: Optional[int] = Field(None, ge=0, le=6)
    overtime_daily_enabled: Optional[bool] = None
    overtime_daily_minutes: Optional[int] = Field(None, ge=0)
    overtime_weekly_enabled: Optional[bool] = None
    overtime_weekly_minutes: Optional[int] = Field(None, ge=0)
    overtime_monthly_enabled: Optional[bool] = None
    overtime_monthly_minutes: Optional[int] = Field(None, ge=0)
