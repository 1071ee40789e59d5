"""
Time entry schemas
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from storeclock.models.time_entry import TimeEntryStatus, TimeEntryType
from storeclock.utils.datetime_utils import iso_8601_utc


class TimeEntryOut(BaseModel):
    """Recorded check-in/check-out. Datetimes in UTC."""
    id: int
    store_id: int
    user_id: int
    type: TimeEntryType
    status: TimeEntryStatus
    timestamp: datetime
    client_timestamp: Optional[datetime] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy_meters: Optional[float] = None
    distance_miles: Optional[float] = None
    location_verified: bool
    reviewed_by_id: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    review_note: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("timestamp", "client_timestamp", "reviewed_at", when_used="always")
    def _ser_datetime(self, dt):
        return iso_8601_utc(dt)


class TimeEntryListResponse(BaseModel):
    items: List[TimeEntryOut]
    total: int


class ReviewRequest(BaseModel):
    """Manager decision on a PENDING_REVIEW entry"""
    status: TimeEntryStatus = Field(..., description="APPROVED or REJECTED")
    note: Optional[str] = Field(None, max_length=500)
