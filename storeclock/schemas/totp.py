"""
QR check-in code schemas
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator

from storeclock.models.time_entry import TimeEntryType
from storeclock.utils.datetime_utils import iso_8601_utc


class QRCodeResponse(BaseModel):
    """Current check-in code for a store. expires_at is the end of the code's window."""
    payload: str
    qr_code_data_url: str
    token: str
    expires_at: datetime
    generation: int

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("expires_at", when_used="always")
    def _ser_datetime(self, dt):
        return iso_8601_utc(dt)


class ResetResponse(BaseModel):
    """Result of rotating a store's secret"""
    message: str
    generation: int


class CheckinRequest(BaseModel):
    """
    Scanned code plus the attempted action. Send the full scanned payload
    (preferred) or the bare token.
    """
    payload: Optional[str] = Field(None, max_length=512, description="Scanned QR payload")
    token: Optional[str] = Field(None, max_length=32, description="Bare token, if no payload")
    type: TimeEntryType = Field(..., description="CHECK_IN or CHECK_OUT")
    latitude: Optional[float] = Field(None, description="GPS latitude")
    longitude: Optional[float] = Field(None, description="GPS longitude")
    accuracy: Optional[float] = Field(None, ge=0, description="GPS accuracy in meters")
    client_timestamp: Optional[datetime] = Field(None, description="Device time of the scan")

    @model_validator(mode="after")
    def _payload_or_token(self):
        if not self.payload and not self.token:
            raise ValueError("Either payload or token is required")
        return self
